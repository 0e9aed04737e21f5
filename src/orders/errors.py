"""Error kinds raised by the orders context that Protean does not provide.

Validation, not-found and state-conflict failures use Protean's own
``ValidationError``, ``ObjectNotFoundError`` and ``InvalidOperationError``.
"""


class AuthorizationError(Exception):
    """The acting user may not perform this action on this order."""


class ConcurrentModificationError(Exception):
    """The order changed since the caller last read it. Reload and retry."""


def describe(exc: Exception):
    """Return the payload of an exception suitable for logs and responses."""
    messages = getattr(exc, "messages", None)
    if messages is not None:
        return messages
    return str(exc)

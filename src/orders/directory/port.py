"""Directory port: read access to users and their saved addresses.

Identity management lives outside this context. The lifecycle only needs to
know whether a user holds a role (operator assignment), what a user is
called (timelines and staff views), and who owns a saved address.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class DirectoryUser:
    user_id: str
    name: str
    roles: frozenset[str] = field(default_factory=frozenset)

    def has_role(self, role: str) -> bool:
        return role in self.roles


@dataclass(frozen=True)
class SavedAddress:
    """An address from a customer's address book."""

    address_id: str
    owner_id: str
    recipient_name: str | None
    phone: str | None
    address_line: str
    city: str
    state: str | None
    zip: str | None
    country: str


class Directory(ABC):
    """Abstract user directory interface."""

    @abstractmethod
    def find_user(self, user_id: str) -> DirectoryUser | None: ...

    @abstractmethod
    def find_address(self, address_id: str) -> SavedAddress | None: ...

"""In-memory directory for development and testing."""

from orders.directory.port import Directory, DirectoryUser, SavedAddress


class FakeDirectory(Directory):
    def __init__(self) -> None:
        self.users: dict[str, DirectoryUser] = {}
        self.addresses: dict[str, SavedAddress] = {}

    def add_user(self, user_id: str, name: str, *roles: str) -> DirectoryUser:
        user = DirectoryUser(user_id=user_id, name=name, roles=frozenset(roles))
        self.users[user_id] = user
        return user

    def add_address(self, address_id: str, owner_id: str, **fields) -> SavedAddress:
        address = SavedAddress(
            address_id=address_id,
            owner_id=owner_id,
            recipient_name=fields.get("recipient_name"),
            phone=fields.get("phone"),
            address_line=fields["address_line"],
            city=fields["city"],
            state=fields.get("state"),
            zip=fields.get("zip"),
            country=fields["country"],
        )
        self.addresses[address_id] = address
        return address

    def find_user(self, user_id: str) -> DirectoryUser | None:
        return self.users.get(user_id)

    def find_address(self, address_id: str) -> SavedAddress | None:
        return self.addresses.get(address_id)

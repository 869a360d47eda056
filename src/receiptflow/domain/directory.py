"""Users and the entities they belong to."""

from receiptflow.database.base import Database
from receiptflow.domain.entities import Entity, User
from receiptflow.domain.errors import ValidationError

UNASSIGNED_ENTITY = "Unassigned"


class DirectoryService:
    """Service for entity membership used by routing and reporting."""

    def __init__(self, db: Database):
        self.db = db

    def create_entity(self, entity_id: str, name: str) -> Entity:
        """Create an entity.

        Raises:
            ValidationError: If the ID or name is blank
            ConflictError: If the ID is taken
        """
        entity_id, name = entity_id.strip(), name.strip()
        if not entity_id or not name:
            raise ValidationError("Entity ID and name must not be empty")
        return self.db.create_entity(entity_id, name)

    def list_entities(self) -> list[Entity]:
        return self.db.list_entities()

    def register_user(self, user_id: str) -> User:
        if not user_id.strip():
            raise ValidationError("User ID must not be empty")
        return self.db.ensure_user(user_id)

    def assign_user_to_entity(self, user_id: str, entity_id: str) -> None:
        """Move a user into an entity. Raises NotFoundError for an unknown entity."""
        self.db.set_user_entity(user_id, entity_id)

    def entity_name_for_user(self, user_id: str) -> str:
        """Return the display name of a user's entity, or "Unassigned"."""
        user = self.db.get_user(user_id)
        if user is None or user.entity_id is None:
            return UNASSIGNED_ENTITY
        entity = self.db.get_entity(user.entity_id)
        return entity.name if entity is not None else UNASSIGNED_ENTITY

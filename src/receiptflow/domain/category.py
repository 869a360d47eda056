"""Category domain service."""

from typing import Optional

from receiptflow.database.base import Database
from receiptflow.domain.entities import Category
from receiptflow.domain.errors import NotFoundError, ValidationError, category_not_found

DEFAULT_CATEGORIES = [
    ("Maintenance", "Repairs and upkeep"),
    ("Cleaning Supplies", "Cleaning products and equipment"),
    ("Utilities", "Power, water, gas and telecoms"),
    ("Supplies", "General consumables"),
    ("Other", "Anything not covered above"),
]


class CategoryService:
    """Service for the closed category registry."""

    def __init__(self, db: Database):
        """Initialize category service.

        Args:
            db: Database instance
        """
        self.db = db

    def create_category(self, name: str, description: Optional[str] = None) -> int:
        """Create a category.

        Args:
            name: Category name, matched exactly during validation
            description: Optional description

        Returns:
            Category ID

        Raises:
            ValidationError: If the name is blank
            ConflictError: If the category already exists
        """
        name = name.strip()
        if not name:
            raise ValidationError("Category name must not be empty")
        return self.db.create_category(name=name, description=description)

    def list_categories(self) -> list[Category]:
        """List all categories."""
        return self.db.list_categories()

    def delete_category(self, name: str) -> None:
        """Delete a category by name.

        Receipts already finalized keep the category text they were stored with.
        """
        category = self.db.get_category_by_name(name)
        if category is None:
            raise NotFoundError(category_not_found(name))
        self.db.delete_category(category.id)

    def registry(self) -> frozenset[str]:
        """Return the category names receipts may use.

        An empty table means the built-in defaults apply.
        """
        names = frozenset(category.name for category in self.db.list_categories())
        return names or frozenset(name for name, _ in DEFAULT_CATEGORIES)

    def initialize_defaults(self) -> tuple[int, int]:
        """Create any missing default categories.

        Returns:
            Tuple of (created, already existing)
        """
        created = existing = 0
        for name, description in DEFAULT_CATEGORIES:
            if self.db.get_category_by_name(name) is not None:
                existing += 1
                continue
            self.db.create_category(name=name, description=description)
            created += 1
        return created, existing

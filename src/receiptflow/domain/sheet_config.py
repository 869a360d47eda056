"""Administration of destination sheet configs."""

import re
from dataclasses import replace
from typing import Optional

from receiptflow.database.base import Database
from receiptflow.domain.audit import AuditLog
from receiptflow.domain.entities import (
    Entity,
    SheetAssignment,
    SheetConfig,
    SheetHealth,
    SheetStatus,
    SheetTabs,
    User,
)
from receiptflow.domain.errors import NotFoundError, ValidationError, sheet_config_not_found
from receiptflow.domain.ledger import LedgerWriter

NAME_MAX_LENGTH = 100
_SHEET_IDENTIFIER = re.compile(r"^[A-Za-z0-9_-]+$")


class SheetConfigService:
    """Service for creating, assigning and retiring sheet configs.

    All mutations are administrator actions and are recorded in the audit
    log under the acting admin's ID.
    """

    def __init__(self, db: Database, audit: AuditLog, ledger: Optional[LedgerWriter] = None):
        """Initialize sheet config service.

        Args:
            db: Database instance
            audit: Audit log for admin actions
            ledger: Ledger writer used for health checks
        """
        self.db = db
        self.audit = audit
        self.ledger = ledger

    def _validate(self, name: str, sheet_identifier: str, tabs: SheetTabs) -> None:
        if not name.strip():
            raise ValidationError("Sheet config name must not be empty")
        if len(name) > NAME_MAX_LENGTH:
            raise ValidationError(f"Sheet config name must be at most {NAME_MAX_LENGTH} characters")
        if not _SHEET_IDENTIFIER.match(sheet_identifier):
            raise ValidationError(
                f"Sheet identifier '{sheet_identifier}' may only contain letters, digits, '-' and '_'"
            )
        if not tabs.main_tab_name.strip() or not tabs.accountant_tab_name.strip():
            raise ValidationError("Tab names must not be empty")
        if tabs.main_tab_name == tabs.accountant_tab_name:
            raise ValidationError("Main and accountant tabs must be different")

    def get_config(self, config_id: int) -> SheetConfig:
        """Get a config by ID.

        Raises:
            NotFoundError: If the config does not exist
        """
        config = self.db.get_sheet_config(config_id)
        if config is None:
            raise NotFoundError(sheet_config_not_found(config_id))
        return config

    def list_configs(self, include_inactive: bool = False) -> list[SheetConfig]:
        return self.db.list_sheet_configs(include_inactive=include_inactive)

    def create_config(
        self,
        name: str,
        sheet_identifier: str,
        *,
        admin_id: str,
        is_default: bool = False,
        tabs: Optional[SheetTabs] = None,
        assigned_to: Optional[SheetAssignment] = None,
    ) -> SheetConfig:
        """Create a config.

        Args:
            name: Display name
            sheet_identifier: Identifier of the destination sheet in the sink
            admin_id: Acting administrator
            is_default: Make this the default destination, clearing any other default
            tabs: Tab naming (defaults to Sheet1 / Accountant_CSV_Ready)
            assigned_to: Informational assignment metadata

        Returns:
            The created config

        Raises:
            ValidationError: On a blank name, malformed identifier or bad tab names
        """
        tabs = tabs or SheetTabs()
        self._validate(name, sheet_identifier, tabs)
        config_id = self.db.create_sheet_config(
            name.strip(),
            sheet_identifier,
            is_default=is_default,
            assigned_to=assigned_to or SheetAssignment(),
            tabs=tabs,
            created_by=admin_id,
        )
        self.audit.info(
            "create_sheet_config",
            f"Sheet config {config_id} '{name}' created",
            user_id=admin_id,
            context={"sheet_identifier": sheet_identifier, "is_default": is_default},
        )
        return self.get_config(config_id)

    def update_config(
        self,
        config_id: int,
        *,
        admin_id: str,
        name: Optional[str] = None,
        sheet_identifier: Optional[str] = None,
        is_default: Optional[bool] = None,
        tabs: Optional[SheetTabs] = None,
        status: Optional[SheetStatus] = None,
        assigned_to: Optional[SheetAssignment] = None,
    ) -> SheetConfig:
        """Update a config. Only the arguments given are changed.

        Setting ``is_default=True`` clears the flag on every other config in
        the same transaction.
        """
        current = self.get_config(config_id)
        fields = {
            key: value
            for key, value in {
                "name": name,
                "sheet_identifier": sheet_identifier,
                "is_default": is_default,
                "tabs": tabs,
                "status": status,
                "assigned_to": assigned_to,
            }.items()
            if value is not None
        }
        if not fields:
            return current

        candidate = replace(current, **fields)
        self._validate(candidate.name, candidate.sheet_identifier, candidate.tabs)
        self.db.update_sheet_config(config_id, **fields)
        self.audit.info(
            "update_sheet_config",
            f"Sheet config {config_id} updated",
            user_id=admin_id,
            context={"fields": sorted(fields)},
        )
        return self.get_config(config_id)

    def deactivate_config(self, config_id: int, *, admin_id: str) -> SheetConfig:
        """Retire a config. It is kept so finalized receipts still resolve their destination."""
        self.get_config(config_id)
        self.db.update_sheet_config(config_id, status=SheetStatus.INACTIVE)
        self.audit.info(
            "deactivate_sheet_config",
            f"Sheet config {config_id} deactivated",
            user_id=admin_id,
        )
        return self.get_config(config_id)

    def _require_assignable(self, config_id: int) -> SheetConfig:
        config = self.get_config(config_id)
        if config.status == SheetStatus.INACTIVE:
            raise ValidationError(f"Sheet config {config_id} is inactive and cannot be assigned")
        return config

    def assign_to_user(self, config_id: int, user_id: str, *, admin_id: str) -> None:
        """Give a user a direct override to a config."""
        self._require_assignable(config_id)
        self.db.assign_sheet_config_to_user(config_id, user_id)
        self.audit.info(
            "assign_sheet_to_user",
            f"User {user_id} assigned to sheet config {config_id}",
            user_id=admin_id,
            context={"target_user_id": user_id, "config_id": config_id},
        )

    def unassign_user(self, user_id: str, *, admin_id: str) -> None:
        """Remove a user's direct override."""
        self.db.assign_sheet_config_to_user(None, user_id)
        self.audit.info(
            "unassign_sheet_from_user",
            f"User {user_id} no longer has a sheet override",
            user_id=admin_id,
            context={"target_user_id": user_id},
        )

    def assign_to_entity(self, config_id: int, entity_id: str, *, admin_id: str) -> None:
        """Route every member of an entity (without a user override) to a config."""
        self._require_assignable(config_id)
        self.db.assign_sheet_config_to_entity(config_id, entity_id)
        self.audit.info(
            "assign_sheet_to_entity",
            f"Entity {entity_id} assigned to sheet config {config_id}",
            user_id=admin_id,
            context={"entity_id": entity_id, "config_id": config_id},
        )

    def unassign_entity(self, entity_id: str, *, admin_id: str) -> None:
        """Remove an entity's sheet override."""
        self.db.assign_sheet_config_to_entity(None, entity_id)
        self.audit.info(
            "unassign_sheet_from_entity",
            f"Entity {entity_id} no longer has a sheet override",
            user_id=admin_id,
            context={"entity_id": entity_id},
        )

    def users_for_config(self, config_id: int) -> list[User]:
        self.get_config(config_id)
        return self.db.list_users_for_sheet_config(config_id)

    def entities_for_config(self, config_id: int) -> list[Entity]:
        self.get_config(config_id)
        return self.db.list_entities_for_sheet_config(config_id)

    def check_health(self, config_id: int, *, admin_id: str) -> SheetHealth:
        """Check a destination through the ledger sink and record the result.

        An unhealthy active config is flagged with status error; a healthy
        config in error goes back to active. Inactive configs stay inactive.
        """
        if self.ledger is None:
            raise ValidationError("No ledger sink configured for health checks")
        config = self.get_config(config_id)
        health = self.ledger.check_health(config)
        health = replace(health, checked_at=health.checked_at or self.audit.clock())

        status = config.status
        if status != SheetStatus.INACTIVE:
            status = SheetStatus.ACTIVE if health.is_healthy else SheetStatus.ERROR
        self.db.record_sheet_health(config_id, health, status)

        if health.is_healthy:
            self.audit.info("check_sheet_health", f"Sheet config {config_id} is healthy", user_id=admin_id)
        else:
            self.audit.error(
                "check_sheet_health",
                f"Sheet config {config_id} is unhealthy: {health.error_message}",
                user_id=admin_id,
                context={
                    "accessible": health.accessible,
                    "has_permissions": health.has_permissions,
                    "tabs_exist": health.tabs_exist,
                },
            )
        return health

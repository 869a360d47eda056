"""Destination ledger resolution.

Resolution walks an ordered list of strategies; each returns a config or
None, and the first hit wins. The last step is the deployment-wide legacy
destination, so ``resolve`` always has an answer.
"""

import logging
import warnings
from typing import Callable, Optional

from receiptflow.database.base import Database
from receiptflow.domain.audit import AuditLog
from receiptflow.domain.entities import SheetConfig
from receiptflow.domain.errors import ConfigurationAmbiguityWarning

logger = logging.getLogger(__name__)

LEGACY_CONFIG_NAME = "Legacy destination"

Strategy = Callable[[str], Optional[SheetConfig]]


def legacy_sheet_config(sheet_identifier: str) -> SheetConfig:
    """Build the out-of-database fallback destination."""
    return SheetConfig(id=None, name=LEGACY_CONFIG_NAME, sheet_identifier=sheet_identifier)


class SheetRoutingResolver:
    """Maps a user to exactly one destination sheet config."""

    def __init__(self, db: Database, legacy_sheet_identifier: str, audit: AuditLog):
        """Initialize resolver.

        Args:
            db: Database instance
            legacy_sheet_identifier: Destination used when nothing else matches
            audit: Audit log for ambiguity and lookup failure reports
        """
        self.db = db
        self.audit = audit
        self.legacy_config = legacy_sheet_config(legacy_sheet_identifier)
        self.strategies: list[tuple[str, Strategy]] = [
            ("user_override", self._user_override),
            ("entity_override", self._entity_override),
            ("default_config", self._default_config),
        ]

    def resolve(self, user_id: str) -> SheetConfig:
        """Resolve the destination for a user. Never raises.

        Args:
            user_id: User whose receipt is being routed

        Returns:
            The first active config found by user override, entity override
            or default flag, else the legacy destination
        """
        for name, strategy in self.strategies:
            try:
                config = strategy(user_id)
            except Exception as e:
                # Fall through to the next step
                self.audit.error(
                    "resolve_sheet",
                    f"Routing step {name} failed, trying next: {e}",
                    user_id=user_id,
                )
                continue
            if config is not None:
                logger.debug("Routed user %s to sheet %s via %s", user_id, config.id, name)
                return config
        return self.legacy_config

    def _active_config(self, config_id: Optional[int]) -> Optional[SheetConfig]:
        if config_id is None:
            return None
        config = self.db.get_sheet_config(config_id)
        if config is None or not config.is_active:
            # Dangling or deactivated reference: fall through
            return None
        return config

    def _user_override(self, user_id: str) -> Optional[SheetConfig]:
        user = self.db.get_user(user_id)
        return self._active_config(user.sheet_config_id) if user is not None else None

    def _entity_override(self, user_id: str) -> Optional[SheetConfig]:
        user = self.db.get_user(user_id)
        if user is None or user.entity_id is None:
            return None
        entity = self.db.get_entity(user.entity_id)
        return self._active_config(entity.sheet_config_id) if entity is not None else None

    def _default_config(self, user_id: str) -> Optional[SheetConfig]:
        defaults = self.db.list_active_default_sheet_configs()
        if not defaults:
            return None
        chosen = defaults[0]
        if len(defaults) > 1:
            message = (
                f"{len(defaults)} active default sheet configs "
                f"({', '.join(str(config.id) for config in defaults)}); "
                f"using most recently modified config {chosen.id}"
            )
            warnings.warn(message, ConfigurationAmbiguityWarning, stacklevel=2)
            self.audit.warning(
                "resolve_sheet",
                message,
                user_id=user_id,
                context={"default_config_ids": [config.id for config in defaults]},
            )
        return chosen

"""Tests for destination sheet resolution."""

from datetime import datetime

import pytest
from sqlalchemy.exc import OperationalError

from receiptflow.database.models import SheetConfig as ORMSheetConfig
from receiptflow.domain.entities import LogFilter, Severity, SheetStatus
from receiptflow.domain.errors import ConfigurationAmbiguityWarning


@pytest.fixture
def resolver(services):
    return services.resolver


def test_scenario_e_user_override_beats_default(resolver, sheet_service):
    default = sheet_service.create_config("Shared", "shared-ledger", admin_id="admin", is_default=True)
    personal = sheet_service.create_config("Personal", "u-ledger", admin_id="admin")
    sheet_service.assign_to_user(personal.id, "u", admin_id="admin")

    assert resolver.resolve("u").id == personal.id
    assert resolver.resolve("other-user").id == default.id


def test_entity_override_between_user_and_default(resolver, sheet_service, services):
    sheet_service.create_config("Shared", "shared-ledger", admin_id="admin", is_default=True)
    acme = sheet_service.create_config("Acme", "acme-ledger", admin_id="admin")
    personal = sheet_service.create_config("Personal", "alice-ledger", admin_id="admin")
    services.directory.create_entity("acme", "Acme Ltd")
    services.directory.assign_user_to_entity("alice", "acme")
    services.directory.assign_user_to_entity("bob", "acme")
    sheet_service.assign_to_entity(acme.id, "acme", admin_id="admin")
    sheet_service.assign_to_user(personal.id, "alice", admin_id="admin")

    assert resolver.resolve("alice").id == personal.id
    assert resolver.resolve("bob").id == acme.id


def test_legacy_fallback_when_nothing_configured(resolver):
    config = resolver.resolve("nobody")

    assert config.is_legacy
    assert config.sheet_identifier == "legacy-ledger"


def test_inactive_override_falls_through(resolver, sheet_service):
    default = sheet_service.create_config("Shared", "shared-ledger", admin_id="admin", is_default=True)
    personal = sheet_service.create_config("Personal", "u-ledger", admin_id="admin")
    sheet_service.assign_to_user(personal.id, "u", admin_id="admin")

    sheet_service.deactivate_config(personal.id, admin_id="admin")

    assert resolver.resolve("u").id == default.id


def test_dangling_override_falls_through(resolver, sheet_service, temp_db):
    """A reference to a config that no longer exists is skipped."""
    personal = sheet_service.create_config("Personal", "u-ledger", admin_id="admin")
    sheet_service.assign_to_user(personal.id, "u", admin_id="admin")
    with temp_db._session() as session:
        session.query(ORMSheetConfig).filter(ORMSheetConfig.id == personal.id).delete()
        session.commit()

    assert resolver.resolve("u").is_legacy


def test_inactive_default_is_ignored(resolver, sheet_service):
    default = sheet_service.create_config("Shared", "shared-ledger", admin_id="admin", is_default=True)
    sheet_service.deactivate_config(default.id, admin_id="admin")

    assert resolver.resolve("u").is_legacy


def test_multiple_defaults_pick_most_recent_with_warning(resolver, sheet_service, temp_db, audit):
    older = sheet_service.create_config("Older", "older-ledger", admin_id="admin")
    newer = sheet_service.create_config("Newer", "newer-ledger", admin_id="admin")
    with temp_db._session() as session:
        for config_id, modified in ((older.id, datetime(2024, 1, 1)), (newer.id, datetime(2024, 3, 1))):
            session.query(ORMSheetConfig).filter(ORMSheetConfig.id == config_id).update(
                {"is_default": True, "last_modified": modified}
            )
        session.commit()

    with pytest.warns(ConfigurationAmbiguityWarning, match="2 active default"):
        chosen = resolver.resolve("u")

    assert chosen.id == newer.id
    warnings = audit.query_logs(LogFilter(severity=Severity.WARNING, operation="resolve_sheet"))
    assert len(warnings) == 1


def test_lookup_failure_falls_through_to_next_strategy(resolver, sheet_service, temp_db, monkeypatch, audit):
    """A failing lookup is logged and the cascade continues."""
    default = sheet_service.create_config("Shared", "shared-ledger", admin_id="admin", is_default=True)

    def broken_get_user(user_id):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    monkeypatch.setattr(temp_db, "get_user", broken_get_user)

    assert resolver.resolve("u").id == default.id
    errors = audit.query_logs(LogFilter(severity=Severity.ERROR, operation="resolve_sheet"))
    assert len(errors) == 2


def test_error_status_config_is_skipped(resolver, sheet_service):
    personal = sheet_service.create_config("Personal", "u-ledger", admin_id="admin")
    sheet_service.assign_to_user(personal.id, "u", admin_id="admin")
    sheet_service.update_config(personal.id, admin_id="admin", status=SheetStatus.ERROR)

    assert resolver.resolve("u").is_legacy


def test_unexpected_lookup_error_still_resolves(resolver, temp_db, monkeypatch, audit):
    """Errors other than storage errors never escape resolve either."""

    def broken_defaults():
        raise RuntimeError("driver bug")

    monkeypatch.setattr(temp_db, "list_active_default_sheet_configs", broken_defaults)

    assert resolver.resolve("u").is_legacy
    errors = audit.query_logs(LogFilter(severity=Severity.ERROR, operation="resolve_sheet"))
    assert "default_config" in errors[0].message
    assert "driver bug" in errors[0].message

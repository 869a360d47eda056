"""Sheet config administration commands."""

import click

from receiptflow.cli.error_handling import handle_domain_error
from receiptflow.domain.entities import SheetConfig, SheetStatus, SheetTabs
from receiptflow.domain.errors import DomainError

admin_option = click.option(
    "--admin",
    "admin_id",
    default="admin",
    envvar="RECEIPTFLOW_ADMIN",
    show_default=True,
    help="Acting administrator",
)


def _describe(config: SheetConfig) -> str:
    flags = []
    if config.is_default:
        flags.append("default")
    if config.status != SheetStatus.ACTIVE:
        flags.append(config.status.value)
    suffix = f" [{', '.join(flags)}]" if flags else ""
    return f"{config.name} -> {config.sheet_identifier}{suffix}"


@click.group()
def sheet_group():
    """Manage destination sheet configs."""
    pass


@sheet_group.command("create")
@click.argument("name")
@click.argument("sheet_identifier")
@click.option("--default", "is_default", is_flag=True, help="Make this the default destination")
@click.option("--main-tab", default="Sheet1", show_default=True, help="Main tab name")
@click.option("--accountant-tab", default="Accountant_CSV_Ready", show_default=True, help="Accountant tab name")
@click.option("--no-create-tabs", is_flag=True, help="Fail writes instead of creating missing tabs")
@admin_option
@click.pass_context
def create_sheet(
    ctx,
    name: str,
    sheet_identifier: str,
    is_default: bool,
    main_tab: str,
    accountant_tab: str,
    no_create_tabs: bool,
    admin_id: str,
):
    """Create a sheet config.

    Examples:
        receiptflow sheet create "Acme Ltd" acme-ledger
        receiptflow sheet create "Shared" shared-ledger --default
    """
    service = ctx.obj["services"].sheet_configs
    tabs = SheetTabs(
        main_tab_name=main_tab,
        accountant_tab_name=accountant_tab,
        create_tabs_if_missing=not no_create_tabs,
    )

    try:
        config = service.create_config(name, sheet_identifier, admin_id=admin_id, is_default=is_default, tabs=tabs)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Created sheet config '{config.name}' (ID: {config.id})")


@sheet_group.command("update")
@click.argument("config_id", type=int)
@click.option("--name", help="New display name")
@click.option("--sheet-id", "sheet_identifier", help="New sheet identifier")
@click.option("--default/--no-default", "is_default", default=None, help="Set or clear the default flag")
@click.option("--main-tab", help="New main tab name")
@click.option("--accountant-tab", help="New accountant tab name")
@click.option(
    "--status",
    type=click.Choice([status.value for status in SheetStatus], case_sensitive=False),
    help="New status",
)
@admin_option
@click.pass_context
def update_sheet(
    ctx,
    config_id: int,
    name: str | None,
    sheet_identifier: str | None,
    is_default: bool | None,
    main_tab: str | None,
    accountant_tab: str | None,
    status: str | None,
    admin_id: str,
):
    """Update a sheet config. Only the options given are changed."""
    service = ctx.obj["services"].sheet_configs

    try:
        tabs = None
        if main_tab is not None or accountant_tab is not None:
            current = service.get_config(config_id).tabs
            tabs = SheetTabs(
                main_tab_name=main_tab or current.main_tab_name,
                accountant_tab_name=accountant_tab or current.accountant_tab_name,
                create_tabs_if_missing=current.create_tabs_if_missing,
            )
        config = service.update_config(
            config_id,
            admin_id=admin_id,
            name=name,
            sheet_identifier=sheet_identifier,
            is_default=is_default,
            tabs=tabs,
            status=SheetStatus(status.lower()) if status else None,
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Updated sheet config {config.id}: {_describe(config)}")


@sheet_group.command("list")
@click.option("--all", "include_inactive", is_flag=True, help="Include inactive configs")
@click.pass_context
def list_sheets(ctx, include_inactive: bool):
    """List sheet configs."""
    service = ctx.obj["services"].sheet_configs

    configs = service.list_configs(include_inactive=include_inactive)
    if not configs:
        click.echo("No sheet configs found.")
        return

    click.echo(f"\n{'ID':<5} {'Name':<25} {'Sheet':<25} {'Default':<8} {'Status':<9} Receipts")
    click.echo("-" * 85)
    for config in configs:
        click.echo(
            f"{config.id:<5} {config.name[:25]:<25} {config.sheet_identifier[:25]:<25} "
            f"{'yes' if config.is_default else '':<8} {config.status.value:<9} {config.total_receipts}"
        )


@sheet_group.command("show")
@click.argument("config_id", type=int)
@click.pass_context
def show_sheet(ctx, config_id: int):
    """Show a sheet config with its tabs, assignments and last health check."""
    service = ctx.obj["services"].sheet_configs

    try:
        config = service.get_config(config_id)
        users = service.users_for_config(config_id)
        entities = service.entities_for_config(config_id)
    except DomainError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Sheet config {config.id}: {_describe(config)}")
    click.echo(f"  Tabs: {config.tabs.main_tab_name}, {config.tabs.accountant_tab_name}")
    click.echo(f"  Receipts written: {config.total_receipts}")
    click.echo(f"  Users: {', '.join(user.id for user in users) or '-'}")
    click.echo(f"  Entities: {', '.join(entity.name for entity in entities) or '-'}")
    if config.health is not None:
        state = "healthy" if config.health.is_healthy else f"unhealthy ({config.health.error_message})"
        click.echo(f"  Health: {state} at {config.health.checked_at:%Y-%m-%d %H:%M:%S}")


@sheet_group.command("assign-user")
@click.argument("config_id", type=int)
@click.argument("user_id")
@admin_option
@click.pass_context
def assign_user(ctx, config_id: int, user_id: str, admin_id: str):
    """Route a user's receipts to a sheet config."""
    service = ctx.obj["services"].sheet_configs

    try:
        service.assign_to_user(config_id, user_id, admin_id=admin_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Assigned user '{user_id}' to sheet config {config_id}")


@sheet_group.command("assign-entity")
@click.argument("config_id", type=int)
@click.argument("entity_id")
@admin_option
@click.pass_context
def assign_entity(ctx, config_id: int, entity_id: str, admin_id: str):
    """Route an entity's receipts to a sheet config."""
    service = ctx.obj["services"].sheet_configs

    try:
        service.assign_to_entity(config_id, entity_id, admin_id=admin_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Assigned entity '{entity_id}' to sheet config {config_id}")


@sheet_group.command("unassign-user")
@click.argument("user_id")
@admin_option
@click.pass_context
def unassign_user(ctx, user_id: str, admin_id: str):
    """Remove a user's sheet override."""
    service = ctx.obj["services"].sheet_configs

    try:
        service.unassign_user(user_id, admin_id=admin_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Removed sheet override for user '{user_id}'")


@sheet_group.command("unassign-entity")
@click.argument("entity_id")
@admin_option
@click.pass_context
def unassign_entity(ctx, entity_id: str, admin_id: str):
    """Remove an entity's sheet override."""
    service = ctx.obj["services"].sheet_configs

    try:
        service.unassign_entity(entity_id, admin_id=admin_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Removed sheet override for entity '{entity_id}'")


@sheet_group.command("deactivate")
@click.argument("config_id", type=int)
@admin_option
@click.pass_context
def deactivate_sheet(ctx, config_id: int, admin_id: str):
    """Deactivate a sheet config."""
    service = ctx.obj["services"].sheet_configs

    try:
        service.deactivate_config(config_id, admin_id=admin_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Deactivated sheet config {config_id}")


@sheet_group.command("resolve")
@click.argument("user_id")
@click.pass_context
def resolve_sheet(ctx, user_id: str):
    """Show which sheet a user's next receipt would be written to."""
    resolver = ctx.obj["services"].resolver

    config = resolver.resolve(user_id)
    source = "legacy fallback" if config.is_legacy else f"config {config.id}"
    click.echo(f"User '{user_id}' -> {config.sheet_identifier} ({source})")


@sheet_group.command("health")
@click.argument("config_id", type=int)
@admin_option
@click.pass_context
def check_health(ctx, config_id: int, admin_id: str):
    """Check that a sheet is reachable, writable and has its tabs."""
    service = ctx.obj["services"].sheet_configs

    try:
        health = service.check_health(config_id, admin_id=admin_id)
    except DomainError as e:
        handle_domain_error(ctx, e)

    if health.is_healthy:
        click.echo(f"Sheet config {config_id} is healthy")
    else:
        click.echo(f"Sheet config {config_id} is unhealthy: {health.error_message}")
        ctx.exit(1)


def register_commands(cli):
    """Register sheet commands with main CLI."""
    cli.add_command(sheet_group, name="sheet")

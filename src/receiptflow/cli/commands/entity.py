"""Entity and membership commands."""

import click

from receiptflow.cli.error_handling import handle_domain_error
from receiptflow.domain.errors import DomainError


@click.group()
def entity_group():
    """Manage entities and their members."""
    pass


@entity_group.command("create")
@click.argument("entity_id")
@click.argument("name")
@click.pass_context
def create_entity(ctx, entity_id: str, name: str):
    """Create an entity."""
    directory = ctx.obj["services"].directory

    try:
        entity = directory.create_entity(entity_id, name)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Created entity '{entity.name}' (ID: {entity.id})")


@entity_group.command("list")
@click.pass_context
def list_entities(ctx):
    """List all entities."""
    directory = ctx.obj["services"].directory

    entities = directory.list_entities()
    if not entities:
        click.echo("No entities found.")
        return

    click.echo(f"\n{'ID':<20} {'Name':<30} Sheet config")
    click.echo("-" * 65)
    for entity in entities:
        sheet = entity.sheet_config_id if entity.sheet_config_id is not None else "-"
        click.echo(f"{entity.id[:20]:<20} {entity.name[:30]:<30} {sheet}")


@entity_group.command("add-user")
@click.argument("entity_id")
@click.argument("user_id")
@click.pass_context
def add_user(ctx, entity_id: str, user_id: str):
    """Make a user a member of an entity."""
    directory = ctx.obj["services"].directory

    try:
        directory.assign_user_to_entity(user_id, entity_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"User '{user_id}' added to entity '{entity_id}'")


def register_commands(cli):
    """Register entity commands with main CLI."""
    cli.add_command(entity_group, name="entity")

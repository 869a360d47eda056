"""Category management commands."""

import click

from receiptflow.cli.error_handling import handle_domain_error
from receiptflow.domain.errors import DomainError


@click.group()
def category_group():
    """Manage categories."""
    pass


@category_group.command("list")
@click.pass_context
def list_categories(ctx):
    """List all categories."""
    service = ctx.obj["services"].categories

    categories = service.list_categories()
    if not categories:
        click.echo("No categories found. Run 'init-categories' to create default categories.")
        return

    click.echo("\nCategories:")
    for category in categories:
        description = f" - {category.description}" if category.description else ""
        click.echo(f"{category.name} (ID: {category.id}){description}")


@category_group.command("add")
@click.argument("name")
@click.option("--description", help="Category description")
@click.pass_context
def add_category(ctx, name: str, description: str | None):
    """Add a category."""
    service = ctx.obj["services"].categories

    try:
        category_id = service.create_category(name=name, description=description)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Created category '{name.strip()}' (ID: {category_id})")


@category_group.command("remove")
@click.argument("name")
@click.pass_context
def remove_category(ctx, name: str):
    """Remove a category. Finalized receipts keep their category text."""
    service = ctx.obj["services"].categories

    try:
        service.delete_category(name)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Removed category '{name}'")


def register_commands(cli):
    """Register category commands with main CLI."""
    cli.add_command(category_group, name="category")

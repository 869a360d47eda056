"""Initialize default categories."""

import click


@click.command("init-categories")
@click.pass_context
def init_categories(ctx):
    """Create the default receipt categories."""
    service = ctx.obj["services"].categories

    created, existing = service.initialize_defaults()
    if created == 0:
        click.echo("Categories already exist.")
        return
    click.echo(f"Successfully created {created} categories ({existing} already existed).")


def register_commands(cli):
    """Register init-categories command with main CLI."""
    cli.add_command(init_categories)

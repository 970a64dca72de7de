"""rowmap CLI - Main entry point."""

import logging
import sys
from typing import Annotated

import typer

import rowmap
from rowmap.cli.context import CLIContext, get_database_url
from rowmap.cli.parsing import parse_declared_types

app = typer.Typer(
    name="rowmap",
    help="rowmap CLI - inspect and edit table rows through the item mapper",
    no_args_is_help=True,
)


@app.callback()
def main_callback(
    ctx: typer.Context,
    database: Annotated[
        str | None,
        typer.Option(
            "--database",
            "-d",
            envvar="ROWMAP_DATABASE_URL",
            help="Database URL (PostgreSQL or SQLite)",
        ),
    ] = None,
    echo: Annotated[
        bool,
        typer.Option("--echo", "-e", help="Echo SQL statements to console"),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option("--json", "-j", help="Output as JSON (machine-readable)"),
    ] = False,
    declared_type: Annotated[
        list[str] | None,
        typer.Option(
            "--type",
            "-t",
            help="Declared type override, e.g. orders.status=\"enum('open','closed')\"",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log debug output to stderr"),
    ] = False,
) -> None:
    """Initialize CLI context with global options."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        stream=sys.stderr,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        declared_types = parse_declared_types(declared_type)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--type") from e

    cli_ctx = CLIContext(
        database_url=get_database_url(database),
        echo=echo,
        json_output=json_output,
        declared_types=declared_types,
    )

    ctx.obj = cli_ctx


@app.command()
def version() -> None:
    """Show version information."""
    typer.echo(f"rowmap v{rowmap.__version__}")


from rowmap.cli.commands import items  # noqa: E402

app.command(name="columns")(items.columns_command)
app.command(name="show")(items.show_command)
app.command(name="search")(items.search_command)
app.command(name="save")(items.save_command)


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()

"""Item commands: inspect columns, show, search and save rows."""

import json
from typing import Annotated

import typer

from rowmap.cli.context import CLIContext
from rowmap.cli.parsing import parse_criteria
from rowmap.core.item import Item
from rowmap.schema.catalog import SchemaCatalog


def columns_command(
    ctx: typer.Context,
    table: Annotated[str, typer.Argument(help="Table name")],
) -> None:
    """Show the columns of a table with their declared types and defaults.

    Examples:

        rowmap columns orders
        rowmap --json columns orders
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = cli_ctx.formatter

    try:
        catalog = SchemaCatalog.for_database(cli_ctx.get_db())
        formatter.print_columns(table, list(catalog.columns(table).values()))
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


def show_command(
    ctx: typer.Context,
    table: Annotated[str, typer.Argument(help="Table name")],
    item_id: Annotated[int, typer.Argument(help="Identity of the row")],
    raw: Annotated[
        bool,
        typer.Option("--raw", help="Show stored values instead of decoded ones"),
    ] = False,
) -> None:
    """Load one row by identity and show its values.

    Examples:

        rowmap show orders 12
        rowmap show orders 12 --raw
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = cli_ctx.formatter

    try:
        item = Item.from_id(table, item_id, cli_ctx.get_db())
        formatter.print_record(f"{table} #{item_id}", item.get_all(formatted=not raw))
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


def search_command(
    ctx: typer.Context,
    table: Annotated[str, typer.Argument(help="Table name")],
    where: Annotated[
        list[str] | None,
        typer.Option("--where", "-w", help="Criterion as column=value (repeatable)"),
    ] = None,
    order: Annotated[
        list[str] | None,
        typer.Option("--order", "-o", help="Order column, optionally with DESC (repeatable)"),
    ] = None,
    limit: Annotated[
        int,
        typer.Option("--limit", "-l", help="Maximum number of rows to show"),
    ] = 50,
) -> None:
    """Search a table and show the matching rows.

    Values are parsed as JSON when possible; a value containing % matches with LIKE.

    Examples:

        rowmap search orders -w status=open -o "id DESC"
        rowmap search customers -w "name=Ann%"
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = cli_ctx.formatter

    try:
        db = cli_ctx.get_db()
        results = Item.search(table, parse_criteria(where), order, db)
        rows = [item.get_all(formatted=True) for item in results[:limit]]
        columns = SchemaCatalog.for_database(db).column_names(table)
        formatter.print_table(f"{table} ({len(results)} found)", rows, columns)
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


def save_command(
    ctx: typer.Context,
    table: Annotated[str, typer.Argument(help="Table name")],
    data_json: Annotated[str, typer.Argument(help="Column values as a JSON object")],
    item_id: Annotated[
        int | None,
        typer.Option("--id", help="Update the row with this identity instead of inserting"),
    ] = None,
) -> None:
    """Create a row, or update one with --id, from a JSON object.

    Examples:

        rowmap save orders '{"customerId": 7, "totalDollar": "$19.99"}'
        rowmap save orders '{"status": "closed"}' --id 12
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = cli_ctx.formatter

    try:
        db = cli_ctx.get_db()
        data = json.loads(data_json)
        if not isinstance(data, dict):
            raise typer.BadParameter("Row data must be a JSON object")

        if item_id is None:
            item = Item.factory(table, db)
        else:
            item = Item.from_id(table, item_id, db)
        ignored = item.set_all(data)

        result = item.save()
        if not result:
            formatter.print_error(RuntimeError(f"Saving to {table} failed"))
            raise typer.Exit(code=1)

        details = {"table": table, "id": item.get(item.id_column)}
        if ignored:
            details["ignored"] = sorted(ignored)
        formatter.print_success("Saved row", details)
    except typer.Exit:
        raise
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()

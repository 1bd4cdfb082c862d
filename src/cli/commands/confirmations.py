"""Pending confirmation commands: list, resolve, expire, counts."""

import json

import click
from rich.console import Console
from rich.table import Table

from cli.utils import get_components
from errors import NotFoundError

console = Console()


@click.group()
def confirmations():
    """Questions waiting for a human answer."""
    pass


@confirmations.command("list")
@click.option("--type", "confirmation_type", default=None, help="Filter by confirmation type")
@click.option("--entity", "entity_id", default=None, help="Filter by source entity id")
@click.option("-n", "--limit", default=10, help="Max confirmations to show")
def confirmations_list(confirmation_type: str | None, entity_id: str | None, limit: int):
    """List pending confirmations, least confident first."""
    from confirmation import ConfirmationType

    if confirmation_type:
        try:
            confirmation_type = ConfirmationType(confirmation_type)
        except ValueError:
            console.print(f"[red]Unknown type: {confirmation_type}[/]")
            console.print(f"Valid: {[t.value for t in ConfirmationType]}")
            raise SystemExit(1)

    c = get_components()
    items = c["confirmations"].get_pending(
        confirmation_type=confirmation_type, entity_id=entity_id, limit=limit
    )
    if not items:
        console.print("No pending confirmations.")
        return

    table = Table(title="Pending Confirmations")
    table.add_column("ID", style="dim")
    table.add_column("Type", style="cyan")
    table.add_column("Question")
    table.add_column("Options")
    table.add_column("Conf", width=5)
    table.add_column("Expires", style="dim")

    for item in items:
        table.add_row(
            item.id,
            item.type.value,
            str(item.context.get("title") or item.context.get("description") or "")[:60],
            ", ".join(f"{o.id}={o.label}" for o in item.options),
            f"{item.confidence:.2f}" if item.confidence is not None else "-",
            item.expires_at.strftime("%Y-%m-%d") if item.expires_at else "",
        )
    console.print(table)


@confirmations.command("resolve")
@click.argument("confirmation_id")
@click.argument("option_id")
@click.option("--value", "new_value", default=None, help="Corrected value (fact_value confirmations)")
@click.option("--resolution", "resolution_json", default=None, help="Resolution payload as JSON")
def confirmations_resolve(
    confirmation_id: str, option_id: str, new_value: str | None, resolution_json: str | None
):
    """Answer a confirmation with one of its options."""
    resolution = None
    if resolution_json:
        try:
            resolution = json.loads(resolution_json)
        except json.JSONDecodeError as e:
            console.print(f"[red]Invalid --resolution JSON:[/] {e}")
            raise SystemExit(1)
    if new_value is not None:
        resolution = {**(resolution or {}), "new_value": new_value}

    c = get_components()
    try:
        result = c["confirmations"].resolve(confirmation_id, option_id, resolution=resolution)
    except NotFoundError as e:
        console.print(f"[red]{e}[/]")
        raise SystemExit(1)

    console.print(f"{result.id}: [green]{result.status.value}[/] (option {result.selected_option_id})")
    error = (result.resolution or {}).get("handler_error")
    if error:
        console.print(f"[yellow]Handler failed:[/] {error}")


@confirmations.command("expire")
def confirmations_expire():
    """Expire pending confirmations past their deadline."""
    c = get_components()
    count = c["confirmations"].expire_old()
    console.print(f"Expired {count} confirmation(s)")


@confirmations.command("counts")
def confirmations_counts():
    """Pending confirmation counts by type."""
    c = get_components()
    counts = c["confirmations"].count_pending()
    for confirmation_type, count in counts.items():
        console.print(f"  {confirmation_type.value}: {count}")
    console.print(f"Total: {sum(counts.values())}")

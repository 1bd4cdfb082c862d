"""Fact commands: list, add through fusion, review queue, conflict resolution."""

import click
from rich.console import Console
from rich.table import Table

from cli.utils import get_components

console = Console()


def _fact_table(title: str, facts, show_reason: bool = False) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="dim")
    table.add_column("Type", style="cyan")
    table.add_column("Value")
    table.add_column("Source", width=9)
    table.add_column("Conf", width=5)
    table.add_column("Seen", width=4)
    table.add_column("Rank", width=10)
    if show_reason:
        table.add_column("Review reason")
    for f in facts:
        row = [
            f.id,
            f.fact_type,
            (f.value or "")[:60],
            f.source.value,
            f"{f.confidence:.2f}" if f.confidence is not None else "-",
            str(f.confirmation_count),
            f.rank.value if f.is_current else f"{f.rank.value}*",
        ]
        if show_reason:
            row.append((f.review_reason or "")[:80])
        table.add_row(*row)
    return table


@click.group()
def facts():
    """Entity facts and their fusion history."""
    pass


@facts.command("list")
@click.argument("entity_id")
@click.option("--history", is_flag=True, help="Include superseded facts (marked *)")
def facts_list(entity_id: str, history: bool):
    """List facts for an entity."""
    c = get_components()
    items = c["facts"].list_for_entity(entity_id, include_history=history)
    if not items:
        console.print("No facts stored.")
        return
    console.print(_fact_table(f"Facts for {entity_id}", items))


@facts.command("add")
@click.argument("entity_id")
@click.argument("fact_type")
@click.argument("value")
@click.option(
    "--source",
    type=click.Choice(["manual", "extracted", "imported"]),
    default="manual",
    show_default=True,
)
@click.option("--confidence", type=float, default=None)
@click.option("--no-fusion", is_flag=True, help="Skip the oracle; exact/temporal rules only")
def facts_add(entity_id: str, fact_type: str, value: str, source: str, confidence, no_fusion: bool):
    """Add a fact through duplicate detection and fusion."""
    from fusion import FactSource, NewFactData

    c = get_components(with_fusion=True)
    data = NewFactData(
        fact_type=fact_type, value=value, source=FactSource(source), confidence=confidence
    )
    result = c["pipeline"].create_with_dedup(entity_id, data, skip_fusion=no_fusion)

    label = result.fusion_action.value if result.fusion_action else result.action.value
    fact_id = result.fact.id if result.fact else result.existing_fact_id
    console.print(f"[cyan]{label}[/] {fact_id or ''} {result.reason}")
    if result.conflict_token:
        console.print(
            f"Conflict token [bold]{result.conflict_token}[/]: "
            f"run [bold]factfusion facts resolve-conflict {result.conflict_token} new|old|both[/]"
        )


@facts.command("review")
@click.option("--entity", "entity_id", default=None, help="Only this entity")
@click.option("-n", "--limit", default=50)
def facts_review(entity_id: str | None, limit: int):
    """Facts flagged for review, with open conflict tokens."""
    c = get_components()
    items = c["facts"].get_needing_review(entity_id=entity_id, limit=limit)
    if items:
        console.print(_fact_table("Needs review", items, show_reason=True))
    else:
        console.print("No facts need review.")

    open_conflicts = c["conflicts"].list_open(entity_id=entity_id)
    if open_conflicts:
        console.print("\nOpen conflicts:")
        for conflict in open_conflicts:
            new_value = conflict["new_fact_data"].value
            console.print(
                f"  [bold]{conflict['token']}[/] fact {conflict['existing_fact_id']} "
                f"<- \"{new_value}\" [dim]{conflict['explanation'] or ''}[/]"
            )


@facts.command("resolve-conflict")
@click.argument("token")
@click.argument("choice", type=click.Choice(["new", "old", "both"]))
def facts_resolve_conflict(token: str, choice: str):
    """Settle a fusion conflict: use the new value, keep the old, or keep both."""
    c = get_components()
    result = c["conflicts"].resolve_conflict(token, choice)
    if not result.success:
        console.print(f"[red]{result.error}[/]")
        raise SystemExit(1)
    console.print(f"[green]{result.action}[/] {result.fact_id}")


@facts.command("history")
@click.argument("fact_id")
def facts_history(fact_id: str):
    """Show the supersede chain through a fact."""
    c = get_components()
    chain = c["facts"].get_history(fact_id)
    if not chain:
        console.print(f"[red]Fact not found: {fact_id}[/]")
        raise SystemExit(1)
    for f in chain:
        status = "current" if f.is_current else f"-> {f.superseded_by}"
        console.print(f"  {f.id} | {(f.value or '')[:60]} | {f.source.value} | {status}")

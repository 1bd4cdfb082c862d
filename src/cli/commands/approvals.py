"""Pending approval commands: review drafts individually or per batch."""

import click
from rich.console import Console
from rich.table import Table

from cli.utils import get_components
from errors import ConflictError, NotFoundError

console = Console()


def _print_batch(verb: str, result) -> None:
    console.print(f"{verb}: [green]{result.processed}[/], failed: [red]{result.failed}[/]")
    for error in result.errors:
        console.print(f"  [dim]{error}[/]")


@click.group()
def approvals():
    """Draft facts, activities and commitments awaiting approval."""
    pass


@approvals.command("list")
@click.option("--batch", "batch_id", default=None, help="Filter by batch id")
@click.option("--status", default="pending", show_default=True, help="pending|approved|rejected|all")
@click.option("-n", "--limit", default=50, help="Max approvals to show")
def approvals_list(batch_id: str | None, status: str, limit: int):
    """List approvals, newest first."""
    c = get_components()
    try:
        items, total = c["approvals"].list_approvals(
            batch_id=batch_id, status=None if status == "all" else status, limit=limit
        )
    except ValueError:
        console.print(f"[red]Unknown status: {status}[/]")
        raise SystemExit(1)

    if not items:
        console.print("No approvals found.")
        return

    table = Table(title=f"Approvals ({len(items)} of {total})")
    table.add_column("ID", style="dim")
    table.add_column("Type", style="cyan")
    table.add_column("Target", style="dim")
    table.add_column("Batch", style="dim")
    table.add_column("Conf", width=5)
    table.add_column("Status")
    table.add_column("Context")
    for a in items:
        table.add_row(
            a.id,
            a.item_type.value,
            a.target_id,
            a.batch_id,
            f"{a.confidence:.2f}",
            a.status.value,
            (a.context or a.source_quote or "")[:50],
        )
    console.print(table)


@approvals.command("approve")
@click.argument("approval_id")
def approvals_approve(approval_id: str):
    """Activate the draft behind an approval."""
    c = get_components()
    try:
        c["approvals"].approve(approval_id)
    except (NotFoundError, ConflictError) as e:
        console.print(f"[red]{e}[/]")
        raise SystemExit(1)
    console.print(f"[green]Approved[/] {approval_id}")


@approvals.command("reject")
@click.argument("approval_id")
def approvals_reject(approval_id: str):
    """Reject the draft behind an approval."""
    c = get_components()
    try:
        c["approvals"].reject(approval_id)
    except (NotFoundError, ConflictError) as e:
        console.print(f"[red]{e}[/]")
        raise SystemExit(1)
    console.print(f"[yellow]Rejected[/] {approval_id}")


@approvals.command("approve-batch")
@click.argument("batch_id")
def approvals_approve_batch(batch_id: str):
    """Approve every pending item in a batch."""
    c = get_components()
    _print_batch("Approved", c["approvals"].approve_batch(batch_id))


@approvals.command("reject-batch")
@click.argument("batch_id")
def approvals_reject_batch(batch_id: str):
    """Reject every pending item in a batch."""
    c = get_components()
    _print_batch("Rejected", c["approvals"].reject_batch(batch_id))


@approvals.command("stats")
@click.option("--batch", "batch_id", default=None, help="Stats for one batch")
def approvals_stats(batch_id: str | None):
    """Approval counts by status."""
    c = get_components()
    manager = c["approvals"]
    stats = manager.get_batch_stats(batch_id) if batch_id else manager.get_global_stats()
    for key, value in stats.items():
        console.print(f"  {key}: {value}")


@approvals.command("cleanup")
def approvals_cleanup():
    """Purge rejected approvals and orphaned drafts past retention."""
    c = get_components()
    result = c["cleanup"].run()
    console.print(f"Deleted {result.approvals} rejected approval(s), {result.targets} target(s)")
    for table, count in result.orphaned.items():
        if count:
            console.print(f"  orphaned {table}: {count}")

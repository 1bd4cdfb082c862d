"""factfusion command line entry point."""

import sys
from pathlib import Path

import click
from rich.console import Console

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from cli.commands import approvals, confirmations, facts  # noqa: E402
from cli.config import load_config_model  # noqa: E402
from cli.logging_config import setup_logging  # noqa: E402
from observability import log_run_summary  # noqa: E402

console = Console()


@click.group()
@click.version_option(version="0.1.0")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option("--json-logs", is_flag=True, help="Emit JSON log lines")
@click.pass_context
def cli(ctx, verbose: bool, json_logs: bool):
    """factfusion - fact fusion and confirmation engine."""
    try:
        config = load_config_model()
    except ValueError as e:
        console.print(f"[red]Config error:[/] {e}")
        sys.exit(1)
    setup_logging(
        json_mode=json_logs or config.logging.json_mode,
        level="DEBUG" if verbose else config.logging.level,
        log_file=config.paths.log_file,
    )
    if verbose:
        ctx.call_on_close(log_run_summary)


cli.add_command(confirmations)
cli.add_command(approvals)
cli.add_command(facts)


def main():
    cli()


if __name__ == "__main__":
    main()

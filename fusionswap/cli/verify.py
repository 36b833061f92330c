"""
fusionswap/cli/verify.py

fusionswap verify: Settlement Journal Verification
====================================================

Usage:
    fusionswap verify <journal>                  Human output (default)
    fusionswap verify <journal> --format json    Machine-readable JSON
    fusionswap verify <journal> --quiet          Exit code only

Exit codes:
    0  Journal fully valid  (sequence + chain + signatures + schema)
    1  Journal has violations
    2  Error  (file missing, malformed JSON, parse failure)
"""

import json
import sys
from pathlib import Path

import click

from fusionswap.core.canonical import canonical_hash
from fusionswap.core.replay import JournalReplay, ReplaySummary


@click.command(name="verify")
@click.argument("journal", type=click.Path(exists=False))
@click.option(
    "--format", "fmt",
    type=click.Choice(["human", "json"], case_sensitive=False),
    default="human",
    show_default=True,
    help="Output format: human (default) or json (CI/automation).",
)
@click.option(
    "--quiet",
    is_flag=True,
    default=False,
    help="Suppress all output. Use exit code only (0=valid, 1=invalid, 2=error).",
)
def verify_command(journal: str, fmt: str, quiet: bool) -> None:
    """
    Verify a settlement journal: chain integrity, signatures, schema.

    JOURNAL is the path to a journal.jsonl file.
    """
    journal_path = Path(journal)

    if not journal_path.exists():
        _emit_error(f"Journal not found: {journal}", fmt, quiet)
        sys.exit(2)

    replay = JournalReplay()
    try:
        replay.load(journal_path)
    except (OSError, ValueError) as e:
        _emit_error(str(e), fmt, quiet)
        sys.exit(2)

    summary = replay.verify()

    head_hash = None
    if replay.entries:
        head_hash = canonical_hash(replay.entries[-1].to_signing_dict())

    if quiet:
        sys.exit(0 if summary.is_valid else 1)

    if fmt == "json":
        report = summary.to_dict()
        report["journal"]   = str(journal_path)
        report["head_hash"] = head_hash
        click.echo(json.dumps(report, indent=2))
    else:
        _output_human(summary, journal_path, head_hash)

    sys.exit(0 if summary.is_valid else 1)


def _output_human(summary: ReplaySummary, journal_path: Path, head_hash) -> None:
    bar = "─" * 60
    click.echo()
    click.echo(f"  FusionSwap  ·  Journal Verification")
    click.echo(f"  {bar}")
    click.echo(f"  {'Journal':<16}  {journal_path}")
    click.echo(f"  {'Entries':<16}  {summary.total_entries:,}")
    click.echo(f"  {'Signatures':<16}  {summary.valid_signatures:,} valid, "
               f"{summary.invalid_signatures:,} invalid")
    click.echo(f"  {'Chain':<16}  {'intact' if summary.chain_valid else 'BROKEN'}")
    if head_hash:
        click.echo(f"  {'Head hash':<16}  {head_hash}")
    for event_type, count in sorted(summary.event_counts.items()):
        click.echo(f"  {'':<16}  {event_type}: {count}")

    if summary.violations:
        click.echo()
        click.echo(f"  Violations ({len(summary.violations)}):")
        for v in summary.violations[:50]:
            click.echo(f"    #{v.at_sequence:<6} {v.violation_type:<18} {v.detail}")
        if len(summary.violations) > 50:
            click.echo(f"    ... {len(summary.violations) - 50} more")

    click.echo(f"  {bar}")
    click.echo("  ✅  VALID" if summary.is_valid else "  ❌  INVALID")
    click.echo()


def _emit_error(message: str, fmt: str, quiet: bool) -> None:
    if quiet:
        return
    if fmt == "json":
        click.echo(json.dumps({"error": message}))
    else:
        click.echo(f"  ❌  Error: {message}", err=True)

"""Command line entry point for the evidence checker.

Usage:
    evidence-checker check CASE_DIR [--no-semantic] [--json]
    evidence-checker gate CASE_DIR
    evidence-checker audit CASE_DIR

Exit codes: 0 when the case passes, 1 when it fails, 2 on usage or I/O errors.
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from rich.console import Console
from rich.panel import Panel

from .domain.services.verification_pipeline import AuditResult
from .infrastructure.dependencies import ServiceContainer
from .infrastructure.reporting.console_report import ConsoleReport

EXIT_PASS = 0
EXIT_FAIL = 1
EXIT_ERROR = 2

logger = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="evidence-checker",
        description="Verify that a case narrative is backed by captured evidence",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment Variables:
  EVIDENCE_CAPTURE_SECRET   Secret used to sign and verify captures
  OPENAI_API_KEY            Enables semantic judgment of ambiguous claims
  EVIDENCE_JUDGE_MODEL      Judge model (default: gpt-4o-mini)
  EVIDENCE_MIN_SOURCES      Sources required per claim (default: 1)
        """,
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    check = subparsers.add_parser("check", help="Run every verifier and write the gap report")
    check.add_argument("case_dir", help="Case directory")
    check.add_argument("--no-semantic", action="store_true", help="Never call the semantic judge")
    check.add_argument("--json", action="store_true", help="Print gaps.json instead of the report")

    gate = subparsers.add_parser("gate", help="Re-evaluate the gate over the stored gap report")
    gate.add_argument("case_dir", help="Case directory")

    audit = subparsers.add_parser("audit", help="Verify the stored audit chain and ledger")
    audit.add_argument("case_dir", help="Case directory")

    return parser


def _print_audit(console: Console, result: AuditResult) -> None:
    if result.passed:
        console.print(Panel(
            f"[bold green]✔ Audit chain intact[/bold green]\n[dim]{result.steps} step(s), {result.chain_hash}[/dim]",
            border_style="green",
        ))
        return
    lines = [f"- {problem}" for problem in result.chain_problems]
    lines.extend(f"- {gap.type.value}: {gap.message}" for gap in result.ledger_gaps if gap.is_blocking)
    console.print(Panel(
        "[bold red]✘ Audit failed[/bold red]\n" + "\n".join(lines),
        border_style="red",
    ))


async def main_async(args: argparse.Namespace, console: Console) -> int:
    """Async main entry point."""
    container = ServiceContainer()
    try:
        pipeline = await container.build_pipeline(
            args.case_dir,
            semantic=args.command == "check" and not args.no_semantic,
        )

        if args.command == "check":
            result = await pipeline.run()
            if args.json:
                console.print_json(json.dumps(result.to_dict()))
            else:
                ConsoleReport(console).display(
                    result.report, pipeline.store.case_name, result.chain.chain_hash
                )
            return EXIT_PASS if result.passed else EXIT_FAIL

        if args.command == "gate":
            report = pipeline.evaluate_stored()
            if report is None:
                console.print("[red]No gap report stored for this case; run check first.[/red]")
                return EXIT_ERROR
            ConsoleReport(console).display(report, pipeline.store.case_name)
            return report.exit_code

        result = pipeline.audit()
        _print_audit(console, result)
        return EXIT_PASS if result.passed else EXIT_FAIL
    finally:
        await container.shutdown()


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        return e.code if isinstance(e.code, int) else EXIT_ERROR

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    console = Console()
    try:
        return asyncio.run(main_async(args, console))
    except (OSError, ValueError, RuntimeError) as e:
        console.print(f"[red]❌ {e}[/red]")
        return EXIT_ERROR


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()

"""Command-line entry point.

``trump-goggles rewrite`` runs the pipeline over an HTML file the way the
browser integration runs it over a live page.  ``trump-goggles patterns``
prints the phrase table.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections import Counter
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from trump_goggles import __version__, setup_logging
from trump_goggles.config import get_settings
from trump_goggles.content import Goggles
from trump_goggles.data.mappings import MAPPINGS, MAPPINGS_VERSION
from trump_goggles.dom.nodes import Document
from trump_goggles.dom.parser import parse_html, serialize
from trump_goggles.dom_modifier import CONVERTED_TEXT_WRAPPER_CLASS, ORIGINAL_TEXT_ATTR
from trump_goggles.patterns import get_default_registry

logger = logging.getLogger(__name__)

console = Console()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="trump-goggles",
        description="Rewrite political names in HTML into their nicknames.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    # rewrite
    rewrite_p = sub.add_parser("rewrite", help="Convert an HTML file")
    rewrite_p.add_argument("input", type=Path, help="HTML file to read ('-' for stdin)")
    rewrite_p.add_argument(
        "-o", "--output", type=Path, default=None, help="Write here instead of stdout"
    )
    rewrite_p.add_argument(
        "--plain",
        action="store_true",
        help="Replace text in place, without tooltip wrappers",
    )
    rewrite_p.add_argument(
        "--max-operations",
        type=int,
        default=None,
        help="Per-page conversion ceiling (default from settings)",
    )

    # patterns
    sub.add_parser("patterns", help="List the phrase table")

    return parser


def _read_input(path: Path) -> str:
    if str(path) == "-":
        return sys.stdin.read()
    return path.read_text(encoding="utf-8")


async def _rewrite(html: str, *, plain: bool, max_operations: int | None) -> tuple[Document, Goggles]:
    settings = get_settings()
    processing = settings.processing.model_copy(
        update={
            "tooltips": not plain,
            **({"max_operations": max_operations} if max_operations else {}),
        }
    )
    goggles = Goggles(settings.model_copy(update={"processing": processing}))
    document = parse_html(html)
    await goggles.start(document)
    # Tooltip listeners and element are live-page concerns; the file gets
    # only the converted text.
    goggles.shutdown()
    return document, goggles


def _conversion_table(document: Document) -> Table:
    counts: Counter[tuple[str, str]] = Counter()
    for span in document.get_elements_by_class_name(CONVERTED_TEXT_WRAPPER_CLASS):
        counts[(span.get_attribute(ORIGINAL_TEXT_ATTR) or "", span.text_content)] += 1

    table = Table(title="Conversions")
    table.add_column("Original", style="cyan")
    table.add_column("Nickname", style="magenta")
    table.add_column("Count", justify="right")
    for (original, nickname), count in counts.most_common():
        table.add_row(escape(original), escape(nickname), str(count))
    return table


def _cmd_rewrite(args: argparse.Namespace, con: Console) -> int:
    if args.max_operations is not None and args.max_operations <= 0:
        con.print("[red]Error:[/] --max-operations must be positive")
        return 2
    try:
        html = _read_input(args.input)
    except OSError as exc:
        con.print(f"[red]Error:[/] cannot read {args.input}: {exc}")
        return 1

    document, goggles = asyncio.run(
        _rewrite(html, plain=args.plain, max_operations=args.max_operations)
    )
    output = serialize(document)

    if args.output is None:
        sys.stdout.write(output)
    else:
        args.output.write_text(output, encoding="utf-8")

    diagnostics = goggles.diagnostics()
    # stdout may carry the document; the summary goes to stderr then
    summary = con if args.output is not None else Console(stderr=True)
    if not args.plain:
        summary.print(_conversion_table(document))
    summary.print(
        Panel(
            f"Operations: {diagnostics['operation_count']}/{diagnostics['operation_limit']}"
            + ("  [yellow](budget exhausted)[/]" if diagnostics["budget_exhausted"] else ""),
            title="trump-goggles",
        )
    )
    return 0


def _cmd_patterns(con: Console) -> int:
    registry = get_default_registry()
    table = Table(title=f"Phrase table v{MAPPINGS_VERSION} ({len(registry)} entries)")
    table.add_column("Key", style="cyan")
    table.add_column("Pattern")
    table.add_column("Replacement", style="magenta")
    for key, source, replacement in MAPPINGS:
        table.add_row(key, escape(source), escape(replacement))
    con.print(table)
    return 0


def main(argv: list[str] | None = None) -> None:
    """Entry point for the ``trump-goggles`` console script.

    Usage:
        trump-goggles rewrite INPUT [-o OUTPUT] [--plain] [--max-operations N]
        trump-goggles patterns
    """
    args = _build_parser().parse_args(sys.argv[1:] if argv is None else argv)
    setup_logging()

    match args.command:
        case "rewrite":
            code = _cmd_rewrite(args, console)
        case "patterns":
            code = _cmd_patterns(console)
        case _:
            code = 2
    sys.exit(code)

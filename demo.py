#!/usr/bin/env python3
"""
Spreadsheet Snapshot Demo

Imports a workbook and prints what ended up in the snapshot.
Run with: python demo.py path/to/book.xlsx [--api] [--no-images]

--api posts the file to a running server (uvicorn main:app) instead of
calling the engine in-process.
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Optional

try:
    import requests
except ImportError:
    print("Missing 'requests' library. Install with: pip install requests")
    sys.exit(1)

try:
    from rich.console import Console
    from rich.panel import Panel
    from rich.table import Table
    from rich.syntax import Syntax
    from rich.box import ROUNDED, DOUBLE
except ImportError:
    print("Missing 'rich' library. Install with: pip install rich")
    sys.exit(1)


# ─────────────────────────────────────────────────────────────────────────────
# Configuration
# ─────────────────────────────────────────────────────────────────────────────

BASE_URL = "http://127.0.0.1:8000"
console = Console()


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────

def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format."""
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes // 1024} KB"
    else:
        return f"{size_bytes // (1024 * 1024)} MB"


def format_json(data: Any, max_lines: int = 30) -> str:
    """Format JSON with truncation for large responses."""
    formatted = json.dumps(data, indent=2, ensure_ascii=False)
    lines = formatted.split('\n')
    if len(lines) > max_lines:
        half = max_lines // 2
        truncated = lines[:half] + [f"  ... ({len(lines) - max_lines} lines hidden) ..."] + lines[-half:]
        return '\n'.join(truncated)
    return formatted


def import_local(path: Path, include_images: bool) -> dict:
    """Run the engine in-process and return the JSON form of the result."""
    from services.snapshot_engine import SnapshotImportError, file_type_from_filename, import_file

    try:
        result = import_file(path.read_bytes(), file_type_from_filename(path.name), include_images)
    except SnapshotImportError as e:
        console.print(f"[red]✗ {e}[/red]")
        sys.exit(2)
    return result.model_dump(mode="json", exclude_none=True)


def import_remote(path: Path, include_images: bool) -> dict:
    """Post the file to POST /imports/ on a running server."""
    try:
        with path.open("rb") as f:
            response = requests.post(
                f"{BASE_URL}/imports/",
                params={"include_images": str(include_images).lower()},
                files={"file": (path.name, f)},
                timeout=120,
            )
    except requests.exceptions.ConnectionError:
        console.print(f"[red]✗ Server is not running at {BASE_URL}[/red]")
        console.print(Panel("uvicorn main:app --reload --port 8000", title="Command", border_style="yellow"))
        sys.exit(1)
    if response.status_code != 200:
        console.print(f"\n[red]Response ({response.status_code} Error):[/red]")
        console.print(Syntax(format_json(response.json()), "json", theme="monokai", word_wrap=True))
        sys.exit(2)
    return response.json()


# ─────────────────────────────────────────────────────────────────────────────
# Display
# ─────────────────────────────────────────────────────────────────────────────

def show_header(path: Path):
    """Display the demo header."""
    console.print()
    console.print(Panel(
        f"[bold cyan]Spreadsheet Snapshot Demo[/bold cyan]\n"
        f"[dim]{path.name} ({format_size(path.stat().st_size)})[/dim]",
        box=DOUBLE,
        border_style="cyan",
        padding=(1, 2),
    ))


def show_sheets(result: dict):
    """One row per sheet, in snapshot order."""
    snapshot = result["snapshot"]
    table = Table(title="Sheets", box=ROUNDED, border_style="blue")
    table.add_column("#", style="cyan", justify="right")
    table.add_column("Name", style="white")
    table.add_column("Cells", justify="right")
    table.add_column("Merges", justify="right")
    table.add_column("Images", justify="right")
    table.add_column("Charts", justify="right")
    table.add_column("Sort / Filter", style="dim")
    table.add_column("", style="yellow")

    for i, sheet_id in enumerate(snapshot["sheet_order"]):
        sheet = snapshot["sheets"][sheet_id]
        cells = sum(len(cols) for cols in sheet.get("cell_data", {}).values())
        sort = result.get("sorts", {}).get(sheet_id)
        auto_filter = result.get("filters", {}).get(sheet_id)
        extras = " ".join(filter(None, [
            f"sort {sort['range']}" if sort else None,
            f"filter {auto_filter['range']}" if auto_filter else None,
        ]))
        table.add_row(
            str(i + 1),
            sheet["name"],
            str(cells),
            str(len(sheet.get("merges", []))),
            str(len(result.get("images", {}).get(sheet_id, []))),
            str(len(result.get("charts", {}).get(sheet_id, []))),
            extras,
            "hidden" if sheet.get("hidden") else "",
        )
    console.print(table)


def show_pivots(result: dict):
    pivots = result.get("pivot_tables", [])
    if not pivots:
        return
    table = Table(title="Pivot Tables", box=ROUNDED, border_style="magenta")
    table.add_column("Name")
    table.add_column("Sheet")
    table.add_column("Source")
    table.add_column("Anchor", justify="right")
    for pivot in pivots:
        source = pivot["source_range"]
        anchor = pivot["anchor_cell"]
        table.add_row(
            pivot.get("name") or "",
            pivot["sheet_name"],
            f"{source['sheet_name']} R{source['start_row']}C{source['start_column']}:"
            f"R{source['end_row']}C{source['end_column']}",
            f"R{anchor['row']}C{anchor['col']}",
        )
    console.print(table)


def show_report(report: dict):
    if not report.get("has_skips") and not report.get("warnings"):
        console.print("[green]✓ Nothing was skipped[/green]")
        return
    for warning in report.get("warnings", []):
        console.print(f"[yellow]! {warning}[/yellow]")
    for skip in report.get("skips", []):
        console.print(f"[yellow]• [{skip['stage']}] {skip['category']}: {skip['message']}[/yellow]")


def main(argv: Optional[list] = None):
    parser = argparse.ArgumentParser(description="Import a workbook into a snapshot and summarize it.")
    parser.add_argument("path", type=Path)
    parser.add_argument("--api", action="store_true", help=f"Use the server at {BASE_URL}")
    parser.add_argument("--no-images", action="store_true", help="Skip image extraction")
    parser.add_argument("--json", action="store_true", help="Also print the (truncated) JSON result")
    args = parser.parse_args(argv)

    if not args.path.exists():
        console.print(f"[red]No such file: {args.path}[/red]")
        sys.exit(1)

    show_header(args.path)
    include_images = not args.no_images
    if args.api:
        result = import_remote(args.path, include_images)
    else:
        result = import_local(args.path, include_images)

    show_sheets(result)
    show_pivots(result)
    show_report(result.get("report", {}))
    if args.json:
        console.print(Syntax(format_json(result), "json", theme="monokai", word_wrap=True))


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        console.print("\n[dim]Interrupted. Goodbye![/dim]")

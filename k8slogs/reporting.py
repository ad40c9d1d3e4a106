"""
Rendering of log entries and search results
Handles rich console tables and JSON output
"""

import json
from typing import List, Optional, Sequence

import structlog
from dateutil import parser as date_parser
from dateutil import tz
from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from .models import LogEntry, LogSearchResult

logger = structlog.get_logger(__name__)


LEVEL_STYLES = {
    'ERROR': 'bold red',
    'WARN': 'yellow',
    'INFO': 'green',
    'DEBUG': 'dim',
}


def format_timestamp(timestamp: Optional[str], local_time: bool = False) -> str:
    """Format an entry timestamp for display"""
    if not timestamp:
        return "-"

    if not local_time:
        return timestamp

    try:
        parsed = date_parser.isoparse(timestamp)
    except ValueError:
        return timestamp

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz.tzutc())
    return parsed.astimezone(tz.tzlocal()).strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]


def format_level(level: Optional[str]) -> Text:
    """Color a level for display"""
    if not level:
        return Text("-", style="dim")
    return Text(level, style=LEVEL_STYLES.get(level, 'magenta'))


class SearchReporter:
    """Displays log entries and search results"""

    def __init__(self,
                 output_format: str = "table",
                 show_raw: bool = False,
                 local_time: bool = False,
                 console: Optional[Console] = None):
        """
        Initialize the reporter

        Args:
            output_format: "table" or "json"
            show_raw: Show the raw line instead of the extracted message
            local_time: Render timestamps in the local timezone
            console: Console to print to (a new one if None)
        """
        self.output_format = output_format
        self.show_raw = show_raw
        self.local_time = local_time
        self.console = console or Console()

    def format_results_json(self, results: Sequence[LogSearchResult]) -> str:
        """Format search results as JSON"""
        return json.dumps([result.to_dict() for result in results], indent=2)

    def format_entries_json(self, entries: Sequence[LogEntry]) -> str:
        """Format log entries as JSON"""
        return json.dumps([entry.to_dict() for entry in entries], indent=2)

    def _entries_table(self, entries: Sequence[LogEntry], title: Optional[str] = None) -> Table:
        table = Table(title=Text(title) if title else None, box=box.ROUNDED, show_lines=False)
        table.add_column("Timestamp", style="cyan", no_wrap=True)
        table.add_column("Level", no_wrap=True)
        table.add_column("Raw" if self.show_raw else "Message", overflow="fold")

        for entry in entries:
            if self.show_raw:
                text = Text(entry.raw)
            elif entry.is_structured:
                text = Text.assemble(("{} ", "blue"), entry.message)
            else:
                text = Text(entry.message)

            table.add_row(
                Text(format_timestamp(entry.timestamp, self.local_time)),
                format_level(entry.level),
                text
            )

        return table

    def display_entries(self, entries: Sequence[LogEntry], title: Optional[str] = None):
        """Display log entries of a single stream"""
        if self.output_format == "json":
            self.console.out(self.format_entries_json(entries), highlight=False)
            return

        if not entries:
            self.console.print("[yellow]No log entries found[/yellow]")
            return

        self.console.print(self._entries_table(entries, title=title))

    def display_search_results(self, results: List[LogSearchResult]):
        """Display grouped search results"""
        if self.output_format == "json":
            self.console.out(self.format_results_json(results), highlight=False)
            return

        if not results:
            self.console.print("[yellow]No matching log entries found[/yellow]")
            return

        for result in results:
            title = (f"{result.pod_name}/{result.container_name} "
                     f"({result.total_matches} matches)")
            self.console.print(self._entries_table(result.entries, title=title))

        total = sum(result.total_matches for result in results)
        self.console.print(
            f"[bold]{total}[/bold] matches in [bold]{len(results)}[/bold] container(s)"
        )
        logger.debug("Displayed search results", streams=len(results), total_matches=total)

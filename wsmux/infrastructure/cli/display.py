import json
import logging
from typing import Any, Optional, Sequence

from rich.box import HEAVY, ROUNDED, SIMPLE
from rich.console import Console
from rich.json import JSON
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from wsmux.domain.interfaces.user_interface import UserInterface
from wsmux.domain.models.common import TRANSPORT_ERROR_CODE, RequestId, RequestState
from wsmux.domain.models.request import ResultRecord

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 60

STATE_STYLES = {
    RequestState.QUEUED: "yellow",
    RequestState.ACTIVE: "cyan",
    RequestState.COMPLETED: "green",
    RequestState.UNKNOWN: "dim",
}


def _preview(value: Any, length: int = PREVIEW_LENGTH) -> str:
    text = value if isinstance(value, str) else json.dumps(value, default=str)
    text = " ".join(text.split())
    return text if len(text) <= length else text[: length - 1] + "…"


def _code_style(http_code: str) -> str:
    if http_code.startswith("2"):
        return "green"
    if http_code == TRANSPORT_ERROR_CODE or http_code.startswith("5"):
        return "red"
    return "yellow"


class ConsoleDisplay(UserInterface):
    """Concrete implementation of UserInterface using the rich library for console output."""

    def __init__(self, console: Optional[Console] = None):
        """Initializes the rich Console."""
        self._console = console or Console()

    @property
    def console(self) -> Console:
        """Get the Rich console instance for direct operations."""
        return self._console

    @console.setter
    def console(self, console: Console) -> None:
        self._console = console

    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message in a distinct style."""
        panel = Panel(
            Text(error_message, style="white"),
            title="[bold red]Error[/bold red]",
            border_style="red",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        panel = Panel(
            Text(info_message, style="white"),
            title="[bold blue]Info[/bold blue]",
            border_style="blue",
            box=SIMPLE,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        logger.warning(f"Display warning: {warning_message}")
        panel = Panel(
            Text(warning_message, style="white"),
            title="[bold yellow]Warning[/bold yellow]",
            border_style="yellow",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_status(self, request_id: RequestId, state: RequestState) -> None:
        style = STATE_STYLES.get(state, "white")
        self.console.print(f"request [bold]{request_id}[/bold] status = [{style}]{state.value}[/{style}]")

    def display_results(self, records: Sequence[ResultRecord], **kwargs: Any) -> None:
        """Renders records as a table, one row per request in completion order."""
        table = Table(title=kwargs.get("title", "Results"), box=ROUNDED, show_lines=False)
        table.add_column("#", justify="right", style="dim")
        table.add_column("Request", justify="right")
        table.add_column("Code", justify="center")
        table.add_column("Latency (s)", justify="right")
        table.add_column("URL", overflow="fold")
        table.add_column("Response")

        for position, record in enumerate(records, start=1):
            style = _code_style(record.http_code)
            table.add_row(
                str(position),
                str(record.id),
                f"[{style}]{record.http_code}[/{style}]",
                f"{record.latency:.6f}",
                record.url,
                _preview(record.response),
            )
        self.console.print(table)

    def display_json(self, data: Any, **kwargs: Any) -> None:
        title = kwargs.get("title")
        rendered = JSON(json.dumps(data, default=str))
        if title:
            self.console.print(Panel(rendered, title=title, box=ROUNDED, padding=(0, 1)))
        else:
            self.console.print(rendered)

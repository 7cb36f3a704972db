import pytest
from unittest.mock import MagicMock

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from wsmux.domain.models.common import TRANSPORT_ERROR_CODE, HttpCode, RequestId, RequestState, Url
from wsmux.domain.models.request import ResultRecord
from wsmux.infrastructure.cli.display import ConsoleDisplay, _code_style, _preview


@pytest.fixture
def mock_console():
    """Fixture to create a mock rich Console object."""
    return MagicMock()


@pytest.fixture
def console_display(mock_console: MagicMock):
    """Fixture to create a ConsoleDisplay instance with a mocked console."""
    display = ConsoleDisplay()
    display.console = mock_console
    return display


@pytest.fixture
def recorded_display():
    """ConsoleDisplay writing to a recording console."""
    return ConsoleDisplay(console=Console(record=True, width=160, color_system=None))


def _record(request_id: int, code: str, response) -> ResultRecord:
    return ResultRecord(
        id=RequestId(request_id),
        response=response,
        http_code=HttpCode(code),
        latency=0.125,
        url=Url(f"https://api.example.test/{request_id}"),
        options={},
    )


def test_display_error(console_display: ConsoleDisplay, mock_console: MagicMock):
    """Test that display_error prints a titled panel."""
    console_display.display_error("Something went wrong")

    mock_console.print.assert_called_once()
    panel = mock_console.print.call_args.args[0]
    assert isinstance(panel, Panel)
    assert "Error" in panel.title
    assert panel.renderable.plain == "Something went wrong"


def test_display_warning_is_logged(console_display: ConsoleDisplay, mock_console: MagicMock, caplog):
    console_display.display_warning("Careful")

    mock_console.print.assert_called_once()
    assert "Display warning: Careful" in caplog.text


def test_display_status(recorded_display: ConsoleDisplay):
    recorded_display.display_status(RequestId(3), RequestState.QUEUED)

    assert recorded_display.console.export_text().strip() == "request 3 status = queued"


def test_display_results_renders_one_row_per_record(console_display: ConsoleDisplay, mock_console: MagicMock):
    records = [_record(1, "200", "body"), _record(2, "503", "Service Unavailable")]

    console_display.display_results(records, title="2/2 requests")

    table = mock_console.print.call_args.args[0]
    assert isinstance(table, Table)
    assert table.title == "2/2 requests"
    assert table.row_count == 2
    assert [c.header for c in table.columns] == ["#", "Request", "Code", "Latency (s)", "URL", "Response"]


def test_display_results_text(recorded_display: ConsoleDisplay):
    recorded_display.display_results([_record(7, "404", "Not Found")])

    output = recorded_display.console.export_text()
    assert "https://api.example.test/7" in output
    assert "Not Found" in output
    assert "0.125000" in output


def test_display_json_with_title(recorded_display: ConsoleDisplay):
    recorded_display.display_json({"response_code": "404"}, title="last request result")

    output = recorded_display.console.export_text()
    assert "last request result" in output
    assert '"response_code": "404"' in output


def test_preview_truncates_and_serializes():
    assert _preview("a\n  b") == "a b"
    assert _preview({"k": 1}) == '{"k": 1}'
    long_text = _preview("x" * 100, length=10)
    assert len(long_text) == 10
    assert long_text.endswith("…")


@pytest.mark.parametrize("code, style", [
    ("200", "green"),
    ("204", "green"),
    (TRANSPORT_ERROR_CODE, "red"),
    ("503", "red"),
    ("404", "yellow"),
])
def test_code_style(code, style):
    assert _code_style(code) == style

"""Main entry point for the wsmux application.

Sets up the Typer CLI application, wires dependencies (Composition Root)
and defines the CLI commands:

* ``fetch``   - multiplex plain HTTP requests and print a results table.
* ``request`` - issue Weather Source API requests and print the decoded results.
"""

import logging
from typing import Any, Dict, List, Optional

import typer
from typing_extensions import Annotated

from wsmux.core.multiplexer import InvalidSettingError, RequestMultiplexer
from wsmux.core.services.weather_source_service import ALLOWED_METHODS, WeatherSourceRequests
from wsmux.domain.models.common import RequestOptions
from wsmux.infrastructure.cli.display import ConsoleDisplay
from wsmux.infrastructure.config.settings import get_config, load_api_settings, load_configuration, set_config
from wsmux.infrastructure.monitoring.logger_setup import setup_logging
from wsmux.infrastructure.transport.httpx_transport import HttpxTransport

logger = logging.getLogger(__name__)


# --- Dependency Wiring ---

def create_dependencies(max_workers: int) -> Dict[str, Any]:
    """Creates the transport, engine and UI shared by a command.

    Args:
        max_workers: Transport worker threads, sized to the concurrency bound.
    """
    dependencies: Dict[str, Any] = {}
    dependencies['ui'] = ConsoleDisplay()
    dependencies['transport'] = HttpxTransport(max_workers=max(1, max_workers))
    dependencies['engine'] = RequestMultiplexer(transport=dependencies['transport'])
    logger.debug(f"Dependencies created: {sorted(dependencies)}")
    return dependencies


def parse_parameters(raw_params: List[str]) -> Dict[str, str]:
    """Turns repeated ``key=value`` options into a dict."""
    params: Dict[str, str] = {}
    for raw in raw_params:
        key, sep, value = raw.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected key=value, got '{raw}'", param_hint="--param")
        params[key] = value
    return params


# --- Typer App Definition ---
app = typer.Typer(
    name="wsmux",
    help="wsmux: bounded-concurrency HTTP request multiplexer with a Weather Source API client.",
    add_completion=False,
)


@app.callback()
def main_callback(
    log_level: Annotated[
        Optional[str],
        typer.Option("--log-level", "-l", help="Logging level (DEBUG, INFO, WARNING, ERROR).")
    ] = None,
    log_file: Annotated[
        Optional[str],
        typer.Option("--log-file", help="Also write logs to this file.")
    ] = None,
):
    """Loads configuration and configures logging before any command runs."""
    load_configuration()
    if log_level:
        set_config('logging.level', log_level)
    if log_file:
        set_config('logging.file', log_file)
    setup_logging(
        log_level=get_config('logging.level', 'WARNING'),
        log_format=get_config('logging.format', '%(asctime)s - %(name)s - %(levelname)s - %(message)s'),
        log_file=get_config('logging.file'),
    )


@app.command()
def fetch(
    urls: Annotated[List[str], typer.Argument(help="URLs to fetch.")],
    method: Annotated[str, typer.Option("--method", "-X", help="HTTP method.")] = "GET",
    max_concurrency: Annotated[int, typer.Option("--max-concurrency", "-c", min=1, help="Requests in flight at once.")] = 4,
    pacing: Annotated[float, typer.Option("--pacing", min=0.0, help="Seconds between launches.")] = 0.0,
    retries: Annotated[int, typer.Option("--retries", "-r", min=0, help="Retries for 0/500/503/504.")] = 2,
    retry_delay: Annotated[float, typer.Option("--retry-delay", min=0.0, help="Seconds before a retry.")] = 1.0,
    timeout: Annotated[float, typer.Option("--timeout", "-t", min=0.1, help="Per-request timeout in seconds.")] = 30.0,
):
    """Fetch URLs concurrently and print one row per completed request."""
    deps = create_dependencies(max_workers=max_concurrency)
    ui: ConsoleDisplay = deps['ui']
    engine: RequestMultiplexer = deps['engine']
    try:
        engine.set_max_concurrency(max_concurrency)
        engine.set_launch_pacing_interval(pacing)
        engine.set_max_retries(retries)
        engine.set_retry_delay(retry_delay)
    except InvalidSettingError as e:
        ui.display_error(str(e))
        raise typer.Exit(code=2)

    options = RequestOptions(method=method.upper(), timeout=timeout, connect_timeout=min(5.0, timeout))
    for url in urls:
        engine.submit(url, options)

    drained = engine.finish()
    ui.display_results(engine.all_results(), title=f"{len(engine.all_results())}/{engine.submitted_count} requests")
    if not drained:
        ui.display_error(f"Transport failed before all requests completed: {engine.fatal_reason}")
        raise typer.Exit(code=1)


@app.command()
def request(
    resource_path: Annotated[str, typer.Argument(help="API resource path, e.g. 'account'.")],
    method: Annotated[str, typer.Option("--method", "-X", help=f"One of {', '.join(ALLOWED_METHODS)}.")] = "GET",
    param: Annotated[List[str], typer.Option("--param", "-p", help="Resource parameter as key=value (repeatable).")] = [],
    count: Annotated[int, typer.Option("--count", "-n", min=1, help="How many times to issue the request.")] = 1,
    metric: Annotated[bool, typer.Option("--metric", help="Convert distances to cm and km/h.")] = False,
    celsius: Annotated[bool, typer.Option("--celsius", help="Convert temperatures to Celsius.")] = False,
):
    """Issue Weather Source API requests and print the decoded responses."""
    parameters = parse_parameters(param)
    if metric:
        set_config('wssdk_distance_unit', 'metric')
    if celsius:
        set_config('wssdk_temperature_unit', 'celsius')
    settings = load_api_settings()
    deps = create_dependencies(max_workers=settings.max_threads)
    ui: ConsoleDisplay = deps['ui']
    try:
        service = WeatherSourceRequests(deps['engine'], settings)
    except InvalidSettingError as e:
        ui.display_error(f"Invalid SDK settings: {e}")
        raise typer.Exit(code=2)

    def show_completion(response, http_code, latency, url, options):
        logger.info(f"Request to {url} finished with {http_code} in {latency:.3f}s")

    last_id = None
    for _ in range(count):
        try:
            last_id = service.request(method, resource_path, parameters, callback=show_completion)
        except ValueError as e:
            ui.display_error(str(e))
            raise typer.Exit(code=2)
        ui.display_status(last_id, service.status(last_id))

    drained = service.finish()
    ui.display_json(service.results(), title="summary results")

    if last_id is not None and service.result(last_id) is not None:
        ui.display_json(service.result(last_id), title="last request result")
    if service.error_log_directory():
        ui.display_info(f"Error log directory: {service.error_log_directory()}")
    if not drained:
        ui.display_error(f"Transport failed before all requests completed: {deps['engine'].fatal_reason}")
        raise typer.Exit(code=1)


# --- Main Execution Guard ---

def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    app()


if __name__ == "__main__":
    cli_entry_point()

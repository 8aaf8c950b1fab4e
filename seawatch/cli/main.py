"""SeaWatch command-line interface.

Commands:
    seawatch analyze <event_id> [--force]    Explain an event via REST API.
    seawatch latest [--vessel-id ID]         Explain the most recent event.
    seawatch event-latest [--vessel-id ID]   Show the most recent event.
    seawatch version                         Print version and exit.

All commands call the REST API at http://localhost:8000 (configurable via
``--api-url``).  Output is colourised for readability.
"""

from __future__ import annotations

import json

import click
import httpx

from seawatch import __version__

_DEFAULT_API_URL = "http://localhost:8000"

# ---------------------------------------------------------------------------
# Colour helpers
# ---------------------------------------------------------------------------

_SEVERITY_COLORS: dict[str, str] = {
    "info": "green",
    "warning": "yellow",
    "critical": "bright_red",
}

_CONFIDENCE_THRESHOLDS: list[tuple[int, str]] = [
    (70, "green"),
    (40, "yellow"),
    (0, "red"),
]


def _confidence_color(confidence: int) -> str:
    for threshold, color in _CONFIDENCE_THRESHOLDS:
        if confidence >= threshold:
            return color
    return "red"


def _styled_severity(severity: str) -> str:
    color = _SEVERITY_COLORS.get(severity.lower(), "white")
    return click.style(severity.upper(), fg=color, bold=True)


# ---------------------------------------------------------------------------
# HTTP helpers
# ---------------------------------------------------------------------------


def _get(api_url: str, path: str, params: dict[str, str] | None = None) -> dict[str, object]:
    """Perform a GET request and return the parsed JSON body.

    Raises click.ClickException on connection errors or non-2xx responses.
    """
    url = api_url.rstrip("/") + path
    try:
        with httpx.Client(timeout=30.0) as client:
            response = client.get(url, params=params or {})
        response.raise_for_status()
        return response.json()  # type: ignore[no-any-return]
    except httpx.ConnectError as err:
        raise click.ClickException(f"Cannot connect to SeaWatch API at {api_url}. Is the server running?") from err
    except httpx.HTTPStatusError as exc:
        _handle_error_response(exc.response)
        raise  # unreachable, _handle_error_response always raises


def _post(api_url: str, path: str, body: dict[str, object]) -> dict[str, object]:
    """Perform a POST request and return the parsed JSON body.

    The timeout is generous because a forced analysis waits on the model.
    """
    url = api_url.rstrip("/") + path
    try:
        with httpx.Client(timeout=330.0) as client:
            response = client.post(url, json=body)
        response.raise_for_status()
        return response.json()  # type: ignore[no-any-return]
    except httpx.ConnectError as err:
        raise click.ClickException(f"Cannot connect to SeaWatch API at {api_url}. Is the server running?") from err
    except httpx.HTTPStatusError as exc:
        _handle_error_response(exc.response)
        raise


def _handle_error_response(response: httpx.Response) -> None:
    """Parse an error response body and raise a friendly ClickException."""
    try:
        data: dict[str, object] = response.json()
        msg = f"HTTP {response.status_code}: {data.get('detail', 'Unknown error')}"
    except ValueError:
        msg = f"HTTP {response.status_code}: {response.text[:200]}"
    raise click.ClickException(msg)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--api-url",
    default=_DEFAULT_API_URL,
    envvar="SEAWATCH_API_URL",
    show_default=True,
    help="SeaWatch REST API base URL.",
)
@click.pass_context
def cli(ctx: click.Context, api_url: str) -> None:
    """SeaWatch, vessel telemetry event analysis CLI."""
    ctx.ensure_object(dict)
    ctx.obj["api_url"] = api_url


# ---------------------------------------------------------------------------
# seawatch version
# ---------------------------------------------------------------------------


@cli.command("version")
def cmd_version() -> None:
    """Print the SeaWatch version and exit."""
    click.echo(f"seawatch {__version__}")


# ---------------------------------------------------------------------------
# seawatch analyze / latest
# ---------------------------------------------------------------------------

_JSON_OPTION = click.option(
    "--json",
    "output_json",
    is_flag=True,
    default=False,
    help="Print raw JSON response.",
)


@cli.command("analyze")
@click.argument("event_id")
@click.option("--force", is_flag=True, default=False, help="Recompute even if an analysis is stored.")
@_JSON_OPTION
@click.pass_context
def cmd_analyze(ctx: click.Context, event_id: str, force: bool, output_json: bool) -> None:
    """Explain the event EVENT_ID.

    Example:

        seawatch analyze 3f2b8c1e-7a4d-4c8e-9f51-2d6b0a9e4c17 --force
    """
    api_url: str = ctx.obj["api_url"]
    data = _post(api_url, "/analyze", {"event_id": event_id, "force": force})

    if output_json:
        click.echo(json.dumps(data, indent=2))
        return

    _print_analysis(data)


@cli.command("latest")
@click.option("--vessel-id", default=None, metavar="ID", help="Restrict to one vessel.")
@_JSON_OPTION
@click.pass_context
def cmd_latest(ctx: click.Context, vessel_id: str | None, output_json: bool) -> None:
    """Explain the most recent event."""
    api_url: str = ctx.obj["api_url"]
    params = {"vessel_id": vessel_id} if vessel_id else None
    data = _get(api_url, "/analyze/latest", params=params)

    if output_json:
        click.echo(json.dumps(data, indent=2))
        return

    _print_analysis(data)


def _print_analysis(data: dict[str, object]) -> None:
    """Pretty-print an Analysis dict."""
    raw_confidence = data.get("confidence", 0)
    confidence = raw_confidence if isinstance(raw_confidence, int) else 0
    conf_str = click.style(str(confidence), fg=_confidence_color(confidence), bold=True)

    click.echo("")
    click.echo(click.style("Event Analysis", bold=True, underline=True) + f"  {data.get('event_id', '?')}")
    click.echo("")
    click.echo(f"  {click.style('Summary:', bold=True)}     {data.get('summary', '')}")
    click.echo(f"  {click.style('Confidence:', bold=True)}  {conf_str}")

    for label, key in (("Possible Causes", "possible_causes"), ("Recommended Actions", "recommended_actions")):
        items: list[object] = data.get(key, [])  # type: ignore[assignment]
        click.echo("")
        click.echo(click.style(f"{label}:", bold=True))
        if not items:
            click.echo("  None")
        for item in items:
            click.echo(f"  - {item}")

    notes = str(data.get("data_quality_notes", ""))
    if notes:
        click.echo("")
        click.echo(click.style("Data Quality Notes:", bold=True, fg="yellow"))
        click.echo(f"  {notes}")

    evidence: dict[str, object] = data.get("evidence", {})  # type: ignore[assignment]
    window = evidence.get("window") if isinstance(evidence, dict) else None
    if window:
        click.echo("")
        click.echo(click.style("  Window:", fg="bright_black") + f" {window}")

    click.echo("")


# ---------------------------------------------------------------------------
# seawatch event-latest
# ---------------------------------------------------------------------------


@cli.command("event-latest")
@click.option("--vessel-id", default=None, metavar="ID", help="Restrict to one vessel.")
@click.pass_context
def cmd_event_latest(ctx: click.Context, vessel_id: str | None) -> None:
    """Show the most recent event."""
    api_url: str = ctx.obj["api_url"]
    params = {"vessel_id": vessel_id} if vessel_id else None
    data = _get(api_url, "/events/latest", params=params)

    sev = str(data.get("severity", "INFO"))
    click.echo(
        f"[{_styled_severity(sev)}] {data.get('ts', '')}  "
        f"{data.get('vessel_id', '?')}/{data.get('sensor_id', '?')}  "
        f"{data.get('event_type', '')}: {data.get('description', '')}"
    )
    click.echo(click.style("  event_id:", fg="bright_black") + f" {data.get('event_id', '?')}")


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    cli()

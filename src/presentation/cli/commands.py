"""CLI commands for the channel client."""

from __future__ import annotations

from concurrent.futures import CancelledError
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Dict, List, Optional

import typer
from pydantic import ValidationError
from rich.console import Console

from src.channels.errors import EncodingError
from src.channels.payload import ChannelPayload
from src.channels.request import serialize_payload
from src.channels.results import ChannelCreated, ChannelFailed, ChannelUpdated
from src.services import ChannelAPIClient, ConfigService
from src.services.config_schema import ApiConfig, FullConfig

app = typer.Typer(help="Channel client - register and update push channels")
console = Console()

# Slack on top of the engine's own timeouts and retry delays
WAIT_MARGIN = 5.0


def load_config(path: str) -> FullConfig:
    config_service = ConfigService(path)
    try:
        return config_service.load_config()
    except FileNotFoundError as e:
        console.print(f"[red][ERROR] {e}[/red]")
    except ValidationError as e:
        console.print(f"[red][ERROR] Invalid configuration {path}:[/red]\n{e}")
    raise typer.Exit(code=1)


def build_payload(
    defaults: Dict[str, Any],
    push_address: Optional[str] = None,
    tags: Optional[List[str]] = None,
    alias: Optional[str] = None,
    opt_in: Optional[bool] = None,
    timezone: Optional[str] = None,
    locale_language: Optional[str] = None,
    locale_country: Optional[str] = None,
) -> ChannelPayload:
    """Merge command line options over the configured payload defaults."""
    data = dict(defaults or {})
    overrides = {
        "push_address": push_address,
        "alias": alias,
        "opt_in": opt_in,
        "timezone": timezone,
        "locale_language": locale_language,
        "locale_country": locale_country,
    }
    data.update({k: v for k, v in overrides.items() if v is not None})
    if tags:
        data["tags"] = list(tags)
        data["set_tags"] = True
    return ChannelPayload.from_dict(data)


def _payload_or_exit(defaults: Dict[str, Any], *options) -> ChannelPayload:
    try:
        return build_payload(defaults, *options)
    except EncodingError as e:
        console.print(f"[red][ERROR] {e}[/red]")
        raise typer.Exit(code=1)


def default_wait(api: ApiConfig) -> float:
    """Worst case run time of one request under the configured retry policy."""
    attempts = api.retry_count + 1
    return attempts * api.timeout + api.retry_count * api.retry_delay + WAIT_MARGIN


def _wait_for(client: ChannelAPIClient, future, wait: float):
    try:
        return future.result(timeout=wait)
    except FutureTimeoutError:
        client.cancel_all_requests()
        console.print(f"[yellow]No answer from the channel API after {wait}s[/yellow]")
    except CancelledError:
        console.print("[yellow]Request cancelled[/yellow]")
    raise typer.Exit(code=1)


def _report(result) -> None:
    if isinstance(result, ChannelCreated):
        console.print(
            f"[green][SUCCESS] Channel created: [bold]{result.channel_id}[/bold][/green]"
        )
    elif isinstance(result, ChannelUpdated):
        console.print("[green][SUCCESS] Channel updated[/green]")
    elif isinstance(result, ChannelFailed):
        failure = result.failure
        console.print(f"[red][ERROR] {failure.describe()}[/red]")
        if failure.body:
            console.print(failure.body, markup=False)
        raise typer.Exit(code=1)


@app.command()
def create(
    config: str = typer.Option(
        "channel_config.yaml", "--config", "-c", help="Configuration file"
    ),
    push_address: Optional[str] = typer.Option(None, help="Device push token"),
    tag: Optional[List[str]] = typer.Option(None, "--tag", "-t", help="Channel tag"),
    alias: Optional[str] = typer.Option(None, help="Channel alias"),
    opt_in: Optional[bool] = typer.Option(None, "--opt-in/--opt-out"),
    timezone: Optional[str] = typer.Option(None, help="IANA timezone"),
    locale_language: Optional[str] = typer.Option(None),
    locale_country: Optional[str] = typer.Option(None),
    wait: Optional[float] = typer.Option(
        None,
        help="Seconds to wait for the outcome (default: derived from the retry policy)",
    ),
) -> None:
    """Register a new channel and print its ID."""
    cfg = load_config(config)
    payload = _payload_or_exit(
        cfg.payload_defaults,
        push_address,
        tag,
        alias,
        opt_in,
        timezone,
        locale_language,
        locale_country,
    )
    if wait is None:
        wait = default_wait(cfg.api)
    client = ChannelAPIClient.from_config(cfg.api)
    try:
        result = _wait_for(client, client.create_channel_future(payload), wait)
    finally:
        client.close()
    _report(result)


@app.command()
def update(
    channel_id: str = typer.Argument(..., help="Channel to update"),
    config: str = typer.Option(
        "channel_config.yaml", "--config", "-c", help="Configuration file"
    ),
    push_address: Optional[str] = typer.Option(None, help="Device push token"),
    tag: Optional[List[str]] = typer.Option(None, "--tag", "-t", help="Channel tag"),
    alias: Optional[str] = typer.Option(None, help="Channel alias"),
    opt_in: Optional[bool] = typer.Option(None, "--opt-in/--opt-out"),
    timezone: Optional[str] = typer.Option(None, help="IANA timezone"),
    locale_language: Optional[str] = typer.Option(None),
    locale_country: Optional[str] = typer.Option(None),
    wait: Optional[float] = typer.Option(
        None,
        help="Seconds to wait for the outcome (default: derived from the retry policy)",
    ),
) -> None:
    """Update an existing channel."""
    cfg = load_config(config)
    payload = _payload_or_exit(
        cfg.payload_defaults,
        push_address,
        tag,
        alias,
        opt_in,
        timezone,
        locale_language,
        locale_country,
    )
    if wait is None:
        wait = default_wait(cfg.api)
    client = ChannelAPIClient.from_config(cfg.api)
    try:
        result = _wait_for(
            client, client.update_channel_future(channel_id, payload), wait
        )
    finally:
        client.close()
    _report(result)


@app.command()
def payload(
    config: str = typer.Option(
        "channel_config.yaml", "--config", "-c", help="Configuration file"
    ),
    push_address: Optional[str] = typer.Option(None, help="Device push token"),
    tag: Optional[List[str]] = typer.Option(None, "--tag", "-t", help="Channel tag"),
    alias: Optional[str] = typer.Option(None, help="Channel alias"),
    opt_in: Optional[bool] = typer.Option(None, "--opt-in/--opt-out"),
    timezone: Optional[str] = typer.Option(None, help="IANA timezone"),
    locale_language: Optional[str] = typer.Option(None),
    locale_country: Optional[str] = typer.Option(None),
) -> None:
    """Print the request body that create/update would send."""
    cfg = load_config(config)
    try:
        body = serialize_payload(
            build_payload(
                cfg.payload_defaults,
                push_address,
                tag,
                alias,
                opt_in,
                timezone,
                locale_language,
                locale_country,
            )
        )
    except EncodingError as e:
        console.print(f"[red][ERROR] {e}[/red]")
        raise typer.Exit(code=1)
    console.print_json(body)

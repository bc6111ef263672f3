#!/usr/bin/env python3

from __future__ import annotations
import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

import typer
from rich.console import Console

from wick.client.controller import SessionController
from wick.client.profile import DEFAULT_REALM, DEFAULT_URL, ConnectionOptions, load_profile
from wick.client.state import InvocationPolicy
from wick.shared.auth import Credentials, SessionConfig, build_session_config
from wick.shared.errors import KEYBOARD_INTERRUPT, WickError
from wick.shared.log import configure_logging
from wick.shared.utils import parse_key_values

app = typer.Typer(help="WAMP command line client", no_args_is_help=True)
console = Console()

Action = Callable[[SessionController, str, SessionConfig], Awaitable[int]]


class MatchPolicy(str, enum.Enum):
    exact = "exact"
    prefix = "prefix"
    wildcard = "wildcard"


class Serializer(str, enum.Enum):
    json = "json"
    msgpack = "msgpack"
    cbor = "cbor"


@dataclass
class CliState:
    options: ConnectionOptions
    profile: Optional[str]
    logger: logging.Logger


def _run(ctx: typer.Context, action: Action) -> None:
    """Single error boundary: maps WickError to its exit code."""
    state: CliState = ctx.obj
    logger = state.logger
    try:
        options = state.options
        if state.profile:
            options = load_profile(state.profile, options)
        config = build_session_config(
            options.realm,
            Credentials(options.private_key, options.ticket, options.secret),
            serializer=options.serializer,
            authid=options.authid,
            authrole=options.authrole,
        )
        controller = SessionController(console=console, logger=logger)
        code = asyncio.run(action(controller, options.url, config))
    except WickError as e:
        logger.error("%s", e)
        raise typer.Exit(code=e.exit_code)
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        raise typer.Exit(code=KEYBOARD_INTERRUPT)
    raise typer.Exit(code=code)


@app.callback()
def global_options(
    ctx: typer.Context,
    url: str = typer.Option(DEFAULT_URL, envvar="WICK_URL", help="Router URL: ws://, wss://, rs:// or rss://"),
    realm: str = typer.Option(DEFAULT_REALM, envvar="WICK_REALM", help="Realm to join"),
    authid: Optional[str] = typer.Option(None, envvar="WICK_AUTHID", help="authid sent in HELLO"),
    authrole: Optional[str] = typer.Option(None, envvar="WICK_AUTHROLE", help="authrole sent in HELLO"),
    private_key: Optional[str] = typer.Option(None, "--private-key", envvar="WICK_PRIVATE_KEY", help="Hex ed25519 key for cryptosign"),
    ticket: Optional[str] = typer.Option(None, envvar="WICK_TICKET", help="Ticket for ticket auth"),
    secret: Optional[str] = typer.Option(None, envvar="WICK_SECRET", help="Secret for wampcra auth"),
    serializer: Serializer = typer.Option(Serializer.json, envvar="WICK_SERIALIZER", help="Wire serializer"),
    profile: Optional[str] = typer.Option(None, envvar="WICK_PROFILE", help="Profile from ~/.wick/config.yaml"),
    debug: bool = typer.Option(False, "--debug", help="Verbose logging"),
):
    """Connect to a WAMP router and subscribe, publish, register or call."""
    ctx.obj = CliState(
        options=ConnectionOptions(
            url=url,
            realm=realm,
            authid=authid,
            authrole=authrole,
            private_key=private_key or "",
            ticket=ticket or "",
            secret=secret or "",
            serializer=serializer.value,
        ),
        profile=profile,
        logger=configure_logging("DEBUG" if debug else None),
    )


@app.command()
def subscribe(
    ctx: typer.Context,
    topic: str = typer.Argument(..., help="Topic URI"),
    match: MatchPolicy = typer.Option(MatchPolicy.exact, help="Topic matching policy"),
    details: bool = typer.Option(False, "--details", help="Log event details"),
):
    """Subscribe to a topic and print events until Ctrl-C."""
    _run(ctx, lambda controller, url, config: controller.subscribe(
        url, config, topic, match=match.value, print_details=details,
    ))


@app.command()
def publish(
    ctx: typer.Context,
    topic: str = typer.Argument(..., help="Topic URI"),
    args: Optional[List[str]] = typer.Argument(None, help="Positional arguments"),
    kwarg: Optional[List[str]] = typer.Option(None, "--kwarg", "-k", help="Keyword argument as key=value"),
):
    """Publish a single event."""
    _run(ctx, lambda controller, url, config: controller.publish(
        url, config, topic, args, parse_key_values(kwarg),
    ))


@app.command()
def register(
    ctx: typer.Context,
    procedure: str = typer.Argument(..., help="Procedure URI"),
    commands: Optional[List[str]] = typer.Argument(None, help="Shell commands run for each call, joined with ';'"),
    script: Optional[str] = typer.Option(None, "--script", help="Path of a program run for each call, as one path without a shell or argument splitting"),
    shell: str = typer.Option("bash", "--shell", help="Interpreter for the commands"),
    delay: float = typer.Option(0.0, "--delay", min=0, help="Seconds to wait before registering"),
    invoke_count: Optional[int] = typer.Option(None, "--invoke-count", min=1, help="Stop after this many calls; wick then exits with status 0"),
):
    """Register a procedure answered by local command output."""
    policy = InvocationPolicy(
        invoke_count=invoke_count,
        delay=delay,
        commands=list(commands or []),
        script=script,
        shell=shell,
    )
    _run(ctx, lambda controller, url, config: controller.register(url, config, procedure, policy))


@app.command()
def call(
    ctx: typer.Context,
    procedure: str = typer.Argument(..., help="Procedure URI"),
    args: Optional[List[str]] = typer.Argument(None, help="Positional arguments"),
    kwarg: Optional[List[str]] = typer.Option(None, "--kwarg", "-k", help="Keyword argument as key=value"),
):
    """Call a procedure once and print the result."""
    _run(ctx, lambda controller, url, config: controller.call(
        url, config, procedure, args, parse_key_values(kwarg),
    ))


def main() -> None:
    app()


if __name__ == "__main__":
    main()

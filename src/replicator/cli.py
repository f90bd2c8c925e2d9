"""Replicator handler CLI (replicatorctl).

Runs one lifecycle operation against a replicator, either to completion or
one invocation at a time.

Usage:
    replicatorctl create replicator.yaml          # Create and wait for RUNNING
    replicatorctl read --arn ARN                  # Describe
    replicatorctl update replicator.yaml          # Apply a change and wait
    replicatorctl delete --arn ARN                # Delete and wait until gone
    replicatorctl list                            # List replicator ARNs

    replicatorctl create replicator.yaml --once --save-context ctx.json
    replicatorctl create replicator.yaml --once --context ctx.json
"""

from __future__ import annotations

import asyncio
import json
import signal
import sys
import uuid
from pathlib import Path
from typing import Any

import click

from .client import create_kafka_client
from .config import Config, ConfigurationError
from .driver import OperationDriver
from .handlers import HandlerRuntime, invoke
from .main import setup_logging
from .models import CallbackContext, HandlerRequest, OperationStatus, ProgressEvent, ResourceModel
from .spec_loader import (
    SpecLoadError,
    load_callback_context,
    load_resource_model,
    save_callback_context,
)

TOKEN_OPTION = click.option(
    "--token",
    default=None,
    help="Client request token echoed in logs and errors (default: random UUID)",
)
ONCE_OPTION = click.option(
    "--once", is_flag=True, help="Run a single invocation instead of driving to completion"
)
CONTEXT_OPTION = click.option(
    "--context",
    "context_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Resume from a callback context saved by an earlier invocation",
)
SAVE_CONTEXT_OPTION = click.option(
    "--save-context",
    "save_context_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Write the callback context here if the operation is still in progress",
)


def _runtime(ctx: click.Context) -> HandlerRuntime:
    """Build the handler runtime, reusing a client injected through ctx.obj."""
    obj = ctx.ensure_object(dict)
    if "runtime" not in obj:
        config: Config = obj["config"]
        client = obj.get("client") or create_kafka_client(config)
        obj["runtime"] = HandlerRuntime(client=client, config=config)
    return obj["runtime"]


def _load_model(path: Path) -> ResourceModel:
    try:
        return load_resource_model(path)
    except SpecLoadError as e:
        raise click.ClickException(str(e)) from e


def _load_context(path: Path | None) -> CallbackContext | None:
    if path is None:
        return None
    try:
        return load_callback_context(path)
    except SpecLoadError as e:
        raise click.ClickException(str(e)) from e


async def _drive(
    driver: OperationDriver,
    action: str,
    request: HandlerRequest,
    context: CallbackContext | None,
) -> ProgressEvent:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, driver.shutdown)
    try:
        result = await driver.drive(action, request, context)
    finally:
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.remove_signal_handler(sig)
    return result.event


def _execute(
    ctx: click.Context,
    action: str,
    request: HandlerRequest,
    *,
    once: bool = False,
    context_path: Path | None = None,
    save_context_path: Path | None = None,
) -> None:
    runtime = _runtime(ctx)
    context = _load_context(context_path)

    if once:
        event = invoke(action, request, context, runtime)
    else:
        event = asyncio.run(_drive(OperationDriver(runtime), action, request, context))

    if (
        save_context_path is not None
        and event.status == OperationStatus.IN_PROGRESS
        and event.callback_context is not None
    ):
        save_callback_context(save_context_path, event.callback_context)

    click.echo(json.dumps(event.to_dict(), indent=2))
    if event.status == OperationStatus.FAILED:
        ctx.exit(1)


def _request(model: ResourceModel, token: str | None, **kwargs: Any) -> HandlerRequest:
    return HandlerRequest(
        desired_resource_state=model,
        client_request_token=token or str(uuid.uuid4()),
        **kwargs,
    )


# =============================================================================
# Main CLI Group
# =============================================================================


@click.group()
@click.version_option(version="0.1.0", prog_name="replicatorctl")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """MSK replicator handler CLI (replicatorctl).

    Configuration is read from the environment (AWS_REGION, MSK_ENDPOINT_URL,
    *_TIMEOUT_MINUTES, *_DELAY_SECONDS, LOG_LEVEL, ENABLE_JSON_LOGGING).
    """
    obj = ctx.ensure_object(dict)
    if "config" not in obj:
        try:
            obj["config"] = Config.from_env()
        except ConfigurationError as e:
            raise click.ClickException(str(e)) from e

    config: Config = obj["config"]
    setup_logging(config.log_level, config.enable_json_logging, stream=sys.stderr)


@cli.command()
@click.argument("desired_file", type=click.Path(path_type=Path, exists=True, dir_okay=False))
@TOKEN_OPTION
@ONCE_OPTION
@CONTEXT_OPTION
@SAVE_CONTEXT_OPTION
@click.pass_context
def create(
    ctx: click.Context,
    desired_file: Path,
    token: str | None,
    once: bool,
    context_path: Path | None,
    save_context_path: Path | None,
) -> None:
    """Create a replicator from a desired-state file."""
    request = _request(_load_model(desired_file), token)
    _execute(
        ctx, "CREATE", request, once=once, context_path=context_path, save_context_path=save_context_path
    )


@cli.command()
@click.option("--arn", required=True, help="Replicator ARN")
@TOKEN_OPTION
@click.pass_context
def read(ctx: click.Context, arn: str, token: str | None) -> None:
    """Describe a replicator."""
    _execute(ctx, "READ", _request(ResourceModel(replicator_arn=arn), token))


@cli.command()
@click.argument("desired_file", type=click.Path(path_type=Path, exists=True, dir_okay=False))
@click.option(
    "--previous",
    "previous_file",
    type=click.Path(path_type=Path, exists=True, dir_okay=False),
    default=None,
    help="Previous desired-state file, used to compute tag changes",
)
@TOKEN_OPTION
@ONCE_OPTION
@CONTEXT_OPTION
@SAVE_CONTEXT_OPTION
@click.pass_context
def update(
    ctx: click.Context,
    desired_file: Path,
    previous_file: Path | None,
    token: str | None,
    once: bool,
    context_path: Path | None,
    save_context_path: Path | None,
) -> None:
    """Update a replicator to match a desired-state file."""
    previous = _load_model(previous_file) if previous_file else None
    request = _request(_load_model(desired_file), token, previous_resource_state=previous)
    _execute(
        ctx, "UPDATE", request, once=once, context_path=context_path, save_context_path=save_context_path
    )


@cli.command()
@click.option("--arn", required=True, help="Replicator ARN")
@TOKEN_OPTION
@ONCE_OPTION
@CONTEXT_OPTION
@SAVE_CONTEXT_OPTION
@click.pass_context
def delete(
    ctx: click.Context,
    arn: str,
    token: str | None,
    once: bool,
    context_path: Path | None,
    save_context_path: Path | None,
) -> None:
    """Delete a replicator and wait until it is gone."""
    request = _request(ResourceModel(replicator_arn=arn), token)
    _execute(
        ctx, "DELETE", request, once=once, context_path=context_path, save_context_path=save_context_path
    )


@cli.command(name="list")
@click.option("--next-token", default=None, help="Continuation token from a previous page")
@TOKEN_OPTION
@click.pass_context
def list_replicators(ctx: click.Context, next_token: str | None, token: str | None) -> None:
    """List replicator ARNs, one page at a time."""
    _execute(ctx, "LIST", _request(ResourceModel(), token, next_token=next_token))

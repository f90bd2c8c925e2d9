"""Create, read, update, delete and list handlers for the replicator.

Each handler takes the host's request, the callback context from the
previous invocation, and a runtime bundling the kafka client, configuration
and clock. Mutating handlers are compositions of stages (see stabilizer.py)
chained with ProgressEvent.then(); the chain stops as soon as a stage fails
or asks to be re-invoked later.

Faults from remote calls are classified by errors.handle_error. Handler
exceptions (AlreadyExists, NotFound, InvalidRequest, NotStabilized) propagate
to invoke(), which reports them as FAILED events.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from botocore.exceptions import ClientError

from . import translator
from .config import Config
from .differ import plan_update
from .errors import (
    MULTIPLE_UPDATES_UNSUPPORTED,
    AlreadyExists,
    HandlerError,
    InvalidRequest,
    NotFound,
    NotStabilized,
    error_message,
    handle_error,
    is_bad_request,
    is_conflict,
    is_invalid_replicator_arn,
    is_not_found,
)
from .models import (
    CallbackContext,
    HandlerErrorCode,
    HandlerRequest,
    OperationStatus,
    ProgressEvent,
    ReplicatorState,
    ResourceModel,
)
from .stabilizer import ErrorHandler, Stage, run_stage
from .tags import compute_delta, desired_tags, previous_tags

logger = logging.getLogger(__name__)

CREATE_STAGE = "create"
PRE_DELETE_CHECK_STAGE = "pre_delete_check"
DELETE_STAGE = "delete"
UNTAG_STAGE = "untag"
TAG_STAGE = "tag"
UPDATE_REPLICATION_INFO_STAGE = "update_replication_info"


@dataclass(frozen=True)
class HandlerRuntime:
    """Collaborators shared by all handlers of one invocation."""

    client: Any
    config: Config = field(default_factory=Config)
    clock: Callable[[], float] = time.time


Handler = Callable[[HandlerRequest, CallbackContext, HandlerRuntime], ProgressEvent]


def _on_error(token: str) -> ErrorHandler:
    return lambda exc, model: handle_error(exc, model, token)


def _describe_state(client: Any, model: ResourceModel) -> str | None:
    response = client.describe_replicator(**translator.to_read_request(model))
    return response.get("ReplicatorState")


def _expect_state(
    state: str | None,
    model: ResourceModel,
    *,
    done: ReplicatorState,
    pending: ReplicatorState,
) -> bool:
    if state == done:
        logger.info(
            "Replicator %s is stabilized, current state is %s",
            model.replicator_arn,
            state,
            extra={"replicator_arn": model.replicator_arn, "replicator_state": state},
        )
        return True
    if state == pending:
        logger.info(
            "Replicator %s is stabilizing, current state is %s",
            model.replicator_arn,
            state,
            extra={"replicator_arn": model.replicator_arn, "replicator_state": state},
        )
        return False
    logger.error(
        "Replicator %s reached unexpected state %s",
        model.replicator_arn,
        state,
        extra={"replicator_arn": model.replicator_arn, "replicator_state": state},
    )
    raise NotStabilized(model.replicator_arn, f"unexpected state {state}")


def _already_gone(exc: Exception) -> bool:
    return is_not_found(exc) or is_invalid_replicator_arn(exc)


# =============================================================================
# Read / List
# =============================================================================


def read_handler(
    request: HandlerRequest, callback_context: CallbackContext, runtime: HandlerRuntime
) -> ProgressEvent:
    """Describe the replicator and return it as the output snapshot."""
    model = request.desired_resource_state
    token = request.client_request_token

    try:
        response = runtime.client.describe_replicator(**translator.to_read_request(model))
        current = translator.from_read_response(response)
    except Exception as exc:
        return handle_error(exc, model, token)

    logger.info(
        "[ClientRequestToken: %s] Successfully read replicator %s",
        token,
        model.replicator_arn,
        extra={"client_request_token": token, "replicator_arn": model.replicator_arn},
    )
    return ProgressEvent.success(current)


def list_handler(
    request: HandlerRequest, callback_context: CallbackContext, runtime: HandlerRuntime
) -> ProgressEvent:
    """List one page of replicators as identity-only models."""
    model = request.desired_resource_state
    token = request.client_request_token

    try:
        response = runtime.client.list_replicators(**translator.to_list_request(request.next_token))
    except Exception as exc:
        return handle_error(exc, model, token)

    models = translator.from_list_response(response)
    logger.info(
        "[ClientRequestToken: %s] Listed %d replicators",
        token,
        len(models),
        extra={"client_request_token": token, "has_next_token": bool(response.get("NextToken"))},
    )
    return ProgressEvent(
        status=OperationStatus.SUCCESS,
        resource_models=models,
        next_token=response.get("NextToken"),
    )


# =============================================================================
# Create
# =============================================================================


def create_handler(
    request: HandlerRequest, callback_context: CallbackContext, runtime: HandlerRuntime
) -> ProgressEvent:
    """Create the replicator, wait for RUNNING, then read it back."""
    model = request.desired_resource_state
    token = request.client_request_token
    client = runtime.client

    logger.info(
        "[ClientRequestToken: %s] Handling create operation for replicator %s",
        token,
        model.replicator_name,
        extra={"client_request_token": token, "replicator_name": model.replicator_name},
    )

    def create(m: ResourceModel) -> dict[str, Any]:
        try:
            return client.create_replicator(**translator.to_create_request(m))
        except ClientError as exc:
            if is_conflict(exc):
                logger.warning(
                    "Replicator with name %s already exists: %s",
                    m.replicator_name,
                    error_message(exc),
                    extra={"client_request_token": token},
                )
                raise AlreadyExists(m.replicator_name) from exc
            raise

    def stabilized(m: ResourceModel) -> bool:
        return _expect_state(
            _describe_state(client, m), m, done=ReplicatorState.RUNNING, pending=ReplicatorState.CREATING
        )

    stage = Stage(
        name=CREATE_STAGE,
        policy=runtime.config.create_policy,
        on_error=_on_error(token),
        action=create,
        is_stabilized=stabilized,
    )

    return (
        ProgressEvent.progress(model, callback_context)
        .then(lambda progress: run_stage(stage, progress, runtime.clock))
        .then(
            lambda progress: read_handler(
                request.with_desired(progress.resource_model), progress.callback_context, runtime
            )
        )
    )


# =============================================================================
# Update
# =============================================================================


def update_handler(
    request: HandlerRequest, callback_context: CallbackContext, runtime: HandlerRuntime
) -> ProgressEvent:
    """Apply tag changes and at most one replication info change.

    The current state is read first. A request changing more than one
    replication info entry (or more than one mutable group) fails before any
    mutating call. Tags are removed then added, each as a single call. The
    replication info change is then issued and polled until RUNNING. An
    invocation resumed mid-stabilization only polls.
    """
    desired = request.desired_resource_state
    token = request.client_request_token
    client = runtime.client
    on_error = _on_error(token)

    def stabilized(m: ResourceModel) -> bool:
        logger.info(
            "[ClientRequestToken: %s] Stabilizing update operation for replicator %s",
            token,
            m.replicator_arn,
            extra={"client_request_token": token},
        )
        return _expect_state(
            _describe_state(client, m), m, done=ReplicatorState.RUNNING, pending=ReplicatorState.UPDATING
        )

    event = ProgressEvent.progress(desired, callback_context)

    if callback_context.has_entered(UPDATE_REPLICATION_INFO_STAGE):
        # The change was issued by an earlier invocation
        update_stage = Stage(
            name=UPDATE_REPLICATION_INFO_STAGE,
            policy=runtime.config.update_policy,
            on_error=on_error,
            is_stabilized=stabilized,
        )
    else:
        read_event = read_handler(request, callback_context, runtime)
        if read_event.status == OperationStatus.FAILED:
            return read_event
        current = read_event.resource_model
        assert current is not None

        plan = plan_update(desired, current)
        if not plan.is_valid:
            logger.warning(
                "[ClientRequestToken: %s] Rejecting update of multiple attributes",
                token,
                extra={
                    "client_request_token": token,
                    "changed_groups": list(plan.changed_groups),
                    "updated_replication_infos": len(plan.updated_replication_infos),
                },
            )
            return ProgressEvent.failed(
                desired,
                HandlerErrorCode.INVALID_REQUEST,
                f"[ClientRequestToken: {token}] {MULTIPLE_UPDATES_UNSUPPORTED}",
            )

        delta = compute_delta(previous_tags(request, current), desired_tags(request))
        if delta.to_remove:
            untag = Stage(
                name=UNTAG_STAGE,
                policy=runtime.config.update_policy,
                on_error=on_error,
                action=lambda _m: client.untag_resource(
                    **translator.to_untag_request(current, delta.to_remove)
                ),
            )
            event = event.then(lambda progress: run_stage(untag, progress, runtime.clock))
        if delta.to_add:
            tag = Stage(
                name=TAG_STAGE,
                policy=runtime.config.update_policy,
                on_error=on_error,
                action=lambda _m: client.tag_resource(**translator.to_tag_request(current, delta.to_add)),
            )
            event = event.then(lambda progress: run_stage(tag, progress, runtime.clock))

        if not plan.has_changes:
            return event.then(lambda progress: ProgressEvent.success(desired))

        changed_info = plan.updated_replication_infos[0]

        def update_replication_info(m: ResourceModel) -> dict[str, Any]:
            logger.info(
                "[ClientRequestToken: %s] Updating replication info for replicator %s",
                token,
                m.replicator_arn,
                extra={"client_request_token": token},
            )
            return client.update_replication_info(
                **translator.to_update_replication_info_request(
                    m, current.current_version, changed_info
                )
            )

        update_stage = Stage(
            name=UPDATE_REPLICATION_INFO_STAGE,
            policy=runtime.config.update_policy,
            on_error=on_error,
            action=update_replication_info,
            is_stabilized=stabilized,
        )

    return event.then(lambda progress: run_stage(update_stage, progress, runtime.clock)).then(
        lambda progress: read_handler(
            request.with_desired(progress.resource_model), progress.callback_context, runtime
        )
    )


# =============================================================================
# Delete
# =============================================================================


def delete_handler(
    request: HandlerRequest, callback_context: CallbackContext, runtime: HandlerRuntime
) -> ProgressEvent:
    """Wait until the replicator can be deleted, delete it, wait until it is gone."""
    model = request.desired_resource_state
    token = request.client_request_token
    client = runtime.client

    def ready_to_delete(m: ResourceModel) -> bool:
        try:
            state = _describe_state(client, m)
        except ClientError as exc:
            if _already_gone(exc):
                logger.info(
                    "Replicator with arn %s is already deleted",
                    m.replicator_arn,
                    extra={"client_request_token": token},
                )
                return True
            if is_bad_request(exc):
                raise InvalidRequest(error_message(exc)) from exc
            raise
        return state in (ReplicatorState.RUNNING, ReplicatorState.FAILED)

    def delete(m: ResourceModel) -> dict[str, Any]:
        try:
            return client.delete_replicator(**translator.to_delete_request(m))
        except ClientError as exc:
            if _already_gone(exc):
                logger.warning(
                    "Replicator deletion failed because replicator %s does not exist: %s",
                    m.replicator_arn,
                    error_message(exc),
                    extra={"client_request_token": token},
                )
                raise NotFound(error_message(exc)) from exc
            if is_bad_request(exc):
                raise InvalidRequest(error_message(exc)) from exc
            raise

    def deleted(m: ResourceModel) -> bool:
        try:
            state = _describe_state(client, m)
        except ClientError as exc:
            if _already_gone(exc):
                logger.info(
                    "Replicator %s is deleted", m.replicator_arn, extra={"client_request_token": token}
                )
                return True
            if is_bad_request(exc):
                raise InvalidRequest(error_message(exc)) from exc
            raise
        if state == ReplicatorState.DELETING:
            logger.info(
                "Replicator %s is deleting, current state is %s",
                m.replicator_arn,
                state,
                extra={"client_request_token": token},
            )
            return False
        logger.error(
            "Replicator %s reached unexpected state %s",
            m.replicator_arn,
            state,
            extra={"client_request_token": token},
        )
        raise NotStabilized(m.replicator_arn, f"unexpected state {state}")

    # Uses the create budget since the replicator may still be CREATING
    pre_check = Stage(
        name=PRE_DELETE_CHECK_STAGE,
        policy=runtime.config.create_policy,
        on_error=_on_error(token),
        is_stabilized=ready_to_delete,
    )
    deletion = Stage(
        name=DELETE_STAGE,
        policy=runtime.config.delete_policy,
        on_error=_on_error(token),
        action=delete,
        is_stabilized=deleted,
    )

    return (
        ProgressEvent.progress(model, callback_context)
        .then(lambda progress: run_stage(pre_check, progress, runtime.clock))
        .then(lambda progress: run_stage(deletion, progress, runtime.clock))
        .then(lambda progress: ProgressEvent.success(None))
    )


# =============================================================================
# Entry Point
# =============================================================================

HANDLERS: dict[str, Handler] = {
    "CREATE": create_handler,
    "READ": read_handler,
    "UPDATE": update_handler,
    "DELETE": delete_handler,
    "LIST": list_handler,
}


def invoke(
    action: str,
    request: HandlerRequest,
    callback_context: CallbackContext | None,
    runtime: HandlerRuntime,
) -> ProgressEvent:
    """Run one invocation of the handler for ``action``.

    Handler exceptions become FAILED events carrying their error code.
    Unclassified faults propagate to the caller.

    Raises:
        ValueError: If the action is unknown.
    """
    handler = HANDLERS.get(action.upper())
    if handler is None:
        raise ValueError(f"Unknown action '{action}'. Valid actions: {list(HANDLERS)}")

    token = request.client_request_token
    context = callback_context or CallbackContext()

    try:
        event = handler(request, context, runtime)
    except HandlerError as exc:
        logger.error(
            "[ClientRequestToken: %s] %s failed: %s",
            token,
            action.upper(),
            exc,
            extra={
                "client_request_token": token,
                "error_code": exc.code.value,
                "error_type": type(exc).__name__,
            },
        )
        return ProgressEvent.failed(
            request.desired_resource_state,
            exc.code,
            f"[ClientRequestToken: {token}] {exc}",
        )

    logger.info(
        "[ClientRequestToken: %s] %s returned %s",
        token,
        action.upper(),
        event.status.value,
        extra={
            "client_request_token": token,
            "status": event.status.value,
            "callback_delay_seconds": event.callback_delay_seconds,
        },
    )
    return event

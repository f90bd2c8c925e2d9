"""Act-once-then-poll stage runner.

A stage issues its action at most once per operation, then polls until the
replicator reaches the stage's terminal condition. Each handler invocation
performs at most one poll: a stage that is still in progress hands control
back to the host with the stage's delay as the callback delay, and the host
re-invokes the handler with the returned callback context.

The callback context records which stages were entered and completed and
when the current stage started, so timeouts are measured across
invocations and an action is never issued twice.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .config import StabilizationPolicy
from .errors import NotStabilized
from .models import ProgressEvent, ResourceModel

logger = logging.getLogger(__name__)

Action = Callable[[ResourceModel], Any]
Predicate = Callable[[ResourceModel], bool]
ErrorHandler = Callable[[Exception, ResourceModel], ProgressEvent]


def backfill_arn(model: ResourceModel, response: Any) -> ResourceModel:
    """Adopt the ARN assigned by the service if the caller did not supply one."""
    if model.replicator_arn is None and isinstance(response, dict) and response.get("ReplicatorArn"):
        return model.model_copy(update={"replicator_arn": response["ReplicatorArn"]})
    return model


@dataclass(frozen=True)
class Stage:
    """One step of an operation.

    Attributes:
        name: Key recorded in the callback context.
        policy: Timeout and poll delay for this stage.
        on_error: Converts a raised fault into a FAILED event (or re-raises).
        action: Remote call issued once on entry; None for poll-only stages.
        is_stabilized: Poll predicate; None means the stage ends after its action.
        on_response: Folds the action's response into the model.
    """

    name: str
    policy: StabilizationPolicy
    on_error: ErrorHandler
    action: Action | None = None
    is_stabilized: Predicate | None = None
    on_response: Callable[[ResourceModel, Any], ResourceModel] = backfill_arn


def run_stage(stage: Stage, event: ProgressEvent, clock: Callable[[], float]) -> ProgressEvent:
    """Advance a stage by at most one action and one poll.

    Returns:
        IN_PROGRESS with zero delay when the stage completed, IN_PROGRESS with
        the stage delay when polling must continue later, or FAILED.

    Raises:
        NotStabilized: If the stage timed out or the poll saw an unexpected state.
    """
    model = event.resource_model
    context = event.callback_context
    if model is None or context is None:
        raise ValueError("A resource model and callback context are required to run a stage")

    if model.replicator_arn is None and context.replicator_arn is not None:
        model = model.model_copy(update={"replicator_arn": context.replicator_arn})

    if context.is_complete(stage.name):
        return ProgressEvent.progress(model, context)

    if not context.has_entered(stage.name):
        if stage.action is not None:
            logger.info(
                "Invoking %s for replicator %s",
                stage.name,
                model.replicator_arn or model.replicator_name,
                extra={"stage": stage.name, "replicator_arn": model.replicator_arn},
            )
            try:
                response = stage.action(model)
            except Exception as exc:
                return stage.on_error(exc, model)
            model = stage.on_response(model, response)
        context = context.enter(stage.name, clock())
        if model.replicator_arn is not None:
            context = context.model_copy(update={"replicator_arn": model.replicator_arn})

    if stage.is_stabilized is None:
        return ProgressEvent.progress(model, context.complete(stage.name))

    elapsed = context.elapsed(clock())
    if elapsed >= stage.policy.timeout_seconds:
        logger.error(
            "Replicator %s did not stabilize within %s seconds",
            model.replicator_arn,
            stage.policy.timeout_seconds,
            extra={"stage": stage.name, "elapsed_seconds": elapsed},
        )
        raise NotStabilized(
            model.replicator_arn,
            f"{stage.name} timed out after {stage.policy.timeout_seconds} seconds",
        )

    try:
        stabilized = stage.is_stabilized(model)
    except Exception as exc:
        return stage.on_error(exc, model)

    if stabilized:
        return ProgressEvent.progress(model, context.complete(stage.name))

    logger.debug(
        "Replicator %s still stabilizing",
        model.replicator_arn,
        extra={"stage": stage.name, "elapsed_seconds": elapsed},
    )
    return ProgressEvent.defer(model, context, stage.policy.delay_seconds)

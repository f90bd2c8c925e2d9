"""Host loop that re-invokes a handler until the operation terminates.

This stands in for the resource provisioning host: after an IN_PROGRESS
event it waits for the requested callback delay, then re-invokes the same
action with the returned model and callback context. A shutdown request
stops the loop between invocations; the last event (and its callback
context) is returned so the operation can be resumed later.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from .handlers import HandlerRuntime, invoke
from .models import CallbackContext, HandlerRequest, OperationStatus, ProgressEvent

logger = logging.getLogger(__name__)


@dataclass
class DriveResult:
    """Final event of a driven operation."""

    event: ProgressEvent
    invocations: int = 0
    interrupted: bool = False
    delays: list[int] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.event.status == OperationStatus.SUCCESS


class OperationDriver:
    """Drives one operation through repeated handler invocations."""

    def __init__(self, runtime: HandlerRuntime, max_invocations: int | None = None) -> None:
        self._runtime = runtime
        self._max_invocations = max_invocations
        self._shutdown_event = asyncio.Event()

    def shutdown(self) -> None:
        """Signal the driver to stop before the next invocation."""
        logger.info("Shutdown requested")
        self._shutdown_event.set()

    async def drive(
        self,
        action: str,
        request: HandlerRequest,
        callback_context: CallbackContext | None = None,
    ) -> DriveResult:
        """Invoke ``action`` until it succeeds, fails, or the driver is stopped."""
        context = callback_context
        invocations = 0
        delays: list[int] = []

        while True:
            # Handlers make blocking SDK calls
            event = await asyncio.to_thread(invoke, action, request, context, self._runtime)
            invocations += 1
            result = DriveResult(event=event, invocations=invocations, delays=delays)

            if event.status != OperationStatus.IN_PROGRESS:
                return result

            if self._max_invocations is not None and result.invocations >= self._max_invocations:
                logger.info(
                    "Invocation limit reached, returning in-progress event",
                    extra={"action": action, "invocations": result.invocations},
                )
                return result

            if event.resource_model is not None:
                request = request.with_desired(event.resource_model)
            context = event.callback_context
            delay = event.callback_delay_seconds
            delays.append(delay)

            logger.info(
                "Operation in progress, re-invoking after delay",
                extra={
                    "action": action,
                    "client_request_token": request.client_request_token,
                    "callback_delay_seconds": delay,
                    "stage": context.stage if context else None,
                },
            )

            try:
                await asyncio.wait_for(self._shutdown_event.wait(), timeout=delay)
            except TimeoutError:
                continue

            result.interrupted = True
            logger.warning(
                "Operation interrupted while in progress",
                extra={"action": action, "client_request_token": request.client_request_token},
            )
            return result

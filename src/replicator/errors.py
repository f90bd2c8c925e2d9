"""Handler exceptions and classification of remote faults.

Every handler routes a fault raised by a kafka API call through
``handle_error``, which turns it into a FAILED event with one of a fixed set
of error codes. Faults it does not recognise are re-raised unchanged so an
unexpected failure surfaces as a stack trace instead of a wrong code.
"""

from __future__ import annotations

import logging

from botocore.exceptions import ClientError, ParamValidationError

from .models import HandlerErrorCode, ProgressEvent, ResourceModel

logger = logging.getLogger(__name__)

# Kafka API error codes
BAD_REQUEST = "BadRequestException"
CONFLICT = "ConflictException"
FORBIDDEN = "ForbiddenException"
INTERNAL_SERVER_ERROR = "InternalServerErrorException"
NOT_FOUND = "NotFoundException"
SERVICE_UNAVAILABLE = "ServiceUnavailableException"
TOO_MANY_REQUESTS = "TooManyRequestsException"
UNAUTHORIZED = "UnauthorizedException"

# Bad-request faults naming this parameter with INVALID_PARAMETER_MESSAGE mean
# the replicator no longer exists
REPLICATOR_ARN_PARAMETER = "replicatorArn"
INVALID_PARAMETER_MESSAGE = "One or more of the parameters are not valid"

MULTIPLE_UPDATES_UNSUPPORTED = (
    "You can't update multiple attributes of the replicator in same request. "
    "Use a different request for each update."
)

_REMOTE_CODE_MAP: dict[str, HandlerErrorCode] = {
    FORBIDDEN: HandlerErrorCode.INVALID_REQUEST,
    UNAUTHORIZED: HandlerErrorCode.INVALID_REQUEST,
    INTERNAL_SERVER_ERROR: HandlerErrorCode.INTERNAL_FAILURE,
    SERVICE_UNAVAILABLE: HandlerErrorCode.SERVICE_INTERNAL_ERROR,
    TOO_MANY_REQUESTS: HandlerErrorCode.THROTTLING,
    NOT_FOUND: HandlerErrorCode.NOT_FOUND,
}


class HandlerError(Exception):
    """Base class for failures a handler raises with a fixed error code."""

    code: HandlerErrorCode = HandlerErrorCode.GENERAL_SERVICE_EXCEPTION


class InvalidRequest(HandlerError):
    """The request cannot be satisfied as written."""

    code = HandlerErrorCode.INVALID_REQUEST


class NotFound(HandlerError):
    """The replicator does not exist."""

    code = HandlerErrorCode.NOT_FOUND


class AlreadyExists(HandlerError):
    """A replicator with the requested name already exists."""

    code = HandlerErrorCode.ALREADY_EXISTS

    def __init__(self, name: str | None) -> None:
        super().__init__(f"Replicator with name {name} already exists")
        self.name = name


class NotStabilized(HandlerError):
    """The replicator timed out or reached an unexpected state while polling."""

    code = HandlerErrorCode.NOT_STABILIZED

    def __init__(self, identifier: str | None, reason: str) -> None:
        super().__init__(f"Replicator {identifier} did not stabilize: {reason}")
        self.identifier = identifier
        self.reason = reason


def error_code(exc: ClientError) -> str:
    return exc.response.get("Error", {}).get("Code", "")


def error_message(exc: ClientError) -> str:
    return exc.response.get("Error", {}).get("Message") or str(exc)


def invalid_parameter(exc: ClientError) -> str | None:
    """Name of the offending parameter of a bad-request fault, if reported."""
    return exc.response.get("InvalidParameter") or exc.response.get("Error", {}).get(
        "InvalidParameter"
    )


def http_status(exc: ClientError) -> int | None:
    return exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")


def is_not_found(exc: Exception) -> bool:
    return isinstance(exc, ClientError) and error_code(exc) == NOT_FOUND


def is_bad_request(exc: Exception) -> bool:
    return isinstance(exc, ClientError) and error_code(exc) == BAD_REQUEST


def is_conflict(exc: Exception) -> bool:
    return isinstance(exc, ClientError) and error_code(exc) == CONFLICT


def is_invalid_replicator_arn(exc: Exception) -> bool:
    """Bad-request fault saying the replicator ARN itself is not valid."""
    if not isinstance(exc, ClientError) or error_code(exc) != BAD_REQUEST:
        return False
    return (
        invalid_parameter(exc) == REPLICATOR_ARN_PARAMETER
        and INVALID_PARAMETER_MESSAGE in error_message(exc)
    )


def _is_5xx(exc: ClientError) -> bool:
    status = http_status(exc)
    if status is not None:
        return 500 <= status < 600
    return "Status Code: 5" in str(exc)


def classify(exc: Exception) -> HandlerErrorCode | None:
    """Map a fault to its error code, or None when it is not classifiable."""
    if isinstance(exc, HandlerError):
        return None
    if isinstance(exc, (ValueError, ParamValidationError)):
        return HandlerErrorCode.INVALID_REQUEST
    if not isinstance(exc, ClientError):
        return None

    code = error_code(exc)
    if code == BAD_REQUEST:
        return HandlerErrorCode.INVALID_REQUEST
    if code in _REMOTE_CODE_MAP:
        return _REMOTE_CODE_MAP[code]
    if _is_5xx(exc):
        return HandlerErrorCode.SERVICE_INTERNAL_ERROR
    return HandlerErrorCode.GENERAL_SERVICE_EXCEPTION


def handle_error(
    exc: Exception,
    model: ResourceModel | None,
    client_request_token: str,
) -> ProgressEvent:
    """Turn a fault into a FAILED event, or re-raise it if unclassifiable.

    Raises:
        The original exception when classify() returns None.
    """
    code = classify(exc)
    extra = {
        "client_request_token": client_request_token,
        "error_type": type(exc).__name__,
        "error": str(exc),
    }

    if code is None:
        logger.error(
            "[ClientRequestToken: %s] Kafka API request failed: %s",
            client_request_token,
            exc,
            extra=extra,
        )
        raise exc

    if isinstance(exc, (ValueError, ParamValidationError)):
        logger.error(
            "[ClientRequestToken: %s] Property validation failure: %s",
            client_request_token,
            exc,
            extra=extra,
        )
        return ProgressEvent.failed(model, code, f"[ClientRequestToken: {client_request_token}] {exc}")

    assert isinstance(exc, ClientError)
    message = error_message(exc)
    if code in (HandlerErrorCode.INTERNAL_FAILURE, HandlerErrorCode.SERVICE_INTERNAL_ERROR):
        logger.error("Kafka API internal failure: %s", message, extra={**extra, "error_code": code.value})
    else:
        logger.warning("Kafka API request failed: %s", message, extra={**extra, "error_code": code.value})

    if error_code(exc) == BAD_REQUEST:
        message = f"{message} '{invalid_parameter(exc)}'"

    return ProgressEvent.failed(model, code, f"[ClientRequestToken: {client_request_token}] {message}")

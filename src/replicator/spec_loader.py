"""Desired-state file loading with validation.

Files are YAML or JSON and hold either the replicator properties directly or
a CloudFormation-style resource wrapper::

    Type: AWS::MSK::Replicator
    Properties:
      ReplicatorName: my-replicator
      ...

All file operations enforce a size limit before reading.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .config import MAX_SPEC_FILE_SIZE_BYTES
from .models import TYPE_NAME, CallbackContext, ResourceModel

logger = logging.getLogger(__name__)


class SpecLoadError(Exception):
    """Raised when a desired-state or context file cannot be loaded."""

    pass


def _read_text(path: Path) -> str:
    if not path.exists():
        raise SpecLoadError(f"File not found: {path}")

    try:
        file_size = path.stat().st_size
    except OSError as e:
        raise SpecLoadError(f"Failed to stat file {path}: {e}") from e

    if file_size > MAX_SPEC_FILE_SIZE_BYTES:
        raise SpecLoadError(f"File exceeds maximum size of {MAX_SPEC_FILE_SIZE_BYTES} bytes: {path}")

    try:
        return path.read_text(encoding="utf-8")
    except OSError as e:
        raise SpecLoadError(f"Failed to read file {path}: {e}") from e


def _format_validation_error(path: Path, error: ValidationError) -> str:
    errors = []
    for item in error.errors():
        loc = ".".join(str(x) for x in item["loc"])
        errors.append(f"  - {loc}: {item['msg']}")
    return f"Validation failed for {path}:\n" + "\n".join(errors)


def load_resource_model(path: Path) -> ResourceModel:
    """Load and validate a replicator desired state.

    Args:
        path: YAML or JSON file (JSON is a subset of YAML).

    Returns:
        Validated ResourceModel.

    Raises:
        SpecLoadError: If the file cannot be read, parsed, or validated.
    """
    content = _read_text(path)

    try:
        raw_data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise SpecLoadError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(raw_data, dict):
        raise SpecLoadError(f"Desired state must be a mapping: {path}")

    if "Properties" in raw_data:
        resource_type = raw_data.get("Type", TYPE_NAME)
        if resource_type != TYPE_NAME:
            raise SpecLoadError(f"Unsupported resource type '{resource_type}' in {path}")
        properties: Any = raw_data["Properties"]
        if not isinstance(properties, dict):
            raise SpecLoadError(f"Properties section must be a mapping: {path}")
    else:
        properties = raw_data

    try:
        model = ResourceModel.model_validate(properties)
    except ValidationError as e:
        raise SpecLoadError(_format_validation_error(path, e)) from e

    logger.info("Loaded desired state for replicator '%s' from %s", model.replicator_name, path)
    return model


def load_callback_context(path: Path) -> CallbackContext:
    """Load a callback context saved by an earlier invocation."""
    content = _read_text(path)
    try:
        return CallbackContext.model_validate_json(content)
    except ValidationError as e:
        raise SpecLoadError(_format_validation_error(path, e)) from e


def save_callback_context(path: Path, context: CallbackContext) -> None:
    path.write_text(json.dumps(context.model_dump(mode="json"), indent=2), encoding="utf-8")

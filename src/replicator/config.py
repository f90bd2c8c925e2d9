"""Configuration management with validation.

Stabilization timeouts and poll delays are fixed per operation by default and
may be tightened or relaxed through the environment. All values are checked
at load time so a bad configuration fails before any remote call is made.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""

    pass


# Stabilization defaults per operation
DEFAULT_CREATE_TIMEOUT_MINUTES = 120
DEFAULT_CREATE_DELAY_SECONDS = 30
DEFAULT_DELETE_TIMEOUT_MINUTES = 75
DEFAULT_DELETE_DELAY_SECONDS = 30
DEFAULT_UPDATE_TIMEOUT_MINUTES = 720
DEFAULT_UPDATE_DELAY_SECONDS = 60

MIN_DELAY_SECONDS = 1
MAX_DELAY_SECONDS = 900

DEFAULT_REGION = "us-east-1"
DEFAULT_LOG_LEVEL = "INFO"

# Maximum size of a desired-state file
MAX_SPEC_FILE_SIZE_BYTES = 1024 * 1024

VALID_REGION_PATTERN = r"^[a-z]{2}(-[a-z]+)+-\d$"
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class StabilizationPolicy:
    """Bounded polling budget for one operation."""

    timeout_seconds: int
    delay_seconds: int

    @classmethod
    def of(cls, timeout_minutes: int, delay_seconds: int) -> StabilizationPolicy:
        return cls(timeout_seconds=timeout_minutes * 60, delay_seconds=delay_seconds)


@dataclass(frozen=True)
class Config:
    """Handler configuration loaded from environment variables.

    All fields are validated at construction time. Invalid configurations
    raise ConfigurationError immediately rather than failing mid-operation.
    """

    region: str = DEFAULT_REGION
    endpoint_url: str | None = None

    create_policy: StabilizationPolicy = field(
        default_factory=lambda: StabilizationPolicy.of(
            DEFAULT_CREATE_TIMEOUT_MINUTES, DEFAULT_CREATE_DELAY_SECONDS
        )
    )
    update_policy: StabilizationPolicy = field(
        default_factory=lambda: StabilizationPolicy.of(
            DEFAULT_UPDATE_TIMEOUT_MINUTES, DEFAULT_UPDATE_DELAY_SECONDS
        )
    )
    delete_policy: StabilizationPolicy = field(
        default_factory=lambda: StabilizationPolicy.of(
            DEFAULT_DELETE_TIMEOUT_MINUTES, DEFAULT_DELETE_DELAY_SECONDS
        )
    )

    log_level: str = DEFAULT_LOG_LEVEL
    enable_json_logging: bool = True

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        errors: list[str] = []

        if not self.region:
            errors.append("AWS_REGION is required")
        elif not re.match(VALID_REGION_PATTERN, self.region):
            errors.append(f"AWS_REGION must be a valid AWS region: {self.region}")

        if self.endpoint_url is not None and not self.endpoint_url.startswith(
            ("https://", "http://")
        ):
            errors.append(f"MSK_ENDPOINT_URL must be an http(s) URL: {self.endpoint_url}")

        for name, policy in (
            ("CREATE", self.create_policy),
            ("UPDATE", self.update_policy),
            ("DELETE", self.delete_policy),
        ):
            if not MIN_DELAY_SECONDS <= policy.delay_seconds <= MAX_DELAY_SECONDS:
                errors.append(
                    f"{name}_DELAY_SECONDS must be between {MIN_DELAY_SECONDS} "
                    f"and {MAX_DELAY_SECONDS} seconds"
                )
            if policy.timeout_seconds <= policy.delay_seconds:
                errors.append(f"{name}_TIMEOUT_MINUTES must exceed {name}_DELAY_SECONDS")

        if self.log_level.upper() not in VALID_LOG_LEVELS:
            errors.append(f"LOG_LEVEL must be one of {list(VALID_LOG_LEVELS)}: {self.log_level}")

        if errors:
            error_msg = "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            raise ConfigurationError(error_msg)

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables.

        Environment Variables:
            AWS_REGION: Region of the replicator (default: us-east-1)
            MSK_ENDPOINT_URL: Optional endpoint override for the kafka API
            CREATE_TIMEOUT_MINUTES / CREATE_DELAY_SECONDS: default 120 / 30
            UPDATE_TIMEOUT_MINUTES / UPDATE_DELAY_SECONDS: default 720 / 60
            DELETE_TIMEOUT_MINUTES / DELETE_DELAY_SECONDS: default 75 / 30
            LOG_LEVEL: Root log level (default: INFO)
            ENABLE_JSON_LOGGING: JSON log lines on stdout (default: true)
        """

        def get_int(key: str, default: int) -> int:
            value = os.environ.get(key)
            if value is None:
                return default
            try:
                return int(value)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be an integer: {value}") from e

        def get_bool(key: str, default: bool) -> bool:
            value = os.environ.get(key, "").lower()
            if not value:
                return default
            return value in ("true", "1", "yes")

        def get_policy(prefix: str, timeout_minutes: int, delay_seconds: int) -> StabilizationPolicy:
            return StabilizationPolicy.of(
                get_int(f"{prefix}_TIMEOUT_MINUTES", timeout_minutes),
                get_int(f"{prefix}_DELAY_SECONDS", delay_seconds),
            )

        return cls(
            region=os.environ.get("AWS_REGION") or os.environ.get("AWS_DEFAULT_REGION", DEFAULT_REGION),
            endpoint_url=os.environ.get("MSK_ENDPOINT_URL") or None,
            create_policy=get_policy(
                "CREATE", DEFAULT_CREATE_TIMEOUT_MINUTES, DEFAULT_CREATE_DELAY_SECONDS
            ),
            update_policy=get_policy(
                "UPDATE", DEFAULT_UPDATE_TIMEOUT_MINUTES, DEFAULT_UPDATE_DELAY_SECONDS
            ),
            delete_policy=get_policy(
                "DELETE", DEFAULT_DELETE_TIMEOUT_MINUTES, DEFAULT_DELETE_DELAY_SECONDS
            ),
            log_level=os.environ.get("LOG_LEVEL", DEFAULT_LOG_LEVEL),
            enable_json_logging=get_bool("ENABLE_JSON_LOGGING", True),
        )

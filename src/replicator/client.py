"""Construction of the boto3 kafka client used by the handlers.

Credentials are resolved by the standard boto3 chain; nothing here reads or
stores secrets.
"""

from __future__ import annotations

import logging
from typing import Any

import boto3
from botocore.config import Config as BotoConfig

from .config import Config

logger = logging.getLogger(__name__)

KAFKA_SERVICE_NAME = "kafka"
USER_AGENT_EXTRA = "msk-replicator-handler"

# Retries for throttling and transient network faults happen inside botocore;
# the handlers never retry a failed call themselves
MAX_SDK_ATTEMPTS = 5


def create_kafka_client(config: Config, session: boto3.session.Session | None = None) -> Any:
    """Create a kafka client for the configured region.

    Args:
        config: Validated handler configuration.
        session: Optional boto3 session (a default session is created otherwise).

    Returns:
        A boto3 kafka client.
    """
    session = session or boto3.session.Session(region_name=config.region)
    client = session.client(
        KAFKA_SERVICE_NAME,
        region_name=config.region,
        endpoint_url=config.endpoint_url,
        config=BotoConfig(
            retries={"mode": "standard", "max_attempts": MAX_SDK_ATTEMPTS},
            user_agent_extra=USER_AGENT_EXTRA,
        ),
    )
    logger.info(
        "Created kafka client",
        extra={"region": config.region, "endpoint_url": config.endpoint_url},
    )
    return client

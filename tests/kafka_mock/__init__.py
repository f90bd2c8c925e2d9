"""Kafka API Mock for handler testing.

This module provides an in-memory stand-in for the boto3 ``kafka`` client
so handlers can be exercised without AWS connectivity.

Key Features:
- In-memory replicator state with a CREATING/UPDATING/DELETING lifecycle
- Scripted describe states for stabilization scenarios
- Error injection with real botocore ClientError shapes
- Call recording for asserting on issued requests
- A manual clock for timeout tests

Usage:
    from kafka_mock import ManualClock, MockKafkaClient

    client = MockKafkaClient()
    runtime = HandlerRuntime(client=client, clock=ManualClock())
    event = invoke("CREATE", request, None, runtime)

    assert client.call_count("create_replicator") == 1
"""

from .client import MockKafkaClient, MockReplicator
from .clock import ManualClock
from .errors import make_client_error, make_invalid_arn_error, make_not_found_error
from .fixtures import (
    ROLE_ARN,
    SOURCE_CLUSTER_ARN,
    TARGET_CLUSTER_ARN,
    TOKEN,
    make_model,
    make_request,
    model_properties,
)

__all__ = [
    "ROLE_ARN",
    "SOURCE_CLUSTER_ARN",
    "TARGET_CLUSTER_ARN",
    "TOKEN",
    "ManualClock",
    "MockKafkaClient",
    "MockReplicator",
    "make_client_error",
    "make_invalid_arn_error",
    "make_model",
    "make_not_found_error",
    "make_request",
    "model_properties",
]

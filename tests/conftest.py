"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Add tests to path for kafka_mock imports
tests_path = Path(__file__).parent
sys.path.insert(0, str(tests_path))

from kafka_mock import ManualClock, MockKafkaClient  # noqa: E402

from replicator.config import Config, StabilizationPolicy  # noqa: E402
from replicator.handlers import HandlerRuntime  # noqa: E402


@pytest.fixture
def kafka() -> MockKafkaClient:
    """Fresh in-memory kafka client."""
    return MockKafkaClient()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def config() -> Config:
    """Configuration with short stabilization budgets."""
    return Config(
        create_policy=StabilizationPolicy(timeout_seconds=300, delay_seconds=30),
        update_policy=StabilizationPolicy(timeout_seconds=600, delay_seconds=60),
        delete_policy=StabilizationPolicy(timeout_seconds=180, delay_seconds=30),
    )


@pytest.fixture
def runtime(kafka: MockKafkaClient, config: Config, clock: ManualClock) -> HandlerRuntime:
    return HandlerRuntime(client=kafka, config=config, clock=clock)

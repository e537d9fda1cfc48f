from datetime import datetime, timezone
from typing import Callable

import pytest
from prometheus_client import CollectorRegistry

# a clock frozen at the end of the first 4h window of 2023
FROZEN_NOW = datetime(2023, 1, 1, 4, 0, tzinfo=timezone.utc)


@pytest.fixture()
def registry() -> "CollectorRegistry":
    """
    fresh Prometheus registry to avoid cross-test state.
    """
    return CollectorRegistry()


@pytest.fixture()
def frozen_clock() -> "Callable[[], datetime]":
    return lambda: FROZEN_NOW

from typing import Callable

import pytest
from prometheus_client import CollectorRegistry

from metalbill.models import UsageRecord


@pytest.fixture()
def registry() -> "CollectorRegistry":
    """
    fresh Prometheus registry to avoid cross-test state.
    """
    return CollectorRegistry()


@pytest.fixture()
def make_usage() -> "Callable[..., UsageRecord]":
    """
    builds usage records with sensible defaults, overriding only
    the fields a test cares about.
    """

    def _make(**fields: "object") -> "UsageRecord":
        values: "dict[str, object]" = {
            "metro": "da",
            "plan": "c3.small.x86",
            "type": "Instance",
            "name": "node-1",
            "price": 1.0,
            "quantity": 1.0,
            "total": 1.0,
        }
        values.update(fields)
        return UsageRecord(**values)

    return _make

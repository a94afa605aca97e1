from urllib.error import URLError

import pytest
from prometheus_client import CollectorRegistry

from metalbill import metrics as metrics_module
from metalbill.metrics import PUSHGATEWAY_JOB, RunMetrics


class TestRunMetrics:
    def test_metric_families_are_created(
        self,
        registry: "CollectorRegistry",
    ) -> "None":
        RunMetrics(registry=registry)
        # prometheus_client strips _total suffix from Counter family names
        metric_names = [m.name for m in registry.collect()]
        assert "metalbill_upstream_requests" in metric_names
        assert "metalbill_upstream_request_duration_seconds" in metric_names
        assert "metalbill_usage_records_fetched" in metric_names
        assert "metalbill_sink_rows_inserted" in metric_names
        assert "metalbill_last_success_timestamp_seconds" in metric_names

    def test_each_run_gets_its_own_registry(self) -> "None":
        # would raise on duplicate registration with a shared registry
        first = RunMetrics()
        second = RunMetrics()
        assert first.registry is not second.registry

    def test_updates(
        self,
        registry: "CollectorRegistry",
    ) -> "None":
        metrics = RunMetrics(registry=registry)

        metrics.observe_request("projects", "200", 0.25)
        metrics.inc_usage_records("alpha", 3)
        metrics.inc_rows_inserted("p.d.t", 2)
        metrics.set_last_success("bigquery", 1000.0)

        assert (
            registry.get_sample_value(
                "metalbill_upstream_requests_total",
                {"endpoint": "projects", "status": "200"},
            )
            == 1.0
        )
        assert (
            registry.get_sample_value(
                "metalbill_upstream_request_duration_seconds_sum",
                {"endpoint": "projects"},
            )
            == 0.25
        )
        assert (
            registry.get_sample_value(
                "metalbill_usage_records_fetched_total", {"project": "alpha"}
            )
            == 3.0
        )
        assert (
            registry.get_sample_value(
                "metalbill_sink_rows_inserted_total", {"table": "p.d.t"}
            )
            == 2.0
        )
        assert (
            registry.get_sample_value(
                "metalbill_last_success_timestamp_seconds", {"command": "bigquery"}
            )
            == 1000.0
        )


class TestPush:
    def test_pushes_registry(
        self,
        registry: "CollectorRegistry",
        monkeypatch: "pytest.MonkeyPatch",
    ) -> "None":
        pushed: "list[tuple[str, str, CollectorRegistry]]" = []

        def fake_push(gateway: "str", job: "str", registry: "CollectorRegistry") -> "None":
            pushed.append((gateway, job, registry))

        monkeypatch.setattr(metrics_module, "push_to_gateway", fake_push)
        metrics = RunMetrics(registry=registry)

        assert metrics.push("localhost:9091") is True
        assert pushed == [("localhost:9091", PUSHGATEWAY_JOB, registry)]

    def test_push_failure_is_not_raised(
        self,
        registry: "CollectorRegistry",
        monkeypatch: "pytest.MonkeyPatch",
    ) -> "None":
        def failing_push(
            gateway: "str", job: "str", registry: "CollectorRegistry"
        ) -> "None":
            raise URLError("connection refused")

        monkeypatch.setattr(metrics_module, "push_to_gateway", failing_push)
        metrics = RunMetrics(registry=registry)

        assert metrics.push("localhost:9091") is False

    def test_malformed_gateway_is_not_raised(
        self,
        registry: "CollectorRegistry",
        monkeypatch: "pytest.MonkeyPatch",
    ) -> "None":
        def failing_push(
            gateway: "str", job: "str", registry: "CollectorRegistry"
        ) -> "None":
            raise ValueError("Invalid IPv6 URL")

        monkeypatch.setattr(metrics_module, "push_to_gateway", failing_push)
        metrics = RunMetrics(registry=registry)

        assert metrics.push("http://[bad") is False

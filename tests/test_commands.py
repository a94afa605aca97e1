import io
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Sequence

import httpx
import pytest
import respx
from prometheus_client import CollectorRegistry

from metalbill.commands import BigQueryUpload, CostSummary
from metalbill.config import CostSummaryOptions, UploadOptions
from metalbill.errors import ConfigError, SinkError, UpstreamError
from metalbill.metrics import RunMetrics
from metalbill.models import (
    HARDWARE_RESERVATION,
    Project,
    ReportType,
    UsageMap,
    UsageRecord,
)
from metalbill.provider.equinix import EQUINIX_BASE_URL, EquinixClient
from metalbill.sink import BigQuerySink

ALPHA = Project(id="p-1", name="alpha")
BETA = Project(id="p-2", name="Beta")
GATEWAY = Project(id="p-3", name="gateway")

REPORT_START = datetime(2024, 3, 14, tzinfo=timezone.utc)
BASELINE_START = datetime(2024, 3, 13, tzinfo=timezone.utc)


class FakeSource:
    """
    A fake usage source answering with pre-configured usages per
    window start.
    """

    def __init__(
        self,
        projects: "list[Project]",
        usages_by_start: "dict[datetime, UsageMap]",
    ) -> "None":
        self._projects = projects
        self._usages = usages_by_start
        self.windows: "list[tuple[datetime, datetime, list[str]]]" = []

    def list_projects(self) -> "list[Project]":
        return list(self._projects)

    def list_usages(
        self,
        window_start: "datetime",
        window_end: "datetime",
        projects: "Sequence[Project]",
    ) -> "UsageMap":
        self.windows.append((window_start, window_end, [p.name for p in projects]))
        usages = self._usages.get(window_start, {})
        return {p.name: usages.get(p.name, []) for p in projects}

    def close(self) -> "None":
        pass


class FakeBigQueryClient:
    """
    records streaming inserts and answers with pre-configured errors.
    """

    def __init__(self, errors: "list[dict[str, Any]] | None" = None) -> "None":
        self.calls: "list[tuple[str, list[dict[str, Any]]]]" = []
        self._errors = errors or []

    def insert_rows_json(
        self,
        table: "str",
        json_rows: "Sequence[dict[str, Any]]",
        row_ids: "Sequence[str | None] | None" = None,
    ) -> "list[dict[str, Any]]":
        self.calls.append((table, list(json_rows)))
        return self._errors


class FailingSource(FakeSource):
    def list_usages(
        self,
        window_start: "datetime",
        window_end: "datetime",
        projects: "Sequence[Project]",
    ) -> "UsageMap":
        raise UpstreamError("HTTP error", project_id="p-1", status_code=500)


def _one_day_options(**kwargs: "object") -> "CostSummaryOptions":
    return CostSummaryOptions.from_flags(end=date(2024, 3, 14), days=1, **kwargs)


class TestCostSummary:
    def test_prints_comparison(
        self,
        make_usage: "Callable[..., UsageRecord]",
        registry: "CollectorRegistry",
    ) -> "None":
        source = FakeSource(
            [BETA, ALPHA],
            {
                REPORT_START: {"alpha": [make_usage(total=150.0)]},
                BASELINE_START: {"alpha": [make_usage(total=100.0)]},
            },
        )
        out = io.StringIO()

        CostSummary(
            source, _one_day_options(), out=out, metrics=RunMetrics(registry)
        ).run()

        lines = out.getvalue().splitlines()
        assert lines[0].split() == ["Project", "2024-03-13", "2024-03-14"]
        assert [line.split()[0] for line in lines[1:]] == ["alpha", "Beta", "Total"]
        assert lines[1].endswith("+50.00%")
        assert lines[3].endswith("+50.00%")

        success = registry.get_sample_value(
            "metalbill_last_success_timestamp_seconds", {"command": "cost_summary"}
        )
        assert success is not None

    def test_queries_report_and_baseline_windows(self) -> "None":
        source = FakeSource([ALPHA], {})

        CostSummary(source, _one_day_options(), out=io.StringIO()).run()

        assert source.windows == [
            (REPORT_START, REPORT_START + timedelta(days=1), ["alpha"]),
            (BASELINE_START, BASELINE_START + timedelta(days=1), ["alpha"]),
        ]

    def test_reservations_report(
        self, make_usage: "Callable[..., UsageRecord]"
    ) -> "None":
        source = FakeSource(
            [ALPHA],
            {
                REPORT_START: {
                    "alpha": [
                        make_usage(total=1000.0),
                        make_usage(type=HARDWARE_RESERVATION, total=20.0),
                    ]
                },
                BASELINE_START: {
                    "alpha": [make_usage(type=HARDWARE_RESERVATION, total=10.0)]
                },
            },
        )
        out = io.StringIO()

        CostSummary(
            source,
            _one_day_options(report_type=ReportType.RESERVATIONS_ONLY),
            out=out,
        ).run()

        alpha = out.getvalue().splitlines()[1]
        assert alpha.split()[1:] == ["10.00", "20.00", "+100.00%"]

    def test_gateway_mode_splits_without_sorting(
        self, make_usage: "Callable[..., UsageRecord]"
    ) -> "None":
        source = FakeSource(
            [ALPHA, GATEWAY],
            {
                REPORT_START: {
                    "gateway": [
                        make_usage(name="ipfs-node-1", total=30.0),
                        make_usage(name="gateway-lb-1", total=10.0),
                    ]
                },
                BASELINE_START: {
                    "gateway": [
                        make_usage(name="ipfs-node-1", total=20.0),
                        make_usage(name="gateway-lb-1", total=10.0),
                    ]
                },
            },
        )
        out = io.StringIO()

        CostSummary(source, _one_day_options(only_gateways=True), out=out).run()

        # only the gateway project is fetched
        assert [w[2] for w in source.windows] == [["gateway"], ["gateway"]]

        lines = out.getvalue().splitlines()
        assert [line.split()[0] for line in lines[1:]] == [
            "gateway-kubo",
            "gateway-lb",
            "Total",
        ]
        assert lines[1].endswith("+50.00%")
        assert lines[2].endswith("+0.00%")

    def test_gateway_mode_without_gateway_project(self) -> "None":
        source = FakeSource([ALPHA], {})

        with pytest.raises(ConfigError):
            CostSummary(
                source, _one_day_options(only_gateways=True), out=io.StringIO()
            ).run()

    def test_upstream_failure_propagates(self) -> "None":
        source = FailingSource([ALPHA], {})
        out = io.StringIO()

        with pytest.raises(UpstreamError):
            CostSummary(source, _one_day_options(), out=out).run()

        assert out.getvalue() == ""


class TestBigQueryUpload:
    def _options(self, interval_seconds: "int" = 86400) -> "UploadOptions":
        return UploadOptions(
            start_time=REPORT_START,
            interval_seconds=interval_seconds,
            table_id="my-project.billing.usage",
            gcp_project="my-project",
        )

    def test_inserts_one_batch_per_project(
        self, make_usage: "Callable[..., UsageRecord]"
    ) -> "None":
        source = FakeSource(
            [ALPHA, BETA],
            {
                REPORT_START: {
                    "alpha": [make_usage(), make_usage()],
                    "Beta": [make_usage(type=HARDWARE_RESERVATION, total=62.0)],
                }
            },
        )
        client = FakeBigQueryClient()
        sink = BigQuerySink(client, "my-project.billing.usage")

        inserted = BigQueryUpload(source, sink, self._options()).run()

        assert inserted == 3
        assert source.windows == [
            (REPORT_START, REPORT_START + timedelta(days=1), ["alpha", "Beta"])
        ]
        assert [len(rows) for _, rows in client.calls] == [2, 1]
        assert client.calls[1][1][0]["total"] == 2.0

    @respx.mock
    def test_same_named_projects_are_all_uploaded(self) -> "None":
        respx.get(f"{EQUINIX_BASE_URL}/projects").mock(
            return_value=httpx.Response(
                200,
                json={
                    "projects": [
                        {"id": "p-1", "name": "web"},
                        {"id": "p-2", "name": "web"},
                    ]
                },
            )
        )
        respx.get(f"{EQUINIX_BASE_URL}/projects/p-1/usages").mock(
            return_value=httpx.Response(
                200, json={"usages": [{"type": "Instance", "total": 100.0}]}
            )
        )
        respx.get(f"{EQUINIX_BASE_URL}/projects/p-2/usages").mock(
            return_value=httpx.Response(
                200, json={"usages": [{"type": "Instance", "total": 5.0}]}
            )
        )
        client = FakeBigQueryClient()
        sink = BigQuerySink(client, "my-project.billing.usage")

        with EquinixClient(token="tok") as source:
            inserted = BigQueryUpload(source, sink, self._options()).run()

        assert inserted == 2
        rows = [row for _, batch in client.calls for row in batch]
        assert [row["project"] for row in rows] == ["web", "web"]
        assert sorted(row["total"] for row in rows) == [5.0, 100.0]

    def test_sink_failure_aborts(
        self, make_usage: "Callable[..., UsageRecord]"
    ) -> "None":
        source = FakeSource(
            [ALPHA, BETA],
            {REPORT_START: {"alpha": [make_usage()], "Beta": [make_usage()]}},
        )
        client = FakeBigQueryClient(errors=[{"index": 0, "errors": []}])
        sink = BigQuerySink(client, "my-project.billing.usage")

        with pytest.raises(SinkError):
            BigQueryUpload(source, sink, self._options()).run()

        assert len(client.calls) == 1

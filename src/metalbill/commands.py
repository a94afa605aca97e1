import sys
import time
from typing import TextIO

import structlog

from metalbill.aggregate import summarize
from metalbill.config import CostSummaryOptions, UploadOptions
from metalbill.errors import ConfigError
from metalbill.gateways import GATEWAY_PROJECT, split_gateways
from metalbill.metrics import RunMetrics
from metalbill.provider.base import UsageSource
from metalbill.report import format_report, write_report
from metalbill.sink import BigQuerySink

logger = structlog.get_logger()


class CostSummary:
    """
    CostSummary compares the per-project costs of a report period
    against a baseline period of the same length and prints the result.
    """

    name = "cost_summary"

    def __init__(
        self,
        source: "UsageSource",
        options: "CostSummaryOptions",
        out: "TextIO | None" = None,
        metrics: "RunMetrics | None" = None,
    ) -> "None":
        self._source = source
        self._options = options
        self._out = sys.stdout if out is None else out
        self._metrics = metrics

    def run(self) -> "None":
        opts = self._options
        projects = self._source.list_projects()

        if opts.only_gateways:
            projects = [p for p in projects if p.name == GATEWAY_PROJECT]
            if not projects:
                raise ConfigError(f"no project named {GATEWAY_PROJECT!r} found")

        logger.info(
            "cost_summary_start",
            projects=len(projects),
            report_start=opts.report.start.isoformat(),
            report_end=opts.report.end.isoformat(),
            baseline_start=opts.baseline.start.isoformat(),
            baseline_end=opts.baseline.end.isoformat(),
            report_type=opts.report_type.name,
        )

        usages = self._source.list_usages(*opts.report.window(), projects)
        baseline = self._source.list_usages(*opts.baseline.window(), projects)

        if opts.only_gateways:
            usages = split_gateways(usages)
            baseline = split_gateways(baseline)

        per_project, totals = summarize(opts.report_type, baseline, usages)

        lines = format_report(
            per_project,
            totals,
            baseline_end=opts.baseline.end,
            report_end=opts.report.end,
            sort=not opts.only_gateways,
        )
        write_report(lines, self._out)

        if self._metrics is not None:
            self._metrics.set_last_success(self.name, time.time())


class BigQueryUpload:
    """
    BigQueryUpload copies the usage records of every project within
    a time window into a BigQuery table.
    """

    name = "bigquery"

    def __init__(
        self,
        source: "UsageSource",
        sink: "BigQuerySink",
        options: "UploadOptions",
        metrics: "RunMetrics | None" = None,
    ) -> "None":
        self._source = source
        self._sink = sink
        self._options = options
        self._metrics = metrics

    def run(self) -> "int":
        """
        uploads the window and returns the number of rows inserted.
        The first failing project aborts the upload.
        """
        start = self._options.start_time
        end = self._options.end_time
        logger.info(
            "bigquery_upload_start",
            start_time=start.isoformat(),
            end_time=end.isoformat(),
            table=self._sink.table_id,
        )

        projects = self._source.list_projects()
        usages = self._source.list_usages(start, end, projects)

        inserted = 0
        for project, records in usages.items():
            inserted += self._sink.insert(project, start, end, records)

        logger.info("bigquery_upload_done", rows=inserted)

        if self._metrics is not None:
            self._metrics.set_last_success(self.name, time.time())

        return inserted

import os
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from metalbill.errors import ConfigError
from metalbill.models import ReportType
from metalbill.provider.equinix import EQUINIX_BASE_URL
from metalbill.timeparse import DateRange, report_ranges


@dataclass
class CostSummaryOptions:
    report: "DateRange"
    baseline: "DateRange"
    report_type: "ReportType" = ReportType.ALL_EXCEPT_RESERVATIONS
    # only report the gateway project, split between Kubo and LB nodes
    only_gateways: "bool" = False

    @classmethod
    def from_flags(
        cls,
        end: "date",
        days: "int" = 1,
        baseline_end: "date | None" = None,
        report_type: "ReportType" = ReportType.ALL_EXCEPT_RESERVATIONS,
        only_gateways: "bool" = False,
    ) -> "CostSummaryOptions":
        report, baseline = report_ranges(end, days, baseline_end)
        return cls(
            report=report,
            baseline=baseline,
            report_type=report_type,
            only_gateways=only_gateways,
        )


@dataclass
class UploadOptions:
    start_time: "datetime"
    interval_seconds: "int"
    # fully-qualified project.dataset.table
    table_id: "str"
    # GCP project the BigQuery client bills to
    gcp_project: "str"

    @property
    def end_time(self) -> "datetime":
        return self.start_time + timedelta(seconds=self.interval_seconds)


@dataclass
class Config:
    token: "str" = ""
    api_url: "str" = EQUINIX_BASE_URL
    # HTTP timeout in seconds
    timeout: "float" = 30.0
    log_level: "str" = "info"
    # Pushgateway address, metrics are not pushed when empty
    pushgateway: "str" = ""

    command: "str" = ""
    cost_summary: "CostSummaryOptions | None" = field(default=None)
    upload: "UploadOptions | None" = field(default=None)

    @classmethod
    def from_env(cls) -> "Config":
        defaults = cls()
        timeout = os.environ.get("EQUINIX_TIMEOUT", "")
        try:
            timeout_seconds = float(timeout) if timeout else defaults.timeout
        except ValueError as e:
            raise ConfigError(f"invalid EQUINIX_TIMEOUT {timeout!r}") from e

        return cls(
            token=os.environ.get("EQUINIX_TOKEN", ""),
            api_url=os.environ.get("EQUINIX_API_URL", "") or defaults.api_url,
            timeout=timeout_seconds,
            pushgateway=os.environ.get("METALBILL_PUSHGATEWAY", ""),
        )

    @property
    def token_present(self) -> "bool":
        return bool(self.token)

    def require_token(self) -> "str":
        if not self.token_present:
            raise ConfigError("Please set the EQUINIX_TOKEN environment variable")
        return self.token

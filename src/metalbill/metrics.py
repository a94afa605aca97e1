import structlog
from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram
from prometheus_client import push_to_gateway

logger = structlog.get_logger()

PUSHGATEWAY_JOB = "metalbill"


class RunMetrics:
    """
    RunMetrics holds the metric families of a single run. Every run
    gets its own registry since the process is short-lived; the
    registry may be pushed to a Pushgateway once the run is over.
    """

    def __init__(self, registry: "CollectorRegistry | None" = None) -> "None":
        self.registry: "CollectorRegistry" = registry or CollectorRegistry()
        self._upstream_requests: "Counter" = Counter(
            "metalbill_upstream_requests_total",
            "Total requests to the billing API",
            ["endpoint", "status"],
            registry=self.registry,
        )
        self._upstream_duration: "Histogram" = Histogram(
            "metalbill_upstream_request_duration_seconds",
            "Duration of billing API requests",
            ["endpoint"],
            registry=self.registry,
        )
        self._usage_records: "Counter" = Counter(
            "metalbill_usage_records_fetched_total",
            "Total usage records fetched from the billing API",
            ["project"],
            registry=self.registry,
        )
        self._rows_inserted: "Counter" = Counter(
            "metalbill_sink_rows_inserted_total",
            "Total usage rows inserted into the analytics table",
            ["table"],
            registry=self.registry,
        )
        self._last_success: "Gauge" = Gauge(
            "metalbill_last_success_timestamp_seconds",
            "Unix timestamp of the last successful run per command",
            ["command"],
            registry=self.registry,
        )

    def observe_request(
        self, endpoint: "str", status: "str", duration_seconds: "float"
    ) -> "None":
        self._upstream_requests.labels(endpoint=endpoint, status=status).inc()
        self._upstream_duration.labels(endpoint=endpoint).observe(duration_seconds)

    def inc_usage_records(self, project: "str", count: "int") -> "None":
        self._usage_records.labels(project=project).inc(count)

    def inc_rows_inserted(self, table: "str", count: "int") -> "None":
        self._rows_inserted.labels(table=table).inc(count)

    def set_last_success(self, command: "str", timestamp: "float") -> "None":
        self._last_success.labels(command=command).set(timestamp)

    def push(self, gateway: "str") -> "bool":
        """
        pushes the registry to the given Pushgateway. Failures are
        logged and reported through the return value only, the run
        itself has already finished at this point.
        """
        try:
            push_to_gateway(gateway, job=PUSHGATEWAY_JOB, registry=self.registry)
        except (OSError, ValueError) as e:
            logger.warning("metrics_push_failed", gateway=gateway, error=str(e))
            return False

        logger.debug("metrics_pushed", gateway=gateway)
        return True

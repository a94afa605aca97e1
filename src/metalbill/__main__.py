import structlog

from metalbill.cli import COST_SUMMARY, parse_args
from metalbill.commands import BigQueryUpload, CostSummary
from metalbill.config import Config
from metalbill.errors import MetalbillError
from metalbill.logging import setup_logging
from metalbill.metrics import RunMetrics
from metalbill.provider.equinix import EquinixClient
from metalbill.sink import BigQuerySink, connect

logger = structlog.get_logger()


def run(config: "Config", metrics: "RunMetrics") -> "None":
    """
    runs the configured command against the Equinix API.
    """
    token = config.require_token()

    with EquinixClient(
        token,
        base_url=config.api_url,
        metrics=metrics,
        timeout=config.timeout,
    ) as source:
        if config.command == COST_SUMMARY:
            CostSummary(source, config.cost_summary, metrics=metrics).run()
            return

        options = config.upload
        client = connect(options.gcp_project)
        try:
            sink = BigQuerySink(client, options.table_id, metrics=metrics)
            BigQueryUpload(source, sink, options, metrics=metrics).run()
        finally:
            client.close()


def main(argv: "list[str] | None" = None) -> "None":
    config = parse_args(argv)
    setup_logging(config.log_level)

    metrics = RunMetrics()
    try:
        run(config, metrics)
    except MetalbillError as e:
        logger.error("command_failed", command=config.command, error=str(e))
        raise SystemExit(1) from e
    finally:
        if config.pushgateway:
            metrics.push(config.pushgateway)


if __name__ == "__main__":
    main()

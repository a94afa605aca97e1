import argparse
from datetime import date, datetime, timedelta, timezone

from metalbill.config import Config, CostSummaryOptions, UploadOptions
from metalbill.errors import ConfigError, InvalidDateFormat, InvalidTimeFormat
from metalbill.models import ReportType
from metalbill.sink import table_id_for
from metalbill.timeparse import parse_date, parse_partial_iso_time

COST_SUMMARY = "cost_summary"
BIGQUERY = "bigquery"


def _date_arg(value: "str") -> "date":
    try:
        return parse_date(value)
    except InvalidDateFormat as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def _time_arg(value: "str") -> "datetime":
    try:
        return parse_partial_iso_time(value)
    except InvalidTimeFormat as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def _report_type_arg(value: "str") -> "ReportType":
    try:
        return ReportType(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(
            'invalid report type, only valid types are "reservations" or <blank>'
        ) from e


def _positive_int_arg(value: "str") -> "int":
    try:
        number = int(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid number {value!r}") from e
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def _two_days_ago() -> "date":
    return datetime.now(timezone.utc).date() - timedelta(days=2)


def build_parser() -> "argparse.ArgumentParser":
    parser = argparse.ArgumentParser(
        prog="metalbill",
        description="Equinix Metal billing reports and BigQuery export",
    )
    parser.add_argument(
        "--log.level",
        dest="log_level",
        default="info",
        choices=["debug", "info", "warning", "error"],
        help="Log level (default: info)",
    )
    parser.add_argument(
        "--metrics.pushgateway",
        dest="pushgateway",
        default=None,
        help="Pushgateway address to push run metrics to (default: disabled)",
    )
    commands = parser.add_subparsers(dest="command", metavar="command")
    commands.required = True

    summary = commands.add_parser(
        COST_SUMMARY,
        help="Compare per-project costs against a baseline period",
    )
    summary.add_argument(
        "-d",
        "--days",
        type=_positive_int_arg,
        default=1,
        help="Number of days to aggregate (default: 1)",
    )
    summary.add_argument(
        "-e",
        "--end",
        type=_date_arg,
        default=None,
        help="End date in YYYY-MM-DD format (default: 2 days ago)",
    )
    summary.add_argument(
        "-b",
        "--baseline-end",
        dest="baseline_end",
        type=_date_arg,
        default=None,
        help="Baseline end date in YYYY-MM-DD format (default: day before the start date)",
    )
    summary.add_argument(
        "-t",
        "--type",
        dest="report_type",
        type=_report_type_arg,
        default=ReportType.ALL_EXCEPT_RESERVATIONS,
        help="Report type: reservations, or blank meaning everything "
        "except reservations (default: blank)",
    )
    summary.add_argument(
        "-g",
        "--gateways",
        dest="only_gateways",
        action="store_true",
        help="Only gateways report, splitting between Kubo and LB nodes",
    )

    upload = commands.add_parser(
        BIGQUERY,
        help="Upload usage records of a time window to BigQuery",
    )
    upload.add_argument(
        "-s",
        "--start",
        type=_time_arg,
        default=None,
        help="Start time in ISO8601 format, partial timestamps are "
        "completed with zeros in UTC (default: 2 days ago)",
    )
    upload.add_argument(
        "-i",
        "--interval",
        type=_positive_int_arg,
        default=86400,
        help="Time interval in seconds (default: 86400)",
    )
    upload.add_argument("-p", "--project", required=True, help="Project ID")
    upload.add_argument("-d", "--dataset", required=True, help="Dataset ID")
    upload.add_argument("-t", "--table", required=True, help="Table ID")

    return parser


def parse_args(argv: "list[str] | None" = None) -> "Config":
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = Config.from_env()
    except ConfigError as e:
        parser.error(str(e))
    config.log_level = args.log_level
    if args.pushgateway is not None:
        config.pushgateway = args.pushgateway
    config.command = args.command

    if args.command == COST_SUMMARY:
        config.cost_summary = CostSummaryOptions.from_flags(
            end=args.end or _two_days_ago(),
            days=args.days,
            baseline_end=args.baseline_end,
            report_type=args.report_type,
            only_gateways=args.only_gateways,
        )
    else:
        start = args.start or parse_partial_iso_time(_two_days_ago().isoformat())
        try:
            table_id = table_id_for(args.project, args.dataset, args.table)
        except ConfigError as e:
            parser.error(str(e))
        config.upload = UploadOptions(
            start_time=start,
            interval_seconds=args.interval,
            table_id=table_id,
            gcp_project=args.project,
        )

    return config

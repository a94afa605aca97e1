import re
from datetime import datetime
from typing import Any, Iterable, Protocol, Sequence

import structlog
from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import GoogleAuthError
from google.cloud import bigquery

from metalbill.errors import ConfigError, SinkError
from metalbill.metrics import RunMetrics
from metalbill.models import UsageRecord, UsageRow
from metalbill.proration import prepare_usages

logger = structlog.get_logger()

# project.dataset.table
_TABLE_ID_RE = re.compile(r"^[\w-]+\.[\w-]+\.[\w-]+$")


class RowInserter(Protocol):
    """
    the part of google.cloud.bigquery.Client the sink relies on.
    """

    def insert_rows_json(
        self,
        table: "str",
        json_rows: "Sequence[dict[str, Any]]",
        row_ids: "Sequence[str | None] | None" = None,
    ) -> "Sequence[dict[str, Any]]": ...


def validate_table_id(table_id: "str") -> "str":
    if not _TABLE_ID_RE.match(table_id):
        raise ConfigError(
            f"invalid table {table_id!r}, expected format: project.dataset.table"
        )
    return table_id


def table_id_for(project_id: "str", dataset_id: "str", table_id: "str") -> "str":
    return validate_table_id(f"{project_id}.{dataset_id}.{table_id}")


def connect(gcp_project: "str") -> "bigquery.Client":
    """
    creates a BigQuery client billed to the given GCP project, using
    the application default credentials.
    """
    try:
        return bigquery.Client(project=gcp_project)
    except GoogleAuthError as e:
        raise SinkError(f"error while creating BigQuery client: {e}") from e


def build_rows(
    project: "str",
    window_start: "datetime",
    window_end: "datetime",
    usages: "Iterable[UsageRecord]",
) -> "list[UsageRow]":
    return [
        UsageRow(
            start_time=window_start,
            end_time=window_end,
            project=project,
            metro=u.metro,
            plan=u.plan,
            type=u.type,
            name=u.name,
            price=u.price,
            quantity=u.quantity,
            total=u.total,
        )
        for u in prepare_usages(usages, window_start, window_end)
    ]


class BigQuerySink:
    """
    BigQuerySink appends usage rows to a BigQuery table through the
    streaming insert API, one batch per project.
    """

    def __init__(
        self,
        client: "RowInserter",
        table_id: "str",
        metrics: "RunMetrics | None" = None,
    ) -> "None":
        self._client = client
        self._table_id = validate_table_id(table_id)
        self._metrics = metrics

    @property
    def table_id(self) -> "str":
        return self._table_id

    def insert(
        self,
        project: "str",
        window_start: "datetime",
        window_end: "datetime",
        usages: "Iterable[UsageRecord]",
    ) -> "int":
        """
        inserts the usages of one project and returns the number of
        rows written.
        """
        rows = build_rows(project, window_start, window_end, usages)
        if not rows:
            logger.info("sink_nothing_to_insert", project=project)
            return 0

        logger.info("sink_inserting", project=project, count=len(rows))

        # explicit None row ids turn off best-effort de-duplication,
        # every row is appended
        try:
            errors = self._client.insert_rows_json(
                self._table_id,
                [row.to_json() for row in rows],
                row_ids=[None] * len(rows),
            )
        except (GoogleAPIError, OSError) as e:
            raise SinkError(
                f"error while bulk-inserting into {self._table_id}: {e}",
                project=project,
            ) from e

        if errors:
            raise SinkError(
                f"rows rejected by {self._table_id}",
                project=project,
                errors=list(errors),
            )

        if self._metrics is not None:
            self._metrics.inc_rows_inserted(self._table_id, len(rows))

        return len(rows)

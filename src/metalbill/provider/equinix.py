import time
from datetime import datetime, timedelta
from typing import Any, Sequence

import httpx
import structlog

from metalbill.errors import UpstreamError
from metalbill.metrics import RunMetrics
from metalbill.models import Project, UsageMap, UsageRecord
from metalbill.timeparse import format_api_time

logger = structlog.get_logger()

EQUINIX_BASE_URL = "https://api.equinix.com/metal/v1"

# the project list is fetched as a single page
PROJECTS_PER_PAGE = 1000

# created[before] is inclusive, so the window end is pulled back by 1ms
_WINDOW_END_OFFSET = timedelta(milliseconds=1)


class EquinixClient:
    """
    EquinixClient fetches projects and their usage records from the
    Equinix Metal API. Requests are issued one at a time and any failure
    aborts the whole operation, no partial results are returned.
    """

    def __init__(
        self,
        token: "str",
        base_url: "str" = EQUINIX_BASE_URL,
        metrics: "RunMetrics | None" = None,
        timeout: "float" = 30.0,
    ) -> "None":
        self._base_url = base_url.rstrip("/")
        self._metrics = metrics
        self._client: "httpx.Client" = httpx.Client(
            timeout=timeout,
            headers={
                "X-Auth-Token": token,
                "Accept": "application/json",
            },
        )

    def __enter__(self) -> "EquinixClient":
        return self

    def __exit__(self, *exc_info: "object") -> "None":
        self.close()

    def close(self) -> "None":
        """
        closes the underlying HTTP client.
        """
        self._client.close()

    def list_projects(self) -> "list[Project]":
        data = self._get_json(
            "projects",
            f"{self._base_url}/projects",
            params={
                "page": "1",
                "per_page": str(PROJECTS_PER_PAGE),
                "include": "id,name",
            },
        )

        try:
            projects = [Project.from_api(p) for p in data["projects"]]
        except (AttributeError, KeyError, TypeError) as e:
            raise UpstreamError(f"unexpected project list response: {e!r}") from e

        logger.debug("equinix_projects_listed", count=len(projects))
        return projects

    def list_usages(
        self,
        window_start: "datetime",
        window_end: "datetime",
        projects: "Sequence[Project]",
    ) -> "UsageMap":
        """
        fetches the usage records of every project created within the
        half-open window [window_start, window_end). The result is keyed
        by project name, in the order of `projects`. Records of projects
        with the same name are merged into one list.
        """
        params = {
            "created[after]": format_api_time(window_start),
            "created[before]": format_api_time(window_end - _WINDOW_END_OFFSET),
        }
        usages: "UsageMap" = {}

        for project in projects:
            data = self._get_json(
                "usages",
                f"{self._base_url}/projects/{project.id}/usages",
                params=params,
                project_id=project.id,
            )

            try:
                records = [UsageRecord.from_api(u) for u in data["usages"]]
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                raise UpstreamError(
                    f"unexpected usage response: {e!r}", project_id=project.id
                ) from e

            if self._metrics is not None:
                self._metrics.inc_usage_records(project.name, len(records))

            logger.debug(
                "equinix_usages_listed",
                project=project.name,
                record_count=len(records),
            )
            # projects sharing a name share one entry
            usages.setdefault(project.name, []).extend(records)

        return usages

    def _get_json(
        self,
        endpoint: "str",
        url: "str",
        params: "dict[str, str]",
        project_id: "str | None" = None,
    ) -> "Any":
        logger.debug("equinix_request", url=url, params=params)
        started = time.monotonic()

        try:
            resp = self._client.get(url, params=params)
        except httpx.HTTPError as e:
            self._observe(endpoint, "error", started)
            raise UpstreamError(
                f"error while making the HTTP request: {e}", project_id=project_id
            ) from e

        self._observe(endpoint, str(resp.status_code), started)

        if resp.status_code != 200:
            raise UpstreamError(
                "HTTP error",
                project_id=project_id,
                status_code=resp.status_code,
                body=resp.text,
            )

        try:
            return resp.json()
        except ValueError as e:
            raise UpstreamError(
                f"error while decoding JSON response: {e}",
                project_id=project_id,
                body=resp.text,
            ) from e

    def _observe(self, endpoint: "str", status: "str", started: "float") -> "None":
        if self._metrics is not None:
            self._metrics.observe_request(endpoint, status, time.monotonic() - started)

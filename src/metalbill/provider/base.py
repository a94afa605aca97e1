from datetime import datetime
from typing import Protocol, Sequence

from metalbill.models import Project, UsageMap


class UsageSource(Protocol):
    """
    UsageSource stands as the common protocol of billing
    backends the commands read projects and usages from.
    """

    def list_projects(self) -> "list[Project]": ...

    def list_usages(
        self,
        window_start: "datetime",
        window_end: "datetime",
        projects: "Sequence[Project]",
    ) -> "UsageMap": ...

    def close(self) -> "None": ...

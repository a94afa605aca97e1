import structlog

from metalbill.models import HARDWARE_RESERVATION, ReportType, SummaryRecord, UsageMap

logger = structlog.get_logger()


def include_usage(report_type: "ReportType", usage_type: "str") -> "bool":
    """
    reservation reports only count hardware reservations, every other
    report counts everything except them.
    """
    return (report_type is ReportType.RESERVATIONS_ONLY) == (
        usage_type == HARDWARE_RESERVATION
    )


def summarize(
    report_type: "ReportType",
    baseline: "UsageMap",
    usages: "UsageMap",
) -> "tuple[dict[str, SummaryRecord], SummaryRecord]":
    """
    sums price, quantity and total per project for the report window
    and the baseline window, along with the grand total of all projects.

    Only projects present in the report usages are summarized; projects
    found in the baseline alone are left out of both the per-project
    summaries and the totals.
    """
    per_project: "dict[str, SummaryRecord]" = {}
    totals = SummaryRecord()

    for project, project_usages in usages.items():
        summary = SummaryRecord()

        for usage in project_usages:
            if include_usage(report_type, usage.type):
                summary.add_usage(usage)

        for usage in baseline.get(project, []):
            if include_usage(report_type, usage.type):
                summary.add_baseline(usage)

        totals.accumulate(summary)
        per_project[project] = summary

    baseline_only = [p for p in baseline if p not in usages]
    if baseline_only:
        logger.debug("baseline_only_projects_skipped", projects=baseline_only)

    return per_project, totals

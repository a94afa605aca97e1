import math
from datetime import date
from typing import Iterable, TextIO

from metalbill.models import SummaryRecord

NAME_WIDTH = 15
AMOUNT_WIDTH = 11
PERCENT_WIDTH = 7


def format_percent(value: "float") -> "str":
    """
    formats a signed percentage with thousands separators. A zero
    baseline shows up as +Inf, -Inf or +NaN rather than a number.
    """
    if math.isnan(value):
        text = "+NaN"
    elif math.isinf(value):
        text = "+Inf" if value > 0 else "-Inf"
    else:
        return f"{value:+{PERCENT_WIDTH},.2f}"
    return f"{text:>{PERCENT_WIDTH}}"


def format_row(name: "str", summary: "SummaryRecord") -> "str":
    return (
        f"{name:<{NAME_WIDTH}.{NAME_WIDTH}} "
        f"{summary.base_total:{AMOUNT_WIDTH},.2f} "
        f"{summary.total:{AMOUNT_WIDTH},.2f} "
        f"{format_percent(summary.percent_change)}%"
    )


def format_header(baseline_end: "date", report_end: "date") -> "str":
    return (
        f"{'Project':<{NAME_WIDTH}.{NAME_WIDTH}} "
        f"{baseline_end.isoformat():>{AMOUNT_WIDTH}} "
        f"{report_end.isoformat():>{AMOUNT_WIDTH}}"
    )


def format_report(
    summaries: "dict[str, SummaryRecord]",
    totals: "SummaryRecord",
    baseline_end: "date",
    report_end: "date",
    sort: "bool" = True,
) -> "list[str]":
    """
    lays out the comparison of baseline and report totals, one row per
    project followed by the grand total. Projects are listed
    alphabetically ignoring case unless `sort` is False, in which case
    the order of `summaries` is kept.
    """
    names = list(summaries)
    if sort:
        names.sort(key=str.upper)

    lines = [format_header(baseline_end, report_end)]
    lines.extend(format_row(name, summaries[name]) for name in names)
    lines.append(format_row("Total", totals))
    return lines


def write_report(lines: "Iterable[str]", out: "TextIO") -> "None":
    for line in lines:
        out.write(line + "\n")

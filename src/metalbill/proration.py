import dataclasses
from datetime import datetime
from typing import Iterable

from metalbill.models import HARDWARE_RESERVATION, UsageRecord
from metalbill.timeparse import days_in_month

OUTBOUND_BANDWIDTH = "Outbound Bandwidth"
PRORATED_RESERVATION_NAME = "Hardware Reservation daily pro-rated"

_ONE_DAY_SECONDS = 86400


def normalize_bandwidth(usage: "UsageRecord") -> "UsageRecord":
    """
    outbound bandwidth is reported with its kind in `plan` rather
    than `type`.
    """
    if usage.plan == OUTBOUND_BANDWIDTH:
        return dataclasses.replace(usage, type=usage.plan)
    return usage


def prorate_reservation(
    usage: "UsageRecord",
    window_start: "datetime",
    window_end: "datetime",
) -> "UsageRecord | None":
    """
    hardware reservations are billed for the whole month whatever the
    queried window, so they are spread evenly over the days of the month
    the window starts in. This only holds for windows of exactly one day;
    reservations in any other window are dropped by returning None.
    """
    if usage.type != HARDWARE_RESERVATION:
        return usage

    if (window_end - window_start).total_seconds() != _ONE_DAY_SECONDS:
        return None

    days = days_in_month(window_start)
    return dataclasses.replace(
        usage,
        price=usage.price / days,
        total=usage.total / days,
        name=PRORATED_RESERVATION_NAME,
    )


def prepare_usages(
    usages: "Iterable[UsageRecord]",
    window_start: "datetime",
    window_end: "datetime",
) -> "list[UsageRecord]":
    prepared: "list[UsageRecord]" = []
    for usage in usages:
        prorated = prorate_reservation(
            normalize_bandwidth(usage), window_start, window_end
        )
        if prorated is not None:
            prepared.append(prorated)
    return prepared

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Any

HARDWARE_RESERVATION = "HardwareReservation"


class ReportType(enum.Enum):
    """
    ReportType selects which usage types are summed into a report.
    """

    # everything except hardware reservations
    ALL_EXCEPT_RESERVATIONS = ""
    RESERVATIONS_ONLY = "reservations"


@dataclass(frozen=True, slots=True)
class Project:
    id: "str"
    name: "str"

    @classmethod
    def from_api(cls, data: "dict[str, Any]") -> "Project":
        return cls(id=str(data["id"]), name=str(data.get("name") or ""))


@dataclass(frozen=True, slots=True)
class UsageRecord:
    """
    UsageRecord represents a single billable line item
    of a project within a queried window.
    """

    metro: "str"
    plan: "str"
    type: "str"
    name: "str"
    price: "float"
    quantity: "float"
    total: "float"

    @classmethod
    def from_api(cls, data: "dict[str, Any]") -> "UsageRecord":
        # upstream returns null for fields that don't apply to a line item
        return cls(
            metro=data.get("metro") or "",
            plan=data.get("plan") or "",
            type=data.get("type") or "",
            name=data.get("name") or "",
            price=float(data.get("price") or 0.0),
            quantity=float(data.get("quantity") or 0.0),
            total=float(data.get("total") or 0.0),
        )


# usage records keyed by project name
UsageMap = dict[str, list[UsageRecord]]


@dataclass(slots=True)
class SummaryRecord:
    """
    SummaryRecord accumulates the report window figures and
    the baseline window figures of a project (or of all projects).
    """

    price: "float" = 0.0
    quantity: "float" = 0.0
    total: "float" = 0.0
    base_price: "float" = 0.0
    base_quantity: "float" = 0.0
    base_total: "float" = 0.0

    def add_usage(self, usage: "UsageRecord") -> "None":
        self.price += usage.price
        self.quantity += usage.quantity
        self.total += usage.total

    def add_baseline(self, usage: "UsageRecord") -> "None":
        self.base_price += usage.price
        self.base_quantity += usage.quantity
        self.base_total += usage.total

    def accumulate(self, other: "SummaryRecord") -> "None":
        self.price += other.price
        self.quantity += other.quantity
        self.total += other.total
        self.base_price += other.base_price
        self.base_quantity += other.base_quantity
        self.base_total += other.base_total

    @property
    def percent_change(self) -> "float":
        """
        change of the report total against the baseline total, in percent.
        A zero baseline yields +inf, -inf or nan.
        """
        delta = self.total - self.base_total
        if self.base_total == 0:
            if delta == 0:
                return float("nan")
            return float("inf") if delta > 0 else float("-inf")
        return 100.0 * delta / self.base_total


@dataclass(frozen=True, slots=True)
class UsageRow:
    """
    UsageRow is a flattened usage record as stored in the
    analytics table.
    """

    start_time: "datetime"
    end_time: "datetime"
    project: "str"
    metro: "str"
    plan: "str"
    type: "str"
    name: "str"
    price: "float"
    quantity: "float"
    total: "float"

    def to_json(self) -> "dict[str, Any]":
        return {
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "project": self.project,
            "metro": self.metro,
            "plan": self.plan,
            "type": self.type,
            "name": self.name,
            "price": self.price,
            "quantity": self.quantity,
            "total": self.total,
        }

import re
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import and_, or_, true, tuple_
from sqlalchemy.sql.elements import ColumnElement

from models import ExecutionLineItem, PeriodType
from schemas import ReportPeriod


class InvalidPeriod(ValueError):
    pass


_LABEL_PATTERNS = {
    PeriodType.year: re.compile(r"^(\d{4})$"),
    PeriodType.month: re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$"),
    PeriodType.quarter: re.compile(r"^(\d{4})-Q([1-4])$"),
}

_LABEL_FORMATS = {
    PeriodType.year: "YYYY",
    PeriodType.month: "YYYY-MM",
    PeriodType.quarter: "YYYY-QN",
}


@dataclass(frozen=True, order=True)
class PeriodKey:
    """A parsed period label; `part` is the month or quarter, None for years."""

    year: int
    part: Optional[int] = None

    def label(self, period_type: PeriodType) -> str:
        if period_type == PeriodType.month:
            return f"{self.year}-{self.part:02d}"
        if period_type == PeriodType.quarter:
            return f"{self.year}-Q{self.part}"
        return str(self.year)


@dataclass
class ResolvedPeriod:
    period_type: PeriodType
    bucket_flag: Optional[ColumnElement[bool]]
    conditions: list[ColumnElement[bool]] = field(default_factory=list)

    def predicates(self) -> list[ColumnElement[bool]]:
        # The bucket flag must lead so the store can use it as the index prefix.
        if self.bucket_flag is None:
            return list(self.conditions)
        return [self.bucket_flag, *self.conditions]


def parse_period_label(label: str, period_type: PeriodType) -> PeriodKey:
    match = _LABEL_PATTERNS[period_type].match(label.strip())
    if not match:
        raise InvalidPeriod(
            f"Period label {label!r} does not match {_LABEL_FORMATS[period_type]} "
            f"for {period_type.value} periods"
        )
    year = int(match.group(1))
    if period_type == PeriodType.year:
        return PeriodKey(year)
    return PeriodKey(year, int(match.group(2)))


def amount_column(period_type: PeriodType):
    if period_type == PeriodType.month:
        return ExecutionLineItem.monthly_amount
    if period_type == PeriodType.quarter:
        return ExecutionLineItem.quarterly_amount
    return ExecutionLineItem.ytd_amount


def bucket_flag(period_type: PeriodType) -> Optional[ColumnElement[bool]]:
    if period_type == PeriodType.year:
        return ExecutionLineItem.is_yearly == true()
    if period_type == PeriodType.quarter:
        return ExecutionLineItem.is_quarterly == true()
    return None


def _part_column(period_type: PeriodType):
    if period_type == PeriodType.month:
        return ExecutionLineItem.month
    return ExecutionLineItem.quarter


def _equals(key: PeriodKey, period_type: PeriodType) -> ColumnElement[bool]:
    if period_type == PeriodType.year:
        return ExecutionLineItem.year == key.year
    return and_(
        ExecutionLineItem.year == key.year, _part_column(period_type) == key.part
    )


def _interval_conditions(
    start: PeriodKey, end: PeriodKey, period_type: PeriodType
) -> list[ColumnElement[bool]]:
    if start > end:
        raise InvalidPeriod(
            f"Period interval starts after it ends: "
            f"{start.label(period_type)} > {end.label(period_type)}"
        )
    if start == end:
        return [_equals(start, period_type)]
    if period_type == PeriodType.year:
        return [ExecutionLineItem.year.between(start.year, end.year)]
    key = tuple_(ExecutionLineItem.year, _part_column(period_type))
    return [
        key >= tuple_(start.year, start.part),
        key <= tuple_(end.year, end.part),
    ]


def resolve_period(period: ReportPeriod) -> ResolvedPeriod:
    period_type = period.type
    selection = period.selection

    if selection.interval is not None:
        start = parse_period_label(selection.interval.start, period_type)
        end = parse_period_label(selection.interval.end, period_type)
        return ResolvedPeriod(
            period_type=period_type,
            bucket_flag=bucket_flag(period_type),
            conditions=_interval_conditions(start, end, period_type),
        )

    labels = selection.dates or []
    if not labels:
        raise InvalidPeriod("Period date list is empty")
    keys = sorted({parse_period_label(label, period_type) for label in labels})
    equalities = [_equals(key, period_type) for key in keys]
    condition = equalities[0] if len(equalities) == 1 else or_(*equalities)
    return ResolvedPeriod(
        period_type=period_type,
        bucket_flag=bucket_flag(period_type),
        conditions=[condition],
    )

from __future__ import annotations

from models import AccountCategory, PeriodType
from schemas import AnalyticsFilter, PeriodInterval, PeriodSelection, ReportPeriod

ALBA_IULIA_CUI = "4562589"
BUCHAREST_CUI = "4267117"
ALBA_COUNTY_COUNCIL_CUI = "4562600"
MINISTRY_CUI = "4192910"


def year_period(start: str, end: str | None = None) -> ReportPeriod:
    return ReportPeriod(
        type=PeriodType.year,
        selection=PeriodSelection(interval=PeriodInterval(start=start, end=end or start)),
    )


def expense_filter(**kwargs) -> AnalyticsFilter:
    kwargs.setdefault("report_period", year_period("2023"))
    return AnalyticsFilter(account_category=AccountCategory.expense, **kwargs)

import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from models import (
    AccountCategory,
    ClassificationDimension,
    ExpenseType,
    Normalization,
    PeriodType,
    RootDepth,
)


class PeriodInterval(BaseModel):
    start: str
    end: str


class PeriodSelection(BaseModel):
    interval: Optional[PeriodInterval] = None
    dates: Optional[list[str]] = None

    @model_validator(mode="after")
    def _exactly_one_selection(self) -> "PeriodSelection":
        if (self.interval is None) == (self.dates is None):
            raise ValueError("Period selection needs exactly one of interval or dates")
        return self


class ReportPeriod(BaseModel):
    type: PeriodType
    selection: PeriodSelection


class ExcludeFilter(BaseModel):
    model_config = ConfigDict(extra="forbid")

    report_ids: Optional[list[str]] = None
    report_type: Optional[str] = None
    entity_cuis: Optional[list[str]] = None
    main_creditor_cui: Optional[str] = None
    funding_source_ids: Optional[list[int]] = None
    budget_sector_ids: Optional[list[int]] = None
    functional_codes: Optional[list[str]] = None
    functional_prefixes: Optional[list[str]] = None
    economic_codes: Optional[list[str]] = None
    economic_prefixes: Optional[list[str]] = None
    expense_types: Optional[list[ExpenseType]] = None
    program_codes: Optional[list[str]] = None
    entity_types: Optional[list[str]] = None
    uat_ids: Optional[list[int]] = None
    county_codes: Optional[list[str]] = None
    regions: Optional[list[str]] = None


class AnalyticsFilter(BaseModel):
    model_config = ConfigDict(extra="forbid")

    account_category: AccountCategory
    # Optional here so a missing period surfaces as InvalidFilter from the compiler.
    report_period: Optional[ReportPeriod] = None

    report_ids: Optional[list[str]] = None
    report_type: Optional[str] = None
    entity_cuis: Optional[list[str]] = None
    main_creditor_cui: Optional[str] = None
    funding_source_ids: Optional[list[int]] = None
    budget_sector_ids: Optional[list[int]] = None
    functional_codes: Optional[list[str]] = None
    functional_prefixes: Optional[list[str]] = None
    economic_codes: Optional[list[str]] = None
    economic_prefixes: Optional[list[str]] = None
    expense_types: Optional[list[ExpenseType]] = None
    program_codes: Optional[list[str]] = None

    entity_types: Optional[list[str]] = None
    is_uat: Optional[bool] = None
    uat_ids: Optional[list[int]] = None
    county_codes: Optional[list[str]] = None
    regions: Optional[list[str]] = None
    search: Optional[str] = None
    min_population: Optional[int] = Field(default=None, ge=0)
    max_population: Optional[int] = Field(default=None, ge=0)

    item_min_amount: Optional[float] = None
    item_max_amount: Optional[float] = None
    aggregate_min_amount: Optional[float] = None
    aggregate_max_amount: Optional[float] = None

    exclude: Optional[ExcludeFilter] = None
    normalization: Normalization = Normalization.total

    @field_validator("normalization", mode="before")
    @classmethod
    def _legacy_normalization_names(cls, value):
        if value is None:
            return Normalization.total
        if isinstance(value, str) and not isinstance(value, Normalization):
            return Normalization(value)
        return value


class AggregatedRow(BaseModel):
    functional_code: str
    functional_name: str
    economic_code: str
    economic_name: str
    amount: float
    count: int
    year: Optional[int] = None


class AggregatedLineItemsResult(BaseModel):
    rows: list[AggregatedRow]
    total_count: int


class PivotConstraint(BaseModel):
    dimension: ClassificationDimension
    code: str = Field(..., min_length=1)


class GroupingOptions(BaseModel):
    dimension: ClassificationDimension = ClassificationDimension.functional
    path: list[str] = Field(default_factory=list)
    pivot_constraint: Optional[PivotConstraint] = None
    root_depth: RootDepth = RootDepth.chapter
    exclude_chapters: list[str] = Field(default_factory=list)

    @field_validator("path")
    @classmethod
    def _path_codes_within_paragraph_depth(cls, value: list[str]) -> list[str]:
        for code in value:
            if len(re.sub(r"[^0-9]", "", code)) > 6:
                raise ValueError(f"Path code {code!r} is deeper than a paragraph")
        return value


class GroupedItem(BaseModel):
    code: str
    display_code: str
    name: str
    value: float
    count: int
    is_leaf: bool
    percentage: float
    human_summary: str

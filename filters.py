"""Compile an ``AnalyticsFilter`` into SQLAlchemy predicates.

Every value is bound through SQLAlchemy expressions, never spliced into SQL
text. Join analysis runs as its own pass (``analyze_joins``) so the
aggregation and population queries can share it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from sqlalchemy import and_, func, not_, or_
from sqlalchemy.sql.elements import ColumnElement

from models import UAT, Entity, ExecutionLineItem, Normalization
from periods import ResolvedPeriod, amount_column, resolve_period
from schemas import AnalyticsFilter, ExcludeFilter


class InvalidFilter(ValueError):
    pass


@dataclass(frozen=True)
class JoinRequirements:
    needs_entity_join: bool = False
    needs_territorial_join: bool = False


@dataclass
class ConditionList:
    """Ordered accumulator of predicates; order is preserved into the WHERE."""

    items: list[ColumnElement[bool]] = field(default_factory=list)

    def add(self, condition: Optional[ColumnElement[bool]]) -> None:
        if condition is not None:
            self.items.append(condition)

    def extend(self, conditions: Sequence[ColumnElement[bool]]) -> None:
        for condition in conditions:
            self.add(condition)

    def __len__(self) -> int:
        return len(self.items)


@dataclass
class CompiledFilter:
    period: ResolvedPeriod
    conditions: list[ColumnElement[bool]]
    having: list[ColumnElement[bool]]
    joins: JoinRequirements
    amount_column: Any
    normalization: Normalization
    defer_aggregate_thresholds: bool

    @property
    def by_year(self) -> bool:
        return self.defer_aggregate_thresholds

    @property
    def bound_values(self) -> dict[str, Any]:
        """Bound parameters in compile order, useful for logging and tests."""
        clauses = [*self.conditions, *self.having]
        if not clauses:
            return {}
        return dict(and_(*clauses).compile().params)


def needs_currency(normalization: Normalization) -> bool:
    return normalization in (
        Normalization.total_currency,
        Normalization.per_capita_currency,
    )


def needs_per_capita(normalization: Normalization) -> bool:
    return normalization in (Normalization.per_capita, Normalization.per_capita_currency)


def analyze_joins(filter: AnalyticsFilter) -> JoinRequirements:
    exclude = filter.exclude or ExcludeFilter()
    territorial = bool(
        filter.county_codes
        or filter.regions
        or filter.min_population is not None
        or filter.max_population is not None
        or exclude.county_codes
        or exclude.regions
    )
    entity = territorial or bool(
        filter.entity_types
        or filter.is_uat is not None
        or filter.uat_ids
        or filter.search
        or exclude.entity_types
        or exclude.uat_ids
    )
    return JoinRequirements(
        needs_entity_join=entity, needs_territorial_join=territorial
    )


def entity_uat_join() -> ColumnElement[bool]:
    """Match an entity to its UAT by id, or by the UAT's fiscal code."""
    return or_(UAT.id == Entity.uat_id, UAT.uat_code == Entity.cui)


def _any_prefix(column, prefixes: Sequence[str]) -> ColumnElement[bool]:
    matches = [column.startswith(prefix, autoescape=True) for prefix in prefixes]
    return matches[0] if len(matches) == 1 else or_(*matches)


def _dimension_conditions(
    scope: AnalyticsFilter | ExcludeFilter,
) -> list[ColumnElement[bool]]:
    """Positive predicates over line-item columns shared by filter and exclude."""
    eli = ExecutionLineItem
    conditions: list[ColumnElement[bool]] = []
    if scope.report_ids:
        conditions.append(eli.report_id.in_(scope.report_ids))
    if scope.report_type:
        conditions.append(eli.report_type == scope.report_type)
    if scope.entity_cuis:
        conditions.append(eli.entity_cui.in_(scope.entity_cuis))
    if scope.main_creditor_cui:
        conditions.append(eli.main_creditor_cui == scope.main_creditor_cui)
    if scope.funding_source_ids:
        conditions.append(eli.funding_source_id.in_(scope.funding_source_ids))
    if scope.budget_sector_ids:
        conditions.append(eli.budget_sector_id.in_(scope.budget_sector_ids))
    if scope.functional_codes:
        conditions.append(eli.functional_code.in_(scope.functional_codes))
    if scope.functional_prefixes:
        conditions.append(_any_prefix(eli.functional_code, scope.functional_prefixes))
    if scope.economic_codes:
        conditions.append(eli.economic_code.in_(scope.economic_codes))
    if scope.economic_prefixes:
        conditions.append(_any_prefix(eli.economic_code, scope.economic_prefixes))
    if scope.expense_types:
        conditions.append(eli.expense_type.in_(scope.expense_types))
    if scope.program_codes:
        conditions.append(eli.program_code.in_(scope.program_codes))
    return conditions


def _entity_conditions(
    scope: AnalyticsFilter | ExcludeFilter,
) -> list[ColumnElement[bool]]:
    conditions: list[ColumnElement[bool]] = []
    if scope.entity_types:
        conditions.append(Entity.entity_type.in_(scope.entity_types))
    if scope.uat_ids:
        conditions.append(Entity.uat_id.in_(scope.uat_ids))
    return conditions


def _territorial_conditions(
    scope: AnalyticsFilter | ExcludeFilter,
) -> list[ColumnElement[bool]]:
    conditions: list[ColumnElement[bool]] = []
    if scope.county_codes:
        conditions.append(UAT.county_code.in_(scope.county_codes))
    if scope.regions:
        conditions.append(UAT.region.in_(scope.regions))
    return conditions


def _negated(conditions: Sequence[ColumnElement[bool]]) -> list[ColumnElement[bool]]:
    # NULL columns (e.g. no economic code) are kept, matching "not in the excluded set".
    return [not_(func.coalesce(condition, False)) for condition in conditions]


def compile_filter(filter: AnalyticsFilter) -> CompiledFilter:
    if filter.report_period is None:
        raise InvalidFilter("report_period is required for analytics")

    period = resolve_period(filter.report_period)
    joins = analyze_joins(filter)
    exclude = filter.exclude or ExcludeFilter()
    item_amount = amount_column(period.period_type)

    conditions = ConditionList()
    conditions.extend(period.predicates())
    conditions.add(ExecutionLineItem.account_category == filter.account_category)
    conditions.extend(_dimension_conditions(filter))
    conditions.extend(_negated(_dimension_conditions(exclude)))

    if filter.item_min_amount is not None:
        conditions.add(item_amount >= filter.item_min_amount)
    if filter.item_max_amount is not None:
        conditions.add(item_amount <= filter.item_max_amount)

    if joins.needs_entity_join:
        conditions.extend(_entity_conditions(filter))
        if filter.is_uat is not None:
            conditions.add(Entity.is_uat == filter.is_uat)
        if filter.search:
            conditions.add(Entity.name.icontains(filter.search, autoescape=True))
        conditions.extend(_negated(_entity_conditions(exclude)))

    if joins.needs_territorial_join:
        conditions.extend(_territorial_conditions(filter))
        population = func.coalesce(UAT.population, 0)
        if filter.min_population is not None:
            conditions.add(population >= filter.min_population)
        if filter.max_population is not None:
            conditions.add(population <= filter.max_population)
        conditions.extend(_negated(_territorial_conditions(exclude)))

    defer = needs_currency(filter.normalization)
    having: list[ColumnElement[bool]] = []
    if not defer:
        total = func.coalesce(func.sum(item_amount), 0)
        if filter.aggregate_min_amount is not None:
            having.append(total >= filter.aggregate_min_amount)
        if filter.aggregate_max_amount is not None:
            having.append(total <= filter.aggregate_max_amount)

    return CompiledFilter(
        period=period,
        conditions=conditions.items,
        having=having,
        joins=joins,
        amount_column=item_amount,
        normalization=filter.normalization,
        defer_aggregate_thresholds=defer,
    )

from __future__ import annotations

import logging
import time
from typing import Optional

from sqlalchemy import String, func, literal_column, select
from sqlalchemy.orm import Session

from cache import ResultCache, fingerprint, get_result_cache
from config import Settings, get_settings
from database import apply_statement_timeout
from filters import CompiledFilter, compile_filter, entity_uat_join
from fx_rates import CurrencyRateMap, get_rate_map
from grouping import group_aggregated_line_items
from models import (
    UAT,
    UNKNOWN_ECONOMIC_CODE,
    UNKNOWN_ECONOMIC_NAME,
    EconomicClassification,
    Entity,
    ExecutionLineItem,
    FunctionalClassification,
)
from normalization import NormalizationPipeline
from population import PopulationService
from schemas import (
    AggregatedLineItemsResult,
    AggregatedRow,
    AnalyticsFilter,
    GroupedItem,
    GroupingOptions,
)

logger = logging.getLogger(__name__)


def sanitize_pagination(
    limit: Optional[int], offset: Optional[int], max_limit: int
) -> tuple[Optional[int], int]:
    """Clamp ``limit`` to ``[0, max_limit]``; None stays unbounded."""
    if limit is not None:
        limit = max(0, min(int(limit), max_limit))
    return limit, max(0, int(offset or 0))


class LineItemAggregator:
    """Grouped sums over execution line items for a compiled filter.

    Rows are grouped by (functional code, economic code), plus year when the
    filter needs currency conversion. In that mode thresholds, ordering and
    pagination are left to the normalization step.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def _grouped(self, compiled: CompiledFilter, *, by_year: bool):
        eli = ExecutionLineItem
        fc = FunctionalClassification
        ec = EconomicClassification

        # Inline sentinels so GROUP BY and the select list render the same SQL.
        economic_code = func.coalesce(
            eli.economic_code, literal_column(f"'{UNKNOWN_ECONOMIC_CODE}'", String)
        )
        economic_name = func.max(
            func.coalesce(
                ec.economic_name,
                literal_column(f"'{UNKNOWN_ECONOMIC_NAME}'", String),
            )
        )
        amount = func.coalesce(func.sum(compiled.amount_column), 0)

        columns = [
            eli.functional_code.label("functional_code"),
            fc.functional_name.label("functional_name"),
            economic_code.label("economic_code"),
            economic_name.label("economic_name"),
            amount.label("amount"),
            func.count(eli.line_item_id).label("count"),
        ]
        # A missing economic code and a stored 00.00.00 share one group.
        group_by = [eli.functional_code, fc.functional_name, economic_code]
        if by_year:
            columns.append(eli.year.label("year"))
            group_by.append(eli.year)

        stmt = (
            select(*columns)
            .select_from(eli)
            .join(fc, fc.functional_code == eli.functional_code)
            .outerjoin(ec, ec.economic_code == eli.economic_code)
        )
        if compiled.joins.needs_entity_join:
            stmt = stmt.join(Entity, Entity.cui == eli.entity_cui)
        if compiled.joins.needs_territorial_join:
            stmt = stmt.outerjoin(UAT, entity_uat_join())

        stmt = stmt.where(*compiled.conditions).group_by(*group_by)
        if compiled.having:
            stmt = stmt.having(*compiled.having)
        return stmt, amount, economic_code

    def count_groups(self, compiled: CompiledFilter) -> int:
        stmt, _, _ = self._grouped(compiled, by_year=False)
        count_stmt = select(func.count()).select_from(stmt.subquery())
        return int(self.session.execute(count_stmt).scalar_one() or 0)

    def aggregate(
        self,
        compiled: CompiledFilter,
        *,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> tuple[list[AggregatedRow], Optional[int]]:
        """Rows plus the distinct group count.

        The count is None in currency modes, where it is only known after
        conversion and thresholds.
        """
        by_year = compiled.by_year
        stmt, amount, economic_code = self._grouped(compiled, by_year=by_year)
        stmt = stmt.order_by(
            amount.desc(), ExecutionLineItem.functional_code, economic_code
        )
        if by_year:
            stmt = stmt.order_by(ExecutionLineItem.year)
        else:
            if limit is not None:
                stmt = stmt.limit(limit)
            if offset:
                stmt = stmt.offset(offset)

        rows = [
            AggregatedRow(
                functional_code=row.functional_code,
                functional_name=row.functional_name,
                economic_code=row.economic_code,
                economic_name=row.economic_name,
                amount=float(row.amount or 0),
                count=int(row.count),
                year=row.year if by_year else None,
            )
            for row in self.session.execute(stmt).all()
        ]
        if by_year:
            return rows, None
        return rows, self.count_groups(compiled)


class AnalyticsService:
    def __init__(
        self,
        session: Session,
        *,
        cache: Optional[ResultCache] = None,
        rates: Optional[CurrencyRateMap] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.session = session
        self.settings = settings if settings is not None else get_settings()
        self.cache = cache if cache is not None else get_result_cache()
        self.rates = rates if rates is not None else get_rate_map()
        self.aggregator = LineItemAggregator(session)
        self.population = PopulationService(session)

    def resolve_population_denominator(self, filter: AnalyticsFilter) -> int:
        return self.population.resolve(filter)

    def get_aggregated_line_items(
        self,
        filter: AnalyticsFilter,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> AggregatedLineItemsResult:
        compiled = compile_filter(filter)
        limit, offset = sanitize_pagination(limit, offset, self.settings.max_limit)

        key = fingerprint(filter, limit, offset)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        started = time.perf_counter()
        apply_statement_timeout(self.session, self.settings.statement_timeout_ms)
        rows, total_count = self.aggregator.aggregate(
            compiled, limit=limit, offset=offset
        )
        pipeline = NormalizationPipeline(self.rates, self.resolve_population_denominator)
        result = pipeline.apply(filter, rows, total_count, limit=limit, offset=offset)
        self.cache.set(key, result)

        duration = time.perf_counter() - started
        logger.info(
            f"aggregated_line_items: normalization={filter.normalization.value} "
            f"rows={len(result.rows)} total_count={result.total_count} "
            f"duration={duration:.3f}s"
        )
        return result

    def group_items(
        self,
        rows: list[AggregatedRow],
        filter: AnalyticsFilter,
        options: GroupingOptions,
    ) -> list[GroupedItem]:
        return group_aggregated_line_items(rows, filter, options)

    def get_grouped_items(
        self, filter: AnalyticsFilter, options: GroupingOptions
    ) -> list[GroupedItem]:
        """Unpaginated aggregation regrouped for one drilldown level."""
        result = self.get_aggregated_line_items(filter)
        items = self.group_items(result.rows, filter, options)
        logger.info(
            f"grouped_items: dimension={options.dimension.value} "
            f"depth_path={len(options.path)} groups={len(items)}"
        )
        return items

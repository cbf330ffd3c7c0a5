from __future__ import annotations

from typing import Callable, Iterable, Optional

from filters import needs_currency, needs_per_capita
from fx_rates import CurrencyRateMap
from models import Normalization
from schemas import AggregatedLineItemsResult, AggregatedRow, AnalyticsFilter


class UnsupportedNormalization(ValueError):
    pass


def _pair_key(row: AggregatedRow) -> tuple[str, str]:
    return (row.functional_code, row.economic_code)


def sort_rows(rows: Iterable[AggregatedRow]) -> list[AggregatedRow]:
    # Ties fall back to the classification pair so repeated runs order identically.
    return sorted(
        rows,
        key=lambda r: (-r.amount, r.functional_code, r.economic_code),
    )


def convert_currency(
    rows: Iterable[AggregatedRow], rates: CurrencyRateMap
) -> list[AggregatedRow]:
    """Convert each (pair, year) bucket at its year's rate, then sum across years."""
    merged: dict[tuple[str, str], AggregatedRow] = {}
    for row in rows:
        converted = rates.convert(row.amount, row.year)
        key = _pair_key(row)
        current = merged.get(key)
        if current is None:
            merged[key] = row.model_copy(update={"amount": converted, "year": None})
            continue
        current.amount += converted
        current.count += row.count
    return list(merged.values())


def apply_per_capita(rows: Iterable[AggregatedRow], denominator: float) -> list[AggregatedRow]:
    if not denominator:
        return list(rows)
    return [row.model_copy(update={"amount": row.amount / denominator}) for row in rows]


def apply_aggregate_thresholds(
    rows: Iterable[AggregatedRow],
    minimum: Optional[float],
    maximum: Optional[float],
) -> list[AggregatedRow]:
    kept = list(rows)
    if minimum is not None:
        kept = [row for row in kept if row.amount >= minimum]
    if maximum is not None:
        kept = [row for row in kept if row.amount <= maximum]
    return kept


def paginate(
    rows: list[AggregatedRow], limit: Optional[int], offset: Optional[int]
) -> list[AggregatedRow]:
    start = offset or 0
    end = None if limit is None else start + limit
    return rows[start:end]


class NormalizationPipeline:
    """Turns raw aggregates into the amounts requested by ``filter.normalization``.

    ``population`` is only called for per-capita modes, once per run.
    """

    def __init__(
        self,
        rates: CurrencyRateMap,
        population: Callable[[AnalyticsFilter], float],
    ) -> None:
        self.rates = rates
        self.population = population

    def apply(
        self,
        filter: AnalyticsFilter,
        rows: list[AggregatedRow],
        total_count: Optional[int],
        *,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> AggregatedLineItemsResult:
        mode = filter.normalization
        if mode not in (
            Normalization.total,
            Normalization.total_currency,
            Normalization.per_capita,
            Normalization.per_capita_currency,
        ):
            raise UnsupportedNormalization(f"Unsupported normalization mode: {mode!r}")

        if not needs_currency(mode):
            # Store already applied thresholds, ordering and pagination.
            if needs_per_capita(mode):
                rows = apply_per_capita(rows, self.population(filter))
            if total_count is None:
                total_count = len(rows)
            return AggregatedLineItemsResult(rows=rows, total_count=total_count)

        converted = convert_currency(rows, self.rates)
        if needs_per_capita(mode):
            converted = apply_per_capita(converted, self.population(filter))
        converted = apply_aggregate_thresholds(
            converted, filter.aggregate_min_amount, filter.aggregate_max_amount
        )
        ordered = sort_rows(converted)
        return AggregatedLineItemsResult(
            rows=paginate(ordered, limit, offset), total_count=len(ordered)
        )

from __future__ import annotations

import json
import logging
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from pathlib import Path
from typing import Mapping, Optional

from config import get_settings

logger = logging.getLogger(__name__)

# Yearly average RON per 1 EUR (BNR).
DEFAULT_EUR_RON_RATES: dict[int, Decimal] = {
    2016: Decimal("4.4908"),
    2017: Decimal("4.5681"),
    2018: Decimal("4.6540"),
    2019: Decimal("4.7452"),
    2020: Decimal("4.8371"),
    2021: Decimal("4.9215"),
    2022: Decimal("4.9465"),
    2023: Decimal("4.9465"),
    2024: Decimal("4.9746"),
}


class CurrencyRateMap:
    """Year -> conversion rate (native units per converted unit).

    Sparse: a year missing from the map converts at rate 1.
    """

    def __init__(self, rates: Optional[Mapping[int, Decimal | float]] = None) -> None:
        source = DEFAULT_EUR_RON_RATES if rates is None else rates
        self._rates: dict[int, float] = {}
        for year, rate in source.items():
            value = float(rate)
            if value <= 0:
                raise ValueError(f"Conversion rate for {year} must be positive")
            self._rates[int(year)] = value

    def rate_for_year(self, year: Optional[int]) -> float:
        if year is None:
            return 1.0
        return self._rates.get(int(year), 1.0)

    def convert(self, amount: float, year: Optional[int]) -> float:
        return amount / self.rate_for_year(year)


def parse_rate_file(path: Path) -> dict[int, Decimal]:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise RuntimeError(f"Failed to read currency rates from {path}") from exc
    if not isinstance(payload, dict):
        raise RuntimeError("Currency rate file must map years to rates")

    rates: dict[int, Decimal] = {}
    for year, rate in payload.items():
        try:
            rates[int(year)] = Decimal(str(rate))
        except (ValueError, InvalidOperation) as exc:
            raise RuntimeError(f"Invalid currency rate entry {year!r}: {rate!r}") from exc
    return rates


@lru_cache(maxsize=1)
def get_rate_map() -> CurrencyRateMap:
    settings = get_settings()
    rates = dict(DEFAULT_EUR_RON_RATES)
    if settings.fx_rates_path:
        overrides = parse_rate_file(Path(settings.fx_rates_path))
        rates.update(overrides)
        logger.info(
            f"fx_rates_loaded: path={settings.fx_rates_path} overrides={len(overrides)}"
        )
    return CurrencyRateMap(rates)

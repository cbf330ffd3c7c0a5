"""Population denominators for per-capita normalization.

Population comes from the UAT table. A county's own aggregate row (SIRUTA
code equal to the county code, or SIRUTA 179132 for Bucharest) carries the
whole-county figure, so county totals prefer that row over summing localities,
which would double count.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Union

from sqlalchemy import and_, case, func, select
from sqlalchemy.orm import Session

from filters import entity_uat_join
from models import COUNTY_COUNCIL_ENTITY_TYPE, UAT, Entity
from schemas import AnalyticsFilter

logger = logging.getLogger(__name__)

BUCHAREST_COUNTY_CODE = "B"
BUCHAREST_SIRUTA_CODE = "179132"


@dataclass(frozen=True)
class UatScope:
    uat_id: int
    county_code: str
    population: int


@dataclass(frozen=True)
class CountyScope:
    county_code: str


@dataclass(frozen=True)
class CountryScope:
    pass


PopulationScope = Union[UatScope, CountyScope, CountryScope]


def has_entity_scope(filter: AnalyticsFilter) -> bool:
    return bool(
        filter.entity_cuis
        or filter.uat_ids
        or filter.county_codes
        or filter.is_uat is not None
        or filter.entity_types
    )


def classify_entity(
    *,
    is_uat: bool,
    entity_type: Optional[str],
    uat_id: Optional[int],
    county_code: Optional[str],
    population: Optional[int],
) -> Optional[PopulationScope]:
    """Map one resolved entity to its scope; None means it cannot be located.

    UATs and county councils without a territorial-unit row contribute nothing.
    Every other entity is country-scoped, even one mapped to a UAT.
    """
    if is_uat:
        if uat_id is None or county_code is None:
            return None
        return UatScope(uat_id=uat_id, county_code=county_code, population=population or 0)
    if entity_type == COUNTY_COUNCIL_ENTITY_TYPE:
        if county_code is None:
            return None
        return CountyScope(county_code=county_code)
    return CountryScope()


def combine_scopes(
    scopes: Iterable[Optional[PopulationScope]],
    *,
    country_population: int,
    county_populations: dict[str, int],
) -> int:
    uats: dict[int, UatScope] = {}
    counties: set[str] = set()
    for scope in scopes:
        if scope is None:
            continue
        if isinstance(scope, CountryScope):
            return country_population
        if isinstance(scope, CountyScope):
            counties.add(scope.county_code)
        elif isinstance(scope, UatScope):
            uats[scope.uat_id] = scope
        else:
            raise TypeError(f"Unknown population scope: {scope!r}")

    total = sum(county_populations.get(code, 0) for code in counties)
    total += sum(
        uat.population for uat in uats.values() if uat.county_code not in counties
    )
    return total


def _county_aggregate_population():
    return func.max(
        case(
            (
                and_(
                    UAT.county_code == BUCHAREST_COUNTY_CODE,
                    UAT.siruta_code == BUCHAREST_SIRUTA_CODE,
                ),
                UAT.population,
            ),
            (UAT.siruta_code == UAT.county_code, UAT.population),
            else_=0,
        )
    )


class PopulationService:
    def __init__(self, session: Session) -> None:
        self.session = session
        self._country_population: Optional[int] = None

    def county_populations(
        self, county_codes: Optional[Iterable[str]] = None
    ) -> dict[str, int]:
        population = func.coalesce(_county_aggregate_population(), 0).label(
            "population"
        )
        stmt = select(UAT.county_code, population).group_by(UAT.county_code)
        if county_codes is not None:
            codes = sorted(set(county_codes))
            if not codes:
                return {}
            stmt = stmt.where(UAT.county_code.in_(codes))
        rows = self.session.execute(stmt).all()
        return {row.county_code: int(row.population or 0) for row in rows}

    def country_population(self) -> int:
        if self._country_population is None:
            self._country_population = sum(self.county_populations().values())
        return self._country_population

    def entity_scopes(self, filter: AnalyticsFilter) -> list[Optional[PopulationScope]]:
        stmt = select(
            Entity.cui,
            Entity.is_uat,
            Entity.entity_type,
            UAT.id.label("uat_id"),
            UAT.county_code,
            UAT.population,
        ).outerjoin(UAT, entity_uat_join())
        if filter.entity_cuis:
            stmt = stmt.where(Entity.cui.in_(filter.entity_cuis))
        if filter.entity_types:
            stmt = stmt.where(Entity.entity_type.in_(filter.entity_types))
        if filter.is_uat is not None:
            stmt = stmt.where(Entity.is_uat == filter.is_uat)
        if filter.uat_ids:
            stmt = stmt.where(Entity.uat_id.in_(filter.uat_ids))
        if filter.county_codes:
            stmt = stmt.where(UAT.county_code.in_(filter.county_codes))

        return [
            classify_entity(
                is_uat=bool(row.is_uat),
                entity_type=row.entity_type,
                uat_id=row.uat_id,
                county_code=row.county_code,
                population=row.population,
            )
            for row in self.session.execute(stmt).all()
        ]

    def resolve(self, filter: AnalyticsFilter) -> int:
        if not has_entity_scope(filter):
            population = self.country_population()
            logger.info(f"population_denominator: scope=country value={population}")
            return population

        scopes = self.entity_scopes(filter)
        if any(isinstance(scope, CountryScope) for scope in scopes):
            population = self.country_population()
            logger.info(
                f"population_denominator: scope=country entities={len(scopes)} "
                f"value={population}"
            )
            return population

        county_codes = {
            scope.county_code for scope in scopes if isinstance(scope, CountyScope)
        }
        population = combine_scopes(
            scopes,
            country_population=0,
            county_populations=self.county_populations(county_codes),
        )
        logger.info(
            f"population_denominator: scope=entities entities={len(scopes)} "
            f"counties={len(county_codes)} value={population}"
        )
        return population

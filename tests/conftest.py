"""Shared fixtures: an in-memory store seeded with a small territorial dataset.

Counties: AB has an aggregate row of 60,000 and a city of 20,000; Bucharest
(county B, SIRUTA 179132) has 40,000. The national population is 100,000.
"""

from __future__ import annotations

from decimal import Decimal
from itertools import count

import pytest
from sqlalchemy.orm import Session

from cache import ResultCache
from database import Base, build_engine
from fx_rates import CurrencyRateMap
from models import (
    UAT,
    AccountCategory,
    EconomicClassification,
    Entity,
    ExecutionLineItem,
    FunctionalClassification,
)
from services import AnalyticsService

from helpers import (
    ALBA_COUNTY_COUNCIL_CUI,
    ALBA_IULIA_CUI,
    BUCHAREST_CUI,
    MINISTRY_CUI,
)

FUNCTIONAL = {
    "65.02.03": "Invatamant prescolar",
    "65.02.04": "Invatamant secundar",
    "66.02.06": "Spitale generale",
    "70.02.01": "Locuinte",
}
ECONOMIC = {
    "10.01.01": "Salarii de baza",
    "20.01.01": "Furnituri de birou",
    "71.01.01": "Constructii",
}


@pytest.fixture()
def session():
    engine = build_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    with Session(engine) as session:
        yield session


@pytest.fixture()
def territory(session: Session) -> Session:
    session.add_all(
        [
            UAT(
                id=1,
                uat_key="AB",
                uat_code=ALBA_COUNTY_COUNCIL_CUI,
                siruta_code="AB",
                name="Judetul Alba",
                county_code="AB",
                county_name="Alba",
                region="Centru",
                population=60000,
            ),
            UAT(
                id=2,
                uat_key="AB-1017",
                uat_code=ALBA_IULIA_CUI,
                siruta_code="1017",
                name="Municipiul Alba Iulia",
                county_code="AB",
                county_name="Alba",
                region="Centru",
                population=20000,
            ),
            UAT(
                id=3,
                uat_key="B-179132",
                uat_code=BUCHAREST_CUI,
                siruta_code="179132",
                name="Municipiul Bucuresti",
                county_code="B",
                county_name="Bucuresti",
                region="Bucuresti-Ilfov",
                population=40000,
            ),
        ]
    )
    session.add_all(
        [
            Entity(
                cui=ALBA_IULIA_CUI,
                name="Primaria Alba Iulia",
                uat_id=2,
                entity_type="admin_municipality_hall",
                is_uat=True,
            ),
            Entity(
                cui=BUCHAREST_CUI,
                name="Primaria Municipiului Bucuresti",
                uat_id=3,
                entity_type="admin_municipality_hall",
                is_uat=True,
            ),
            Entity(
                cui=ALBA_COUNTY_COUNCIL_CUI,
                name="Consiliul Judetean Alba",
                uat_id=1,
                entity_type="admin_county_council",
                is_uat=False,
            ),
            Entity(
                cui=MINISTRY_CUI,
                name="Ministerul Educatiei",
                entity_type="ministry",
                is_uat=False,
            ),
        ]
    )
    session.add_all(
        FunctionalClassification(functional_code=code, functional_name=name)
        for code, name in FUNCTIONAL.items()
    )
    session.add_all(
        EconomicClassification(economic_code=code, economic_name=name)
        for code, name in ECONOMIC.items()
    )
    session.flush()
    return session


@pytest.fixture()
def add_line_item(session: Session):
    ids = count(1)

    def _add(
        entity_cui: str,
        functional_code: str,
        economic_code: str | None,
        amount: str,
        *,
        year: int = 2023,
        month: int = 12,
        quarter: int | None = 4,
        account_category: AccountCategory = AccountCategory.expense,
        monthly_amount: str | None = None,
        quarterly_amount: str | None = None,
        is_yearly: bool = True,
        is_quarterly: bool = False,
        **extra,
    ) -> ExecutionLineItem:
        item = ExecutionLineItem(
            line_item_id=next(ids),
            year=year,
            month=month,
            quarter=quarter,
            report_id=f"{entity_cui}-{year}-{month:02d}",
            report_type="Executie bugetara agregata la nivel de ordonator principal",
            entity_cui=entity_cui,
            budget_sector_id=1,
            funding_source_id=1,
            functional_code=functional_code,
            economic_code=economic_code,
            account_category=account_category,
            ytd_amount=Decimal(amount),
            monthly_amount=Decimal(monthly_amount or "0"),
            quarterly_amount=Decimal(quarterly_amount) if quarterly_amount else None,
            is_yearly=is_yearly,
            is_quarterly=is_quarterly,
            **extra,
        )
        session.add(item)
        session.flush()
        return item

    return _add


@pytest.fixture()
def seeded(territory: Session, add_line_item) -> Session:
    """2023 yearly expenses: five classification pairs totalling 6,100."""
    add_line_item(ALBA_IULIA_CUI, "65.02.03", "10.01.01", "1000.00")
    add_line_item(ALBA_IULIA_CUI, "65.02.04", "20.01.01", "500.00")
    add_line_item(BUCHAREST_CUI, "65.02.03", "10.01.01", "2000.00")
    add_line_item(BUCHAREST_CUI, "66.02.06", "10.01.01", "1500.00")
    add_line_item(ALBA_COUNTY_COUNCIL_CUI, "70.02.01", "71.01.01", "800.00")
    add_line_item(MINISTRY_CUI, "65.02.04", None, "300.00")
    add_line_item(ALBA_IULIA_CUI, "65.02.03", "10.01.01", "900.00", year=2022)
    add_line_item(
        ALBA_IULIA_CUI,
        "65.02.03",
        "10.01.01",
        "10000.00",
        account_category=AccountCategory.revenue,
    )
    return territory


@pytest.fixture()
def result_cache() -> ResultCache:
    return ResultCache(max_items=100, max_bytes=1024 * 1024)


@pytest.fixture()
def service(seeded: Session, result_cache: ResultCache) -> AnalyticsService:
    return AnalyticsService(seeded, cache=result_cache, rates=CurrencyRateMap())

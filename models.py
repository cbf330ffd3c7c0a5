from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base


class AccountCategory(str, Enum):
    expense = "expense"
    revenue = "revenue"


class ExpenseType(str, Enum):
    development = "development"
    operational = "operational"


class PeriodType(str, Enum):
    year = "YEAR"
    month = "MONTH"
    quarter = "QUARTER"


class Normalization(str, Enum):
    total = "total"
    total_currency = "total_currency"
    per_capita = "per_capita"
    per_capita_currency = "per_capita_currency"

    @classmethod
    def _missing_(cls, value):
        aliases = {
            "total_euro": cls.total_currency,
            "per_capita_euro": cls.per_capita_currency,
        }
        if isinstance(value, str):
            return aliases.get(value.lower())
        return None


class ClassificationDimension(str, Enum):
    functional = "fn"
    economic = "ec"


class RootDepth(str, Enum):
    chapter = "chapter"
    subchapter = "subchapter"
    paragraph = "paragraph"


# Entity type whose population is the whole county rather than one locality.
COUNTY_COUNCIL_ENTITY_TYPE = "admin_county_council"

# Bucket for line items that carry no economic classification.
UNKNOWN_ECONOMIC_CODE = "00.00.00"
UNKNOWN_ECONOMIC_NAME = "Unknown economic classification"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


ACCOUNT_CATEGORY_ENUM = SAEnum(
    AccountCategory, name="accountcategory", values_callable=_enum_values
)
EXPENSE_TYPE_ENUM = SAEnum(ExpenseType, name="expensetype", values_callable=_enum_values)


class TimestampMixin:
    last_updated: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class UAT(Base, TimestampMixin):
    __tablename__ = "uats"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    uat_key: Mapped[str] = mapped_column(String(35), nullable=False)
    uat_code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    siruta_code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    county_code: Mapped[str] = mapped_column(String(2), nullable=False)
    county_name: Mapped[str] = mapped_column(String(50), nullable=False)
    region: Mapped[str] = mapped_column(String(50), nullable=False)
    population: Mapped[Optional[int]] = mapped_column(Integer)

    entities: Mapped[list["Entity"]] = relationship("Entity", back_populates="uat")

    __table_args__ = (
        CheckConstraint("population >= 0", name="ck_uat_population_non_negative"),
        Index("ix_uats_county_code", "county_code"),
    )


class Entity(Base, TimestampMixin):
    __tablename__ = "entities"

    cui: Mapped[str] = mapped_column(String(20), primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    uat_id: Mapped[Optional[int]] = mapped_column(ForeignKey("uats.id"))
    address: Mapped[Optional[str]] = mapped_column(Text)
    entity_type: Mapped[Optional[str]] = mapped_column(String(50))
    is_uat: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    uat: Mapped[Optional[UAT]] = relationship("UAT", back_populates="entities")


class FunctionalClassification(Base):
    __tablename__ = "functional_classifications"

    functional_code: Mapped[str] = mapped_column(String(20), primary_key=True)
    functional_name: Mapped[str] = mapped_column(Text, nullable=False)


class EconomicClassification(Base):
    __tablename__ = "economic_classifications"

    economic_code: Mapped[str] = mapped_column(String(20), primary_key=True)
    economic_name: Mapped[str] = mapped_column(Text, nullable=False)


class ExecutionLineItem(Base):
    __tablename__ = "execution_line_items"

    line_item_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    quarter: Mapped[Optional[int]] = mapped_column(Integer)
    report_id: Mapped[str] = mapped_column(String(64), nullable=False)
    report_type: Mapped[str] = mapped_column(String(80), nullable=False)
    entity_cui: Mapped[str] = mapped_column(
        ForeignKey("entities.cui"), nullable=False
    )
    main_creditor_cui: Mapped[Optional[str]] = mapped_column(String(20))
    budget_sector_id: Mapped[int] = mapped_column(Integer, nullable=False)
    funding_source_id: Mapped[int] = mapped_column(Integer, nullable=False)
    functional_code: Mapped[str] = mapped_column(
        ForeignKey("functional_classifications.functional_code"), nullable=False
    )
    economic_code: Mapped[Optional[str]] = mapped_column(
        ForeignKey("economic_classifications.economic_code")
    )
    account_category: Mapped[AccountCategory] = mapped_column(
        ACCOUNT_CATEGORY_ENUM, nullable=False
    )
    program_code: Mapped[Optional[str]] = mapped_column(String(50))
    expense_type: Mapped[Optional[ExpenseType]] = mapped_column(EXPENSE_TYPE_ENUM)
    ytd_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    monthly_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    quarterly_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 2))
    is_yearly: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_quarterly: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    entity: Mapped[Entity] = relationship("Entity")

    __table_args__ = (
        CheckConstraint("year BETWEEN 2000 AND 2100", name="ck_eli_year"),
        CheckConstraint("month BETWEEN 1 AND 12", name="ck_eli_month"),
        CheckConstraint(
            "quarter IS NULL OR quarter BETWEEN 1 AND 4", name="ck_eli_quarter"
        ),
        # Bucket flags lead so the yearly/quarterly filters can use the prefix.
        Index("ix_eli_yearly_year_category", "is_yearly", "year", "account_category"),
        Index(
            "ix_eli_quarterly_year_quarter", "is_quarterly", "year", "quarter"
        ),
        Index("ix_eli_entity_cui", "entity_cui"),
        Index("ix_eli_functional_code", "functional_code"),
    )

# File: warehouse/facts.py

"""
Single-pass build of fact_premiums from stg_insurance rows.

Every raw record either becomes one complete fact row (all five dimension keys
resolved) or is rejected with a reason; there is no partially keyed row and no
second pass that patches keys afterwards. The staging identifier travels with
the record, so a fact row is always traceable to exactly one staging row.
"""

import math
from collections import Counter, namedtuple
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from warehouse.dimensions import (
    SMOKER_VALUES,
    age_group_dimension,
    bmi_category_dimension,
    build_lookup_dimension,
    classify,
)
from warehouse.errors import (
    DanglingReferenceError,
    NullFieldError,
    OutOfRangeError,
    RecordRejectedError,
)

CENTS = Decimal("0.01")

# order in which NULLs are reported when a row has several
REQUIRED_FIELDS = ("age", "sex", "bmi", "children", "smoker", "region", "charges")

# fact column → dimension attribute / table
KEY_COLUMNS = {
    "age_group_id": ("age_group",    "dim_age_group"),
    "bmi_cat_id":   ("bmi_category", "dim_bmi_category"),
    "region_id":    ("region",       "dim_region"),
    "smoker_id":    ("smoker",       "dim_smoker"),
    "sex_id":       ("sex",          "dim_sex"),
}

StarDimensions = namedtuple(
    "StarDimensions", ["age_group", "bmi_category", "region", "smoker", "sex"]
)


# ───────────── Records ───────────────────────────────────────────────────────────
class RawRecord(BaseModel):
    """One stg_insurance row; any attribute may be NULL."""

    model_config = ConfigDict(frozen=True)

    record_id: int
    age: Optional[int] = None
    sex: Optional[str] = None
    bmi: Optional[Decimal] = None
    children: Optional[int] = None
    smoker: Optional[str] = None
    region: Optional[str] = None
    charges: Optional[Decimal] = None

    @field_validator("age", "sex", "bmi", "children", "smoker", "region", "charges", mode="before")
    @classmethod
    def nan_is_null(cls, v):
        if isinstance(v, float) and math.isnan(v):
            return None
        return v

    @field_validator("bmi", "charges", mode="before")
    @classmethod
    def two_decimals(cls, v):
        """Store bmi/charges the way NUMERIC(…, 2) columns do."""
        if v is None:
            return None
        try:
            value = Decimal(str(v))
            if value.is_nan():
                return None
            return value.quantize(CENTS, rounding=ROUND_HALF_UP)
        except InvalidOperation:
            raise ValueError(f"not a decimal number: {v!r}") from None


class FactRecord(BaseModel):
    """One fact_premiums row: five mandatory keys plus the retained measures."""

    model_config = ConfigDict(frozen=True)

    record_id: int
    age_group_id: int
    bmi_cat_id: int
    region_id: int
    smoker_id: int
    sex_id: int
    age: int
    bmi: Decimal
    children: int
    charges: Decimal

    def measures(self):
        return self.age, self.bmi, self.children, self.charges


class Rejection(BaseModel):
    record_id: int
    error: str
    field: str
    value: Optional[str] = None
    message: str


class LoadReport(BaseModel):
    """Counters for one build: accepted vs rejected, reasons, table sizes."""

    total: int = 0
    accepted: int = 0
    rejections: list[Rejection] = Field(default_factory=list)
    table_counts: dict[str, int] = Field(default_factory=dict)
    integrity_verified: bool = False

    @property
    def rejected(self) -> int:
        return len(self.rejections)

    def reasons(self) -> Counter:
        return Counter((r.error, r.field) for r in self.rejections)

    def reject(self, record: RawRecord, exc: RecordRejectedError) -> None:
        self.rejections.append(
            Rejection(
                record_id=record.record_id,
                error=type(exc).__name__,
                field=exc.field,
                value=None if exc.value is None else str(exc.value),
                message=str(exc),
            )
        )


class FactTable(BaseModel):
    facts: list[FactRecord]
    report: LoadReport


# ───────────── Dimensions ────────────────────────────────────────────────────────
def build_dimensions(raw_records, age_group=None, bmi_category=None) -> StarDimensions:
    """Fixed bucket tables plus lookup tables discovered from the raw rows."""
    raw_records = list(raw_records)
    return StarDimensions(
        age_group=age_group or age_group_dimension(),
        bmi_category=bmi_category or bmi_category_dimension(),
        region=build_lookup_dimension((r.region for r in raw_records), field="region"),
        smoker=build_lookup_dimension(
            (r.smoker for r in raw_records), field="smoker", allowed=SMOKER_VALUES
        ),
        sex=build_lookup_dimension((r.sex for r in raw_records), field="sex"),
    )


# ───────────── Facts ─────────────────────────────────────────────────────────────
def to_fact(record: RawRecord, dims: StarDimensions) -> FactRecord:
    """Resolve all five keys for one record or raise a RecordRejectedError."""
    for name in REQUIRED_FIELDS:
        if getattr(record, name) is None:
            raise NullFieldError(name)
    if record.children < 0:
        raise OutOfRangeError("children", record.children, f"children={record.children} is negative")
    if record.charges < 0:
        raise OutOfRangeError("charges", record.charges, f"charges={record.charges} is negative")

    return FactRecord(
        record_id=record.record_id,
        age_group_id=classify(record.age, dims.age_group),
        bmi_cat_id=classify(record.bmi, dims.bmi_category),
        region_id=dims.region.key_for(record.region),
        smoker_id=dims.smoker.key_for(record.smoker),
        sex_id=dims.sex.key_for(record.sex),
        age=record.age,
        bmi=record.bmi,
        children=record.children,
        charges=record.charges,
    )


def verify_integrity(facts, dims: StarDimensions) -> None:
    """Raise DanglingReferenceError if any fact key is NULL or missing from its dimension."""
    for fact in facts:
        for column, (attr, table) in KEY_COLUMNS.items():
            key = getattr(fact, column)
            if key is None or key not in getattr(dims, attr):
                raise DanglingReferenceError(
                    f"fact for record {fact.record_id}: {column}={key} has no row in {table}"
                )


def build_fact_table(raw_records, dims: StarDimensions) -> FactTable:
    facts = []
    report = LoadReport()
    for record in raw_records:
        report.total += 1
        try:
            facts.append(to_fact(record, dims))
        except RecordRejectedError as exc:
            report.reject(record, exc)
    report.accepted = len(facts)

    verify_integrity(facts, dims)
    report.integrity_verified = True

    report.table_counts = {
        "dim_age_group":    len(dims.age_group),
        "dim_bmi_category": len(dims.bmi_category),
        "dim_region":       len(dims.region),
        "dim_smoker":       len(dims.smoker),
        "dim_sex":          len(dims.sex),
        "fact_premiums":    len(facts),
    }
    return FactTable(facts=facts, report=report)

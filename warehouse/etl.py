#!/usr/bin/env python3

"""
etl.py

Usage:
  # Create stage.stg_insurance and the star_schema tables
  python -m warehouse.etl init

  # Full rebuild of the star schema from stage.stg_insurance
  python -m warehouse.etl full

A run always rebuilds every dimension and fact_premiums from scratch:

  1. the fixed bucket tables (age groups, BMI categories) are validated,
  2. stg_insurance is read once, ordered by stg_id,
  3. dimensions and facts are built in memory in a single pass per row,
  4. inside ONE transaction the old star rows are deleted, the new ones inserted
     and the foreign keys checked with SQL (NULL keys, dangling keys, row counts).

If step 4 finds any problem the transaction is rolled back and the previous
star schema stays as it was. Rows that cannot become facts (NULL fields, values
outside every bucket, unknown lookup values) are skipped and listed in the
summary printed at the end.
"""

import sys
import datetime

import pandas as pd
import pytz
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError

from data_sources.rdbms import get_engine
from warehouse.create_staging import RAW_COLUMNS, create_staging, stg_insurance
from warehouse.create_star_schema import (
    DIMENSION_TABLES,
    FACT_KEYS,
    create_star_schema,
    dim_age_group,
    dim_bmi_category,
    dim_region,
    dim_sex,
    dim_smoker,
    fact_premiums,
)
from warehouse.dimensions import age_group_dimension, bmi_category_dimension
from warehouse.errors import DanglingReferenceError
from warehouse.facts import RawRecord, build_dimensions, build_fact_table


def create_tables(engine) -> None:
    create_staging(engine)
    create_star_schema(engine)


# ───────────── Extract ───────────────────────────────────────────────────────────
def read_staging(engine) -> list:
    with engine.connect() as conn:
        rows = conn.execute(
            select(stg_insurance).order_by(stg_insurance.c.stg_id)
        ).mappings()
        return [
            RawRecord(record_id=row["stg_id"], **{col: row[col] for col in RAW_COLUMNS})
            for row in rows
        ]


# ───────────── Load ──────────────────────────────────────────────────────────────
def clear_star_schema(conn) -> None:
    # fact first, then dimensions (FKs are ON DELETE RESTRICT)
    conn.execute(fact_premiums.delete())
    for table in reversed(DIMENSION_TABLES):
        conn.execute(table.delete())


def dimension_rows(dims) -> dict:
    return {
        dim_age_group: [
            {"age_group_id": b.key, "age_min": b.min, "age_max": b.max, "label": b.label}
            for b in dims.age_group
        ],
        dim_bmi_category: [
            {"bmi_cat_id": b.key, "bmi_min": b.min, "bmi_max": b.max, "label": b.label}
            for b in dims.bmi_category
        ],
        dim_region: [{"region_id": k, "region": v} for k, v in dims.region],
        dim_smoker: [{"smoker_id": k, "smoker": v} for k, v in dims.smoker],
        dim_sex:    [{"sex_id": k, "sex": v} for k, v in dims.sex],
    }


def fact_rows(facts) -> list:
    return [
        {"stg_id": f.record_id, **f.model_dump(exclude={"record_id"})}
        for f in facts
    ]


def write_star_schema(conn, dims, facts) -> None:
    for table, rows in dimension_rows(dims).items():
        if rows:
            conn.execute(table.insert(), rows)
        print(f"   • loaded {table.name} ({len(rows)} rows)")

    rows = fact_rows(facts)
    if rows:
        conn.execute(fact_premiums.insert(), rows)
    print(f"   • loaded {fact_premiums.name} ({len(rows)} rows)")


# ───────────── Diagnostics ───────────────────────────────────────────────────────
def table_row_counts(conn) -> dict:
    counts = {}
    for table in [stg_insurance, *DIMENSION_TABLES, fact_premiums]:
        counts[table.name] = conn.execute(
            select(func.count()).select_from(table)
        ).scalar_one()
    return counts


def null_key_count(conn) -> int:
    return conn.execute(
        select(func.count())
        .select_from(fact_premiums)
        .where(or_(*[fact_premiums.c[col].is_(None) for col in FACT_KEYS]))
    ).scalar_one()


def dangling_key_counts(conn) -> dict:
    counts = {}
    for col, (dim, key) in FACT_KEYS.items():
        fk, pk = fact_premiums.c[col], dim.c[key]
        counts[col] = conn.execute(
            select(func.count())
            .select_from(fact_premiums.outerjoin(dim, fk == pk))
            .where(fk.is_not(None), pk.is_(None))
        ).scalar_one()
    return counts


def measure_ranges(conn) -> dict:
    f = fact_premiums.c
    return dict(conn.execute(
        select(
            func.min(f.age).label("min_age"),         func.max(f.age).label("max_age"),
            func.min(f.bmi).label("min_bmi"),         func.max(f.bmi).label("max_bmi"),
            func.min(f.charges).label("min_charges"), func.max(f.charges).label("max_charges"),
        )
    ).mappings().one())


def check_integrity(conn, expected_facts: int) -> dict:
    """Run the post-load checks; raise DanglingReferenceError on any violation."""
    nulls = null_key_count(conn)
    if nulls:
        raise DanglingReferenceError(f"{nulls} fact_premiums row(s) have a NULL dimension key")

    dangling = {col: n for col, n in dangling_key_counts(conn).items() if n}
    if dangling:
        detail = ", ".join(f"{col}: {n}" for col, n in dangling.items())
        raise DanglingReferenceError(f"fact_premiums references missing dimension rows ({detail})")

    counts = table_row_counts(conn)
    if counts["fact_premiums"] != expected_facts:
        raise DanglingReferenceError(
            f"fact_premiums holds {counts['fact_premiums']} rows, expected {expected_facts}"
        )
    return counts


# ───────────── Summary ───────────────────────────────────────────────────────────
def summary_frames(report):
    counts = pd.DataFrame(
        [{"table": name, "rows": n} for name, n in report.table_counts.items()]
    )
    reasons = pd.DataFrame(
        [{"error": error, "field": field, "rows": n}
         for (error, field), n in sorted(report.reasons().items())],
        columns=["error", "field", "rows"],
    )
    return counts, reasons


def print_summary(report, ranges=None, sample: int = 10) -> None:
    counts, reasons = summary_frames(report)
    print(f"   • accepted {report.accepted} / rejected {report.rejected} "
          f"of {report.total} staging rows\n")
    print(counts.to_markdown(index=False))
    if report.rejected:
        print("\nRejected rows by reason:\n")
        print(reasons.to_markdown(index=False))
        print(f"\nFirst {min(sample, report.rejected)} rejected rows:")
        for r in report.rejections[:sample]:
            print(f"   ✗ stg_id={r.record_id}: {r.error} – {r.message}")
    if ranges:
        print("\nMeasure ranges:\n")
        print(pd.DataFrame([ranges]).to_markdown(index=False))


# ───────────── Runner ────────────────────────────────────────────────────────────
def run_full_load(engine=None):
    engine = engine if engine is not None else get_engine()
    print(f"[{datetime.datetime.now(pytz.UTC)}] ▶️  Starting FULL star-schema load\n")

    # 1) Bucket tables must be sound before any data is touched
    age_dim = age_group_dimension()
    bmi_dim = bmi_category_dimension()
    print(f"   • validated bucket tables ({len(age_dim)} age groups, {len(bmi_dim)} BMI categories)")

    # 2) Extract
    create_tables(engine)
    raw_records = read_staging(engine)
    print(f"   • read {len(raw_records)} rows from stg_insurance")

    # 3) Transform (single pass, integrity checked in memory)
    dims = build_dimensions(raw_records, age_group=age_dim, bmi_category=bmi_dim)
    fact_table = build_fact_table(raw_records, dims)
    report = fact_table.report
    print(f"   • built {report.accepted} fact rows, rejected {report.rejected}\n")

    # 4) Load + verify atomically
    with engine.begin() as conn:
        clear_star_schema(conn)
        print("   • cleared star_schema tables")
        try:
            write_star_schema(conn, dims, fact_table.facts)
        except IntegrityError as exc:
            raise DanglingReferenceError(f"database rejected a fact row: {exc.orig}") from exc
        report.table_counts = check_integrity(conn, len(fact_table.facts))
        ranges = measure_ranges(conn)
    print("   • integrity verified: no NULL or dangling dimension keys\n")

    print_summary(report, ranges)
    print(f"\n[{datetime.datetime.now(pytz.UTC)}] ✅ FULL load complete.\n")
    return report


if __name__ == "__main__":
    if len(sys.argv) < 2 or sys.argv[1] not in ("init", "full"):
        print(__doc__)
        sys.exit(1)

    if sys.argv[1] == "init":
        create_tables(get_engine(echo=True))
        print("✅ stg_insurance and star_schema tables created.")
    else:
        run_full_load()

#!/usr/bin/env python3
# insurance_report.py

"""
Read-only reports over the insurance star schema.

Every query joins fact_premiums to its dimensions on NOT NULL keys, so no
null-guards on the join columns are needed. Averages are rounded to cents and
come with the group size `n`.

Usage:
  python -m presentation.insurance_report
"""

import pandas as pd
from sqlalchemy import desc, func, select

from data_sources.rdbms import get_engine
from warehouse.create_star_schema import (
    dim_age_group,
    dim_bmi_category,
    dim_region,
    dim_sex,
    dim_smoker,
    fact_premiums as f,
)

AVG_CHARGES = func.round(func.avg(f.c.charges), 2).label("avg_charges")
N = func.count().label("n")


def _query(engine, stmt) -> pd.DataFrame:
    with engine.connect() as conn:
        return pd.read_sql_query(stmt, conn)


def sample_table(engine, table, limit: int = 5) -> pd.DataFrame:
    """Fetch up to `limit` rows from a star_schema table."""
    return _query(engine, select(table).limit(limit))


def avg_charges_by_smoker(engine) -> pd.DataFrame:
    stmt = (
        select(dim_smoker.c.smoker, AVG_CHARGES, N)
        .select_from(f.join(dim_smoker, dim_smoker.c.smoker_id == f.c.smoker_id))
        .where(f.c.charges.is_not(None))
        .group_by(dim_smoker.c.smoker)
        .order_by(desc("avg_charges"))
    )
    return _query(engine, stmt)


def avg_charges_by_region(engine) -> pd.DataFrame:
    stmt = (
        select(dim_region.c.region, AVG_CHARGES, N)
        .select_from(f.join(dim_region, dim_region.c.region_id == f.c.region_id))
        .where(f.c.charges.is_not(None), f.c.charges >= 0)
        .group_by(dim_region.c.region)
        .order_by(desc("avg_charges"))
    )
    return _query(engine, stmt)


def avg_charges_by_bmi_and_smoker(engine) -> pd.DataFrame:
    bmi_label = dim_bmi_category.c.label.label("bmi_category")
    stmt = (
        select(bmi_label, dim_smoker.c.smoker, AVG_CHARGES, N)
        .select_from(
            f.join(dim_bmi_category, dim_bmi_category.c.bmi_cat_id == f.c.bmi_cat_id)
             .join(dim_smoker, dim_smoker.c.smoker_id == f.c.smoker_id)
        )
        .where(f.c.charges.is_not(None))
        .group_by(dim_bmi_category.c.label, dim_smoker.c.smoker)
        .order_by(dim_bmi_category.c.label, dim_smoker.c.smoker)
    )
    return _query(engine, stmt)


def avg_charges_by_children_and_smoker(engine) -> pd.DataFrame:
    stmt = (
        select(f.c.children, dim_smoker.c.smoker, AVG_CHARGES, N)
        .select_from(f.join(dim_smoker, dim_smoker.c.smoker_id == f.c.smoker_id))
        .where(f.c.children.is_not(None))
        .group_by(f.c.children, dim_smoker.c.smoker)
        .order_by(f.c.children, dim_smoker.c.smoker)
    )
    return _query(engine, stmt)


def avg_charges_by_age_group_and_bmi(engine) -> pd.DataFrame:
    stmt = (
        select(
            dim_age_group.c.label.label("age_group"),
            dim_bmi_category.c.label.label("bmi_category"),
            AVG_CHARGES,
            N,
        )
        .select_from(
            f.join(dim_age_group, dim_age_group.c.age_group_id == f.c.age_group_id)
             .join(dim_bmi_category, dim_bmi_category.c.bmi_cat_id == f.c.bmi_cat_id)
        )
        .where(f.c.charges.is_not(None), f.c.charges >= 0)
        .group_by(dim_age_group.c.label, dim_bmi_category.c.label)
        .order_by(dim_age_group.c.label, dim_bmi_category.c.label)
    )
    return _query(engine, stmt)


def top_charges(engine, limit: int = 10) -> pd.DataFrame:
    stmt = (
        select(
            f.c.charges, f.c.age, f.c.bmi, f.c.children,
            dim_smoker.c.smoker, dim_sex.c.sex, dim_region.c.region,
        )
        .select_from(
            f.join(dim_smoker, dim_smoker.c.smoker_id == f.c.smoker_id)
             .join(dim_sex, dim_sex.c.sex_id == f.c.sex_id)
             .join(dim_region, dim_region.c.region_id == f.c.region_id)
        )
        .where(f.c.charges.is_not(None), f.c.charges >= 0)
        .order_by(f.c.charges.desc())
        .limit(limit)
    )
    return _query(engine, stmt)


REPORTS = [
    ("Average charges by smoker", avg_charges_by_smoker),
    ("Average charges by region", avg_charges_by_region),
    ("Average charges by BMI category and smoker", avg_charges_by_bmi_and_smoker),
    ("Average charges by number of children and smoker", avg_charges_by_children_and_smoker),
    ("Average charges by age group and BMI category", avg_charges_by_age_group_and_bmi),
    ("Top 10 highest charges", top_charges),
]


def print_markdown(df: pd.DataFrame, title: str) -> None:
    """
    Print a DataFrame as a Markdown-style table.
    """
    print(f"\n## {title}\n")
    print(df.to_markdown(index=False))


def print_report(engine=None) -> None:
    engine = engine if engine is not None else get_engine()
    for title, query in REPORTS:
        print_markdown(query(engine), title)


if __name__ == "__main__":
    engine = get_engine()
    print_markdown(sample_table(engine, f), "Sample rows from star_schema.fact_premiums (Fact)")
    print_report(engine)

#!/usr/bin/env python3
# create_star_schema.py
# Five dimensions (age group, BMI category, region, smoker, sex) and fact_premiums.
# ────────────────────────────────────────────────────────────────────────────────

from sqlalchemy import (
    MetaData, Table, Column,
    BigInteger, Integer, Numeric, Text, ForeignKey
)

from data_sources.rdbms import STAR, ensure_schema, get_engine

# 1) Bind MetaData to the logical 'star_schema' schema
metadata = MetaData(schema=STAR)

# ────────────────────────────────────────────────────────────────────────────────

# 2) Dimension: Age Groups (bucket)
dim_age_group = Table(
    "dim_age_group", metadata,
    Column("age_group_id", Integer, primary_key=True, autoincrement=True),
    Column("age_min",      Integer, nullable=False),
    Column("age_max",      Integer, nullable=False),
    Column("label",        Text,    nullable=False, unique=True),
)

# 3) Dimension: BMI Category (bucket, NIH-style cutoffs)
dim_bmi_category = Table(
    "dim_bmi_category", metadata,
    Column("bmi_cat_id", Integer,       primary_key=True, autoincrement=True),
    Column("bmi_min",    Numeric(5, 2), nullable=False),
    Column("bmi_max",    Numeric(5, 2), nullable=False),
    Column("label",      Text,          nullable=False, unique=True),
)

# 4) Dimension: Region (lookup)
dim_region = Table(
    "dim_region", metadata,
    Column("region_id", Integer, primary_key=True, autoincrement=True),
    Column("region",    Text,    nullable=False, unique=True),
)

# 5) Dimension: Smoker (lookup)
dim_smoker = Table(
    "dim_smoker", metadata,
    Column("smoker_id", Integer, primary_key=True, autoincrement=True),
    Column("smoker",    Text,    nullable=False, unique=True),
)

# 6) Dimension: Sex (lookup)
dim_sex = Table(
    "dim_sex", metadata,
    Column("sex_id", Integer, primary_key=True, autoincrement=True),
    Column("sex",    Text,    nullable=False, unique=True),
)

# 7) Fact: Premiums
fact_premiums = Table(
    "fact_premiums", metadata,
    Column("fact_id", BigInteger().with_variant(Integer, "sqlite"),
           primary_key=True, autoincrement=True),
    Column("stg_id",  Integer, nullable=False, unique=True),

    # FK → dimensions, one index each
    Column("age_group_id", Integer,
           ForeignKey("star_schema.dim_age_group.age_group_id", ondelete="RESTRICT"),
           nullable=False, index=True),
    Column("bmi_cat_id", Integer,
           ForeignKey("star_schema.dim_bmi_category.bmi_cat_id", ondelete="RESTRICT"),
           nullable=False, index=True),
    Column("region_id", Integer,
           ForeignKey("star_schema.dim_region.region_id", ondelete="RESTRICT"),
           nullable=False, index=True),
    Column("smoker_id", Integer,
           ForeignKey("star_schema.dim_smoker.smoker_id", ondelete="RESTRICT"),
           nullable=False, index=True),
    Column("sex_id", Integer,
           ForeignKey("star_schema.dim_sex.sex_id", ondelete="RESTRICT"),
           nullable=False, index=True),

    # Original attributes and measures
    Column("age",      Integer),
    Column("bmi",      Numeric(5, 2)),
    Column("children", Integer),
    Column("charges",  Numeric(10, 2)),
)

# fact column → (dimension table, its key column)
FACT_KEYS = {
    "age_group_id": (dim_age_group,    "age_group_id"),
    "bmi_cat_id":   (dim_bmi_category, "bmi_cat_id"),
    "region_id":    (dim_region,       "region_id"),
    "smoker_id":    (dim_smoker,       "smoker_id"),
    "sex_id":       (dim_sex,          "sex_id"),
}

DIMENSION_TABLES = [dim_age_group, dim_bmi_category, dim_region, dim_smoker, dim_sex]


def create_star_schema(engine) -> None:
    ensure_schema(engine, STAR)
    metadata.create_all(engine)


# 8) Execute CREATE TABLE for all DDL above
if __name__ == "__main__":
    create_star_schema(get_engine(echo=True))
    print("✅ Star schema tables created (5 dimensions + fact_premiums).")

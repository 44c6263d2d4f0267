#!/usr/bin/env python3
# create_staging.py
# Flat landing table for the Kaggle "Medical Insurance Cost" dataset.
# ────────────────────────────────────────────────────────────────────────────────

from sqlalchemy import (
    MetaData, Table, Column,
    Integer, Numeric, Text
)

from data_sources.rdbms import STAGE, ensure_schema, get_engine

# 1) Bind MetaData to the logical 'stage' schema
metadata = MetaData(schema=STAGE)

# 2) stage.stg_insurance
#    stg_id is the explicit row identifier carried into fact_premiums
stg_insurance = Table(
    "stg_insurance", metadata,
    Column("stg_id",   Integer, primary_key=True, autoincrement=True),
    Column("age",      Integer),
    Column("sex",      Text),
    Column("bmi",      Numeric(5, 2)),
    Column("children", Integer),
    Column("smoker",   Text),
    Column("region",   Text),
    Column("charges",  Numeric(10, 2)),
)

RAW_COLUMNS = ["age", "sex", "bmi", "children", "smoker", "region", "charges"]


def create_staging(engine) -> None:
    ensure_schema(engine, STAGE)
    metadata.create_all(engine)


# 3) Issue CREATE TABLE for the staging table
if __name__ == "__main__":
    create_staging(get_engine(echo=True))
    print("✅ Staging table stg_insurance created.")

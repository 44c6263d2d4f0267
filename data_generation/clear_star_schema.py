#!/usr/bin/env python3
# clear_star_schema.py

"""
Drop every star_schema table (fact_premiums first, then the five dimensions).

Usage:
  python -m data_generation.clear_star_schema

stg_insurance is left alone; the next `python -m warehouse.etl full` recreates
the tables and rebuilds them from staging.
"""

from data_sources.rdbms import get_engine
from warehouse.create_star_schema import metadata


def drop_star_schema(engine=None) -> None:
    engine = engine if engine is not None else get_engine()
    # drop_all orders by FK dependency: fact table before dimensions
    metadata.drop_all(engine, checkfirst=True)


if __name__ == "__main__":
    drop_star_schema()
    print("✅ All star_schema tables have been dropped.")

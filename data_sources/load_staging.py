#!/usr/bin/env python3
# load_staging.py

"""
Load the Kaggle "Medical Insurance Cost" CSV into stage.stg_insurance.

Usage:
  python -m data_sources.load_staging [path/to/insurance.csv]

Source: https://www.kaggle.com/datasets/mosapabdelghany/medical-insurance-cost-dataset
The file must contain the columns age, sex, bmi, children, smoker, region, charges.
Existing staging rows are replaced in the same transaction.
"""

import sys

import pandas as pd

from data_sources.rdbms import get_engine
from warehouse import config
from warehouse.create_staging import RAW_COLUMNS, create_staging, stg_insurance


def read_csv(path) -> pd.DataFrame:
    df = pd.read_csv(path)
    df.columns = [c.strip().lower() for c in df.columns]

    missing = [c for c in RAW_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"{path}: missing column(s) {', '.join(missing)}")

    df = df[RAW_COLUMNS].copy()
    # match NUMERIC(5,2) / NUMERIC(10,2)
    df["bmi"] = df["bmi"].round(2)
    df["charges"] = df["charges"].round(2)
    for col in ("age", "children"):
        df[col] = df[col].astype("Int64")
    return df


def to_records(df: pd.DataFrame) -> list:
    """DataFrame rows as plain dicts, NaN/NA turned into None."""
    clean = df.astype(object).where(df.notna(), None)
    return [
        {col: (int(v) if col in ("age", "children") and v is not None else v)
         for col, v in row.items()}
        for row in clean.to_dict(orient="records")
    ]


def load_csv(path, engine=None) -> int:
    engine = engine if engine is not None else get_engine()
    df = read_csv(path)
    print(f"📥 Read {len(df)} rows from {path}")

    create_staging(engine)
    rows = to_records(df)
    with engine.begin() as conn:
        conn.execute(stg_insurance.delete())
        if rows:
            conn.execute(stg_insurance.insert(), rows)
    print(f"✅ Loaded {len(rows)} rows into stg_insurance")
    return len(rows)


if __name__ == "__main__":
    load_csv(sys.argv[1] if len(sys.argv) > 1 else config.CSV_PATH)

#!/usr/bin/env python3
# populate_staging.py

"""
Seed stage.stg_insurance with synthetic rows for local runs without the Kaggle file.

Usage:
  python -m data_generation.populate_staging [row_count] [seed]

The distributions loosely follow the public dataset:
  - ages uniform over 18–64,
  - BMI ~ N(30.7, 6.1) clamped to 15.96–53.13,
  - about 20 % smokers,
  - 0–5 children, most households with none,
  - charges growing with age and children, jumping for smokers and again for
    obese smokers.
"""

import sys
from collections import OrderedDict

from faker import Faker
from tqdm import trange

from data_sources.rdbms import get_engine
from warehouse.create_staging import create_staging, stg_insurance

ROW_COUNT  = 1_338
BATCH_SIZE = 500

REGIONS = ("southeast", "southwest", "northwest", "northeast")
SEXES   = ("female", "male")

CHILDREN_WEIGHTS = OrderedDict([
    (0, 0.43),
    (1, 0.24),
    (2, 0.18),
    (3, 0.12),
    (4, 0.02),
    (5, 0.01),
])
SMOKER_SHARE = 0.205

MIN_CHARGES = 1_121.87


def charges_for(rng, age: int, bmi: float, children: int, smoker: str) -> float:
    base = 260 * age - 2_300 + 450 * children
    if smoker == "yes":
        base += 13_500
        if bmi >= 30:
            base += 19_500
    noise = rng.gauss(0, 2_500)
    return round(max(MIN_CHARGES, base + noise), 2)


def generate_rows(count: int, seed=None):
    """Yield `count` stg_insurance-shaped dicts; a seed makes the output repeatable."""
    fake = Faker()
    if seed is not None:
        fake.seed_instance(seed)
    rng = fake.random

    for _ in range(count):
        age      = rng.randint(18, 64)
        bmi      = round(min(max(rng.gauss(30.7, 6.1), 15.96), 53.13), 2)
        children = fake.random_element(elements=CHILDREN_WEIGHTS)
        smoker   = "yes" if rng.random() < SMOKER_SHARE else "no"
        yield {
            "age":      age,
            "sex":      fake.random_element(elements=SEXES),
            "bmi":      bmi,
            "children": children,
            "smoker":   smoker,
            "region":   fake.random_element(elements=REGIONS),
            "charges":  charges_for(rng, age, bmi, children, smoker),
        }


def populate_staging(engine=None, count: int = ROW_COUNT, seed=None, replace: bool = True) -> int:
    engine = engine if engine is not None else get_engine()
    create_staging(engine)

    rows = generate_rows(count, seed)
    inserted = 0
    with engine.begin() as conn:
        if replace:
            conn.execute(stg_insurance.delete())
        for _ in trange(0, count, BATCH_SIZE, desc="stg_insurance"):
            batch = [next(rows) for _ in range(min(BATCH_SIZE, count - inserted))]
            conn.execute(stg_insurance.insert(), batch)
            inserted += len(batch)
    return inserted


if __name__ == "__main__":
    count = int(sys.argv[1]) if len(sys.argv) > 1 else ROW_COUNT
    seed  = int(sys.argv[2]) if len(sys.argv) > 2 else None
    total = populate_staging(count=count, seed=seed)
    print(f"✅ Seeded stg_insurance with {total} synthetic rows!")

"""Shared test fixtures."""

import pytest

from data_sources.rdbms import get_engine
from warehouse.create_staging import create_staging, stg_insurance
from warehouse.facts import RawRecord

COLUMNS = ("age", "sex", "bmi", "children", "smoker", "region", "charges")

# first rows of the public dataset (charges rounded to cents)
SAMPLE_ROWS = [
    (19, "female", 27.90, 0, "yes", "southwest", 16884.92),
    (18, "male",   33.77, 1, "no",  "southeast", 1725.55),
    (28, "male",   33.00, 3, "no",  "southeast", 4449.46),
    (33, "male",   22.70, 0, "no",  "northwest", 21984.47),
    (32, "male",   28.88, 0, "no",  "northwest", 3866.86),
    (31, "female", 25.74, 0, "no",  "southeast", 3756.62),
    (46, "female", 33.44, 1, "no",  "southeast", 8240.59),
    (37, "female", 27.74, 3, "no",  "northwest", 7281.51),
    (60, "female", 25.84, 0, "no",  "northwest", 28923.14),
    (62, "female", 26.29, 0, "yes", "southeast", 27808.73),
]

# each one is rejected for a different reason
BAD_ROWS = [
    (-1, "male", 25.00, 0, "no",    "northeast", 1000.00),   # OutOfRangeError age
    (40, None,   25.00, 0, "no",    "northeast", 1000.00),   # NullFieldError sex
    (40, "male", 101.0, 0, "no",    "northeast", 1000.00),   # OutOfRangeError bmi
    (40, "male", 25.00, 0, "maybe", "northeast", 1000.00),   # UnknownMemberError smoker
]


def as_dicts(rows):
    return [dict(zip(COLUMNS, row)) for row in rows]


@pytest.fixture
def sample_rows():
    return as_dicts(SAMPLE_ROWS)


@pytest.fixture
def bad_rows():
    return as_dicts(BAD_ROWS)


@pytest.fixture
def make_record():
    """Factory for a valid RawRecord with selected fields overridden."""

    def _make(record_id: int = 1, **overrides) -> RawRecord:
        values = dict(zip(COLUMNS, SAMPLE_ROWS[1]))
        values.update(overrides)
        return RawRecord(record_id=record_id, **values)

    return _make


@pytest.fixture
def sample_records(sample_rows):
    return [RawRecord(record_id=i, **row) for i, row in enumerate(sample_rows, start=1)]


@pytest.fixture
def engine(tmp_path):
    """SQLite file database; the logical schemas map to no schema at all."""
    return get_engine(
        f"sqlite:///{tmp_path / 'warehouse.db'}", stage_schema=None, star_schema=None
    )


@pytest.fixture
def stage(engine):
    """Insert rows into stg_insurance; returns the engine."""

    def _stage(rows):
        create_staging(engine)
        with engine.begin() as conn:
            conn.execute(stg_insurance.delete())
            if rows:
                conn.execute(stg_insurance.insert(), rows)
        return engine

    return _stage


@pytest.fixture
def loaded_engine(stage, sample_rows):
    """Engine whose star schema was built from the sample rows."""
    from warehouse.etl import run_full_load

    engine = stage(sample_rows)
    run_full_load(engine)
    return engine

"""Tests for the database runner (SQLite-backed)."""

from collections import Counter
from pathlib import Path

import pytest
from sqlalchemy import inspect, select

from data_generation.clear_star_schema import drop_star_schema
from data_sources.load_staging import load_csv
from presentation.insurance_report import avg_charges_by_bmi_and_smoker, avg_charges_by_smoker
from warehouse import etl
from warehouse.create_star_schema import (
    FACT_KEYS,
    dim_region,
    dim_smoker,
    fact_premiums,
)
from warehouse.errors import ConfigurationError, DanglingReferenceError

REFERENCE_CSV = Path(__file__).resolve().parent.parent / "data_sources" / "insurance.csv"


def fact_measures(engine) -> Counter:
    f = fact_premiums.c
    with engine.connect() as conn:
        rows = conn.execute(select(f.stg_id, f.age, f.bmi, f.children, f.charges)).all()
    return Counter(tuple(row) for row in rows)


def star_counts(engine) -> dict:
    with engine.connect() as conn:
        return etl.table_row_counts(conn)


# ---------------------------------------------------------------------------
# Full load
# ---------------------------------------------------------------------------
def test_full_load_builds_every_table(stage, sample_rows) -> None:
    engine = stage(sample_rows)
    report = etl.run_full_load(engine)

    assert report.accepted == 10
    assert report.rejected == 0
    assert report.integrity_verified
    assert star_counts(engine) == {
        "stg_insurance": 10,
        "dim_age_group": 6,
        "dim_bmi_category": 4,
        "dim_region": 3,
        "dim_smoker": 2,
        "dim_sex": 2,
        "fact_premiums": 10,
    }
    assert report.table_counts == star_counts(engine)


def test_fact_rows_carry_staging_ids(loaded_engine) -> None:
    with loaded_engine.connect() as conn:
        ids = conn.execute(select(fact_premiums.c.stg_id).order_by(fact_premiums.c.stg_id)).scalars().all()
    assert ids == list(range(1, 11))


def test_no_null_or_dangling_keys(loaded_engine) -> None:
    with loaded_engine.connect() as conn:
        assert etl.null_key_count(conn) == 0
        assert etl.dangling_key_counts(conn) == {col: 0 for col in FACT_KEYS}


def test_rejected_rows_are_reported_not_loaded(stage, sample_rows, bad_rows, capsys) -> None:
    engine = stage(sample_rows + bad_rows)
    report = etl.run_full_load(engine)

    assert report.total == 14
    assert report.accepted == 10
    assert report.rejected == 4
    assert star_counts(engine)["fact_premiums"] == 10
    with engine.connect() as conn:
        ids = set(conn.execute(select(fact_premiums.c.stg_id)).scalars())
    assert ids.isdisjoint({11, 12, 13, 14})

    out = capsys.readouterr().out
    assert "accepted 10 / rejected 4 of 14 staging rows" in out
    assert "UnknownMemberError" in out


def test_rerun_is_a_full_rebuild(loaded_engine) -> None:
    before = fact_measures(loaded_engine)
    counts = star_counts(loaded_engine)

    etl.run_full_load(loaded_engine)

    assert fact_measures(loaded_engine) == before
    assert star_counts(loaded_engine) == counts


def test_lookup_members_compared_by_value(loaded_engine) -> None:
    with loaded_engine.connect() as conn:
        regions = set(conn.execute(select(dim_region.c.region)).scalars())
        smokers = set(conn.execute(select(dim_smoker.c.smoker)).scalars())
    assert regions == {"southwest", "southeast", "northwest"}
    assert smokers == {"yes", "no"}


def test_empty_staging(stage) -> None:
    engine = stage([])
    report = etl.run_full_load(engine)
    assert report.total == 0
    assert star_counts(engine)["fact_premiums"] == 0
    assert star_counts(engine)["dim_age_group"] == 6


def test_measure_ranges(loaded_engine) -> None:
    with loaded_engine.connect() as conn:
        ranges = etl.measure_ranges(conn)
    assert (ranges["min_age"], ranges["max_age"]) == (18, 62)
    assert float(ranges["max_charges"]) == pytest.approx(28923.14)


# ---------------------------------------------------------------------------
# Structural failures
# ---------------------------------------------------------------------------
def test_dangling_reference_rolls_back(loaded_engine, monkeypatch) -> None:
    before = fact_measures(loaded_engine)
    real_build = etl.build_fact_table

    def corrupt(raw_records, dims):
        table = real_build(raw_records, dims)
        table.facts[0] = table.facts[0].model_copy(update={"region_id": 999})
        return table

    monkeypatch.setattr(etl, "build_fact_table", corrupt)
    with pytest.raises(DanglingReferenceError, match="region_id"):
        etl.run_full_load(loaded_engine)

    assert fact_measures(loaded_engine) == before
    assert star_counts(loaded_engine)["dim_region"] == 3


def test_check_integrity_flags_dangling_rows(loaded_engine) -> None:
    with pytest.raises(DanglingReferenceError, match="smoker_id: 1"):
        with loaded_engine.begin() as conn:
            conn.execute(fact_premiums.update().where(fact_premiums.c.stg_id == 1).values(smoker_id=42))
            etl.check_integrity(conn, 10)
    assert fact_measures(loaded_engine)


def test_check_integrity_flags_row_count_mismatch(loaded_engine) -> None:
    with loaded_engine.connect() as conn:
        with pytest.raises(DanglingReferenceError, match="expected 11"):
            etl.check_integrity(conn, 11)


def test_bad_bucket_table_aborts_before_reading(stage, sample_rows, monkeypatch) -> None:
    engine = stage(sample_rows)
    monkeypatch.setattr(
        "warehouse.dimensions.AGE_GROUP_RANGES",
        [(18, 24, "18-24"), (26, 120, "26+")],
    )
    with pytest.raises(ConfigurationError, match="gap"):
        etl.run_full_load(engine)
    assert not inspect(engine).has_table("fact_premiums")


def test_drop_and_rebuild(loaded_engine) -> None:
    drop_star_schema(loaded_engine)
    assert not inspect(loaded_engine).has_table("fact_premiums")
    assert inspect(loaded_engine).has_table("stg_insurance")

    etl.run_full_load(loaded_engine)
    assert star_counts(loaded_engine)["fact_premiums"] == 10


# ---------------------------------------------------------------------------
# Reference dataset (only when the Kaggle CSV is available)
# ---------------------------------------------------------------------------
@pytest.mark.skipif(not REFERENCE_CSV.exists(), reason="data_sources/insurance.csv not present")
def test_reference_dataset(engine) -> None:
    assert load_csv(REFERENCE_CSV, engine) == 1338
    report = etl.run_full_load(engine)
    assert report.accepted == 1338
    assert report.rejected == 0

    by_smoker = avg_charges_by_smoker(engine).set_index("smoker")
    assert by_smoker.loc["no", "n"] == 1064
    assert by_smoker.loc["yes", "n"] == 274
    assert by_smoker.loc["no", "avg_charges"] == pytest.approx(8434.27, abs=0.01)
    assert by_smoker.loc["yes", "avg_charges"] == pytest.approx(32050.23, abs=0.01)

    by_bmi = avg_charges_by_bmi_and_smoker(engine).set_index(["bmi_category", "smoker"])
    assert by_bmi.loc[("Obese", "yes"), "n"] == 145
    assert by_bmi.loc[("Obese", "yes"), "avg_charges"] == pytest.approx(41557.99, abs=0.01)

"""Tests for the silver cleaning stage."""

from __future__ import annotations

import pandas as pd
import pytest

from layoff_pipeline.bronze import DataSourceError, ingest_records, records_to_frame
from layoff_pipeline.silver import clean_layoffs, load_silver, transform_bronze_to_silver


def test_clean_fills_missing_counts(raw_records) -> None:
    df = clean_layoffs(raw_records)

    assert df["total_laid_off"].tolist() == [100, 0, 40, 15]
    assert df["percentage_laid_off"].tolist() == [0.1, 0.0, 0.5, 0.0]
    assert df["total_laid_off"].notna().all()
    assert df["percentage_laid_off"].notna().all()
    assert (df["total_laid_off"] >= 0).all()


def test_clean_lowercases_industry(raw_records) -> None:
    df = clean_layoffs(raw_records)

    assert df["industry"].tolist() == ["retail", "retail", "finance", "finance"]


def test_clean_drops_time_component(raw_records) -> None:
    df = clean_layoffs(raw_records)

    assert df.loc[2, "date"] == pd.Timestamp("2023-01-20")
    assert pd.isna(df.loc[3, "date"])
    assert (df["date"].dropna() == df["date"].dropna().dt.normalize()).all()


def test_clean_keeps_every_row_and_leaves_unknown_funding(raw_records) -> None:
    df = clean_layoffs(raw_records)

    assert len(df) == len(raw_records)
    assert df["funds_raised"].isna().tolist() == [False, True, False, True]


def test_clean_does_not_mutate_input(raw_records) -> None:
    raw = records_to_frame(raw_records)
    before = raw.copy()

    clean_layoffs(raw)

    pd.testing.assert_frame_equal(raw, before)


def test_clean_is_idempotent(raw_records) -> None:
    once = clean_layoffs(raw_records)
    twice = clean_layoffs(once)

    pd.testing.assert_frame_equal(once, twice)


def test_clean_empty_input() -> None:
    df = clean_layoffs([])

    assert df.empty
    assert "total_laid_off" in df.columns


@pytest.mark.parametrize("bad_date", ["not a date", "2023-13-45"])
def test_clean_unparseable_date_becomes_null(make_record, bad_date) -> None:
    df = clean_layoffs([make_record(company="Acme", date=bad_date, total_laid_off=3)])

    assert pd.isna(df.loc[0, "date"])
    assert df.loc[0, "total_laid_off"] == 3


def test_transform_bronze_to_silver(tmp_path, raw_records) -> None:
    bronze_db = str(tmp_path / "bronze.db")
    silver_db = str(tmp_path / "silver.db")
    assert ingest_records(raw_records, bronze_db)

    assert transform_bronze_to_silver(bronze_db, silver_db) is True
    df = load_silver(silver_db)

    pd.testing.assert_frame_equal(df, clean_layoffs(raw_records), check_dtype=False)


def test_transform_bronze_to_silver_missing_bronze(tmp_path) -> None:
    assert transform_bronze_to_silver(str(tmp_path / "none.db"), str(tmp_path / "silver.db")) is False


def test_clean_keeps_local_date_of_offset_timestamps(make_record) -> None:
    df = clean_layoffs([
        make_record(company="Acme", date="2023-01-01", total_laid_off=1),
        make_record(company="Acme", date="2023-01-02T10:00:00+05:00", total_laid_off=2),
    ])

    assert df["date"].tolist() == [pd.Timestamp("2023-01-01"), pd.Timestamp("2023-01-02")]
    assert df["date"].dt.tz is None


def test_clean_frame_with_mixed_timezone_dates() -> None:
    raw = pd.DataFrame({
        "company": ["Acme", "Acme"],
        "location": [None, None],
        "industry": ["Retail", None],
        "total_laid_off": [1, None],
        "percentage_laid_off": [None, 0.2],
        "date": ["2023-01-01", "2023-01-02T23:30:00-03:00"],
        "stage": [None, None],
        "country": [None, None],
        "funds_raised": [None, None],
    })

    df = clean_layoffs(raw)

    assert df["date"].tolist() == [pd.Timestamp("2023-01-01"), pd.Timestamp("2023-01-02")]
    assert df["total_laid_off"].tolist() == [1, 0]


def test_clean_rejects_fractional_counts_in_frame(raw_records) -> None:
    raw = records_to_frame(raw_records)
    raw["total_laid_off"] = [10.7, None, 40.0, 15.0]

    with pytest.raises(DataSourceError):
        clean_layoffs(raw)


def test_clean_accepts_whole_float_counts_in_frame(raw_records) -> None:
    raw = records_to_frame(raw_records)
    raw["total_laid_off"] = [100.0, None, 40.0, 15.0]

    assert clean_layoffs(raw)["total_laid_off"].tolist() == [100, 0, 40, 15]

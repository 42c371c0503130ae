"""Tests for bronze ingestion."""

from __future__ import annotations

from pathlib import Path

import pandas as pd
import pytest

from layoff_pipeline.bronze import (
    LAYOFF_COLUMNS,
    DataSourceError,
    ingest_data,
    ingest_records,
    load_layoffs_csv,
    read_bronze,
    records_to_frame,
    validate_csv_structure,
)


def test_records_to_frame_uses_canonical_columns() -> None:
    df = records_to_frame([{"company": "Acme", "total_laid_off": 5, "unexpected": "x"}])

    assert list(df.columns) == LAYOFF_COLUMNS
    assert df.loc[0, "company"] == "Acme"
    assert df.loc[0, "total_laid_off"] == 5
    assert pd.isna(df.loc[0, "percentage_laid_off"])
    assert pd.isna(df.loc[0, "date"])


def test_records_to_frame_blank_text_becomes_null() -> None:
    df = records_to_frame([{"company": "Acme", "industry": "  "}])

    assert pd.isna(df.loc[0, "industry"])


def test_records_to_frame_rejects_non_numeric_counts() -> None:
    with pytest.raises(DataSourceError):
        records_to_frame([{"company": "Acme", "total_laid_off": "many"}])


def test_load_layoffs_csv_types(layoffs_csv) -> None:
    df = load_layoffs_csv(layoffs_csv)

    assert len(df) == 4
    assert str(df["total_laid_off"].dtype) == "Int64"
    assert df["total_laid_off"].isna().sum() == 1
    assert df["percentage_laid_off"].isna().sum() == 2
    assert df["funds_raised"].isna().sum() == 2
    assert pd.api.types.is_datetime64_any_dtype(df["date"])
    assert pd.isna(df.loc[3, "stage"])


def test_validate_csv_structure_reports_missing_columns(tmp_path) -> None:
    path = tmp_path / "bad.csv"
    path.write_text("company,location\nAcme,Berlin\n", encoding="utf-8")

    assert validate_csv_structure(str(path), LAYOFF_COLUMNS) is False
    assert validate_csv_structure(str(path), ["company"]) is True


def test_load_layoffs_csv_missing_file(tmp_path) -> None:
    with pytest.raises(DataSourceError):
        load_layoffs_csv(str(tmp_path / "nope.csv"))


def test_ingest_data_round_trip(tmp_path, layoffs_csv) -> None:
    db_file = str(tmp_path / "db" / "bronze.db")

    assert ingest_data(layoffs_csv, db_file) is True
    df = read_bronze(db_file)

    assert len(df) == 4
    assert df["company"].tolist() == ["Acme", "Acme", "Globex", "Initech"]
    assert df.loc[2, "date"] == pd.Timestamp("2023-01-20 14:30:00")


def test_ingest_data_is_a_full_refresh(tmp_path, layoffs_csv) -> None:
    db_file = str(tmp_path / "bronze.db")

    assert ingest_data(layoffs_csv, db_file)
    assert ingest_data(layoffs_csv, db_file)

    assert len(read_bronze(db_file)) == 4


def test_ingest_data_returns_false_for_bad_source(tmp_path) -> None:
    path = tmp_path / "bad.csv"
    path.write_text("company,location\nAcme,Berlin\n", encoding="utf-8")

    assert ingest_data(str(path), str(tmp_path / "bronze.db")) is False


def test_ingest_records(tmp_path, raw_records) -> None:
    db_file = str(tmp_path / "bronze.db")

    assert ingest_records(raw_records, db_file) is True
    assert len(read_bronze(db_file)) == len(raw_records)


def test_read_bronze_missing_database(tmp_path) -> None:
    with pytest.raises(DataSourceError):
        read_bronze(str(tmp_path / "missing.db"))


def test_records_to_frame_rejects_mixed_timezone_dates() -> None:
    with pytest.raises(DataSourceError):
        records_to_frame([
            {"company": "Acme", "date": "2023-01-01"},
            {"company": "Acme", "date": "2023-01-02T10:00:00+05:00"},
        ])


def test_ingest_data_returns_false_for_mixed_timezone_dates(tmp_path, layoffs_csv) -> None:
    path = tmp_path / "mixed.csv"
    lines = Path(layoffs_csv).read_text(encoding="utf-8").splitlines()
    lines[2] = lines[2].replace("2023-01-10", "2023-01-02T10:00:00+05:00")
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    db_file = tmp_path / "bronze.db"

    assert ingest_data(str(path), str(db_file)) is False
    assert not db_file.exists()


def test_ingest_records_returns_false_for_fractional_counts(tmp_path) -> None:
    records = [{"company": "Acme", "total_laid_off": 10.7}]

    assert ingest_records(records, str(tmp_path / "bronze.db")) is False

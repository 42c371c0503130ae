"""Shared fixtures for the layoff pipeline tests."""

from __future__ import annotations

import csv

import pytest

from layoff_pipeline.bronze import LAYOFF_COLUMNS


def _record(**overrides) -> dict:
    record = {column: None for column in LAYOFF_COLUMNS}
    record.update(overrides)
    return record


@pytest.fixture
def make_record():
    return _record


@pytest.fixture
def raw_records() -> list[dict]:
    return [
        _record(company="Acme", location="Berlin", industry="Retail", total_laid_off=100,
                percentage_laid_off=0.1, date="2022-11-15", stage="Series B", country="Germany",
                funds_raised=250.0),
        _record(company="Acme", location="Munich", industry="retail", total_laid_off=None,
                percentage_laid_off=None, date="2023-01-10", stage="Series B", country="Germany",
                funds_raised=None),
        _record(company="Globex", location="Austin", industry="FINANCE", total_laid_off=40,
                percentage_laid_off=0.5, date="2023-01-20 14:30:00", stage="Post-IPO",
                country="United States", funds_raised=1200.0),
        _record(company="Initech", location="Austin", industry="Finance", total_laid_off=15,
                percentage_laid_off=None, date=None, stage=None, country="United States",
                funds_raised=None),
    ]


@pytest.fixture
def layoffs_csv(tmp_path, raw_records) -> str:
    path = tmp_path / "layoffs.csv"
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=LAYOFF_COLUMNS)
        writer.writeheader()
        for record in raw_records:
            writer.writerow({k: "" if v is None else v for k, v in record.items()})
    return str(path)

"""
Layoff Trend Pipeline

Modules:
    bronze.py       - Ingests raw layoff records (CSV or in-memory) into the bronze layer.
    silver.py       - Cleans bronze records into the silver layer.
    gold.py         - Computes the layoff trend reports into the gold layer.
    s3_export.py    - Uploads exported reports to S3.
    run_pipeline.py - Orchestrates the full ETL pipeline and exports outputs.

Version: 1.0.0
"""
from typing import Dict, Iterable, Optional

import pandas as pd

from layoff_pipeline.bronze import LAYOFF_COLUMNS, DataSourceError, records_to_frame
from layoff_pipeline.silver import LayoffRecords, clean_layoffs
from layoff_pipeline.gold import REPORTS, competition_rank, run_reports

__version__ = "1.0.0"

__all__ = [
    "LAYOFF_COLUMNS",
    "DataSourceError",
    "REPORTS",
    "analyze",
    "clean_layoffs",
    "competition_rank",
    "records_to_frame",
    "run_reports",
]


def analyze(records: LayoffRecords, names: Optional[Iterable[str]] = None) -> Dict[str, pd.DataFrame]:
    """Clean raw layoff records in memory and compute the trend reports over them."""
    return run_reports(clean_layoffs(records), names)

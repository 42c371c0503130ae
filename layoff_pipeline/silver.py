import sqlite3
import os
import logging
from typing import Any, Mapping, Sequence, Union

import pandas as pd

from layoff_pipeline.bronze import (
    LAYOFF_COLUMNS,
    DataSourceError,
    coerce_numeric_columns,
    parse_dates,
    read_bronze,
    records_to_frame,
)

logger = logging.getLogger("layoff_pipeline.SilverLayer")

SILVER_TABLE = "silver_layoffs"

LayoffRecords = Union[pd.DataFrame, Sequence[Mapping[str, Any]]]


def create_silver_table(cursor):
    """
    Create the silver_layoffs table if it doesn't already exist.
    """
    cursor.execute(f"""
        CREATE TABLE IF NOT EXISTS {SILVER_TABLE} (
            company TEXT,
            location TEXT,
            industry TEXT,
            total_laid_off INTEGER NOT NULL,
            percentage_laid_off REAL NOT NULL,
            date DATE,
            stage TEXT,
            country TEXT,
            funds_raised REAL
        )
    """)


def _lower(value):
    if isinstance(value, str):
        return value.lower()
    return value


def clean_layoffs(records: LayoffRecords) -> pd.DataFrame:
    """
    Apply the cleaning rules to a layoff record set and return a new frame.

    - missing total_laid_off becomes 0
    - missing percentage_laid_off becomes 0.0
    - date is reduced to a calendar date (midnight, no time part)
    - industry is lower-cased

    No rows are dropped and the input is left untouched. Running the function
    on its own output changes nothing.

    Raises:
        DataSourceError: if a count is fractional or not numeric
    """
    if isinstance(records, pd.DataFrame):
        df = coerce_numeric_columns(records)
    else:
        df = records_to_frame(records, strict_dates=False)

    missing_totals = int(df['total_laid_off'].isna().sum())
    missing_percentages = int(df['percentage_laid_off'].isna().sum())

    df['total_laid_off'] = pd.to_numeric(df['total_laid_off']).fillna(0).astype('int64')
    df['percentage_laid_off'] = pd.to_numeric(df['percentage_laid_off']).fillna(0.0).astype('float64')
    df['date'] = parse_dates(df['date'], strict=False).dt.normalize()
    df['industry'] = df['industry'].map(_lower)

    if missing_totals or missing_percentages:
        logger.info(f"Filled {missing_totals} missing total_laid_off and "
                    f"{missing_percentages} missing percentage_laid_off values with 0")
    logger.debug(f"Cleaned {len(df)} layoff records")
    return df[LAYOFF_COLUMNS]


def write_silver(df: pd.DataFrame, silver_db: str) -> int:
    """Replace the silver table with an already cleaned frame."""
    db_dir = os.path.dirname(silver_db)
    if db_dir:
        os.makedirs(db_dir, exist_ok=True)

    out = df[LAYOFF_COLUMNS].copy()
    out['date'] = out['date'].dt.strftime('%Y-%m-%d')

    conn = sqlite3.connect(silver_db)
    try:
        cursor = conn.cursor()
        cursor.execute(f"DROP TABLE IF EXISTS {SILVER_TABLE}")
        create_silver_table(cursor)
        out.to_sql(SILVER_TABLE, conn, if_exists='append', index=False)
        conn.commit()
    finally:
        conn.close()
    return len(out)


def load_silver(silver_db: str) -> pd.DataFrame:
    """
    Read the cleaned layoff records back from the silver layer.

    Raises:
        DataSourceError: if the database or table does not exist
    """
    if not os.path.exists(silver_db):
        raise DataSourceError(f"Silver database not found: {silver_db}")
    conn = sqlite3.connect(silver_db)
    try:
        df = pd.read_sql(f"SELECT {', '.join(LAYOFF_COLUMNS)} FROM {SILVER_TABLE}", conn)
    except pd.errors.DatabaseError as e:
        raise DataSourceError(f"Could not read {SILVER_TABLE} from {silver_db}: {e}") from e
    finally:
        conn.close()

    df['date'] = pd.to_datetime(df['date'], errors='coerce', format='mixed')
    df['total_laid_off'] = df['total_laid_off'].astype('int64')
    df['percentage_laid_off'] = df['percentage_laid_off'].astype('float64')
    df['funds_raised'] = pd.to_numeric(df['funds_raised']).astype('float64')
    return df


def transform_bronze_to_silver(bronze_db: str, silver_db: str) -> bool:
    """
    Clean every bronze record and store the result in the silver layer.

    The silver table is rebuilt on each run, so re-running is harmless.
    """
    try:
        bronze_df = read_bronze(bronze_db)
        logger.info(f"Read {len(bronze_df)} records from bronze layer for silver transformation.")

        silver_df = clean_layoffs(bronze_df)
        record_count = write_silver(silver_df, silver_db)
        logger.info(f"Successfully transformed {record_count} records into silver layer.")
        return True

    except DataSourceError as e:
        logger.error(f"Silver layer has no usable input: {e}")
        return False
    except sqlite3.Error as e:
        logger.error(f"Error during silver layer transformation: {e}")
        return False

import sqlite3
import csv
import os
import logging
from typing import Any, Iterable, List, Mapping, Sequence

import pandas as pd

logger = logging.getLogger("layoff_pipeline.BronzeLayer")

BRONZE_TABLE = "bronze_layoffs"

LAYOFF_COLUMNS = [
    'company', 'location', 'industry', 'total_laid_off',
    'percentage_laid_off', 'date', 'stage', 'country', 'funds_raised'
]

TEXT_COLUMNS = ['company', 'location', 'industry', 'stage', 'country']


class DataSourceError(Exception):
    """Raised when the raw layoff source cannot be read or has the wrong shape."""


def create_bronze_table(cursor):
    """
    Create the bronze_layoffs table if it doesn't already exist.
    """
    cursor.execute(f"""
        CREATE TABLE IF NOT EXISTS {BRONZE_TABLE} (
            company TEXT,
            location TEXT,
            industry TEXT,
            total_laid_off INTEGER,
            percentage_laid_off REAL,
            date TEXT,
            stage TEXT,
            country TEXT,
            funds_raised REAL
        )
    """)


def _blank_to_none(value):
    if isinstance(value, str):
        return value.strip() or None
    if pd.isna(value):
        return None
    return value


def _wall_clock(value):
    # Offset-aware values keep their local time and lose the offset
    ts = pd.to_datetime(value, errors='coerce')
    if ts is None or pd.isna(ts):
        return pd.NaT
    if ts.tzinfo is not None:
        ts = ts.tz_localize(None)
    return ts


def parse_dates(values: pd.Series, strict: bool = True) -> pd.Series:
    """
    Parse raw date values; unparseable ones become NaT.

    pandas refuses to parse a column that mixes naive and offset-aware
    timestamps. With strict=True that is reported as a DataSourceError,
    otherwise each value is parsed on its own and its offset is dropped.
    """
    try:
        dates = pd.to_datetime(values, errors='coerce', format='mixed')
    except ValueError as e:
        if strict:
            raise DataSourceError(f"Inconsistent date values in layoff data: {e}") from e
        dates = pd.Series([_wall_clock(v) for v in values], index=values.index, dtype='datetime64[ns]')
    if dates.dt.tz is not None:
        dates = dates.dt.tz_localize(None)
    return dates


def coerce_numeric_columns(df: pd.DataFrame) -> pd.DataFrame:
    """
    Cast the count and amount columns; fractional or non-numeric counts are rejected.

    Raises:
        DataSourceError: if a value does not fit its declared numeric type
    """
    df = df.copy()
    try:
        df['total_laid_off'] = pd.to_numeric(df['total_laid_off']).astype('Int64')
        df['percentage_laid_off'] = pd.to_numeric(df['percentage_laid_off']).astype('float64')
        df['funds_raised'] = pd.to_numeric(df['funds_raised']).astype('float64')
    except (ValueError, TypeError) as e:
        raise DataSourceError(f"Invalid numeric value in layoff data: {e}") from e
    return df


def _coerce_types(df: pd.DataFrame, strict_dates: bool = True) -> pd.DataFrame:
    """Cast raw columns to the declared layoff record types."""
    df = coerce_numeric_columns(df)
    for column in TEXT_COLUMNS:
        df[column] = df[column].astype(object).map(_blank_to_none)
    df['date'] = parse_dates(df['date'], strict=strict_dates)
    return df


def records_to_frame(records: Iterable[Mapping[str, Any]], strict_dates: bool = True) -> pd.DataFrame:
    """
    Build a layoff frame from a sequence of record mappings.

    Keys outside LAYOFF_COLUMNS are ignored, missing keys become null.

    Args:
        records: Iterable of dict-like layoff records
        strict_dates: Reject mixed naive/offset dates instead of dropping offsets

    Returns:
        DataFrame in canonical column order with declared types
    """
    rows = [{column: record.get(column) for column in LAYOFF_COLUMNS} for record in records]
    df = pd.DataFrame(rows, columns=LAYOFF_COLUMNS)
    return _coerce_types(df, strict_dates=strict_dates)


def validate_csv_structure(csv_file: str, required_columns: Sequence[str]) -> bool:
    """
    Validate the structure of the CSV file.

    Args:
        csv_file: Path to the CSV file
        required_columns: List of required column names

    Returns:
        True if the CSV structure is valid, False otherwise
    """
    try:
        with open(csv_file, newline='', encoding='utf-8') as f:
            reader = csv.DictReader(f)
            csv_columns = reader.fieldnames
            if not csv_columns:
                logger.error("CSV file is empty or has no headers.")
                return False
            missing_columns = [col for col in required_columns if col not in csv_columns]
            if missing_columns:
                logger.error(f"CSV file is missing required columns: {missing_columns}")
                return False
        return True
    except OSError as e:
        logger.error(f"Error validating CSV structure: {e}")
        return False


def load_layoffs_csv(csv_file: str) -> pd.DataFrame:
    """
    Read a raw layoffs CSV into a typed frame.

    Args:
        csv_file: Path to the CSV file

    Returns:
        DataFrame with LAYOFF_COLUMNS

    Raises:
        DataSourceError: if the file is missing, lacks columns or holds
            values that do not fit the declared types
    """
    if not os.path.exists(csv_file):
        raise DataSourceError(f"CSV file not found: {csv_file}")
    if not validate_csv_structure(csv_file, LAYOFF_COLUMNS):
        raise DataSourceError(f"CSV structure validation failed for {csv_file}")

    try:
        df = pd.read_csv(csv_file, usecols=LAYOFF_COLUMNS, dtype={c: 'string' for c in TEXT_COLUMNS},
                         keep_default_na=True, na_values=['', 'NULL', 'null'])
    except (pd.errors.ParserError, UnicodeDecodeError) as e:
        raise DataSourceError(f"Could not parse {csv_file}: {e}") from e

    df = _coerce_types(df[LAYOFF_COLUMNS])
    logger.info(f"Read {len(df)} raw layoff records from {csv_file}")
    return df


def write_bronze(df: pd.DataFrame, db_file: str) -> int:
    """
    Replace the contents of the bronze table with df.

    Returns:
        Number of records written
    """
    db_dir = os.path.dirname(db_file)
    if db_dir:
        os.makedirs(db_dir, exist_ok=True)

    out = df[LAYOFF_COLUMNS].copy()
    out['date'] = out['date'].dt.strftime('%Y-%m-%d %H:%M:%S')

    conn = sqlite3.connect(db_file)
    try:
        cursor = conn.cursor()
        cursor.execute(f"DROP TABLE IF EXISTS {BRONZE_TABLE}")
        create_bronze_table(cursor)
        out.to_sql(BRONZE_TABLE, conn, if_exists='append', index=False)
        conn.commit()
    finally:
        conn.close()
    return len(out)


def ingest_data(csv_file: str, db_file: str) -> bool:
    """
    Ingest data from a CSV file into the bronze_layoffs table.

    Args:
        csv_file: Path to the CSV file
        db_file: Path to the SQLite database file

    Returns:
        True if ingestion is successful, False otherwise
    """
    try:
        df = load_layoffs_csv(csv_file)
        record_count = write_bronze(df, db_file)
        logger.info(f"Successfully ingested {record_count} records into bronze layer.")
        return True
    except DataSourceError as e:
        logger.error(f"Bronze ingestion rejected the source: {e}")
        return False
    except sqlite3.Error as e:
        logger.error(f"Error during data ingestion: {e}")
        return False


def read_bronze(db_file: str) -> pd.DataFrame:
    """
    Load the raw layoff records stored in the bronze layer.

    Raises:
        DataSourceError: if the database or table does not exist
    """
    if not os.path.exists(db_file):
        raise DataSourceError(f"Bronze database not found: {db_file}")
    conn = sqlite3.connect(db_file)
    try:
        df = pd.read_sql(f"SELECT {', '.join(LAYOFF_COLUMNS)} FROM {BRONZE_TABLE}", conn)
    except pd.errors.DatabaseError as e:
        raise DataSourceError(f"Could not read {BRONZE_TABLE} from {db_file}: {e}") from e
    finally:
        conn.close()
    return _coerce_types(df)


def ingest_records(records: List[Mapping[str, Any]], db_file: str) -> bool:
    """
    Ingest in-memory layoff records (e.g. from an API collaborator) into bronze.
    """
    try:
        record_count = write_bronze(records_to_frame(records), db_file)
        logger.info(f"Successfully ingested {record_count} records into bronze layer.")
        return True
    except DataSourceError as e:
        logger.error(f"Bronze ingestion rejected the records: {e}")
        return False
    except sqlite3.Error as e:
        logger.error(f"Error during data ingestion: {e}")
        return False

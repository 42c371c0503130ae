import os
import sys
import argparse
import datetime
import logging
import sqlite3
from typing import Any, Dict, List, Optional

import pandas as pd
from dotenv import load_dotenv

from layoff_pipeline.bronze import ingest_data
from layoff_pipeline.silver import transform_bronze_to_silver
from layoff_pipeline.gold import REPORTS, aggregate_silver_to_gold, gold_table_name
from layoff_pipeline.s3_export import DEFAULT_BUCKET, DEFAULT_REGION, S3Exporter
from utils.logger import configure_pipeline_logging

logger = logging.getLogger("layoff_pipeline.ETL_Pipeline")

BRONZE_DB_NAME = "bronze_layoffs.db"
SILVER_DB_NAME = "silver_layoffs.db"
GOLD_DB_NAME = "gold_layoffs.db"


def settings_from_env() -> Dict[str, Optional[str]]:
    """Read pipeline settings from the environment (after .env has been loaded)."""
    data_dir = os.environ.get("LAYOFFS_DATA_DIR", "data")
    return {
        'data_dir': data_dir,
        'export_dir': os.environ.get("LAYOFFS_EXPORT_DIR", os.path.join(data_dir, "exports")),
        'log_dir': os.environ.get("LAYOFFS_LOG_DIR", "logs"),
        'log_level': os.environ.get("LAYOFFS_LOG_LEVEL", "INFO"),
        'bucket': os.environ.get("LAYOFFS_S3_BUCKET", DEFAULT_BUCKET),
        'region': os.environ.get("AWS_REGION", DEFAULT_REGION),
    }


def export_table_to_parquet(db_file: str, table_name: str, output_file: str) -> Optional[str]:
    """
    Export one SQLite table to a Parquet file.

    Returns:
        Path to the written file, or None if the table is empty or missing
    """
    conn = sqlite3.connect(db_file)
    try:
        df = pd.read_sql(f"SELECT * FROM {table_name}", conn)
    except pd.errors.DatabaseError as e:
        logger.error(f"Could not read table '{table_name}' from {db_file}: {e}")
        return None
    finally:
        conn.close()

    if df.empty:
        logger.warning(f"Table '{table_name}' in {db_file} is empty. No data to export.")
        return None
    df.to_parquet(output_file, index=False)
    logger.info(f"Exported {len(df)} records from table '{table_name}' to {output_file}")
    return output_file


def export_gold_reports(gold_db: str, export_dir: str) -> List[str]:
    """Write every gold report table to a timestamped Parquet file."""
    os.makedirs(export_dir, exist_ok=True)
    ts = datetime.datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    exported = []
    for name in REPORTS:
        table = gold_table_name(name)
        output_file = os.path.join(export_dir, f"{ts}_{table}.parquet")
        path = export_table_to_parquet(gold_db, table, output_file)
        if path:
            exported.append(path)
    return exported


def run_pipeline(
    csv_file: str,
    data_dir: str,
    export_dir: Optional[str] = None,
    upload: bool = False,
    exporter: Optional[S3Exporter] = None
) -> Dict[str, Any]:
    """
    Run bronze ingestion, silver cleaning and gold reporting in order.

    Processing stops at the first layer that fails.

    Args:
        csv_file: Raw layoffs CSV
        data_dir: Directory holding the three layer databases
        export_dir: If given, gold reports are exported there as Parquet
        upload: Upload the exported files to S3
        exporter: S3 exporter to use when uploading

    Returns:
        Status of each layer plus exported and uploaded files
    """
    bronze_db = os.path.join(data_dir, BRONZE_DB_NAME)
    silver_db = os.path.join(data_dir, SILVER_DB_NAME)
    gold_db = os.path.join(data_dir, GOLD_DB_NAME)

    result: Dict[str, Any] = {
        'bronze': False,
        'silver': False,
        'gold': False,
        'exports': [],
        'uploads': {},
    }

    logger.info("Starting ETL pipeline...")

    result['bronze'] = ingest_data(csv_file, bronze_db)
    if not result['bronze']:
        logger.error("Bronze layer processing failed. Stopping pipeline.")
        return result
    logger.info("Bronze layer processing completed successfully.")

    result['silver'] = transform_bronze_to_silver(bronze_db, silver_db)
    if not result['silver']:
        logger.error("Silver layer processing failed. Stopping pipeline.")
        return result
    logger.info("Silver layer processing completed successfully.")

    result['gold'] = aggregate_silver_to_gold(silver_db, gold_db)
    if not result['gold']:
        logger.error("Gold layer processing failed. Stopping pipeline.")
        return result
    logger.info("Gold layer processing completed successfully.")

    if export_dir:
        result['exports'] = export_gold_reports(gold_db, export_dir)
        logger.info(f"Exported {len(result['exports'])} gold reports to {export_dir}")

        if upload and result['exports']:
            exporter = exporter or S3Exporter()
            result['uploads'] = exporter.upload_many(result['exports'])

    logger.info("ETL pipeline completed.")
    return result


def build_parser(settings: Dict[str, Optional[str]]) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Clean layoff records and build the layoff trend reports')
    parser.add_argument('--csv', type=str, required=True, help='Path to the raw layoffs CSV file')
    parser.add_argument('--data-dir', type=str, default=settings['data_dir'], help='Directory for the SQLite layer databases')
    parser.add_argument('--export-dir', type=str, default=settings['export_dir'], help='Directory for Parquet report exports')
    parser.add_argument('--no-export', action='store_true', help='Skip the Parquet export')
    parser.add_argument('--upload', action='store_true', help='Upload the exported reports to S3')
    parser.add_argument('--bucket', type=str, default=settings['bucket'], help='S3 bucket for uploads')
    parser.add_argument('--region', type=str, default=settings['region'], help='AWS region for uploads')
    parser.add_argument('--log-level', type=str, default=settings['log_level'], help='Logging level')
    parser.add_argument('--log-dir', type=str, default=settings['log_dir'], help='Directory for log files')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Command-line entry point for the pipeline."""
    load_dotenv()
    settings = settings_from_env()
    args = build_parser(settings).parse_args(argv)

    configure_pipeline_logging(level=args.log_level, log_dir=args.log_dir)

    exporter = S3Exporter(bucket=args.bucket, region=args.region) if args.upload else None
    result = run_pipeline(
        csv_file=args.csv,
        data_dir=args.data_dir,
        export_dir=None if args.no_export else args.export_dir,
        upload=args.upload,
        exporter=exporter
    )

    print("Pipeline execution completed:")
    print(f"Bronze layer: {'ok' if result['bronze'] else 'failed'}")
    print(f"Silver layer: {'ok' if result['silver'] else 'failed'}")
    print(f"Gold layer: {'ok' if result['gold'] else 'failed'}")
    for path in result['exports']:
        print(f"Exported: {path}")

    if not result['gold']:
        return 1
    if args.upload and not all(result['uploads'].values()):
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())

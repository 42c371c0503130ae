"""
Gold layer: the layoff trend reports.

Every report is a pure function over the cleaned (silver) record set and
returns a new DataFrame. Ordering follows SQL ORDER BY conventions: NULLs sort
first in ascending order and last in descending order, and rows that tie on
the sort key keep a deterministic order.
"""
import sqlite3
import os
import logging
from typing import Callable, Dict, Iterable, List, Optional

import pandas as pd

from layoff_pipeline.bronze import DataSourceError
from layoff_pipeline.silver import load_silver

logger = logging.getLogger("layoff_pipeline.GoldLayer")

MONTHLY_TREND_LIMIT = 100
TOP_PERCENTAGE_LIMIT = 10
FUNDING_CORRELATION_LIMIT = 1000

Report = Callable[[pd.DataFrame], pd.DataFrame]


def _order(df: pd.DataFrame, by, ascending=True, limit: Optional[int] = None) -> pd.DataFrame:
    primary_ascending = ascending if isinstance(ascending, bool) else ascending[0]
    ordered = df.sort_values(
        by,
        ascending=ascending,
        na_position='first' if primary_ascending else 'last',
        kind='mergesort',
    )
    if limit is not None:
        ordered = ordered.head(limit)
    return ordered.reset_index(drop=True)


def _empty(columns: List[str]) -> pd.DataFrame:
    return pd.DataFrame({column: pd.Series(dtype=object) for column in columns})


def _total_by(df: pd.DataFrame, key: str) -> pd.DataFrame:
    totals = (
        df.groupby(key, dropna=False, sort=False)['total_laid_off']
        .sum()
        .reset_index(name='total_layoffs')
    )
    return _order(totals, ['total_layoffs', key], ascending=[False, True])


def competition_rank(values: pd.Series, ascending: bool = False) -> pd.Series:
    """
    Rank values the way SQL RANK() does.

    Equal values share a rank and the following rank skips by the size of the
    tie (1, 2, 2, 4). Nulls rank after every non-null value and tie with each
    other.
    """
    ranks = values.rank(method='min', ascending=ascending)
    null_rank = int(values.notna().sum()) + 1
    return ranks.fillna(null_rank).astype('int64')


def layoffs_by_company(df: pd.DataFrame) -> pd.DataFrame:
    return _total_by(df, 'company')


def layoffs_by_industry(df: pd.DataFrame) -> pd.DataFrame:
    return _total_by(df, 'industry')


def layoffs_by_country(df: pd.DataFrame) -> pd.DataFrame:
    return _total_by(df, 'country')


def layoffs_by_stage(df: pd.DataFrame) -> pd.DataFrame:
    return _total_by(df, 'stage')


def monthly_trend(df: pd.DataFrame) -> pd.DataFrame:
    """Layoffs per YYYY-MM, newest month first, capped at 100 months."""
    monthly = (
        df.assign(month=df['date'].dt.strftime('%Y-%m'))
        .groupby('month', dropna=False, sort=False)['total_laid_off']
        .sum()
        .reset_index(name='total_layoffs')
    )
    return _order(monthly, 'month', ascending=False, limit=MONTHLY_TREND_LIMIT)


def top_percentage_layoffs(df: pd.DataFrame) -> pd.DataFrame:
    """The ten records with the highest share of workforce laid off."""
    rows = df.loc[df['percentage_laid_off'].notna(), ['company', 'percentage_laid_off']]
    return _order(rows, 'percentage_laid_off', ascending=False, limit=TOP_PERCENTAGE_LIMIT)


def funding_impact(df: pd.DataFrame) -> pd.DataFrame:
    rows = df.loc[df['funds_raised'].notna(), ['company', 'funds_raised', 'total_laid_off']]
    return _order(rows, 'funds_raised', ascending=False)


def cumulative_trend(df: pd.DataFrame) -> pd.DataFrame:
    """Daily layoffs with a running total ordered by date."""
    daily = (
        df.loc[df['total_laid_off'].notna()]
        .groupby('date', dropna=False, sort=False)['total_laid_off']
        .sum()
        .reset_index(name='daily_layoffs')
    )
    daily = _order(daily, 'date')
    daily['cumulative_layoffs'] = daily['daily_layoffs'].cumsum().astype('int64')
    return daily


def consecutive_month_layoffs(df: pd.DataFrame) -> pd.DataFrame:
    """
    Companies with layoffs in back-to-back calendar months.

    Layoffs are summed per (company, month). Each month is paired with the
    previous month on record for the same company, and the row is kept only
    when that previous month is the calendar month right before it. Records
    without a date have no month and never qualify.
    """
    dated = df.loc[df['date'].notna() & df['total_laid_off'].notna(), ['company', 'date', 'total_laid_off']]
    monthly = (
        dated.assign(period=dated['date'].dt.to_period('M'))
        .groupby(['company', 'period'], dropna=False, sort=False)['total_laid_off']
        .sum()
        .reset_index(name='total_layoffs')
    )
    monthly = _order(monthly, ['company', 'period'])
    if monthly.empty:
        return _empty(['company', 'month', 'total_layoffs', 'prev_month'])

    month = monthly['period'].dt.strftime('%Y-%m')
    prev_month = monthly.groupby('company', dropna=False, sort=False)['period'].shift().dt.strftime('%Y-%m')
    calendar_prev = (monthly['period'] - 1).dt.strftime('%Y-%m')
    consecutive = prev_month.notna() & prev_month.eq(calendar_prev)

    result = pd.DataFrame({
        'company': monthly['company'],
        'month': month,
        'total_layoffs': monthly['total_layoffs'],
        'prev_month': prev_month,
    })
    return result.loc[consecutive].reset_index(drop=True)


def industry_yoy_change(df: pd.DataFrame) -> pd.DataFrame:
    """
    Yearly layoffs per industry compared with the industry's previous year on record.
    """
    dated = df.loc[df['date'].notna() & df['total_laid_off'].notna(), ['industry', 'date', 'total_laid_off']]
    yearly = (
        dated.assign(year=dated['date'].dt.strftime('%Y'))
        .groupby(['industry', 'year'], dropna=False, sort=False)['total_laid_off']
        .sum()
        .reset_index(name='yearly_layoffs')
    )
    yearly = _order(yearly, ['industry', 'year'])
    if yearly.empty:
        return _empty(['industry', 'year', 'yearly_layoffs', 'prev_year_layoffs', 'yoy_change'])
    yearly['yearly_layoffs'] = yearly['yearly_layoffs'].astype('int64')
    yearly['prev_year_layoffs'] = (
        yearly.groupby('industry', dropna=False, sort=False)['yearly_layoffs'].shift().astype('Int64')
    )
    yearly['yoy_change'] = (yearly['yearly_layoffs'] - yearly['prev_year_layoffs']).astype('Int64')
    return yearly


def funding_layoff_correlation(df: pd.DataFrame) -> pd.DataFrame:
    """
    Pair each company's layoff records with its funding records.

    Two distinct records of the same company form a pair when the first has
    a total_laid_off count and the second a funds_raised amount.
    days_difference is layoff_date minus funding_date, so negative values mean
    the layoff came before the funding event.
    """
    rows = df.loc[df['company'].notna()].reset_index(drop=True)
    rows = rows.assign(row_id=rows.index)

    layoffs = rows.loc[rows['total_laid_off'].notna(), ['row_id', 'company', 'date']]
    funding = rows.loc[rows['funds_raised'].notna(),
                       ['row_id', 'company', 'date', 'total_laid_off', 'funds_raised']]

    pairs = layoffs.merge(funding, on='company', suffixes=('_layoff', '_funding'))
    pairs = pairs.loc[pairs['row_id_layoff'] != pairs['row_id_funding']]
    if pairs.empty:
        return _empty(['company', 'layoff_date', 'funding_date', 'total_laid_off', 'funds_raised', 'days_difference'])

    result = pd.DataFrame({
        'company': pairs['company'],
        'layoff_date': pairs['date_layoff'],
        'funding_date': pairs['date_funding'],
        'total_laid_off': pairs['total_laid_off'],
        'funds_raised': pairs['funds_raised'],
        'days_difference': (pairs['date_layoff'] - pairs['date_funding']).dt.days.astype('Int64'),
    })
    return _order(result, ['company', 'days_difference'], limit=FUNDING_CORRELATION_LIMIT)


def dual_ranking(df: pd.DataFrame) -> pd.DataFrame:
    """Rank records by share of workforce laid off and, separately, by funding raised."""
    columns = ['company', 'industry', 'total_laid_off', 'percentage_laid_off', 'funds_raised']
    ranked = df.loc[df['total_laid_off'].notna() & df['percentage_laid_off'].notna(), columns].copy()
    ranked['layoff_rank'] = competition_rank(ranked['percentage_laid_off'])
    ranked['funding_rank'] = competition_rank(ranked['funds_raised'])
    return _order(ranked, 'layoff_rank')


def multi_location_companies(df: pd.DataFrame) -> pd.DataFrame:
    """Distinct (location_1, location_2) pairs of differing locations per company."""
    located = df.loc[df['company'].notna() & df['location'].notna(), ['company', 'location']].drop_duplicates()
    pairs = located.merge(located, on='company', suffixes=('_1', '_2'))
    pairs = pairs.loc[pairs['location_1'] != pairs['location_2'], ['company', 'location_1', 'location_2']]
    return _order(pairs.drop_duplicates(), ['company', 'location_1', 'location_2'])


REPORTS: Dict[str, Report] = {
    'layoffs_by_company': layoffs_by_company,
    'layoffs_by_industry': layoffs_by_industry,
    'layoffs_by_country': layoffs_by_country,
    'monthly_trend': monthly_trend,
    'top_percentage_layoffs': top_percentage_layoffs,
    'funding_impact': funding_impact,
    'layoffs_by_stage': layoffs_by_stage,
    'cumulative_trend': cumulative_trend,
    'consecutive_month_layoffs': consecutive_month_layoffs,
    'industry_yoy_change': industry_yoy_change,
    'funding_layoff_correlation': funding_layoff_correlation,
    'dual_ranking': dual_ranking,
    'multi_location_companies': multi_location_companies,
}


def gold_table_name(report_name: str) -> str:
    return f"gold_{report_name}"


def run_reports(df: pd.DataFrame, names: Optional[Iterable[str]] = None) -> Dict[str, pd.DataFrame]:
    """
    Compute reports over a cleaned layoff frame.

    Args:
        df: Output of clean_layoffs
        names: Report names to compute (default: the whole catalog)

    Returns:
        Dictionary of report name to result frame, in catalog order

    Raises:
        KeyError: if a requested report does not exist
    """
    selected: List[str] = list(REPORTS) if names is None else list(names)
    unknown = [name for name in selected if name not in REPORTS]
    if unknown:
        raise KeyError(f"Unknown reports: {unknown}")

    results = {}
    for name in selected:
        results[name] = REPORTS[name](df)
        logger.debug(f"Report {name} produced {len(results[name])} rows")
    return results


def _to_storable(df: pd.DataFrame) -> pd.DataFrame:
    out = df.copy()
    for column in out.columns:
        if pd.api.types.is_datetime64_any_dtype(out[column]):
            out[column] = out[column].dt.strftime('%Y-%m-%d')
    return out


def aggregate_silver_to_gold(silver_db: str, gold_db: str) -> bool:
    """
    Run every report over the silver layer and store each one as a gold table.
    """
    try:
        silver_df = load_silver(silver_db)
        if silver_df.empty:
            logger.info("Silver layer is empty, gold reports will be empty.")

        reports = run_reports(silver_df)

        db_dir = os.path.dirname(gold_db)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)
        gold_conn = sqlite3.connect(gold_db)
        try:
            for name, report in reports.items():
                _to_storable(report).to_sql(gold_table_name(name), gold_conn, if_exists='replace', index=False)
            gold_conn.commit()
        finally:
            gold_conn.close()

        logger.info(f"Successfully wrote {len(reports)} reports into gold layer.")
        return True

    except DataSourceError as e:
        logger.error(f"Gold layer has no usable input: {e}")
        return False
    except sqlite3.Error as e:
        logger.error(f"Error during gold layer aggregation: {e}")
        return False

import os
import logging
from datetime import datetime, timedelta
from typing import List, Optional

import numpy as np
import pandas as pd

from utils.logger import setup_logger

logger = logging.getLogger("Data_Generator")

COMPANIES = {
    # company: (industry, stage, country, locations)
    "Amazon": ("Retail", "Post-IPO", "United States", ["Seattle", "SF Bay Area"]),
    "Meta": ("Consumer", "Post-IPO", "United States", ["SF Bay Area"]),
    "Shopify": ("Retail", "Post-IPO", "Canada", ["Ottawa"]),
    "Klarna": ("Finance", "Private Equity", "Sweden", ["Stockholm"]),
    "Byju's": ("Education", "Private Equity", "India", ["Bengaluru", "Mumbai"]),
    "Gorillas": ("Food", "Series C", "Germany", ["Berlin"]),
    "Cazoo": ("Transportation", "Post-IPO", "United Kingdom", ["London"]),
    "Loft": ("Real Estate", "Series D", "Brazil", ["Sao Paulo"]),
    "Bolt": ("Transportation", "Series F", "Estonia", ["Tallinn", "Berlin"]),
    "Hopin": ("Other", "Series D", "United Kingdom", ["London"]),
}


def _casing(value: str, rng: np.random.Generator) -> str:
    # Raw exports mix "Retail", "retail" and "RETAIL"
    return str(rng.choice([value, value.lower(), value.upper()]))


def generate_layoff_records(num_records: int = 500, seed: Optional[int] = None) -> List[dict]:
    """
    Generate synthetic raw layoff rows, including the gaps real exports have.

    Args:
        num_records: Number of rows to generate
        seed: Random seed for reproducible output

    Returns:
        List of raw layoff record dicts
    """
    rng = np.random.default_rng(seed)
    start = datetime(2020, 3, 1)
    companies = list(COMPANIES)
    records = []
    for _ in range(num_records):
        company = companies[rng.integers(len(companies))]
        industry, stage, country, locations = COMPANIES[company]
        laid_off = int(rng.integers(10, 5000))
        records.append({
            "company": company,
            "location": locations[rng.integers(len(locations))],
            "industry": _casing(industry, rng),
            "total_laid_off": laid_off if rng.random() > 0.3 else None,
            "percentage_laid_off": round(float(rng.uniform(0.01, 1.0)), 2) if rng.random() > 0.35 else None,
            "date": (start + timedelta(days=int(rng.integers(0, 1200)))).strftime("%Y-%m-%d"),
            "stage": stage,
            "country": country,
            "funds_raised": round(float(rng.uniform(5, 20000)), 1) if rng.random() > 0.2 else None,
        })
    return records


if __name__ == "__main__":
    setup_logger("Data_Generator", log_file="data_generator.log")
    BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__)))
    output_dir = os.path.join(BASE_DIR, "data", "sample")
    os.makedirs(output_dir, exist_ok=True)
    output_file = os.path.join(output_dir, "layoffs.csv")
    df = pd.DataFrame(generate_layoff_records(2000))
    df.to_csv(output_file, index=False)
    logger.info(f"Generated {len(df)} layoff records at: {output_file}")

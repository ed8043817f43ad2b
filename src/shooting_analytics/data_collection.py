"""
data_collection.py
Fetch the NYPD Shooting Incident CSV and parse it into a raw DataFrame.

Missing-value normalization happens here, at parse time, for every column:
"", "(null)" and "UNKNOWN" all become NaN before any per-column step runs.
"""

import io
import logging
from pathlib import Path

import pandas as pd
import requests

from .errors import SchemaMismatch, SourceUnavailable

log = logging.getLogger(__name__)


# ── Constants ─────────────────────────────────────────────────────────────────

DATA_URL = "https://data.cityofnewyork.us/api/views/833y-pu6d/rows.csv?accessType=DOWNLOAD"

# Every raw encoding of "value unknown" seen in this dataset
ABSENT_TOKENS = ["", "(null)", "UNKNOWN"]

REQUIRED_COLUMNS = {
    "OCCUR_DATE", "OCCUR_TIME", "BORO", "PRECINCT", "JURISDICTION_CODE",
    "PERP_AGE_GROUP", "PERP_SEX", "PERP_RACE",
}

FETCH_TIMEOUT = 60


# ── Fetch ─────────────────────────────────────────────────────────────────────

def fetch_source(source: str, timeout: int = FETCH_TIMEOUT) -> bytes:
    """
    Read the raw CSV bytes from an http(s) URL or a local path.
    One attempt only; any failure surfaces as SourceUnavailable.
    """
    source = str(source)
    if source.startswith(("http://", "https://")):
        log.info(f"Downloading: {source}")
        try:
            response = requests.get(source, timeout=timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise SourceUnavailable(source, str(exc)) from exc
        return response.content

    path = Path(source)
    log.info(f"Reading: {path}")
    try:
        return path.read_bytes()
    except OSError as exc:
        raise SourceUnavailable(source, exc.strerror or str(exc)) from exc


# ── Parse ─────────────────────────────────────────────────────────────────────

def read_incidents(content: bytes) -> pd.DataFrame:
    # dtype=str keeps PRECINCT etc. as labels; keep_default_na=False so only
    # our own tokens count as missing ("NA" is not an absent marker here)
    try:
        df = pd.read_csv(
            io.BytesIO(content),
            dtype=str,
            na_values=ABSENT_TOKENS,
            keep_default_na=False,
        )
    except pd.errors.EmptyDataError as exc:
        # no header at all: every expected column is missing
        raise SchemaMismatch(REQUIRED_COLUMNS) from exc

    missing_cols = REQUIRED_COLUMNS - set(df.columns)
    if missing_cols:
        raise SchemaMismatch(missing_cols)
    return df


def load_incidents(source: str = DATA_URL) -> pd.DataFrame:
    df = read_incidents(fetch_source(source))
    log.info(f"Loaded {len(df):,} rows × {len(df.columns)} columns")
    return df

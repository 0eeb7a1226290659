"""
Data Preprocessing Module for Automobile Price Prediction

This module covers everything between the raw file and the training tables:
1. Loading the headerless CSV against the declared schema
2. Missing-value census and numeric coercion of text columns
3. Numeric column selection and complete-case filtering
4. Price outlier removal
5. Stratified train/test split driven by an explicit random generator

CRITICAL: All randomness comes from the numpy Generator passed in by the caller.
Nothing here touches global random state, so a run is reproducible from its seed.
"""

import math
from typing import Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from auto_price.config import AUTOMOBILE_SCHEMA, RANDOM_SEED, PipelineConfig


class EmptyDatasetError(ValueError):
    """Raised when a filtering step leaves no rows to work with."""


# ==================== LOADER ====================

def validate_schema(
    df: pd.DataFrame,
    schema: Dict[str, str] = None,
    coerce_columns: List[str] = None
) -> pd.DataFrame:
    """
    Assign column names positionally and check them against the declared schema.

    Columns declared numeric that loaded as text (outside `coerce_columns`) are
    reported but not rejected: the cleaner parses them and drops bad rows.

    Args:
        df: DataFrame read with header=None
        schema: Ordered mapping column name -> 'numeric' | 'text'
        coerce_columns: Numeric columns allowed to arrive as text

    Returns:
        DataFrame with named columns

    Raises:
        ValueError: Wrong column count
    """
    if schema is None:
        schema = AUTOMOBILE_SCHEMA
    coerce_columns = coerce_columns or []

    if df.shape[1] != len(schema):
        raise ValueError(
            f"Expected {len(schema)} columns, found {df.shape[1]}. "
            f"The file layout does not match the automobile schema."
        )

    df = df.copy()
    df.columns = list(schema.keys())

    unexpected_text = [
        col for col, kind in schema.items()
        if kind == 'numeric'
        and col not in coerce_columns
        and not pd.api.types.is_numeric_dtype(df[col])
    ]
    if unexpected_text:
        print(f"WARNING: columns declared numeric loaded as text: {unexpected_text}. "
              f"Unparseable values will be treated as missing.")

    return df


def load_dataset(path, schema: Dict[str, str] = None, coerce_columns: List[str] = None) -> pd.DataFrame:
    """
    Load the raw automobile file (no header row, fixed column order).

    The missing marker is kept as a literal string here; converting it is the
    cleaner's job. A missing file raises FileNotFoundError from pandas.
    """
    df = pd.read_csv(path, header=None, skipinitialspace=True)
    df = validate_schema(df, schema, coerce_columns)
    print(f"Loaded {len(df):,} rows × {df.shape[1]} columns from {path}")
    return df


# ==================== CLEANER ====================

def missing_value_census(df: pd.DataFrame, marker: str = '?') -> pd.Series:
    """
    Count occurrences of the missing marker in every column.

    Diagnostic only, the input is not modified.

    Args:
        df: Raw DataFrame
        marker: Literal string used for absent values

    Returns:
        Series indexed by column name with marker counts
    """
    census = df.astype(str).apply(lambda col: (col.str.strip() == marker).sum())
    census.name = 'missing_count'
    return census.astype(int)


def coerce_numeric_columns(df: pd.DataFrame, columns: List[str], marker: str = '?') -> pd.DataFrame:
    """
    Parse text columns to numbers.

    The marker becomes NaN, and so does any other value that cannot be parsed.
    Those rows are removed later by drop_incomplete_rows, not here.
    """
    df = df.copy()
    for col in columns:
        values = df[col].mask(df[col].astype(str).str.strip() == marker)
        df[col] = pd.to_numeric(values, errors='coerce')
    return df


def select_numeric_columns(
    df: pd.DataFrame,
    schema: Dict[str, str] = None,
    drop_columns: List[str] = None
) -> pd.DataFrame:
    """Keep schema-declared numeric columns in schema order, minus drop_columns."""
    if schema is None:
        schema = AUTOMOBILE_SCHEMA
    drop_columns = drop_columns or []

    keep = [
        col for col, kind in schema.items()
        if kind == 'numeric' and col not in drop_columns
    ]
    return df[keep].copy()


def drop_incomplete_rows(df: pd.DataFrame, verbose: bool = True) -> pd.DataFrame:
    """
    Drop any row with a missing value in any column.

    Raises:
        EmptyDatasetError: If no complete rows remain
    """
    original_count = len(df)
    df = df.dropna()
    removed = original_count - len(df)

    if verbose:
        removed_pct = (removed / original_count * 100) if original_count else 0.0
        print(f"Removed {removed:,} incomplete rows ({removed_pct:.1f}%)")
        print(f"Remaining: {len(df):,} rows")

    if df.empty:
        raise EmptyDatasetError("No complete rows left after dropping missing values")

    return df


def clean_dataset(raw_df: pd.DataFrame, config: PipelineConfig = None) -> Tuple[pd.DataFrame, pd.Series]:
    """
    Run the cleaning steps in order: census, coercion, selection, row drop.

    Args:
        raw_df: Output of load_dataset
        config: Pipeline settings (defaults if None)

    Returns:
        cleaned DataFrame (numeric only, no missing values), census Series
    """
    if config is None:
        config = PipelineConfig()

    census = missing_value_census(raw_df, config.missing_marker)

    # Declared-numeric columns that arrived as text are parsed like the known ones
    text_numeric = [
        col for col, kind in AUTOMOBILE_SCHEMA.items()
        if kind == 'numeric'
        and col not in config.coerce_columns
        and not pd.api.types.is_numeric_dtype(raw_df[col])
    ]
    df = coerce_numeric_columns(raw_df, config.coerce_columns + text_numeric, config.missing_marker)
    df = select_numeric_columns(df, AUTOMOBILE_SCHEMA, config.drop_columns)
    df = drop_incomplete_rows(df)

    return df, census


# ==================== OUTLIERS ====================

def remove_price_outliers(
    df: pd.DataFrame,
    target_col: str = 'price',
    threshold: float = 22000.0,
    verbose: bool = True
) -> pd.DataFrame:
    """
    Remove rows priced at or above the threshold.

    The threshold comes from inspecting the price distribution, it is not
    derived from the data.

    Raises:
        EmptyDatasetError: If every row is at or above the threshold
    """
    original_count = len(df)
    df = df[df[target_col] < threshold].copy()
    removed = original_count - len(df)

    if verbose:
        removed_pct = (removed / original_count * 100) if original_count else 0.0
        print(f"Removed {removed:,} rows with {target_col} >= {threshold:,.0f} ({removed_pct:.1f}%)")

    if df.empty:
        raise EmptyDatasetError(f"No rows left with {target_col} below {threshold:,.0f}")

    return df


# ==================== SPLITTER ====================

def price_strata(y: pd.Series, groups: int = 5) -> np.ndarray:
    """
    Bin a continuous target into quantile strata.

    The number of quantile break points is n // groups clipped to [2, 5], so
    small tables get a single stratum and large ones get up to four bins.

    Returns:
        Integer stratum id per row (same order as y)
    """
    y = pd.Series(y).reset_index(drop=True)
    n = len(y)
    groups = min(groups, n) if n else 1
    n_breaks = min(max(n // groups, 2), 5)

    if y.nunique() < 2:
        return np.zeros(n, dtype=int)

    strata = pd.qcut(y, q=n_breaks - 1, labels=False, duplicates='drop')
    return np.asarray(strata, dtype=int)


def stratified_split(
    df: pd.DataFrame,
    target_col: str = 'price',
    train_ratio: float = 0.85,
    rng: Optional[np.random.Generator] = None
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Split rows into train/test, approximately preserving the target distribution.

    Within each price stratum, ceil(size * train_ratio) rows are drawn for
    training and the rest go to test. The result is disjoint and exhaustive,
    and the same generator state gives the same partition.

    Args:
        df: Input DataFrame
        target_col: Column used for stratification
        train_ratio: Fraction of rows for training
        rng: numpy Generator (seeded with RANDOM_SEED if None)

    Returns:
        train_df, test_df (original index kept)
    """
    if rng is None:
        rng = np.random.default_rng(RANDOM_SEED)

    strata = price_strata(df[target_col])
    positions = np.arange(len(df))

    train_positions = []
    for stratum in np.unique(strata):
        members = positions[strata == stratum]
        n_train = math.ceil(len(members) * train_ratio)
        chosen = rng.choice(members, size=n_train, replace=False)
        train_positions.extend(chosen.tolist())

    train_mask = np.zeros(len(df), dtype=bool)
    train_mask[train_positions] = True

    train_df = df.iloc[np.flatnonzero(train_mask)].copy()
    test_df = df.iloc[np.flatnonzero(~train_mask)].copy()

    n = len(df)
    print(f"\nStratified Split (ratio {train_ratio:.2f}, {len(np.unique(strata))} price strata):")
    print(f"  Train: {len(train_df):,} rows ({len(train_df)/n*100:.1f}%)")
    print(f"  Test:  {len(test_df):,} rows ({len(test_df)/n*100:.1f}%)")

    return train_df, test_df

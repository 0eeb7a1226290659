import numpy as np
import pandas as pd
import pytest

from auto_price.config import AUTOMOBILE_SCHEMA, COERCE_COLUMNS, COLUMN_NAMES, RANDOM_SEED, PipelineConfig
from auto_price.preprocessing import (
    EmptyDatasetError,
    clean_dataset,
    coerce_numeric_columns,
    drop_incomplete_rows,
    load_dataset,
    missing_value_census,
    price_strata,
    remove_price_outliers,
    stratified_split,
)

from conftest import make_automobile_frame, write_dataset


def test_load_dataset_assigns_schema_names(dataset_with_missing):
    df = load_dataset(dataset_with_missing, coerce_columns=COERCE_COLUMNS)

    assert list(df.columns) == COLUMN_NAMES
    assert len(df) == 60
    assert df.loc[3, 'horsepower'] == '?'


def test_load_dataset_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_dataset(tmp_path / 'does-not-exist.data')


def test_load_dataset_rejects_wrong_column_count(tmp_path):
    df = make_automobile_frame().drop(columns=['price'])
    path = write_dataset(df, tmp_path / 'short.data')

    with pytest.raises(ValueError, match="Expected 26 columns"):
        load_dataset(path, coerce_columns=COERCE_COLUMNS)


def test_marker_in_undeclared_numeric_column_drops_only_that_row(tmp_path):
    df = make_automobile_frame().astype({'curb_weight': object, 'wheel_base': object})
    df.loc[5, 'curb_weight'] = '?'
    df.loc[9, 'wheel_base'] = 'long'
    path = write_dataset(df, tmp_path / 'imports-85.data')

    raw = load_dataset(path, coerce_columns=COERCE_COLUMNS)
    cleaned, census = clean_dataset(raw, PipelineConfig())

    assert len(cleaned) == 58
    assert 5 not in cleaned.index
    assert 9 not in cleaned.index
    assert pd.api.types.is_numeric_dtype(cleaned['curb_weight'])
    assert pd.api.types.is_numeric_dtype(cleaned['wheel_base'])
    assert census['curb_weight'] == 1


def test_missing_value_census_counts_marker(dataset_with_missing):
    raw = load_dataset(dataset_with_missing, coerce_columns=COERCE_COLUMNS)
    before = raw.copy()

    census = missing_value_census(raw, '?')

    assert census['horsepower'] == 2
    assert census['price'] == 1
    assert census['normalized_losses'] == 1
    assert census['make'] == 0
    assert census.sum() == 4
    pd.testing.assert_frame_equal(raw, before)


def test_coerce_numeric_columns_turns_marker_and_garbage_into_nan():
    df = pd.DataFrame({'horsepower': ['111', '?', 'fast', '95'], 'make': ['a', 'b', 'c', 'd']})

    out = coerce_numeric_columns(df, ['horsepower'], '?')

    assert out['horsepower'].tolist()[0] == 111
    assert out['horsepower'].isna().tolist() == [False, True, True, False]
    assert out['make'].tolist() == ['a', 'b', 'c', 'd']


def test_clean_dataset_drops_marker_rows(dataset_with_missing):
    raw = load_dataset(dataset_with_missing, coerce_columns=COERCE_COLUMNS)

    cleaned, census = clean_dataset(raw, PipelineConfig())

    assert len(cleaned) == 56
    for row in (3, 10, 7, 20):
        assert row not in cleaned.index
    assert cleaned.isna().sum().sum() == 0
    assert census['horsepower'] == 2


def test_clean_dataset_keeps_declared_numeric_columns_without_symboling(dataset_with_missing):
    raw = load_dataset(dataset_with_missing, coerce_columns=COERCE_COLUMNS)

    cleaned, _ = clean_dataset(raw)

    expected = [c for c, kind in AUTOMOBILE_SCHEMA.items() if kind == 'numeric' and c != 'symboling']
    assert list(cleaned.columns) == expected
    assert all(pd.api.types.is_numeric_dtype(cleaned[c]) for c in cleaned.columns)


def test_drop_incomplete_rows_raises_when_nothing_left():
    df = pd.DataFrame({'a': [1.0, np.nan], 'b': [np.nan, 2.0]})

    with pytest.raises(EmptyDatasetError):
        drop_incomplete_rows(df)


def test_remove_price_outliers_excludes_rows_at_or_above_threshold(cleaned_frame):
    df = cleaned_frame.copy()
    df.loc[0, 'price'] = 22000.0
    expected = len(df) - int((df['price'] >= 22000).sum())

    filtered = remove_price_outliers(df, 'price', 22000)

    assert len(filtered) == expected
    assert (filtered['price'] < 22000).all()
    assert 0 not in filtered.index


def test_remove_price_outliers_all_rows_removed_raises(cleaned_frame):
    with pytest.raises(EmptyDatasetError):
        remove_price_outliers(cleaned_frame, 'price', 1.0)


def test_price_strata_bin_counts():
    assert len(np.unique(price_strata(pd.Series(np.arange(20.0))))) == 3
    assert len(np.unique(price_strata(pd.Series(np.arange(200.0))))) == 4
    assert len(np.unique(price_strata(pd.Series(np.arange(8.0))))) == 1
    assert (price_strata(pd.Series([5.0] * 30)) == 0).all()


def test_stratified_split_is_disjoint_and_exhaustive(cleaned_frame):
    train, test = stratified_split(cleaned_frame, 'price', 0.85, np.random.default_rng(1))

    assert set(train.index).isdisjoint(test.index)
    assert set(train.index) | set(test.index) == set(cleaned_frame.index)
    assert abs(len(train) / len(cleaned_frame) - 0.85) < 0.05


def test_stratified_split_is_reproducible(cleaned_frame):
    train_a, test_a = stratified_split(cleaned_frame, 'price', 0.85, np.random.default_rng(1))
    train_b, test_b = stratified_split(cleaned_frame, 'price', 0.85, np.random.default_rng(1))

    assert train_a.index.tolist() == train_b.index.tolist()
    assert test_a.index.tolist() == test_b.index.tolist()


def test_stratified_split_without_generator_uses_configured_seed(cleaned_frame):
    train_a, _ = stratified_split(cleaned_frame, 'price', 0.85)
    train_b, _ = stratified_split(cleaned_frame, 'price', 0.85)
    train_seeded, _ = stratified_split(cleaned_frame, 'price', 0.85, np.random.default_rng(RANDOM_SEED))

    assert train_a.index.tolist() == train_b.index.tolist()
    assert train_a.index.tolist() == train_seeded.index.tolist()


def test_stratified_split_spans_price_range(cleaned_frame):
    _, test = stratified_split(cleaned_frame, 'price', 0.85, np.random.default_rng(7))
    strata = price_strata(cleaned_frame['price'])
    test_strata = set(strata[cleaned_frame.index.get_indexer(test.index)])

    assert len(test_strata) > 1

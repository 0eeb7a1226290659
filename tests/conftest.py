import pandas as pd
import pytest

from auto_price.config import COLUMN_NAMES


def make_automobile_frame(n_rows=60):
    """Synthetic rows in the 26-column layout; price climbs 400 per row from 5000."""
    rows = []
    for i in range(n_rows):
        rows.append({
            'symboling': i % 3 - 1,
            'normalized_losses': 90 + (i * 7) % 60,
            'make': ['toyota', 'mazda', 'bmw'][i % 3],
            'fuel_type': 'gas' if i % 5 else 'diesel',
            'aspiration': 'std',
            'num_of_doors': 'four' if i % 2 else 'two',
            'body_style': 'sedan',
            'drive_wheels': 'fwd' if i < n_rows // 2 else 'rwd',
            'engine_location': 'front',
            'wheel_base': 88.0 + 0.4 * i,
            'length': 158.0 + 0.9 * i,
            'width': 63.5 + 0.08 * i,
            'height': 52.0 + (i % 9) * 0.4,
            'curb_weight': 1900 + 25 * i,
            'engine_type': 'ohc',
            'num_of_cylinders': 'four',
            'engine_size': 90 + 3 * i,
            'fuel_system': 'mpfi',
            'bore': round(2.9 + 0.01 * i, 2),
            'stroke': round(3.0 + (i % 7) * 0.05, 2),
            'compression_ratio': round(8.5 + (i % 5) * 0.3, 1),
            'horsepower': 60 + 3 * i,
            'peak_rpm': 4800 + (i % 6) * 100,
            'city_mpg': 38 - i // 3,
            'highway_mpg': 44 - i // 3,
            'price': 5000 + 400 * i,
        })
    return pd.DataFrame(rows, columns=COLUMN_NAMES)


def write_dataset(df, path):
    """Write without header or index, like the source file."""
    df.to_csv(path, header=False, index=False)
    return path


@pytest.fixture
def automobile_frame():
    return make_automobile_frame()


@pytest.fixture
def dataset_with_missing(tmp_path):
    """60 rows; '?' in horsepower (rows 3, 10), price (row 7), normalized_losses (row 20)."""
    df = make_automobile_frame().astype({
        'horsepower': object, 'price': object, 'normalized_losses': object
    })
    df.loc[3, 'horsepower'] = '?'
    df.loc[10, 'horsepower'] = '?'
    df.loc[7, 'price'] = '?'
    df.loc[20, 'normalized_losses'] = '?'
    return write_dataset(df, tmp_path / 'imports-85.data')


@pytest.fixture
def cleaned_frame():
    """Numeric-only table as produced by the cleaner (symboling dropped)."""
    df = make_automobile_frame()
    numeric = [
        'normalized_losses', 'wheel_base', 'length', 'width', 'height', 'curb_weight',
        'engine_size', 'bore', 'stroke', 'compression_ratio', 'horsepower',
        'peak_rpm', 'city_mpg', 'highway_mpg', 'price'
    ]
    return df[numeric].astype(float)

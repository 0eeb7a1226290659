"""
Configuration for the Automobile Price KNN report.

The dataset schema, the cleaning constants and the training setup all live here
so the analysis can be re-run with a different threshold, seed or column set
without touching the pipeline code.
"""

from pathlib import Path
from typing import Dict, List

from pydantic import BaseModel, Field, field_validator, model_validator

# ==================== DATASET SCHEMA ====================

# Column name -> declared type, in file order (the CSV has no header row)
AUTOMOBILE_SCHEMA: Dict[str, str] = {
    'symboling': 'numeric',
    'normalized_losses': 'numeric',
    'make': 'text',
    'fuel_type': 'text',
    'aspiration': 'text',
    'num_of_doors': 'text',
    'body_style': 'text',
    'drive_wheels': 'text',
    'engine_location': 'text',
    'wheel_base': 'numeric',
    'length': 'numeric',
    'width': 'numeric',
    'height': 'numeric',
    'curb_weight': 'numeric',
    'engine_type': 'text',
    'num_of_cylinders': 'text',
    'engine_size': 'numeric',
    'fuel_system': 'text',
    'bore': 'numeric',
    'stroke': 'numeric',
    'compression_ratio': 'numeric',
    'horsepower': 'numeric',
    'peak_rpm': 'numeric',
    'city_mpg': 'numeric',
    'highway_mpg': 'numeric',
    'price': 'numeric',
}

COLUMN_NAMES: List[str] = list(AUTOMOBILE_SCHEMA.keys())

MISSING_MARKER = '?'

# Numeric columns stored as text because they contain the missing marker
COERCE_COLUMNS: List[str] = [
    'normalized_losses', 'bore', 'stroke', 'horsepower', 'peak_rpm', 'price'
]

# Numeric but not predictive (insurance risk rating)
DROP_COLUMNS: List[str] = ['symboling']

TARGET_COLUMN = 'price'

# Features with a visible linear relationship with price, plus the target
TRAINING_COLUMNS: List[str] = [
    'wheel_base', 'length', 'curb_weight', 'horsepower',
    'city_mpg', 'highway_mpg', 'price'
]

# ==================== ANALYSIS CONSTANTS ====================

PRICE_THRESHOLD = 22000.0
TRAIN_RATIO = 0.85
N_FOLDS = 10
K_MIN = 1
K_MAX = 20
RANDOM_SEED = 1

DATA_PATH = 'imports-85.data'
OUTPUT_DIR = 'report'


class PipelineConfig(BaseModel):
    """
    Settings for one run of the price analysis.

    Defaults reproduce the published report. The outlier threshold and the
    training columns were picked by looking at the plots, so they are plain
    fields here rather than constants baked into the pipeline.
    """
    data_path: Path = Field(Path(DATA_PATH), description="Headerless comma-separated automobile data")
    output_dir: Path = Field(Path(OUTPUT_DIR), description="Directory for report.md and plots")

    missing_marker: str = Field(MISSING_MARKER, min_length=1, description="Literal used for absent values")
    coerce_columns: List[str] = Field(default_factory=lambda: list(COERCE_COLUMNS))
    drop_columns: List[str] = Field(default_factory=lambda: list(DROP_COLUMNS))

    target_column: str = TARGET_COLUMN
    training_columns: List[str] = Field(default_factory=lambda: list(TRAINING_COLUMNS))

    price_threshold: float = Field(PRICE_THRESHOLD, gt=0, description="Rows priced at or above this are outliers")
    train_ratio: float = Field(TRAIN_RATIO, gt=0, lt=1)
    n_folds: int = Field(N_FOLDS, ge=2)
    k_min: int = Field(K_MIN, ge=1)
    k_max: int = Field(K_MAX, ge=1)
    random_seed: int = RANDOM_SEED

    @field_validator('coerce_columns', 'drop_columns')
    @classmethod
    def validate_schema_columns(cls, v):
        unknown = [col for col in v if col not in AUTOMOBILE_SCHEMA]
        if unknown:
            raise ValueError(f'unknown columns: {unknown}')
        return v

    @field_validator('training_columns')
    @classmethod
    def validate_training_columns(cls, v):
        if len(set(v)) != len(v):
            raise ValueError('training_columns contains duplicates')
        return v

    @model_validator(mode='after')
    def validate_consistency(self):
        if self.k_max < self.k_min:
            raise ValueError(f'k_max ({self.k_max}) must be >= k_min ({self.k_min})')
        if self.target_column not in self.training_columns:
            raise ValueError(f"target column '{self.target_column}' missing from training_columns")
        if len(self.training_columns) < 2:
            raise ValueError('training_columns needs at least one feature besides the target')
        return self

    @property
    def k_grid(self) -> List[int]:
        return list(range(self.k_min, self.k_max + 1))

    @property
    def feature_columns(self) -> List[str]:
        return [col for col in self.training_columns if col != self.target_column]

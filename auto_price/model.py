"""
Model Training Module for Automobile Price Prediction

This module handles:
1. Feature matrix selection by column name
2. Stratified k-fold assignment from an explicit random generator
3. Cross-validated search over the neighbor count k
4. Final KNN fit with frozen center/scale parameters
5. Test-set evaluation (RMSE, R², MAE, MAPE)

Key Technical Decisions:
- Model: KNeighborsRegressor, uniform weights, Euclidean distance
- Scaling lives inside an sklearn Pipeline, so every fold fits its own
  StandardScaler on its training rows only (no leakage into held-out rows)
- Folds are assigned once and shared by every k, so the k values compete
  on identical resamples
- Ties on RMSE go to the smallest k
"""

from dataclasses import dataclass
from typing import Dict, List, Tuple, Any

import numpy as np
import pandas as pd
from sklearn.metrics import (
    mean_absolute_error,
    mean_absolute_percentage_error,
    mean_squared_error,
    r2_score,
)
from sklearn.neighbors import KNeighborsRegressor
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import StandardScaler

from auto_price.config import PipelineConfig
from auto_price.preprocessing import price_strata


@dataclass
class TrainedModel:
    """Fitted KNN regressor plus everything needed to use and describe it."""
    pipeline: Pipeline
    n_neighbors: int
    feature_columns: List[str]
    target_column: str
    cv_results: pd.DataFrame
    training_data: pd.DataFrame

    @property
    def center(self) -> pd.Series:
        scaler = self.pipeline.named_steps['scaler']
        return pd.Series(scaler.mean_, index=self.feature_columns, name='center')

    @property
    def scale(self) -> pd.Series:
        scaler = self.pipeline.named_steps['scaler']
        return pd.Series(scaler.scale_, index=self.feature_columns, name='scale')


# ==================== FEATURE MATRIX ====================

def build_feature_matrix(df: pd.DataFrame, training_columns: List[str]) -> pd.DataFrame:
    """
    Restrict a table to the training columns, in exactly the given order.

    Raises:
        ValueError: If any training column is absent
    """
    missing = [col for col in training_columns if col not in df.columns]
    if missing:
        raise ValueError(f"Missing training columns: {missing}")
    return df[training_columns].copy()


# ==================== RESAMPLING ====================

def assign_folds(y: pd.Series, n_folds: int, rng: np.random.Generator) -> np.ndarray:
    """
    Assign each row a fold id in [0, n_folds), stratified on the target.

    Fold labels are dealt round-robin across all strata (continuing from one
    stratum to the next) and shuffled within each stratum, so every fold is
    non-empty and spans the price range.

    Args:
        y: Target values
        n_folds: Number of folds
        rng: numpy Generator

    Returns:
        Array of fold ids, same order as y
    """
    n = len(y)
    if n < n_folds:
        raise ValueError(f"Cannot make {n_folds} folds from {n} rows")

    strata = price_strata(y)
    folds = np.empty(n, dtype=int)
    offset = 0
    for stratum in np.unique(strata):
        members = np.flatnonzero(strata == stratum)
        labels = (offset + np.arange(len(members))) % n_folds
        folds[members] = rng.permutation(labels)
        offset += len(members)

    return folds


# ==================== TRAINING ====================

def fit_knn_pipeline(X: pd.DataFrame, y: pd.Series, n_neighbors: int) -> Pipeline:
    """Center/scale the features and fit a KNN regressor on the given rows only."""
    pipeline = Pipeline([
        ('scaler', StandardScaler()),
        ('knn', KNeighborsRegressor(n_neighbors=n_neighbors, weights='uniform')),
    ])
    pipeline.fit(X, y)
    return pipeline


def _regression_scores(y_true, y_pred) -> Dict[str, float]:
    y_true = np.asarray(y_true, dtype=float)
    y_pred = np.asarray(y_pred, dtype=float)
    # R² is undefined on a single held-out row
    r2 = r2_score(y_true, y_pred) if len(y_true) > 1 else np.nan
    return {
        'rmse': float(np.sqrt(mean_squared_error(y_true, y_pred))),
        'r2': float(r2),
        'mae': float(mean_absolute_error(y_true, y_pred)),
    }


def cross_validate_fold(
    X: pd.DataFrame,
    y: pd.Series,
    train_idx: np.ndarray,
    test_idx: np.ndarray,
    n_neighbors: int
) -> Tuple[Pipeline, Dict[str, float]]:
    """
    Fit on one fold's training rows and score its held-out rows.

    Args:
        X, y: Full training table (positional indices refer to these)
        train_idx: Positions used to fit scaler and KNN
        test_idx: Held-out positions
        n_neighbors: k

    Returns:
        fitted pipeline, {'rmse', 'r2', 'mae'} on the held-out rows
    """
    pipeline = fit_knn_pipeline(X.iloc[train_idx], y.iloc[train_idx], n_neighbors)
    y_pred = pipeline.predict(X.iloc[test_idx])
    return pipeline, _regression_scores(y.iloc[test_idx], y_pred)


def cross_validate_neighbors(
    X: pd.DataFrame,
    y: pd.Series,
    k_grid: List[int],
    n_folds: int,
    rng: np.random.Generator
) -> pd.DataFrame:
    """
    K-fold cross validation of KNN for every k in the grid.

    k values larger than the smallest fold training set cannot be fitted and
    are skipped.

    Returns:
        DataFrame with one row per k: k, rmse, r2, mae and their fold SDs
    """
    folds = assign_folds(y, n_folds, rng)
    positions = np.arange(len(y))
    min_train_size = len(y) - np.bincount(folds, minlength=n_folds).max()

    usable = [k for k in k_grid if k <= min_train_size]
    skipped = [k for k in k_grid if k > min_train_size]
    if skipped:
        print(f"  Skipping k={skipped}: smallest fold has only {min_train_size} training rows")
    if not usable:
        raise ValueError(f"No k in {list(k_grid)} fits a fold training set of {min_train_size} rows")

    rows = []
    for k in usable:
        fold_scores = []
        for fold in range(n_folds):
            train_idx = positions[folds != fold]
            test_idx = positions[folds == fold]
            _, scores = cross_validate_fold(X, y, train_idx, test_idx, k)
            fold_scores.append(scores)

        scores_df = pd.DataFrame(fold_scores)
        rows.append({
            'k': k,
            'rmse': scores_df['rmse'].mean(),
            'r2': np.nanmean(scores_df['r2']) if scores_df['r2'].notna().any() else np.nan,
            'mae': scores_df['mae'].mean(),
            'rmse_sd': scores_df['rmse'].std(),
            'r2_sd': scores_df['r2'].std(),
            'mae_sd': scores_df['mae'].std(),
        })

    return pd.DataFrame(rows)


def select_best_k(cv_results: pd.DataFrame) -> int:
    """Smallest k among those with the minimal mean RMSE."""
    ordered = cv_results.sort_values('k')
    best_row = ordered.loc[ordered['rmse'].idxmin()]
    return int(best_row['k'])


def train_knn_model(
    df: pd.DataFrame,
    config: PipelineConfig = None,
    rng: np.random.Generator = None,
    label: str = "KNN"
) -> TrainedModel:
    """
    Cross-validate k over the grid, then refit the best k on all rows of df.

    Args:
        df: Training partition (must contain config.training_columns)
        config: Pipeline settings (defaults if None)
        rng: numpy Generator for fold assignment
        label: Name used in printed output

    Returns:
        TrainedModel
    """
    if config is None:
        config = PipelineConfig()
    if rng is None:
        rng = np.random.default_rng(config.random_seed)

    matrix = build_feature_matrix(df, config.training_columns)
    X = matrix[config.feature_columns]
    y = matrix[config.target_column]

    print("=" * 80)
    print(f"TRAINING KNN MODEL - {label}")
    print("=" * 80)
    print(f"Rows: {len(X):,}  Features: {config.feature_columns}")
    print(f"Resampling: {config.n_folds}-fold cross validation, k in [{config.k_min}, {config.k_max}]")

    cv_results = cross_validate_neighbors(X, y, config.k_grid, config.n_folds, rng)
    best_k = select_best_k(cv_results)
    best = cv_results.set_index('k').loc[best_k]

    pipeline = fit_knn_pipeline(X, y, best_k)

    print(f"\nSelected k = {best_k} (CV RMSE {best['rmse']:,.2f}, R² {best['r2']:.4f}, MAE {best['mae']:,.2f})")

    return TrainedModel(
        pipeline=pipeline,
        n_neighbors=best_k,
        feature_columns=list(config.feature_columns),
        target_column=config.target_column,
        cv_results=cv_results,
        training_data=matrix,
    )


# ==================== EVALUATION ====================

def predict_prices(model: TrainedModel, df: pd.DataFrame) -> np.ndarray:
    """Predict with the frozen scaler and neighbors; columns taken by name."""
    X = build_feature_matrix(df, model.feature_columns)
    return model.pipeline.predict(X)


def compute_metrics(
    y_true: np.ndarray,
    y_pred: np.ndarray,
    dataset_name: str = "Dataset",
    safe_mape_threshold: float = 1.0
) -> Dict[str, float]:
    """
    Compute regression metrics in price units.

    Metrics:
    - RMSE: Root mean squared error (lower is better)
    - R² Score: Proportion of variance explained (higher is better, max 1.0)
    - MAE: Mean Absolute Error (lower is better)
    - MAPE: Mean Absolute Percentage Error, skipping rows where y_true <= threshold

    Returns:
        Dictionary with metrics
    """
    y_true = np.asarray(y_true, dtype=float)
    y_pred = np.asarray(y_pred, dtype=float)

    metrics: Dict[str, Any] = _regression_scores(y_true, y_pred)

    valid_mask = y_true > safe_mape_threshold
    if valid_mask.sum() > 0:
        metrics['mape'] = float(mean_absolute_percentage_error(y_true[valid_mask], y_pred[valid_mask]) * 100)
    else:
        metrics['mape'] = np.nan
    metrics['n'] = int(len(y_true))

    print(f"\n{'=' * 80}")
    print(f"{dataset_name.upper()} METRICS")
    print(f"{'=' * 80}")
    print(f"RMSE:      {metrics['rmse']:,.2f}")
    print(f"R² Score:  {metrics['r2']:.4f}")
    print(f"MAE:       {metrics['mae']:,.2f}")
    if not np.isnan(metrics['mape']):
        print(f"MAPE:      {metrics['mape']:.2f}%")
    else:
        print(f"MAPE:      Not computable (all values <= {safe_mape_threshold})")

    return metrics


def evaluate_model(
    model: TrainedModel,
    test_df: pd.DataFrame,
    dataset_name: str = "Test"
) -> Tuple[pd.DataFrame, Dict[str, float]]:
    """
    Score a trained model on held-out rows. Nothing is refitted.

    Returns:
        predictions DataFrame (actual, predicted, error, error_pct), metrics dict
    """
    y_true = test_df[model.target_column].to_numpy(dtype=float)
    y_pred = predict_prices(model, test_df)

    predictions = pd.DataFrame({
        'actual': y_true,
        'predicted': y_pred,
    }, index=test_df.index)
    predictions['error'] = predictions['predicted'] - predictions['actual']
    predictions['error_pct'] = predictions['error'] / predictions['actual'] * 100

    metrics = compute_metrics(y_true, y_pred, dataset_name)
    return predictions, metrics


def compare_models(results: Dict[str, Dict[str, Any]]) -> pd.DataFrame:
    """
    Side-by-side table of named models.

    Args:
        results: {name: {'model': TrainedModel, 'metrics': dict}}

    Returns:
        DataFrame indexed by model name
    """
    rows = []
    for name, result in results.items():
        model = result['model']
        metrics = result['metrics']
        best = model.cv_results.set_index('k').loc[model.n_neighbors]
        rows.append({
            'model': name,
            'k': model.n_neighbors,
            'train_rows': len(model.training_data),
            'cv_rmse': best['rmse'],
            'cv_r2': best['r2'],
            'test_rows': metrics['n'],
            'test_rmse': metrics['rmse'],
            'test_r2': metrics['r2'],
            'test_mae': metrics['mae'],
        })
    return pd.DataFrame(rows).set_index('model')

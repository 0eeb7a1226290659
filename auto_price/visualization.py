"""
Exploratory plots and summaries for the automobile price report.

These are reading aids for a human analyst. Nothing here feeds back into the
model automatically: the training columns and the outlier threshold are chosen
by looking at these outputs and set in PipelineConfig.
"""

import math
from pathlib import Path
from typing import Dict, List

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd


def feature_price_correlations(
    df: pd.DataFrame,
    target_col: str = 'price',
    weak_threshold: float = 0.3
) -> pd.DataFrame:
    """
    Pearson correlation of each feature with the target.

    The direction label is descriptive only ('positive', 'negative', 'weak').
    Constant columns have no correlation and are labelled 'undefined'.
    """
    features = [col for col in df.columns if col != target_col]
    corr = df[features].corrwith(df[target_col])

    table = pd.DataFrame({'correlation': corr})
    table['direction'] = np.select(
        [corr.isna(), corr.abs() < weak_threshold, corr > 0],
        ['undefined', 'weak', 'positive'],
        default='negative'
    )
    return table.sort_values('correlation', ascending=False)


def plot_features_vs_price(
    df: pd.DataFrame,
    features: List[str],
    target_col: str = 'price',
    *,
    save_path,
    title: str = None,
    n_cols: int = 4
) -> Path:
    """Grid of feature-vs-price scatter plots, one panel per feature."""
    n_rows = math.ceil(len(features) / n_cols)
    fig, axes = plt.subplots(n_rows, n_cols, figsize=(4 * n_cols, 3.2 * n_rows), squeeze=False)

    for ax, feature in zip(axes.flat, features):
        ax.scatter(df[feature], df[target_col], s=12, alpha=0.6)
        ax.set_xlabel(feature)
        ax.set_ylabel(target_col)

    for ax in list(axes.flat)[len(features):]:
        ax.set_visible(False)

    fig.suptitle(title or f"Features vs {target_col}")
    fig.tight_layout()
    save_path = Path(save_path)
    fig.savefig(save_path, dpi=120)
    plt.close(fig)
    return save_path


def summarize_price_distribution(
    df: pd.DataFrame,
    target_col: str = 'price',
    threshold: float = 22000.0
) -> Dict[str, float]:
    """Describe-style statistics of the target plus rows at/above the threshold."""
    prices = df[target_col]
    above = int((prices >= threshold).sum())

    summary = prices.describe().to_dict()
    summary['threshold'] = float(threshold)
    summary['n_at_or_above_threshold'] = above
    summary['pct_at_or_above_threshold'] = above / len(prices) * 100 if len(prices) else 0.0

    print(f"\n{target_col} distribution: median {summary['50%']:,.0f}, "
          f"IQR {summary['25%']:,.0f}-{summary['75%']:,.0f}, max {summary['max']:,.0f}")
    print(f"  {above:,} rows at or above {threshold:,.0f} ({summary['pct_at_or_above_threshold']:.1f}%)")
    return summary


def plot_price_distribution(
    df: pd.DataFrame,
    target_col: str = 'price',
    threshold: float = 22000.0,
    *,
    save_path
) -> Path:
    """Histogram and box plot of the target with the outlier threshold marked."""
    fig, (ax_hist, ax_box) = plt.subplots(1, 2, figsize=(12, 4.5))

    ax_hist.hist(df[target_col], bins=30, color='steelblue', edgecolor='white')
    ax_hist.axvline(threshold, color='red', linestyle='--', label=f"threshold {threshold:,.0f}")
    ax_hist.set_xlabel(target_col)
    ax_hist.set_ylabel('count')
    ax_hist.legend()

    ax_box.boxplot(df[target_col])
    ax_box.axhline(threshold, color='red', linestyle='--')
    ax_box.set_ylabel(target_col)

    fig.suptitle(f"{target_col} distribution")
    fig.tight_layout()
    save_path = Path(save_path)
    fig.savefig(save_path, dpi=120)
    plt.close(fig)
    return save_path


def plot_cv_results(cv_results: pd.DataFrame, best_k: int, save_path, title: str = None) -> Path:
    """Cross-validated RMSE against k, selected k highlighted."""
    fig, ax = plt.subplots(figsize=(7, 4.5))
    ax.plot(cv_results['k'], cv_results['rmse'], marker='o')

    best = cv_results[cv_results['k'] == best_k]
    ax.scatter(best['k'], best['rmse'], color='red', s=80, zorder=3, label=f"k = {best_k}")

    ax.set_xlabel('neighbors (k)')
    ax.set_ylabel('RMSE (cross-validation)')
    ax.set_title(title or 'Cross-validated RMSE by k')
    ax.legend()
    fig.tight_layout()
    save_path = Path(save_path)
    fig.savefig(save_path, dpi=120)
    plt.close(fig)
    return save_path

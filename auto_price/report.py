"""
End-to-end automobile price report.

run_full_pipeline() runs load -> clean -> explore -> filter -> split -> train
-> evaluate and returns every intermediate table. write_report() renders those
results into report.md next to the PNG plots.
"""

from pathlib import Path
from typing import Any, Dict

import numpy as np
import pandas as pd

from auto_price.config import PipelineConfig
from auto_price.model import compare_models, evaluate_model, train_knn_model
from auto_price.preprocessing import (
    clean_dataset,
    load_dataset,
    remove_price_outliers,
    stratified_split,
)
from auto_price.visualization import (
    feature_price_correlations,
    plot_cv_results,
    plot_features_vs_price,
    plot_price_distribution,
    summarize_price_distribution,
)

FILTERED = 'filtered'
UNFILTERED = 'unfiltered'


def run_full_pipeline(config: PipelineConfig = None) -> Dict[str, Any]:
    """
    Run the complete analysis.

    The random generator is created once from config.random_seed, before any
    random draw, and passed explicitly to the splitter and to fold assignment.

    Steps:
    1. Load the raw file against the schema
    2. Clean (census, coercion, numeric selection, complete cases)
    3. Explore (correlations, feature-vs-price plots, price distribution)
    4. Remove price outliers
    5. Split filtered and unfiltered tables into train/test
    6. Train and evaluate a KNN model on each

    Returns:
        Dictionary with every intermediate result (see keys below)
    """
    if config is None:
        config = PipelineConfig()

    output_dir = Path(config.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    rng = np.random.default_rng(config.random_seed)
    target = config.target_column

    print("=" * 80)
    print("AUTOMOBILE PRICE KNN REPORT")
    print("=" * 80)

    print("\n[1/6] Loading data...")
    raw_df = load_dataset(config.data_path, coerce_columns=config.coerce_columns)

    print("\n[2/6] Cleaning data...")
    cleaned_df, census = clean_dataset(raw_df, config)

    print("\n[3/6] Exploring feature relationships...")
    correlations = feature_price_correlations(cleaned_df, target)
    all_features = [col for col in cleaned_df.columns if col != target]
    plots = {
        'all_features': plot_features_vs_price(
            cleaned_df, all_features, target,
            save_path=output_dir / 'features_vs_price.png',
            title=f"All numeric features vs {target}"
        ),
        'selected_features': plot_features_vs_price(
            cleaned_df, config.feature_columns, target,
            save_path=output_dir / 'selected_features_vs_price.png',
            title=f"Selected training features vs {target}"
        ),
        'price_distribution': plot_price_distribution(
            cleaned_df, target, config.price_threshold,
            save_path=output_dir / 'price_distribution.png'
        ),
    }
    price_summary = summarize_price_distribution(cleaned_df, target, config.price_threshold)

    print("\n[4/6] Removing price outliers...")
    filtered_df = remove_price_outliers(cleaned_df, target, config.price_threshold)

    print("\n[5/6] Splitting train/test...")
    splits = {
        FILTERED: stratified_split(filtered_df, target, config.train_ratio, rng),
        UNFILTERED: stratified_split(cleaned_df, target, config.train_ratio, rng),
    }

    print("\n[6/6] Training and evaluating models...")
    results = {}
    for name, (train_df, test_df) in splits.items():
        model = train_knn_model(train_df, config, rng, label=name)
        predictions, metrics = evaluate_model(model, test_df, dataset_name=f"Test ({name})")
        plots[f'cv_{name}'] = plot_cv_results(
            model.cv_results, model.n_neighbors,
            save_path=output_dir / f'cv_rmse_{name}.png',
            title=f"Cross-validated RMSE by k ({name})"
        )
        results[name] = {'model': model, 'predictions': predictions, 'metrics': metrics}

    comparison = compare_models(results)

    print("\n" + "=" * 80)
    print("MODEL COMPARISON")
    print("=" * 80)
    print(comparison.to_string(float_format=lambda v: f"{v:,.4f}"))

    return {
        'config': config,
        'raw': raw_df,
        'census': census,
        'cleaned': cleaned_df,
        'correlations': correlations,
        'price_summary': price_summary,
        'filtered': filtered_df,
        'splits': splits,
        'results': results,
        'comparison': comparison,
        'plots': plots,
    }


def _table(df: pd.DataFrame, float_format: str = '{:,.4f}') -> str:
    text = df.to_string(float_format=lambda v: float_format.format(v))
    return f"```\n{text}\n```\n"


def write_report(results: Dict[str, Any], output_dir=None) -> Path:
    """
    Render pipeline results as a Markdown document.

    Args:
        results: Output of run_full_pipeline
        output_dir: Where report.md goes (config.output_dir if None)

    Returns:
        Path to report.md
    """
    config: PipelineConfig = results['config']
    output_dir = Path(output_dir or config.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    plots = results['plots']
    target = config.target_column

    raw = results['raw']
    cleaned = results['cleaned']
    census = results['census']

    lines = [
        "# Automobile Price Prediction with k-Nearest Neighbors",
        "",
        f"Data: `{config.data_path}`, seed {config.random_seed}.",
        "",
        "## Data loading",
        "",
        f"Loaded {len(raw):,} rows × {raw.shape[1]} columns.",
        "",
        f"Missing-value marker `{config.missing_marker}` per column (non-zero only):",
        "",
        _table(census[census > 0].to_frame(), '{:,.0f}'),
        "## Cleaning",
        "",
        f"Coerced to numeric: {', '.join(config.coerce_columns)}. "
        f"Dropped: {', '.join(config.drop_columns)}.",
        "",
        f"{len(cleaned):,} complete rows × {cleaned.shape[1]} numeric columns remain.",
        "",
        _table(cleaned.describe().T, '{:,.2f}'),
        "## Feature relationships",
        "",
        _table(results['correlations']),
        f"![All numeric features vs {target}]({Path(plots['all_features']).name})",
        "",
        f"Training columns: {', '.join(config.training_columns)}.",
        "",
        f"![Selected features vs {target}]({Path(plots['selected_features']).name})",
        "",
        "## Price distribution",
        "",
        _table(pd.Series(results['price_summary'], name=target).to_frame(), '{:,.2f}'),
        f"![Price distribution]({Path(plots['price_distribution']).name})",
        "",
        f"Rows with {target} >= {config.price_threshold:,.0f} are removed: "
        f"{len(cleaned):,} -> {len(results['filtered']):,} rows.",
        "",
        "## Train/test split",
        "",
    ]

    split_sizes = pd.DataFrame(
        {name: {'train': len(train), 'test': len(test)} for name, (train, test) in results['splits'].items()}
    ).T
    lines += [_table(split_sizes, '{:,.0f}')]

    for name, result in results['results'].items():
        model = result['model']
        metrics = result['metrics']
        cv = model.cv_results.set_index('k')
        lines += [
            f"## Model: {name}",
            "",
            f"{config.n_folds}-fold cross validation over k = {config.k_min}..{config.k_max} "
            f"on {len(model.training_data):,} rows.",
            "",
            _table(cv),
            f"Selected k = {model.n_neighbors}.",
            "",
            f"![CV RMSE ({name})]({Path(plots[f'cv_{name}']).name})",
            "",
            "Center/scale frozen from the training rows:",
            "",
            _table(pd.concat([model.center, model.scale], axis=1), '{:,.4f}'),
            "Test-set accuracy:",
            "",
            _table(pd.Series(metrics, name='value').to_frame()),
            "Sample predictions:",
            "",
            _table(result['predictions'].head(10), '{:,.1f}'),
        ]

    lines += [
        "## Comparison",
        "",
        _table(results['comparison']),
    ]

    report_path = output_dir / 'report.md'
    report_path.write_text("\n".join(lines), encoding='utf-8')
    print(f"\nReport written to {report_path}")
    return report_path

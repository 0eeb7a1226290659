"""
Automobile Price Prediction Report

One-shot analysis of the UCI automobile data with:
- Schema-checked loading and missing-marker cleaning
- Feature-vs-price exploration and price outlier filtering
- Seeded stratified train/test split
- k-nearest-neighbors regression with cross-validated k
"""

__version__ = "1.0.0"

"""Feature resolution and encoding."""

from .encoding import FeatureEncoder, check_cardinality, resolve_feature_columns

__all__ = [
    "FeatureEncoder",
    "check_cardinality",
    "resolve_feature_columns",
]

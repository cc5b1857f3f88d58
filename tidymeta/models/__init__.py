"""Pooled models and heterogeneity estimators for tidymeta."""

from tidymeta.models.heterogeneity import (
    compute_tau_squared,
    compute_tau_squared_reml,
    heterogeneity_stats,
)
from tidymeta.models.rma import MetaModel, rma, VALID_METHODS

__all__ = [
    "MetaModel",
    "rma",
    "VALID_METHODS",
    "compute_tau_squared",
    "compute_tau_squared_reml",
    "heterogeneity_stats",
]

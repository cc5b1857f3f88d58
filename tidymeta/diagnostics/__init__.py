"""Sensitivity diagnostics for tidymeta results tables."""

from tidymeta.diagnostics.influence import leave1out, cumul
from tidymeta.diagnostics.sensitivity import (
    sensitivity,
    cumulative,
    rename_with_prefix,
    study_order,
)

__all__ = [
    "leave1out",
    "cumul",
    "sensitivity",
    "cumulative",
    "rename_with_prefix",
    "study_order",
]

"""
tidymeta: Tidy Sensitivity Analyses for Meta-Analysis Results

Fit inverse-variance meta-analyses into tidy results tables and run
leave-one-out and cumulative sensitivity analyses that join their
diagnostics back onto the same table.

Example Usage:
    >>> import pandas as pd
    >>> from tidymeta import meta_analysis, sensitivity, cumulative
    >>>
    >>> data = pd.DataFrame({
    ...     "study_name": ["Alpha 2001", "Beta 2004", "Gamma 2010"],
    ...     "lnes": [-0.36, -0.11, -0.45],
    ...     "selnes": [0.12, 0.20, 0.15],
    ... })
    >>>
    >>> table = meta_analysis(data, yi="lnes", sei="selnes", slab="study_name")
    >>> table = sensitivity(table, exponentiate=True)
    >>>
    >>> # Add studies in descending order of weight
    >>> cumulative(table.sort_values("weight", ascending=False))

License: MIT
"""

__version__ = "0.1.0"
__author__ = "tidymeta developers"

# Models
from tidymeta.models.rma import MetaModel, rma, VALID_METHODS

# Results tables
from tidymeta.tidiers import tidy, glance
from tidymeta.meta_analysis import meta_analysis, pull_meta

# Diagnostics
from tidymeta.diagnostics.influence import leave1out, cumul
from tidymeta.diagnostics.sensitivity import (
    sensitivity,
    cumulative,
    rename_with_prefix,
    ANALYSIS_TYPES,
)

# Errors
from tidymeta.exceptions import (
    TidyMetaError,
    ModelExtractionError,
    UnsupportedAnalysisType,
    JoinKeyMismatch,
)

__all__ = [
    # Version info
    "__version__",
    "__author__",

    # Models
    "MetaModel",
    "rma",
    "VALID_METHODS",

    # Results tables
    "tidy",
    "glance",
    "meta_analysis",
    "pull_meta",

    # Diagnostics
    "leave1out",
    "cumul",
    "sensitivity",
    "cumulative",
    "rename_with_prefix",
    "ANALYSIS_TYPES",

    # Errors
    "TidyMetaError",
    "ModelExtractionError",
    "UnsupportedAnalysisType",
    "JoinKeyMismatch",
]

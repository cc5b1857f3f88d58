"""
Results tables for tidymeta.

A results table is a tidy ``DataFrame`` with one row per study, an
``"Overall"`` summary row, percent weights, and the fitted model
carried along in a ``meta`` column so downstream diagnostics can
recover it.
"""

from __future__ import annotations
from typing import Optional
import numpy as np
import pandas as pd

from tidymeta.exceptions import ModelExtractionError
from tidymeta.models.rma import MetaModel, rma
from tidymeta.tidiers import tidy


def meta_analysis(
    data: pd.DataFrame,
    yi: str,
    sei: str,
    slab: Optional[str] = None,
    method: str = "REML",
    conf_int: bool = True,
    exponentiate: bool = False,
    level: float = 0.95
) -> pd.DataFrame:
    """
    Fit a meta-analysis and return it as a results table.

    Args:
        data: Study-level data
        yi: Column holding effect estimates (analysis scale, e.g. log OR)
        sei: Column holding standard errors
        slab: Column holding study labels (default: 'Study 1', ...)
        method: Tau-squared estimator passed to ``rma``
        conf_int: Include confidence bounds
        exponentiate: Exponentiate estimates and bounds
        level: Confidence interval level

    Returns:
        Results table with study and summary rows, a ``weight`` column
        and the fitted model in ``meta``

    Example:
        >>> table = meta_analysis(df, yi="lnes", sei="selnes", slab="study_name")
        >>> sensitivity(table)
    """
    for column in (yi, sei, slab):
        if column is not None and column not in data.columns:
            raise KeyError(f"Column '{column}' not found in data")

    model = rma(
        data[yi].to_numpy(),
        data[sei].to_numpy(),
        slab=data[slab].astype(str).tolist() if slab is not None else None,
        method=method,
        level=level,
    )

    table = tidy(model, conf_int=conf_int, exponentiate=exponentiate, include_studies=True)
    table["weight"] = np.append(model.weights, np.nan)
    table["meta"] = [model] * len(table)

    return table


def pull_meta(table: pd.DataFrame) -> MetaModel:
    """
    Recover the fitted model a results table was built from.

    Args:
        table: Results table produced by ``meta_analysis``

    Returns:
        The model stored in the ``meta`` column

    Raises:
        ModelExtractionError: If no model can be recovered
    """
    if not isinstance(table, pd.DataFrame):
        raise ModelExtractionError(
            f"Expected a DataFrame, got {type(table).__name__}",
            context={"type": type(table).__name__},
        )
    if "meta" not in table.columns:
        raise ModelExtractionError(
            "Results table has no 'meta' column",
            context={"columns": list(table.columns)},
        )

    models = table["meta"].dropna()
    if models.empty:
        raise ModelExtractionError("Results table holds no fitted model")

    model = models.iloc[0]
    if not hasattr(model, "slab"):
        raise ModelExtractionError(
            f"Object in 'meta' column is not a fitted model: {type(model).__name__}",
            context={"type": type(model).__name__},
        )

    return model

"""
Sensitivity analyses of meta-analysis results tables.

This module provides leave-one-out and cumulative sensitivity analyses.
Both take a results table produced by ``meta_analysis``, re-fit the
model it carries, and join the per-study diagnostics (plus a pooled
summary row) back onto the table under a caller-chosen column prefix,
so several analyses can live side by side in one table.
"""

from __future__ import annotations
from typing import Callable, List
import warnings
import numpy as np
import pandas as pd

from tidymeta.diagnostics.influence import leave1out, cumul
from tidymeta.exceptions import JoinKeyMismatch, UnsupportedAnalysisType
from tidymeta.meta_analysis import pull_meta
from tidymeta.models.rma import MetaModel
from tidymeta.tidiers import tidy, CI_COLUMNS, EXP_COLUMNS


ANALYSIS_TYPES = ("leave1out", "group_by")

BASE_COLUMNS = [
    "study", "estimate", "std.error", "statistic", "p.value",
    "conf.low", "conf.high",
]

GLANCE_COLUMNS = ["q", "qp", "tau.squared", "i.squared", "h.squared"]

# Native refit column names -> tidy names
REFIT_COLUMN_NAMES = {
    "se": "std.error",
    "zval": "statistic",
    "pval": "p.value",
    "ci.lb": "conf.low",
    "ci.ub": "conf.high",
    "Q": "q",
    "QE": "q",
    "Qp": "qp",
    "QEp": "qp",
    "tau2": "tau.squared",
    "I2": "i.squared",
    "H2": "h.squared",
}


def rename_with_prefix(frame: pd.DataFrame, prefix: str) -> pd.DataFrame:
    """
    Prepend ``prefix`` to every column name.

    Args:
        frame: Any DataFrame
        prefix: String to prepend

    Returns:
        Renamed copy of ``frame``
    """
    return frame.add_prefix(prefix)


def _tidy_refit(refit: pd.DataFrame, glance: bool) -> pd.DataFrame:
    """Turn a refit result into study + tidy-named diagnostic columns."""
    frame = pd.DataFrame(refit).rename(columns=REFIT_COLUMN_NAMES)
    if "study" not in frame.columns:
        frame.insert(0, "study", [str(s) for s in frame.index])
    frame = frame.reset_index(drop=True)

    columns = BASE_COLUMNS + GLANCE_COLUMNS if glance else BASE_COLUMNS
    missing = [c for c in columns if c not in frame.columns]
    if missing:
        raise ValueError(f"Refit result is missing columns: {missing}")

    return frame[columns]


def _transform(frame: pd.DataFrame, prefix: str, conf_int: bool, exponentiate: bool) -> pd.DataFrame:
    frame = frame.copy()
    if exponentiate:
        exp_columns = [prefix + c for c in EXP_COLUMNS]
        frame[exp_columns] = np.exp(frame[exp_columns].astype(float))
    if not conf_int:
        frame = frame.drop(columns=[prefix + c for c in CI_COLUMNS])
    return frame


def _summary_frame(
    model: MetaModel,
    prefix: str,
    conf_int: bool,
    exponentiate: bool,
    glance: bool
) -> pd.DataFrame:
    summary = tidy(
        model,
        conf_int=conf_int,
        exponentiate=exponentiate,
        include_studies=False,
    ).drop(columns="type")

    if glance:
        summary["q"] = model.QE
        summary["qp"] = model.QEp
        summary["tau.squared"] = model.tau2
        summary["i.squared"] = model.I2
        summary["h.squared"] = model.H2

    return rename_with_prefix(summary, prefix)


def _stack(studies: pd.DataFrame, summary: pd.DataFrame) -> pd.DataFrame:
    if list(studies.columns) != list(summary.columns):
        raise ValueError(
            f"Diagnostic columns {list(studies.columns)} do not match "
            f"summary columns {list(summary.columns)}"
        )
    return pd.concat([studies, summary], ignore_index=True)


def _warn_unmatched(labels: List[str], where: str) -> None:
    if not labels:
        return
    warnings.warn(
        f"{len(labels)} study label(s) {where}: {labels}",
        JoinKeyMismatch,
        stacklevel=4,
    )


def _diagnostics(
    refit: pd.DataFrame,
    model: MetaModel,
    prefix: str,
    conf_int: bool,
    exponentiate: bool,
    glance: bool
) -> pd.DataFrame:
    """Per-study diagnostics stacked over the pooled summary row, prefixed."""
    studies = rename_with_prefix(_tidy_refit(refit, glance), prefix)
    studies = _transform(studies, prefix, conf_int, exponentiate)
    summary = _summary_frame(model, prefix, conf_int, exponentiate, glance)
    return _stack(studies, summary)


def _join(table: pd.DataFrame, stacked: pd.DataFrame, prefix: str) -> pd.DataFrame:
    key = prefix + "study"
    clashing = [c for c in stacked.columns if c in table.columns]
    if clashing:
        raise ValueError(
            f"Results table already has columns {clashing}; use a different prefix"
        )

    table_studies = set(table["study"].astype(str))
    dropped = [s for s in stacked[key].iloc[:-1] if s not in table_studies]
    _warn_unmatched(dropped, "are not in the results table and were dropped")

    if "type" in table.columns:
        study_rows = table["type"] == "study"
    else:
        study_rows = pd.Series(True, index=table.index)
    diagnosed = set(stacked[key].astype(str))
    unmatched = [s for s in table.loc[study_rows, "study"].astype(str) if s not in diagnosed]
    _warn_unmatched(unmatched, "in the results table have no diagnostics")

    return table.merge(stacked, how="left", left_on="study", right_on=key)


def sensitivity(
    table: pd.DataFrame,
    type: str = "leave1out",
    prefix: str = "l1o_",
    conf_int: bool = True,
    exponentiate: bool = False,
    glance: bool = False,
    refit_fn: Callable[..., pd.DataFrame] = leave1out,
    **kwargs
) -> pd.DataFrame:
    """
    Sensitivity analysis of meta-analysis results.

    Conducts a leave-one-out analysis and joins the results onto
    ``table``. The group-wise analysis is not implemented yet.

    Args:
        table: Results table produced by ``meta_analysis``
        type: Type of sensitivity analysis ('leave1out' or 'group_by')
        prefix: Prefix for the diagnostic columns, e.g. 'l1o_estimate'
            (columns already in ``table`` with that prefix raise ValueError)
        conf_int: Include confidence intervals
        exponentiate: Exponentiate estimates and bounds
        glance: Include refit fit statistics (q, qp, tau.squared,
            i.squared, h.squared)
        refit_fn: Function ``(model, **kwargs)`` returning one row per
            study indexed by study label
        **kwargs: Passed on to ``refit_fn``

    Returns:
        ``table`` with the prefixed diagnostic columns joined on, in its
        original row order

    Example:
        >>> meta_analysis(iud_cxca, yi="lnes", sei="selnes", slab="study_name").pipe(sensitivity)
    """
    if type not in ANALYSIS_TYPES:
        raise UnsupportedAnalysisType(type, ANALYSIS_TYPES)
    if type == "group_by":
        raise NotImplementedError("Group-wise sensitivity analysis is not implemented")

    model = pull_meta(table)
    refit = refit_fn(model, **kwargs)

    stacked = _diagnostics(refit, model, prefix, conf_int, exponentiate, glance)
    return _join(table, stacked, prefix)


def study_order(table: pd.DataFrame, model: MetaModel) -> List:
    """
    1-based native positions of the table's study rows, in table order.

    Studies missing from ``model.slab`` map to None.
    """
    key_df = pd.DataFrame({
        "study": [str(s) for s in model.slab],
        ".study_order_id": np.arange(1, len(model.slab) + 1),
    })

    studies = table.loc[table["type"] == "study", ["study"]].copy()
    studies["study"] = studies["study"].astype(str)
    ordered = studies.merge(key_df, how="left", on="study")

    missing = ordered.loc[ordered[".study_order_id"].isna(), "study"].tolist()
    _warn_unmatched(missing, "in the results table are not in the model")

    return [None if pd.isna(v) else int(v) for v in ordered[".study_order_id"]]


def cumulative(
    table: pd.DataFrame,
    prefix: str = "cumul_",
    conf_int: bool = True,
    exponentiate: bool = False,
    glance: bool = False,
    refit_fn: Callable[..., pd.DataFrame] = cumul,
    **kwargs
) -> pd.DataFrame:
    """
    Cumulative sensitivity analysis of meta-analysis results.

    Adds studies in one at a time, in the order the study rows of
    ``table`` are sorted in, so it pairs naturally with
    ``DataFrame.sort_values``.

    Args:
        table: Results table produced by ``meta_analysis``
        prefix: Prefix for the diagnostic columns, e.g. 'cumul_estimate'
        conf_int: Include confidence intervals
        exponentiate: Exponentiate estimates and bounds
        glance: Include refit fit statistics
        refit_fn: Function ``(model, order=..., **kwargs)`` returning one
            row per study indexed by the label of the study added
        **kwargs: Passed on to ``refit_fn``

    Returns:
        ``table`` with the prefixed diagnostic columns joined on, sorted
        by ``type`` (study rows first, in table order)

    Example:
        >>> table = meta_analysis(iud_cxca, yi="lnes", sei="selnes", slab="study_name")
        >>> cumulative(table.sort_values("weight", ascending=False))
    """
    model = pull_meta(table)
    order = study_order(table, model)

    refit = refit_fn(model, order=order, **kwargs)

    stacked = _diagnostics(refit, model, prefix, conf_int, exponentiate, glance)
    return (
        _join(table, stacked, prefix)
        .sort_values("type", kind="mergesort")
        .reset_index(drop=True)
    )

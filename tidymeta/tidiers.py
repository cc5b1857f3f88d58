"""
Tidiers for tidymeta models.

Convert a fitted model into the tabular shape used by results tables:
one row per study plus an ``"Overall"`` summary row.
"""

from __future__ import annotations
import numpy as np
import pandas as pd

from tidymeta.models.rma import MetaModel
from tidymeta.utils import ci_from_se, p_value_from_z


SUMMARY_LABEL = "Overall"

TIDY_COLUMNS = [
    "study", "type", "estimate", "std.error", "statistic", "p.value",
    "conf.low", "conf.high",
]

EXP_COLUMNS = ["estimate", "conf.low", "conf.high"]
CI_COLUMNS = ["conf.low", "conf.high"]


def _summary_row(model: MetaModel) -> dict:
    return {
        "study": SUMMARY_LABEL,
        "type": "summary",
        "estimate": model.estimate,
        "std.error": model.se,
        "statistic": model.zval,
        "p.value": model.pval,
        "conf.low": model.ci_lb,
        "conf.high": model.ci_ub,
    }


def tidy(
    model: MetaModel,
    conf_int: bool = True,
    exponentiate: bool = False,
    include_studies: bool = True
) -> pd.DataFrame:
    """
    Tidy a fitted model into a results frame.

    Args:
        model: Fitted MetaModel
        conf_int: Include confidence bounds
        exponentiate: Exponentiate estimate and bounds (ratio measures)
        include_studies: Include one row per study before the summary row

    Returns:
        DataFrame with columns study, type, estimate, std.error,
        statistic, p.value, conf.low, conf.high
    """
    summary = pd.DataFrame([_summary_row(model)], columns=TIDY_COLUMNS)

    if include_studies:
        zval = model.yi / model.sei
        ci_lb, ci_ub = ci_from_se(model.yi, model.sei, model.level)
        studies = pd.DataFrame({
            "study": list(model.slab),
            "type": "study",
            "estimate": model.yi,
            "std.error": model.sei,
            "statistic": zval,
            "p.value": p_value_from_z(zval),
            "conf.low": ci_lb,
            "conf.high": ci_ub,
        }, columns=TIDY_COLUMNS)
        result = pd.concat([studies, summary], ignore_index=True)
    else:
        result = summary

    if exponentiate:
        result[EXP_COLUMNS] = np.exp(result[EXP_COLUMNS])

    if not conf_int:
        result = result.drop(columns=CI_COLUMNS)

    return result


def glance(model: MetaModel) -> pd.DataFrame:
    """One-row model-level summary of fit statistics."""
    return pd.DataFrame([{
        "k": model.k,
        "method": model.method,
        "tau.squared": model.tau2,
        "i.squared": model.I2,
        "h.squared": model.H2,
        "q": model.QE,
        "qp": model.QEp,
    }])

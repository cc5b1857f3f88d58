"""
Influence refits for tidymeta.

This module provides the leave-one-out and cumulative refits used
by the sensitivity analyses. Both return one row per study, indexed
by study label.
"""

from __future__ import annotations
from typing import Optional, Sequence, List
import pandas as pd

from tidymeta.models.rma import MetaModel


LEAVE1OUT_COLUMNS = [
    "estimate", "se", "zval", "pval", "ci.lb", "ci.ub",
    "Q", "Qp", "tau2", "I2", "H2",
]

CUMUL_COLUMNS = [
    "estimate", "se", "zval", "pval", "ci.lb", "ci.ub",
    "QE", "QEp", "tau2", "I2", "H2",
]


def leave1out(model: MetaModel, **kwargs) -> pd.DataFrame:
    """
    Leave-one-out analysis.

    Refits ``model`` once per study with that study excluded.

    Args:
        model: Fitted MetaModel with at least two studies
        **kwargs: Accepted for interface compatibility; unused

    Returns:
        DataFrame indexed by the excluded study's label
    """
    n = model.k
    if n < 2:
        raise ValueError("Leave-one-out analysis requires at least two studies")

    rows = []
    for i in range(n):
        kept = [j for j in range(n) if j != i]
        fit = model.refit(kept).to_dict()
        fit["Q"] = fit.pop("QE")
        fit["Qp"] = fit.pop("QEp")
        rows.append(fit)

    return pd.DataFrame(
        rows,
        index=pd.Index(model.slab),
        columns=LEAVE1OUT_COLUMNS,
    )


def _validate_order(order: Sequence, k: int) -> List[int]:
    positions = []
    for value in order:
        if pd.isna(value):
            raise ValueError(
                "order contains a missing position; every study must match a model label"
            )
        if int(value) != value:
            raise ValueError(f"order positions must be integers, got {value!r}")
        position = int(value)
        if not 1 <= position <= k:
            raise ValueError(f"order position {position} is out of range 1..{k}")
        positions.append(position)

    if sorted(positions) != list(range(1, k + 1)):
        raise ValueError(f"order must be a permutation of 1..{k}")

    return positions


def cumul(
    model: MetaModel,
    order: Optional[Sequence[int]] = None,
    **kwargs
) -> pd.DataFrame:
    """
    Cumulative meta-analysis (adding studies one at a time).

    Args:
        model: Fitted MetaModel
        order: 1-based positions into ``model.slab`` giving the order in
            which studies are added (default: native order)
        **kwargs: Accepted for interface compatibility; unused

    Returns:
        DataFrame whose i-th row is the fit on the first i studies of
        ``order``, indexed by the label of the study added at that step
    """
    n = model.k
    if order is None:
        positions = list(range(1, n + 1))
    else:
        positions = _validate_order(order, n)

    indices = [p - 1 for p in positions]

    rows = []
    for step in range(1, n + 1):
        rows.append(model.refit(indices[:step]).to_dict())

    return pd.DataFrame(
        rows,
        index=pd.Index([model.slab[i] for i in indices]),
        columns=CUMUL_COLUMNS,
    )

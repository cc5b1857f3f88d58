"""
Inverse-variance meta-analysis models for tidymeta.

This module implements the fixed- and random-effects pooled model
that results tables are built from and that the sensitivity
diagnostics re-fit.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List, Sequence
import numpy as np

from tidymeta.models.heterogeneity import compute_tau_squared, heterogeneity_stats
from tidymeta.utils import ci_from_se, p_value_from_z, validate_level


VALID_METHODS = ("FE", "DL", "REML", "PM", "HS", "SJ")


@dataclass
class MetaModel:
    """
    Fixed- or random-effects inverse-variance meta-analysis.

    Implements the model:
        y_i | θ_i ~ N(θ_i, s_i²)
        θ_i ~ N(μ, τ²)

    with τ² = 0 for the fixed-effect ('FE') method.

    Attributes:
        yi: Effect estimates (on analysis scale)
        sei: Standard errors
        slab: Study labels; defines study identity and native order
        method: Tau-squared estimator ('FE', 'DL', 'REML', 'PM', 'HS', 'SJ')
        level: Confidence interval level
    """

    yi: np.ndarray
    sei: np.ndarray
    slab: Optional[List[str]] = None
    method: str = "REML"
    level: float = 0.95

    # Fitted results
    estimate: float = field(default=np.nan, init=False)
    se: float = field(default=np.nan, init=False)
    zval: float = field(default=np.nan, init=False)
    pval: float = field(default=np.nan, init=False)
    ci_lb: float = field(default=np.nan, init=False)
    ci_ub: float = field(default=np.nan, init=False)
    tau2: float = field(default=0.0, init=False)
    QE: float = field(default=np.nan, init=False)
    QEp: float = field(default=np.nan, init=False)
    I2: float = field(default=np.nan, init=False)
    H2: float = field(default=np.nan, init=False)
    weights: np.ndarray = field(default_factory=lambda: np.array([]), init=False, repr=False)
    _fitted: bool = field(default=False, init=False, repr=False)

    def __post_init__(self):
        """Validate inputs."""
        self.yi = np.asarray(self.yi, dtype=float).flatten()
        self.sei = np.asarray(self.sei, dtype=float).flatten()

        if self.method not in VALID_METHODS:
            raise ValueError(f"method must be one of {VALID_METHODS}")
        validate_level(self.level)

        if len(self.yi) == 0:
            raise ValueError("At least one study is required")
        if len(self.sei) != len(self.yi):
            raise ValueError("yi and sei must have same length")
        if np.any(~np.isfinite(self.yi)) or np.any(~np.isfinite(self.sei)):
            raise ValueError("yi and sei must be finite")
        if np.any(self.sei <= 0):
            raise ValueError("sei must be positive")

        if self.slab is None:
            self.slab = [f"Study {i + 1}" for i in range(len(self.yi))]
        else:
            self.slab = [str(s) for s in self.slab]
            if len(self.slab) != len(self.yi):
                raise ValueError("slab must have same length as yi")
            if len(set(self.slab)) != len(self.slab):
                raise ValueError("slab labels must be unique")

    @property
    def k(self) -> int:
        """Number of studies."""
        return len(self.yi)

    @property
    def is_fitted(self) -> bool:
        return self._fitted

    def fit(self) -> MetaModel:
        """
        Fit the pooled model.

        Returns:
            self, with result attributes populated
        """
        variances = self.sei ** 2

        self.tau2 = compute_tau_squared(self.yi, self.sei, self.method)

        w = 1 / (variances + self.tau2)
        self.estimate = float(np.sum(w * self.yi) / np.sum(w))
        self.se = float(1 / np.sqrt(np.sum(w)))
        self.zval = self.estimate / self.se
        self.pval = float(p_value_from_z(self.zval))
        ci_lb, ci_ub = ci_from_se(self.estimate, self.se, self.level)
        self.ci_lb = float(ci_lb)
        self.ci_ub = float(ci_ub)
        self.weights = 100 * w / np.sum(w)

        het = heterogeneity_stats(self.yi, self.sei, self.tau2, self.method)
        self.QE = het["QE"]
        self.QEp = het["QEp"]
        self.I2 = het["I2"]
        self.H2 = het["H2"]

        self._fitted = True
        return self

    def refit(self, indices: Sequence[int]) -> MetaModel:
        """
        Fit the same model on a subset of studies.

        Args:
            indices: 0-based positions of the studies to keep, in order

        Returns:
            New fitted MetaModel
        """
        indices = list(indices)
        return rma(
            self.yi[indices],
            self.sei[indices],
            slab=[self.slab[i] for i in indices],
            method=self.method,
            level=self.level,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Pooled results as a flat dictionary, keyed by native column names."""
        return {
            "estimate": self.estimate,
            "se": self.se,
            "zval": self.zval,
            "pval": self.pval,
            "ci.lb": self.ci_lb,
            "ci.ub": self.ci_ub,
            "QE": self.QE,
            "QEp": self.QEp,
            "tau2": self.tau2,
            "I2": self.I2,
            "H2": self.H2,
        }


def rma(
    yi: Sequence[float],
    sei: Sequence[float],
    slab: Optional[Sequence[str]] = None,
    method: str = "REML",
    level: float = 0.95
) -> MetaModel:
    """
    Fit an inverse-variance meta-analysis.

    Args:
        yi: Effect estimates
        sei: Standard errors
        slab: Study labels (default: 'Study 1', 'Study 2', ...)
        method: Tau-squared estimator
        level: Confidence interval level

    Returns:
        Fitted MetaModel
    """
    return MetaModel(
        yi=yi,
        sei=sei,
        slab=list(slab) if slab is not None else None,
        method=method,
        level=level,
    ).fit()

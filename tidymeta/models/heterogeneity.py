"""
Heterogeneity estimation for tidymeta models.

This module provides between-study variance estimators and the
Q / I² / H² statistics reported alongside every pooled fit.
"""

from __future__ import annotations
from typing import Dict, Tuple
import warnings
import numpy as np
from scipy import stats


def _fixed_effect_q(y: np.ndarray, variances: np.ndarray) -> float:
    weights = 1 / variances
    theta_fe = np.sum(weights * y) / np.sum(weights)
    return float(np.sum(weights * (y - theta_fe) ** 2))


def compute_tau_squared_reml(
    y: np.ndarray,
    se: np.ndarray,
    max_iter: int = 100,
    tol: float = 1e-6
) -> Tuple[float, bool]:
    """
    Estimate tau-squared using REML (Fisher scoring, intercept-only model).

    Args:
        y: Effect estimates
        se: Standard errors
        max_iter: Maximum iterations
        tol: Convergence tolerance

    Returns:
        Tuple of (tau_squared, converged)
    """
    y = np.asarray(y, dtype=float).flatten()
    se = np.asarray(se, dtype=float).flatten()
    n = len(y)
    X = np.ones((n, 1))
    variances = se ** 2

    # Initialize with DL estimate
    tau_sq = compute_tau_squared(y, se, "DL")

    converged = False
    for _ in range(max_iter):
        W = np.diag(1 / (variances + tau_sq))

        XtWX_inv = np.linalg.pinv(X.T @ W @ X)
        beta = XtWX_inv @ X.T @ W @ y
        residuals = y - X @ beta

        # Projection matrix
        P = W - W @ X @ XtWX_inv @ X.T @ W

        score = -0.5 * np.trace(P) + 0.5 * residuals.T @ P @ P @ residuals
        fisher = 0.5 * np.trace(P @ P)

        tau_sq_new = max(0.0, tau_sq + score / fisher)

        if abs(tau_sq_new - tau_sq) < tol:
            converged = True
            tau_sq = tau_sq_new
            break

        tau_sq = tau_sq_new

    return float(tau_sq), converged


def compute_tau_squared(
    y: np.ndarray,
    se: np.ndarray,
    method: str = "DL"
) -> float:
    """
    Estimate between-study variance (tau-squared).

    Args:
        y: Effect estimates
        se: Standard errors
        method: Estimation method ('FE', 'DL', 'PM', 'REML', 'HS', 'SJ')

    Returns:
        Estimated tau-squared (0 for fixed-effect fits and single studies)
    """
    y = np.asarray(y, dtype=float).flatten()
    se = np.asarray(se, dtype=float).flatten()
    n = len(y)

    if method == "FE" or n < 2:
        return 0.0

    variances = se ** 2
    weights = 1 / variances
    q = _fixed_effect_q(y, variances)

    if method == "DL":
        # DerSimonian-Laird
        c = np.sum(weights) - np.sum(weights ** 2) / np.sum(weights)
        tau_sq = max(0.0, (q - (n - 1)) / c)

    elif method == "REML":
        tau_sq, converged = compute_tau_squared_reml(y, se)
        if not converged:
            warnings.warn("REML did not converge; using last estimate", RuntimeWarning)

    elif method == "PM":
        # Paule-Mandel
        from scipy.optimize import brentq

        def pm_eq(t):
            w = 1 / (variances + t)
            theta = np.sum(w * y) / np.sum(w)
            return np.sum(w * (y - theta) ** 2) - (n - 1)

        if pm_eq(0) <= 0:
            tau_sq = 0.0
        else:
            upper = max(np.var(y, ddof=1), np.max(variances)) * 10
            while pm_eq(upper) > 0:
                upper *= 2
            tau_sq = brentq(pm_eq, 0, upper)

    elif method == "HS":
        # Hunter-Schmidt: (Q - k) / Σw
        tau_sq = max(0.0, (q - n) / np.sum(weights))

    elif method == "SJ":
        # Sidik-Jonkman
        theta_0 = np.mean(y)
        tau_sq_0 = np.sum((y - theta_0) ** 2) / n
        if tau_sq_0 == 0:
            return 0.0

        w = 1 / (variances + tau_sq_0)
        theta_1 = np.sum(w * y) / np.sum(w)

        tau_sq = np.sum((y - theta_1) ** 2 / (variances / tau_sq_0 + 1)) / (n - 1)
        tau_sq = max(0.0, tau_sq)

    else:
        raise ValueError(f"Unknown tau-squared method: {method}")

    return float(tau_sq)


def typical_within_variance(se: np.ndarray) -> float:
    """
    Typical within-study variance used for random-effects I² and H².

    Args:
        se: Standard errors

    Returns:
        s² = (k - 1) Σw / ((Σw)² - Σw²)
    """
    se = np.asarray(se, dtype=float).flatten()
    weights = 1 / se ** 2
    k = len(weights)
    return float((k - 1) * np.sum(weights) / (np.sum(weights) ** 2 - np.sum(weights ** 2)))


def heterogeneity_stats(
    y: np.ndarray,
    se: np.ndarray,
    tau_squared: float,
    method: str
) -> Dict[str, float]:
    """
    Compute Q, its p-value, I² (percent) and H² for a pooled fit.

    Args:
        y: Effect estimates
        se: Standard errors
        tau_squared: Estimated between-study variance
        method: Estimation method of the fit

    Returns:
        Dictionary with QE, QEp, I2 and H2
    """
    y = np.asarray(y, dtype=float).flatten()
    se = np.asarray(se, dtype=float).flatten()
    k = len(y)
    df = k - 1

    q = _fixed_effect_q(y, se ** 2)

    if df < 1:
        return {"QE": q, "QEp": np.nan, "I2": np.nan, "H2": np.nan}

    q_p = float(stats.chi2.sf(q, df))

    if method == "FE":
        i_squared = max(0.0, (q - df) / q) * 100 if q > 0 else 0.0
        h_squared = q / df
    else:
        s2 = typical_within_variance(se)
        i_squared = 100 * tau_squared / (tau_squared + s2)
        h_squared = (tau_squared + s2) / s2

    return {
        "QE": q,
        "QEp": q_p,
        "I2": float(i_squared),
        "H2": float(h_squared),
    }

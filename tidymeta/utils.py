"""
Utility functions for tidymeta.

Small statistical helpers shared by the model and tidier modules.
"""

from __future__ import annotations
from typing import Tuple, Union
import numpy as np
from scipy import stats


def z_score(level: float = 0.95) -> float:
    """
    Get z-score for a confidence level.

    Args:
        level: Confidence level (0 to 1)

    Returns:
        z-score for two-tailed confidence interval
    """
    return stats.norm.ppf((1 + level) / 2)


def ci_from_se(
    estimate: Union[float, np.ndarray],
    se: Union[float, np.ndarray],
    level: float = 0.95
) -> Tuple[Union[float, np.ndarray], Union[float, np.ndarray]]:
    """
    Compute Wald confidence bounds from an estimate and its standard error.

    Args:
        estimate: Point estimate(s)
        se: Standard error(s)
        level: Confidence level

    Returns:
        Tuple of (lower, upper)
    """
    z = z_score(level)
    return estimate - z * se, estimate + z * se


def p_value_from_z(
    z: Union[float, np.ndarray],
    two_tailed: bool = True
) -> Union[float, np.ndarray]:
    """
    Compute p-value from z statistic.

    Args:
        z: Z statistic(s)
        two_tailed: Whether to use two-tailed test

    Returns:
        P-value(s)
    """
    if two_tailed:
        return 2 * stats.norm.sf(np.abs(z))
    return stats.norm.sf(z)


def validate_level(level: float) -> None:
    """Raise if a confidence level is outside (0, 1)."""
    if not 0 < level < 1:
        raise ValueError(f"level must be in (0, 1), got {level}")

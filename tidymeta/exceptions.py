"""
Exceptions and warning categories for tidymeta.
"""

from __future__ import annotations
from typing import Any, Dict, Optional, Sequence


class TidyMetaError(Exception):
    """Base exception for tidymeta errors."""

    def __init__(self, message: str, *, context: Optional[Dict[str, Any]] = None) -> None:
        self.message = message
        self.context = context or {}
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, context={self.context!r})"


class ModelExtractionError(TidyMetaError, ValueError):
    """Raised when a results table carries no recoverable fitted model."""


class UnsupportedAnalysisType(TidyMetaError, ValueError):
    """Raised when an unknown sensitivity analysis type is requested."""

    def __init__(
        self,
        analysis_type: Any,
        supported: Sequence[str],
        *,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        ctx = context or {}
        ctx["type"] = analysis_type
        ctx["supported"] = list(supported)
        super().__init__(
            f"Unknown sensitivity analysis type {analysis_type!r}; "
            f"must be one of {list(supported)}",
            context=ctx,
        )
        self.type = analysis_type
        self.supported = list(supported)


class JoinKeyMismatch(UserWarning):
    """Study labels of the model and the results table disagree."""

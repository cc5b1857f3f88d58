from __future__ import annotations

import pandas as pd
import pytest

from tidymeta import meta_analysis, rma


@pytest.fixture
def study_data() -> pd.DataFrame:
    return pd.DataFrame({
        "study_name": ["Alpha 2001", "Beta 2004", "Gamma 2008", "Delta 2012", "Epsilon 2015"],
        "lnes": [-0.36, -0.11, -0.45, 0.05, -0.28],
        "selnes": [0.12, 0.20, 0.15, 0.25, 0.10],
    })


@pytest.fixture
def model(study_data):
    return rma(
        study_data["lnes"],
        study_data["selnes"],
        slab=study_data["study_name"],
        method="DL",
    )


@pytest.fixture
def results_table(study_data) -> pd.DataFrame:
    return meta_analysis(study_data, yi="lnes", sei="selnes", slab="study_name", method="DL")


@pytest.fixture
def abc_model():
    """Three equally precise studies with a fixed-effect pooled estimate of 2.0."""
    return rma([1.0, 2.0, 3.0], [1.0, 1.0, 1.0], slab=["A", "B", "C"], method="FE")

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from tidymeta import (
    JoinKeyMismatch,
    ModelExtractionError,
    UnsupportedAnalysisType,
    leave1out,
    rename_with_prefix,
    sensitivity,
    tidy,
)

BASE = ["study", "estimate", "std.error", "statistic", "p.value", "conf.low", "conf.high"]
GLANCE = ["q", "qp", "tau.squared", "i.squared", "h.squared"]


def prefixed(prefix, names):
    return [prefix + n for n in names]


def added_columns(result, table):
    return [c for c in result.columns if c not in table.columns]


def test_rename_with_prefix():
    frame = pd.DataFrame({"a": [1], "b": [2]})
    renamed = rename_with_prefix(frame, "x_")

    assert list(renamed.columns) == ["x_a", "x_b"]
    assert list(frame.columns) == ["a", "b"]


def test_leave1out_defaults(results_table, model):
    result = sensitivity(results_table)

    assert len(result) == len(results_table)
    assert result["study"].tolist() == results_table["study"].tolist()
    assert added_columns(result, results_table) == prefixed("l1o_", BASE)

    expected = leave1out(model)
    for label in model.slab:
        row = result.loc[result["study"] == label].iloc[0]
        assert row["l1o_estimate"] == pytest.approx(expected.loc[label, "estimate"])
        assert row["l1o_std.error"] == pytest.approx(expected.loc[label, "se"])
        assert row["l1o_conf.low"] == pytest.approx(expected.loc[label, "ci.lb"])

    overall = result.loc[result["study"] == "Overall"].iloc[0]
    assert overall["l1o_estimate"] == pytest.approx(model.estimate)
    assert overall["l1o_std.error"] == pytest.approx(model.se)


def test_diagnostic_rows_are_studies_plus_summary(results_table, model):
    result = sensitivity(results_table)
    assert result["l1o_study"].notna().sum() == model.k + 1


def test_glance_adds_fit_statistics(results_table, model):
    result = sensitivity(results_table, glance=True)

    assert added_columns(result, results_table) == prefixed("l1o_", BASE + GLANCE)
    overall = result.loc[result["study"] == "Overall"].iloc[0]
    assert overall["l1o_tau.squared"] == pytest.approx(model.tau2)
    assert overall["l1o_q"] == pytest.approx(model.QE)
    assert result["l1o_i.squared"].notna().all()


def test_exponentiate_is_invertible(results_table):
    plain = sensitivity(results_table)
    exp = sensitivity(results_table, exponentiate=True)

    for column in ["l1o_estimate", "l1o_conf.low", "l1o_conf.high"]:
        np.testing.assert_allclose(np.log(exp[column]), plain[column])
    np.testing.assert_allclose(exp["l1o_std.error"], plain["l1o_std.error"])
    np.testing.assert_allclose(exp["l1o_p.value"], plain["l1o_p.value"])


def test_conf_int_false_drops_only_bounds(results_table):
    with_ci = added_columns(sensitivity(results_table), results_table)
    without_ci = added_columns(sensitivity(results_table, conf_int=False), results_table)

    assert set(with_ci) - set(without_ci) == {"l1o_conf.low", "l1o_conf.high"}
    assert set(without_ci) <= set(with_ci)


def test_conf_int_false_with_exponentiate(results_table):
    result = sensitivity(results_table, conf_int=False, exponentiate=True)
    assert added_columns(result, results_table) == prefixed(
        "l1o_", ["study", "estimate", "std.error", "statistic", "p.value"]
    )


def test_prefixes_let_runs_coexist(results_table):
    result = sensitivity(sensitivity(results_table), prefix="again_")

    assert "l1o_estimate" in result.columns
    assert "again_estimate" in result.columns
    assert len(result) == len(results_table)


def test_extra_arguments_reach_refit_function(results_table):
    seen = {}

    def refit(model, **kwargs):
        seen.update(kwargs)
        return leave1out(model)

    sensitivity(results_table, refit_fn=refit, digits=3)
    assert seen == {"digits": 3}


def test_end_to_end_with_stub_refit(abc_model):
    def refit(model, **kwargs):
        return pd.DataFrame(
            {
                "estimate": [1.0, 2.0, 3.0],
                "std.error": [0.5, 0.5, 0.5],
                "statistic": [2.0, 4.0, 6.0],
                "p.value": [0.05, 0.01, 0.001],
                "conf.low": [0.0, 1.0, 2.0],
                "conf.high": [2.0, 3.0, 4.0],
            },
            index=["A", "B", "C"],
        )

    table = tidy(abc_model)
    table["meta"] = [abc_model] * len(table)
    assert abc_model.estimate == pytest.approx(2.0)

    result = sensitivity(table, prefix="l1o_", refit_fn=refit)

    assert len(result) == 4
    assert added_columns(result, table) == prefixed("l1o_", BASE)
    assert result["l1o_study"].tolist() == ["A", "B", "C", "Overall"]
    assert result["l1o_estimate"].tolist() == pytest.approx([1.0, 2.0, 3.0, 2.0])


def test_group_by_is_not_implemented(results_table):
    with pytest.raises(NotImplementedError):
        sensitivity(results_table, type="group_by")


def test_unknown_type(results_table):
    with pytest.raises(UnsupportedAnalysisType) as excinfo:
        sensitivity(results_table, type="bootstrap")

    assert isinstance(excinfo.value, ValueError)
    assert excinfo.value.type == "bootstrap"
    assert "leave1out" in excinfo.value.supported


def test_table_without_model():
    table = pd.DataFrame({"study": ["A", "B"], "type": ["study", "study"]})
    with pytest.raises(ModelExtractionError):
        sensitivity(table)


def test_refit_errors_propagate(results_table):
    def refit(model, **kwargs):
        raise RuntimeError("refit failed")

    with pytest.raises(RuntimeError, match="refit failed"):
        sensitivity(results_table, refit_fn=refit)


def test_refit_missing_columns(results_table):
    def refit(model, **kwargs):
        return leave1out(model).drop(columns=["pval"])

    with pytest.raises(ValueError, match="p.value"):
        sensitivity(results_table, refit_fn=refit)


def test_glance_requires_fit_statistics(results_table):
    def refit(model, **kwargs):
        return leave1out(model).drop(columns=["Q", "Qp", "tau2", "I2", "H2"])

    assert "l1o_q" not in sensitivity(results_table, refit_fn=refit).columns
    with pytest.raises(ValueError, match="missing"):
        sensitivity(results_table, refit_fn=refit, glance=True)


def test_missing_study_rows_warn(results_table):
    table = results_table.loc[results_table["study"] != "Beta 2004"].reset_index(drop=True)

    with pytest.warns(JoinKeyMismatch, match="Beta 2004"):
        result = sensitivity(table)

    assert len(result) == len(table)
    assert "Beta 2004" not in result["l1o_study"].tolist()


def test_unknown_table_studies_warn(results_table):
    extra = pd.DataFrame({"study": ["Stranger"], "type": ["study"]})
    table = pd.concat([results_table, extra], ignore_index=True)

    with pytest.warns(JoinKeyMismatch, match="Stranger"):
        result = sensitivity(table)

    stranger = result.loc[result["study"] == "Stranger"].iloc[0]
    assert pd.isna(stranger["l1o_estimate"])


def test_repeated_prefix_is_rejected(results_table):
    once = sensitivity(results_table)

    with pytest.raises(ValueError, match="different prefix"):
        sensitivity(once)

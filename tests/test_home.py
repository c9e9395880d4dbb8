from pathlib import Path
import sys
import warnings

import numpy as np
import pandas as pd
from statsmodels.tools.sm_exceptions import ModelWarning

from homefield.core.executor import TaskPool
from homefield.core.types import SchemaError, TrialSchema
from homefield.ops.home import MeanSiteEffects, MixedModelSiteEffects, get_home_site, id_home, select_home

SYN_PATH = Path(__file__).resolve().parent / "synthetic"
if str(SYN_PATH) not in sys.path:
    sys.path.insert(0, str(SYN_PATH))

from generate_trials import generate_trials


class FixedEffects:
    name = "fixed"

    def __init__(self, effects):
        self.effects = np.asarray(effects, dtype=float)
        self.calls = 0

    def site_effects(self, values, codes, sites):
        self.calls += 1
        return self.effects


def _balanced_trial() -> pd.DataFrame:
    # g1 wins both years at A, splits at B, loses at C; g2 mirrors it
    g1_wins = {("A", 2019): True, ("A", 2020): True, ("B", 2019): True, ("B", 2020): False}
    rows = []
    for site in ("A", "B", "C"):
        for year in (2019, 2020):
            wins = g1_wins.get((site, year), False)
            rows.append({"Location": site, "Year": year, "Line": "g1", "Yield": 12.0 if wins else 8.0})
            rows.append({"Location": site, "Year": year, "Line": "g2", "Yield": 8.0 if wins else 12.0})
    return pd.DataFrame(rows)


SCHEMA = TrialSchema(site="Location", year="Year", geno="Line", pheno="Yield")


def test_balanced_trial_home_matches_highest_mean():
    df = _balanced_trial()
    for blup in (True, False):
        out = id_home(df, SCHEMA, blup=blup)
        homes = get_home_site(out, "Line", "Location").set_index("Line")["Location"].to_dict()
        assert homes == {"g1": "A", "g2": "C"}

        means = out.groupby(["Line", "Location"])["rel_Yield"].mean()
        for line, site in homes.items():
            assert means.loc[line].idxmax() == site


def test_id_home_output_columns_and_order():
    df = _balanced_trial()
    out = id_home(df, SCHEMA, blup=False)
    assert list(out.columns) == list(df.columns) + ["rel_Yield", "is_home"]
    assert len(out) == len(df)
    pd.testing.assert_frame_equal(out[list(df.columns)], df)
    assert out["is_home"].dtype == bool


def test_each_genotype_gets_one_home_site():
    generated = generate_trials(n_sites=4, n_years=3, n_genos=8, seed=11)
    schema = TrialSchema(site="site", year="year", geno="geno", pheno="yield")
    out = id_home(generated.data, schema)
    for geno, sub in out.groupby("geno"):
        home_sites = sub.loc[sub["is_home"], "site"].unique()
        assert len(home_sites) == 1
        assert home_sites[0] == generated.meta["home_sites"][geno]


def test_unreplicated_genotype_falls_back_to_means():
    df = _balanced_trial()
    extra = pd.DataFrame([{"Location": "A", "Year": 2019, "Line": "g3", "Yield": 15.0}])
    out = id_home(pd.concat([df, extra], ignore_index=True), SCHEMA, blup=True)
    g3 = out.loc[out["Line"] == "g3"]
    assert len(g3) == 1
    assert bool(g3["is_home"].iloc[0])


def test_select_home_tie_goes_to_smallest_site():
    records = pd.DataFrame({"site": ["B", "A", "C"], "rel": [1.0, 1.0, -2.0]})
    out = select_home(records, blup=True)
    assert out.loc[out["is_home"], "site"].tolist() == ["A"]


def test_select_home_all_missing_has_no_home():
    records = pd.DataFrame({"site": ["A", "B"], "rel": [np.nan, np.nan]})
    out = select_home(records)
    assert out.empty
    assert "is_home" in out.columns


def test_select_home_drops_missing_values():
    records = pd.DataFrame({"site": ["A", "A", "B"], "rel": [0.5, np.nan, 0.1]})
    out = select_home(records, blup=False)
    assert len(out) == 2
    assert out["is_home"].tolist() == [True, False]


def test_select_home_uses_injected_estimator():
    records = pd.DataFrame({"site": ["A", "A", "B", "B"], "rel": [1.0, 0.9, -1.0, -0.8]})
    estimator = FixedEffects([0.0, 3.0])
    out = select_home(records, estimator=estimator)
    assert estimator.calls == 1
    assert out.loc[out["is_home"], "site"].unique().tolist() == ["B"]

    # no replicated site, so the estimator is bypassed
    estimator = FixedEffects([0.0, 3.0])
    out = select_home(records.iloc[[0, 2]], estimator=estimator)
    assert estimator.calls == 0
    assert out.loc[out["is_home"], "site"].tolist() == ["A"]


def test_select_home_undefined_shrinkage_falls_back_to_means():
    records = pd.DataFrame({"site": ["A", "A", "B", "B"], "rel": [1.0, 0.9, -1.0, -0.8]})
    out = select_home(records, estimator=FixedEffects([np.nan, np.nan]))
    assert out.loc[out["is_home"], "site"].unique().tolist() == ["A"]


def test_mean_site_effects():
    effects = MeanSiteEffects().site_effects(
        np.array([1.0, 3.0, 5.0]), np.array([0, 0, 1]), np.array(["A", "B"])
    )
    assert np.allclose(effects, [2.0, 5.0])


def test_select_home_missing_column_raises():
    try:
        select_home(pd.DataFrame({"site": ["A"]}))
        assert False
    except SchemaError as exc:
        assert "rel" in str(exc)


def test_id_home_missing_column_raises():
    try:
        id_home(_balanced_trial().drop(columns="Year"), SCHEMA)
        assert False
    except KeyError as exc:
        assert "Year" in str(exc)


def test_get_home_site_counts_home_years():
    data = pd.DataFrame(
        {
            "geno": ["g1", "g1", "g1", "g2", "g2"],
            "site": ["A", "A", "B", "B", "A"],
            "is_home": [True, True, False, True, False],
        }
    )
    out = get_home_site(data, "geno", "site")
    assert out.to_dict(orient="records") == [
        {"geno": "g1", "site": "A", "home_years": 2},
        {"geno": "g2", "site": "B", "home_years": 1},
    ]

    try:
        get_home_site(data.drop(columns="is_home"), "geno", "site")
        assert False
    except KeyError as exc:
        assert "is_home" in str(exc)


def _fit_flat_genotype(seed: int) -> np.ndarray:
    # identical site means push the site variance onto its boundary
    rng = np.random.default_rng(seed)
    codes = np.repeat(np.arange(4), 3)
    values = np.tile([-1.0, 0.0, 1.0], 4) + rng.normal(scale=1e-9, size=codes.size)
    return MixedModelSiteEffects().site_effects(values, codes, np.array(["A", "B", "C", "D"]))


def test_mixed_model_fits_in_threads_stay_quiet():
    pool = TaskPool(backend="thread", workers=6)
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        effects = pool.map(_fit_flat_genotype, range(24))

    assert len(effects) == 24
    assert all(e.shape == (4,) for e in effects)
    assert not [w for w in caught if issubclass(w.category, ModelWarning)]

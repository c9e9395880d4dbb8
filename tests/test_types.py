import numpy as np
import pandas as pd

from homefield.core.types import HomeFieldResult, SchemaError, TrialSchema


def test_canonicalize_and_restore():
    schema = TrialSchema(site="Loc", year="Yr", geno="Entry", pheno="Yield", popn="Pop")
    df = pd.DataFrame(
        {
            "Loc": ["A", "B", None],
            "Yr": [2019, 2020, 2020],
            "Entry": [1, 2, 3],
            "Yield": ["4.5", 3, None],
            "Pop": ["p1", None, "p2"],
            "note": ["x", "y", "z"],
        }
    )
    canon = schema.canonicalize(df)
    assert list(canon.columns) == ["row_id", "site", "year", "geno", "pheno", "popn"]
    assert canon["year"].tolist() == ["2019", "2020", "2020"]
    assert canon["geno"].tolist() == ["1", "2", "3"]
    assert np.allclose(canon["pheno"].to_numpy()[:2], [4.5, 3.0])
    assert canon["site"].isna().tolist() == [False, False, True]
    assert canon["popn"].isna().tolist() == [False, True, False]

    frame = canon.iloc[[1, 0]].assign(rel=[0.5, -0.5], is_home=[True, False])
    out = schema.restore(frame, df)
    assert out["note"].tolist() == ["y", "x"]
    assert out["rel_Yield"].tolist() == [0.5, -0.5]
    assert out["is_home"].tolist() == [True, False]
    assert schema.part_col == "part_Yield"


def test_validate_names_every_missing_column():
    schema = TrialSchema(site="Loc", year="Yr", geno="Entry", pheno="Yield")
    try:
        schema.validate(pd.DataFrame({"Loc": [], "Entry": []}))
        assert False
    except SchemaError as exc:
        assert "'Yr'" in str(exc)
        assert "'Yield'" in str(exc)


def test_perm_frames_for_pooled_result():
    perms = pd.DataFrame(
        [[1.0, 0.5], [2.0, 0.1]],
        index=pd.Index(["P1", "P2"], name="popn"),
        columns=["observed", "perm1"],
    )
    result = HomeFieldResult(home_field=pd.DataFrame(), perms=perms, level="population")
    frames = result.perm_frames()
    assert sorted(frames) == ["P1", "P2"]
    assert frames["P2"]["observed"].tolist() == [2.0]

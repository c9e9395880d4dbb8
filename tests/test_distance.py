import numpy as np
import pandas as pd

from homefield.core.types import SitePoints
from homefield.ops.distance import haversine_km_vec, measure_home_distance, pairwise_distances


def _homes() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "geno": ["g1", "g1", "g2", "g2", "g3"],
            "site": ["A", "B", "B", "A", "C"],
            "is_home": [True, False, True, False, True],
        }
    )


def test_haversine_one_degree_on_equator():
    d = haversine_km_vec(np.array([0.0]), np.array([0.0]), np.array([0.0]), np.array([1.0]))
    assert np.isclose(d[0], 111.195, atol=1e-2)


def test_pairwise_distances_planar():
    coords = np.array([[0.0, 0.0], [3.0, 4.0]])
    assert np.allclose(pairwise_distances(coords, great_circle=False), [[0.0, 5.0], [5.0, 0.0]])


def test_measure_home_distance_from_table():
    locations = pd.DataFrame({"site": ["A", "B", "C"], "lat": [0.0, 4.0, 0.0], "long": [0.0, 3.0, 6.0]})
    out = measure_home_distance(_homes(), locations, "geno", "site", lat="lat", long="long", great_circle=False)
    assert out.index.tolist() == ["g1", "g2", "g3"]
    assert out.columns.tolist() == ["g1", "g2", "g3"]
    assert np.allclose(out.to_numpy(), out.to_numpy().T)
    assert np.allclose(np.diag(out.to_numpy()), 0.0)
    assert np.isclose(out.loc["g1", "g2"], 5.0)
    assert np.isclose(out.loc["g1", "g3"], 6.0)


def test_measure_home_distance_great_circle():
    locations = pd.DataFrame({"site": ["A", "B", "C"], "lat": [0.0, 0.0, 0.0], "long": [0.0, 1.0, 2.0]})
    out = measure_home_distance(_homes(), locations, "geno", "site", lat="lat", long="long")
    assert np.isclose(out.loc["g1", "g3"], 2 * 111.195, atol=5e-2)


def test_site_points_reference_overrides_flag():
    points = SitePoints(sites=["A", "B", "C"], coords=np.array([[0.0, 0.0], [3.0, 4.0], [6.0, 0.0]]), longlat=False)
    out = measure_home_distance(_homes(), points, "geno", "site", great_circle=True)
    assert np.isclose(out.loc["g1", "g2"], 5.0)


def test_missing_lat_long_raises():
    locations = pd.DataFrame({"site": ["A"], "lat": [0.0], "long": [0.0]})
    try:
        measure_home_distance(_homes(), locations, "geno", "site")
        assert False
    except ValueError as exc:
        assert "lat" in str(exc)


def test_unknown_home_site_raises():
    locations = pd.DataFrame({"site": ["A", "B"], "lat": [0.0, 1.0], "long": [0.0, 1.0]})
    try:
        measure_home_distance(_homes(), locations, "geno", "site", lat="lat", long="long")
        assert False
    except KeyError as exc:
        assert "C" in str(exc)


def test_site_points_shape_checked():
    try:
        SitePoints(sites=["A", "B"], coords=np.zeros((3, 2)))
        assert False
    except ValueError as exc:
        assert "equal length" in str(exc)

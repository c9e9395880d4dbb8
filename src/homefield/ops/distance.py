"""Distances between the home sites of genotypes."""

from __future__ import annotations

import numpy as np
import pandas as pd
from scipy.spatial.distance import cdist

from homefield.core.types import SitePoints
from homefield.ops.home import get_home_site

EARTH_RADIUS_KM = 6_371.0


def haversine_km_vec(lat1: np.ndarray, lon1: np.ndarray, lat2: np.ndarray, lon2: np.ndarray) -> np.ndarray:
    p1 = np.deg2rad(np.asarray(lat1, dtype=float))
    p2 = np.deg2rad(np.asarray(lat2, dtype=float))
    dp = p2 - p1
    dl = np.deg2rad(np.asarray(lon2, dtype=float) - np.asarray(lon1, dtype=float))
    a = np.sin(dp / 2.0) ** 2 + np.cos(p1) * np.cos(p2) * np.sin(dl / 2.0) ** 2
    c = 2.0 * np.arctan2(np.sqrt(a), np.sqrt(np.clip(1.0 - a, 0.0, None)))
    return EARTH_RADIUS_KM * c


def pairwise_distances(coords: np.ndarray, great_circle: bool = True) -> np.ndarray:
    """Square distance matrix for (x/long, y/lat) coordinates.

    Great-circle distances are in km; planar distances are in the units of
    the coordinates.
    """

    xy = np.asarray(coords, dtype=float)
    if great_circle:
        lon, lat = xy[:, 0], xy[:, 1]
        return haversine_km_vec(lat[:, None], lon[:, None], lat[None, :], lon[None, :])
    return cdist(xy, xy, metric="euclidean")


def measure_home_distance(
    data: pd.DataFrame,
    locations: pd.DataFrame | SitePoints,
    geno: str,
    site: str,
    lat: str | None = None,
    long: str | None = None,
    great_circle: bool = True,
) -> pd.DataFrame:
    """Genotype-by-genotype matrix of distances between home sites.

    `data` comes from `id_home`. `locations` is either a table with `site`,
    `lat` and `long` columns, or a `SitePoints` collection whose own
    `longlat` flag overrides `great_circle`.
    """

    if isinstance(locations, SitePoints):
        sites = [str(s) for s in locations.sites]
        coords = np.asarray(locations.coords, dtype=float)
        great_circle = locations.longlat
    else:
        if lat is None or long is None:
            raise ValueError("Please provide 'lat' and 'long' column names if not using SitePoints")
        sites = locations[site].astype(str).tolist()
        coords = locations[[long, lat]].to_numpy(dtype=float)

    distances = pd.DataFrame(pairwise_distances(coords, great_circle), index=sites, columns=sites)

    homes = get_home_site(data, geno, site)
    genotypes = homes[geno].astype(str).tolist()
    home_sites = homes[site].astype(str).tolist()
    unknown = sorted(set(home_sites) - set(sites))
    if unknown:
        raise KeyError(f"Home sites missing from locations: {unknown}")

    values = distances.loc[home_sites, home_sites].to_numpy(dtype=float)
    return pd.DataFrame(values, index=pd.Index(genotypes, name=geno), columns=pd.Index(genotypes, name=geno))

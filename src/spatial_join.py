"""Spatial Join - attach the containing neighborhood to every violation point.

Runs once, right after the load. Uses geopandas' R-tree backed ``sjoin`` with
the ``within`` predicate; the result matches testing every point against every
polygon. When polygons overlap, the first one in name order wins, so the
assignment never depends on the order the boundaries file happens to list them.
"""

import geopandas as gpd
import numpy as np
import pandas as pd

from utils.logger_config import setup_logger

logger = setup_logger(__name__)


def _canonical_polygons(polygons: gpd.GeoDataFrame) -> gpd.GeoDataFrame:
    ordered = polygons[['name', 'geometry']].sort_values('name', kind='mergesort').reset_index(drop=True)
    ordered['_rank'] = np.arange(len(ordered))
    return ordered


def join(violations: gpd.GeoDataFrame, polygons: gpd.GeoDataFrame) -> gpd.GeoDataFrame:
    """
    Annotate each violation with the name of the polygon containing it.

    Args:
        violations (gpd.GeoDataFrame): Point geometries
        polygons (gpd.GeoDataFrame): ``name`` + polygon/multipolygon geometry

    Returns:
        gpd.GeoDataFrame: A copy of ``violations`` (same row order) with a
        ``neighborhood`` column; None where no polygon contains the point.
    """
    result = violations.copy()
    if result.empty or polygons.empty:
        result['neighborhood'] = pd.Series([None] * len(result), index=result.index, dtype='object')
        return result

    regions = _canonical_polygons(polygons)
    if regions.crs != result.crs and result.crs is not None:
        regions = regions.to_crs(result.crs)

    points = gpd.GeoDataFrame(
        {'_row': np.arange(len(result))},
        geometry=result.geometry.values,
        crs=result.crs,
    )
    matches = gpd.sjoin(points, regions, how='inner', predicate='within')

    overlaps = matches['_row'].duplicated()
    if overlaps.any():
        logger.warning(f'{int(matches.loc[overlaps, "_row"].nunique())} points fall inside more than one neighborhood; using the first by name')

    first = (
        matches.sort_values(['_row', '_rank'], kind='mergesort')
        .drop_duplicates('_row', keep='first')
        .set_index('_row')['name']
    )
    names = first.reindex(np.arange(len(result)))
    result['neighborhood'] = pd.Series(
        names.astype('object').where(names.notna(), None).to_numpy(),
        index=result.index,
        dtype='object',
    )
    return result

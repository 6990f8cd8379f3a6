"""View adapters - turn one FilteredView into what each dashboard panel draws.

Every function here is pure and accepts an empty view; the panels show a
"no data" state instead of failing.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Tuple

import geopandas as gpd
import pandas as pd

from utils.entity_names import normalize_entity
from violation_filters import FilteredView


EXPORT_FILENAME = 'Chicago_bldg_violation_data.csv'
TOP_N_ENTITIES = 6

TABLE_COLUMNS: List[str] = [
    'docket_number',
    'issued_date',
    'property_address',
    'neighborhood',
    'entity_or_person',
    'violation_type',
    'disposition_description',
    'current_amount_due',
]


@dataclass(frozen=True)
class MapLayers:
    markers: pd.DataFrame
    outlines: gpd.GeoDataFrame

    @property
    def empty(self) -> bool:
        return self.markers.empty


def _marker_label(row) -> str:
    issued = row['issued_date'].strftime('%m/%d/%Y') if pd.notna(row['issued_date']) else ''
    return (
        f"Docket Number: {row['docket_number']}<br>"
        f"Issue Date: {issued}<br>"
        f"Address: {row['property_address']}<br>"
        f"Violation: {row['violation_type']}"
    )


def build_map_layers(view: FilteredView, polygons: gpd.GeoDataFrame) -> MapLayers:
    """One marker per record plus the outline of every selected neighborhood."""
    records = view.records
    markers = pd.DataFrame({
        'docket_number': records['docket_number'].to_numpy(),
        'latitude': records['latitude'].to_numpy(),
        'longitude': records['longitude'].to_numpy(),
        'label': [_marker_label(row) for _, row in records.iterrows()],
    })
    selected = polygons['name'].isin(sorted(view.criteria.neighborhoods))
    outlines = polygons.loc[selected, ['name', 'geometry']].sort_values('name', kind='mergesort')
    return MapLayers(markers=markers, outlines=outlines.reset_index(drop=True))


def outline_paths(outlines: gpd.GeoDataFrame) -> List[Tuple[str, List[float], List[float]]]:
    """Flatten polygon exteriors into (name, lons, lats) line paths, one per ring."""
    paths = []
    for name, geom in zip(outlines['name'], outlines.geometry):
        if geom is None or geom.is_empty:
            continue
        parts = geom.geoms if geom.geom_type == 'MultiPolygon' else [geom]
        for part in parts:
            lons, lats = part.exterior.coords.xy
            paths.append((name, list(lons), list(lats)))
    return paths


def monthly_counts(view: FilteredView) -> pd.DataFrame:
    """Violations per (calendar month, neighborhood), oldest month first."""
    records = view.records
    if records.empty:
        return pd.DataFrame({
            'month': pd.Series(dtype='datetime64[ns]'),
            'neighborhood': pd.Series(dtype='object'),
            'count': pd.Series(dtype='int64'),
        })
    months = records['issued_date'].dt.to_period('M').dt.to_timestamp()
    counts = (
        pd.DataFrame({'month': months, 'neighborhood': records['neighborhood']})
        .groupby(['month', 'neighborhood'], sort=True)
        .size()
        .reset_index(name='count')
    )
    counts['count'] = counts['count'].astype('int64')
    return counts


def top_fined_entities(view: FilteredView, n: int = TOP_N_ENTITIES) -> pd.DataFrame:
    """
    Entities with the largest total amount due.

    Names are grouped title-cased. Equal totals keep the order in which the
    entities first show up in the view, so the ranking is reproducible.
    """
    records = view.records
    if records.empty:
        return pd.DataFrame({
            'entity': pd.Series(dtype='object'),
            'outstanding_fines': pd.Series(dtype='float64'),
        })
    totals = (
        pd.DataFrame({
            'entity': records['entity_or_person'].map(normalize_entity).to_numpy(),
            'outstanding_fines': records['current_amount_due'].astype('float64').to_numpy(),
        })
        .groupby('entity', sort=False)['outstanding_fines']
        .sum()
        .reset_index()
    )
    return (
        totals.sort_values('outstanding_fines', ascending=False, kind='mergesort')
        .head(n)
        .reset_index(drop=True)
    )


def table_projection(view: FilteredView) -> pd.DataFrame:
    """Fixed column subset shown in the data table and written to the export."""
    return pd.DataFrame(view.records.reindex(columns=TABLE_COLUMNS)).reset_index(drop=True)


def to_csv_bytes(view: FilteredView) -> bytes:
    """The table projection as UTF-8 CSV with a header row."""
    return table_projection(view).to_csv(index=False, date_format='%Y-%m-%d').encode('utf-8')


def summarize(view: FilteredView) -> Dict[str, float]:
    """Headline numbers for the metrics row."""
    records = view.records
    if records.empty:
        return {'violations': 0, 'with_fines_due': 0, 'outstanding_fines': 0.0, 'neighborhoods': 0}
    due = records['current_amount_due']
    return {
        'violations': int(len(records)),
        'with_fines_due': int((due > 0).sum()),
        'outstanding_fines': float(due.sum()),
        'neighborhoods': int(records['neighborhood'].nunique()),
    }

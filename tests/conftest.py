import json
import sys
from pathlib import Path

import geopandas as gpd
import pandas as pd
import pytest
from shapely.geometry import MultiPolygon, box, mapping

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

LOOP_BOX = box(-87.64, 41.87, -87.62, 41.89)
UPTOWN_BOX = box(-87.67, 41.96, -87.64, 41.98)
# two disjoint parts, both "Lake View"
LAKE_VIEW = MultiPolygon([box(-87.66, 41.93, -87.64, 41.94), box(-87.63, 41.93, -87.62, 41.94)])

LOOP_POINT = (-87.63, 41.88)
UPTOWN_POINT = (-87.655, 41.97)
NOWHERE_POINT = (-87.90, 41.70)


@pytest.fixture
def polygons():
    return gpd.GeoDataFrame(
        {'name': ['Uptown', 'Loop', 'Lake View']},
        geometry=[UPTOWN_BOX, LOOP_BOX, LAKE_VIEW],
        crs='EPSG:4326',
    )


def _records(rows):
    columns = [
        'docket_number', 'issued_date', 'property_address', 'entity_or_person', 'violation_type',
        'disposition_description', 'current_amount_due', 'latitude', 'longitude', 'neighborhood',
    ]
    df = pd.DataFrame(rows, columns=columns)
    df['issued_date'] = pd.to_datetime(df['issued_date'])
    df['current_amount_due'] = df['current_amount_due'].astype('float64')
    df['neighborhood'] = df['neighborhood'].astype('object')
    return gpd.GeoDataFrame(df, geometry=gpd.points_from_xy(df['longitude'], df['latitude']), crs='EPSG:4326')


@pytest.fixture
def make_records():
    """Build a joined-violations frame from (docket, date, neighborhood, amount, entity) tuples."""
    def build(items):
        rows = []
        for docket, issued, neighborhood, amount, *rest in items:
            entity = rest[0] if rest else f'OWNER OF {docket}'
            lon, lat = LOOP_POINT if neighborhood == 'Loop' else UPTOWN_POINT
            rows.append((
                docket, issued, f'{docket} W MAIN ST', entity, 'VBR FAILED TO REGISTER',
                'Open', amount, lat, lon, neighborhood,
            ))
        return _records(rows)
    return build


@pytest.fixture
def scenario_records(make_records):
    """P1/P2/P3 plus an unmatched point."""
    return make_records([
        ('P1', '2022-05-01', 'Loop', 0.0),
        ('P2', '2022-06-01', 'Loop', 150.0),
        ('P3', '2022-06-01', 'Uptown', 0.0),
        ('P4', '2022-06-15', None, 75.0),
    ])


TOKEN = 's3cr3t-app-token'


def _feature(props, geometry=None):
    return {'type': 'Feature', 'geometry': geometry, 'properties': props}


def _violation(docket, issued, amount, point, entity='ACME LLC, '):
    lon, lat = point if point else (None, None)
    props = {
        'docket_number': docket,
        'issued_date': issued,
        'property_address': f'{docket} N STATE ST',
        'entity_or_person_s_': entity,
        'violation_type': 'VBR FAILED TO REGISTER',
        'disposition_description': 'Liable',
        'current_amount_due': amount,
    }
    if point:
        props['latitude'] = str(lat)
        props['longitude'] = str(lon)
    return _feature(props, {'type': 'Point', 'coordinates': [lon, lat]} if point else None)


class FakeResponse:
    """Stands in for requests.Response in the loader tests."""

    def __init__(self, payload=None, status_code=200, text=None):
        self.payload = payload
        self.status_code = status_code
        self.text = text

    def json(self):
        if self.text is not None:
            return json.loads(self.text)
        return self.payload


@pytest.fixture
def neighborhoods_file(tmp_path):
    collection = {
        'type': 'FeatureCollection',
        'features': [
            _feature({'pri_neigh': 'Loop', 'sec_neigh': 'LOOP'}, mapping(LOOP_BOX)),
            _feature({'pri_neigh': 'Uptown', 'sec_neigh': 'UPTOWN'}, mapping(UPTOWN_BOX)),
            _feature({'pri_neigh': 'Lake View', 'sec_neigh': 'LAKE VIEW'}, mapping(LAKE_VIEW)),
        ],
    }
    path = tmp_path / 'neighborhoods.geojson'
    path.write_text(json.dumps(collection))
    return path


@pytest.fixture
def violations_payload():
    return {
        'type': 'FeatureCollection',
        'features': [
            _violation('V1', '2022-05-01T00:00:00.000', '0', LOOP_POINT),
            _violation('V2', '2022-06-01T00:00:00.000', '150.00', LOOP_POINT, entity='JANE DOE ;'),
            _violation('V3', '2022-06-01T00:00:00.000', '0', UPTOWN_POINT),
            _violation('V4', '2022-06-03T00:00:00.000', '25', None),
            _violation('V5', '2022-07-04T00:00:00.000', '10', NOWHERE_POINT),
        ],
    }

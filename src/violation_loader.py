"""
Vacant & Abandoned Buildings Violations Loader.

This module loads the two inputs of the dashboard exactly once per process:

  - the Chicago neighborhood boundaries, from a local GeoJSON FeatureCollection
  - the violation records, from the City of Chicago Open Data Portal (SODA API)

and hands back a joined, immutable ViolationDataset. Any failure here is fatal
for startup: nothing is retried and no partial dataset is ever returned.

Note:
    SODA (Socrata Open Data API) is the API framework used by the Chicago data
    portal. The whole dataset is pulled in a single request with a large $limit;
    more information at https://dev.socrata.com/
"""

from dataclasses import dataclass
from pathlib import Path
from typing import List

import geopandas as gpd
import pandas as pd
import requests

from spatial_join import join
from utils.config import DashboardConfig
from utils.entity_names import clean_entity_name
from utils.exceptions import LoadError, ParseError
from utils.logger_config import register_secret, setup_logger

logger = setup_logger(__name__)

CRS = "EPSG:4326"
NAME_FIELD_FALLBACKS = ("pri_neigh", "name", "community")

# Raw SODA property name -> dashboard column
COLUMN_MAPPING = {
    'docket_number': 'docket_number',
    'issued_date': 'issued_date',
    'property_address': 'property_address',
    'entity_or_person_s_': 'entity_or_person',
    'violation_type': 'violation_type',
    'disposition_description': 'disposition_description',
    'current_amount_due': 'current_amount_due',
    'latitude': 'latitude',
    'longitude': 'longitude',
}

VIOLATION_COLUMNS: List[str] = list(COLUMN_MAPPING.values())
REQUIRED_COLUMNS: List[str] = ['docket_number', 'issued_date', 'current_amount_due', 'latitude', 'longitude']
TEXT_COLUMNS: List[str] = [
    'docket_number', 'property_address', 'entity_or_person', 'violation_type', 'disposition_description'
]


@dataclass(frozen=True)
class ViolationDataset:
    """Neighborhood polygons plus violations already joined to them."""

    polygons: gpd.GeoDataFrame
    violations: gpd.GeoDataFrame

    @property
    def neighborhood_names(self) -> List[str]:
        return sorted(self.polygons['name'].tolist())


def load_neighborhoods(path, name_field: str = 'pri_neigh') -> gpd.GeoDataFrame:
    """
    Read the neighborhood boundaries and reduce them to ``name`` + ``geometry``.

    Args:
        path: Local GeoJSON FeatureCollection
        name_field (str): Property holding the neighborhood name. Falls back to
            ``pri_neigh``, ``name`` then ``community`` when it is absent.

    Returns:
        gpd.GeoDataFrame: One row per neighborhood, in EPSG:4326

    Raises:
        LoadError: The file is missing, unreadable or has no usable name column.
    """
    path = Path(path)
    if not path.exists():
        raise LoadError(f'Neighborhood boundaries not found: {path}')

    try:
        gdf = gpd.read_file(path)
    except Exception as e:
        logger.error(f'Failed to read {path}: {e}')
        raise LoadError(f'Failed to read neighborhood boundaries {path}: {e}') from e

    if gdf.empty:
        raise LoadError(f'Neighborhood boundaries file {path} has no features')

    candidates = [name_field] + [c for c in NAME_FIELD_FALLBACKS if c != name_field]
    column = next((c for c in candidates if c in gdf.columns), None)
    if column is None:
        raise LoadError(f'No neighborhood name property in {path}; tried {candidates}')

    if gdf.crs is None:
        gdf = gdf.set_crs(CRS)
    elif gdf.crs.to_epsg() != 4326:
        gdf = gdf.to_crs(CRS)

    polygons = gpd.GeoDataFrame(
        {'name': gdf[column].astype(str).str.strip()},
        geometry=gdf.geometry.values,
        crs=CRS,
    )
    if polygons.geometry.isna().any():
        raise LoadError(f'Neighborhood boundaries file {path} has features without geometry')
    duplicated = polygons['name'][polygons['name'].duplicated()].unique().tolist()
    if duplicated:
        logger.warning(f'Duplicate neighborhood names in {path}: {duplicated}')

    logger.info(f'Loaded {len(polygons)} neighborhoods from {path.name}')
    return polygons


def fetch_violations(url: str, token: str, limit: int, timeout: float) -> pd.DataFrame:
    """
    Pull the violations feed in one request and return the raw feature properties.

    Args:
        url (str): SODA GeoJSON resource endpoint
        token (str): Socrata app token, sent as a query parameter and never logged
        limit (int): $limit, high enough to cover the whole dataset
        timeout (float): Seconds before the request is abandoned

    Raises:
        LoadError: Network/auth failure, non-2xx status or a malformed body.
    """
    params = {'$$app_token': token, '$limit': limit}
    logger.debug(f'Requesting: {url} ($limit={limit})')
    try:
        response = requests.get(url, params=params, timeout=timeout)
    except requests.exceptions.RequestException as e:
        logger.error(f'Network error while fetching violations: {type(e).__name__}')
        raise LoadError(f'Network error while fetching violations from {url}: {type(e).__name__}') from e

    if response.status_code in (401, 403):
        raise LoadError(f'Violations request was rejected ({response.status_code}); check CHICAGO_APP_TOKEN')
    if response.status_code != 200:
        logger.error(f'Request failed with status {response.status_code}')
        raise LoadError(f'Violations request failed with status {response.status_code}')

    try:
        payload = response.json()
    except ValueError as e:
        raise LoadError(f'Violations response from {url} is not valid JSON') from e

    if not isinstance(payload, dict) or payload.get('type') != 'FeatureCollection':
        raise LoadError('Violations response is not a GeoJSON FeatureCollection')
    features = payload.get('features')
    if not isinstance(features, list):
        raise LoadError('Violations response has no feature list')

    rows = [feature.get('properties') or {} for feature in features if isinstance(feature, dict)]
    logger.info(f'Fetched {len(rows)} violation records')
    return pd.DataFrame(rows)


def _bad_dockets(df: pd.DataFrame, mask: pd.Series, limit: int = 5) -> str:
    dockets = df.loc[mask, 'docket_number'].astype(str).tolist()
    shown = ', '.join(dockets[:limit])
    more = f' (+{len(dockets) - limit} more)' if len(dockets) > limit else ''
    return f'{shown}{more}'


def _parse_numeric(df: pd.DataFrame, column: str) -> pd.Series:
    parsed = pd.to_numeric(df[column], errors='coerce')
    bad = parsed.isna()
    if bad.any():
        raise ParseError(f'Non-numeric {column} for dockets: {_bad_dockets(df, bad)}')
    return parsed.astype('float64')


def normalize_violations(raw: pd.DataFrame) -> gpd.GeoDataFrame:
    """
    Standardize the raw feed into the dashboard schema.

    - Renames SODA columns (``entity_or_person_s_`` -> ``entity_or_person``)
    - Drops rows missing latitude or longitude
    - Parses coordinates, issue dates and amounts due; anything unparseable
      fails the load instead of being zero-filled
    - Cleans trailing artifacts off the entity field
    - Builds point geometries from longitude/latitude

    Raises:
        ParseError: A required column is absent or a value doesn't parse.
    """
    # SODA omits null properties from a feature, so only the columns the
    # dashboard can't do without are required
    missing = [c for c in REQUIRED_COLUMNS if c not in raw.columns]
    if missing and not raw.empty:
        raise ParseError(f'Violations feed is missing columns: {missing}')

    df = raw.rename(columns=COLUMN_MAPPING).reindex(columns=VIOLATION_COLUMNS)

    # Records without a location can't be placed on the map
    located = df['latitude'].notna() & df['longitude'].notna()
    for coord in ('latitude', 'longitude'):
        located &= df[coord].astype(str).str.strip() != ''
    dropped = int((~located).sum())
    if dropped:
        logger.info(f'Dropped {dropped} records without latitude/longitude')
    df = df.loc[located].reset_index(drop=True)

    df['latitude'] = _parse_numeric(df, 'latitude')
    df['longitude'] = _parse_numeric(df, 'longitude')

    amounts = _parse_numeric(df, 'current_amount_due')
    negative = amounts < 0
    if negative.any():
        raise ParseError(f'Negative current_amount_due for dockets: {_bad_dockets(df, negative)}')
    df['current_amount_due'] = amounts

    issued = pd.to_datetime(df['issued_date'], errors='coerce', format='mixed')
    bad_dates = issued.isna()
    if bad_dates.any():
        raise ParseError(f'Unparseable issued_date for dockets: {_bad_dockets(df, bad_dates)}')
    if getattr(issued.dt, 'tz', None) is not None:
        issued = issued.dt.tz_localize(None)
    df['issued_date'] = issued.dt.normalize().astype('datetime64[ns]')

    for col in TEXT_COLUMNS:
        df[col] = df[col].astype('object').where(df[col].notna(), None)
    df['entity_or_person'] = df['entity_or_person'].map(clean_entity_name)

    duplicated = df['docket_number'].duplicated()
    if duplicated.any():
        logger.warning(f'{int(duplicated.sum())} rows share a docket number with an earlier row')

    return gpd.GeoDataFrame(
        df,
        geometry=gpd.points_from_xy(df['longitude'], df['latitude']),
        crs=CRS,
    )


class ViolationDatasetLoader:
    """
    Loads and joins the dashboard dataset once at startup.

    Attributes:
        config (DashboardConfig): Sources, token, limit and timeout

    Example:
        >>> loader = ViolationDatasetLoader(DashboardConfig.from_env())
        >>> dataset = loader.load()
    """

    def __init__(self, config: DashboardConfig) -> None:
        self.config = config
        register_secret(config.app_token)

    def load(self) -> ViolationDataset:
        """
        Runs neighborhoods -> fetch -> normalize -> spatial join.

        Raises:
            LoadError: Either source could not be read
            ParseError: A numeric or date field failed to parse
        """
        logger.info(f'Loading dataset with {self.config}')
        polygons = load_neighborhoods(self.config.neighborhoods_path, self.config.neighborhood_name_field)
        raw = fetch_violations(
            self.config.violations_url,
            self.config.app_token,
            self.config.limit,
            self.config.timeout,
        )
        violations = normalize_violations(raw)
        joined = join(violations, polygons)
        unmatched = int(joined['neighborhood'].isna().sum())
        logger.info(f'Joined {len(joined)} violations to neighborhoods ({unmatched} outside every boundary)')
        return ViolationDataset(polygons=polygons, violations=joined)

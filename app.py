import warnings

import streamlit as st
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go
from pathlib import Path
import sys
from datetime import date, timedelta
from typing import Dict, List

ROOT = Path(__file__).resolve().parent
SRC_DIR = ROOT / 'src'
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from reactive_controller import ReactiveController
from utils.config import DashboardConfig
from utils.exceptions import LoadError, ParseError
from view_adapters import (
    EXPORT_FILENAME,
    MapLayers,
    build_map_layers,
    monthly_counts,
    outline_paths,
    summarize,
    table_projection,
    to_csv_bytes,
    top_fined_entities,
)
from violation_filters import FilterCriteria
from violation_loader import ViolationDataset, ViolationDatasetLoader

CHICAGO_CENTER = {"lat": 41.840675, "lon": -87.679365}
MAP_ZOOM = 10
EARLIEST_DATE = date(2001, 1, 1)
DEFAULT_LOOKBACK_DAYS = 365 * 5
DEFAULT_NEIGHBORHOODS = ['Loop', 'Humboldt Park', 'New City', 'Lake View']
DATASET_URL = 'https://data.cityofchicago.org/Buildings/Vacant-and-Abandoned-Buildings-Violations/kc9i-wq85'
ESRI_IMAGERY_TILES = 'https://server.arcgisonline.com/ArcGIS/rest/services/World_Imagery/MapServer/tile/{z}/{y}/{x}'
BASEMAPS = ['Map', 'Satellite']

warnings.filterwarnings('ignore', message='.*scattermapbox.*', category=DeprecationWarning)

PLOTLY_CONFIG = {
    'scrollZoom': True,
    'displaylogo': False,
    'modeBarButtonsToRemove': ['lasso2d', 'select2d']
}

TABLE_LABELS = {
    'docket_number': 'Docket number',
    'issued_date': 'Issued',
    'property_address': 'Address',
    'neighborhood': 'Neighborhood',
    'entity_or_person': 'Entity / person',
    'violation_type': 'Violation',
    'disposition_description': 'Disposition',
    'current_amount_due': 'Amount due ($)',
}


@st.cache_resource(show_spinner='Loading violations and neighborhood boundaries…')
def load_dataset() -> ViolationDataset:
    # one load per process, shared read-only by every session
    return ViolationDatasetLoader(DashboardConfig.from_env()).load()


def build_controller(dataset: ViolationDataset) -> ReactiveController:
    controller = ReactiveController(dataset.violations)
    controller.subscribe('summary', summarize)
    controller.subscribe('map', lambda view: build_map_layers(view, dataset.polygons))
    controller.subscribe('monthly', monthly_counts)
    controller.subscribe('top_fines', top_fined_entities)
    controller.subscribe('table', table_projection)
    controller.subscribe('csv', to_csv_bytes)
    return controller


def basemap_layout(basemap: str) -> Dict:
    if basemap == 'Satellite':
        return {
            'style': 'white-bg',
            'layers': [{
                'below': 'traces',
                'sourcetype': 'raster',
                'sourceattribution': 'Esri',
                'source': [ESRI_IMAGERY_TILES],
            }],
        }
    return {'style': 'carto-positron', 'layers': []}


def plot_violation_map(layers: MapLayers, basemap: str = 'Map') -> go.Figure:
    fig = go.Figure()
    for name, lons, lats in outline_paths(layers.outlines):
        fig.add_trace(go.Scattermapbox(
            lon=lons,
            lat=lats,
            mode='lines',
            line={'color': 'blue', 'width': 2},
            name=name,
            hoverinfo='name',
            showlegend=False,
        ))
    if not layers.empty:
        fig.add_trace(go.Scattermapbox(
            lon=layers.markers['longitude'],
            lat=layers.markers['latitude'],
            mode='markers',
            marker={'size': 8, 'color': '#b0202f'},
            text=layers.markers['label'],
            hovertemplate='%{text}<extra></extra>',
            name='Violations',
            showlegend=False,
        ))
    fig.update_layout(
        mapbox={**basemap_layout(basemap), 'center': CHICAGO_CENTER, 'zoom': MAP_ZOOM},
        margin={'r': 0, 't': 0, 'l': 0, 'b': 0},
        height=620,
    )
    return fig


def plot_monthly_counts(counts: pd.DataFrame) -> go.Figure:
    fig = px.bar(
        counts,
        x='month',
        y='count',
        color='neighborhood',
        labels={'month': 'Month', 'count': 'Total violations issued', 'neighborhood': 'Neighborhood'},
    )
    fig.update_layout(template='plotly_white', barmode='stack', xaxis_title='Month', yaxis_title='Total violations issued')
    return fig


def plot_top_fines(top: pd.DataFrame) -> go.Figure:
    fig = px.bar(
        top,
        x='entity',
        y='outstanding_fines',
        labels={'entity': 'Entity', 'outstanding_fines': 'Outstanding Fines ($)'},
        color_discrete_sequence=['#ef6248'],
    )
    fig.update_layout(template='plotly_white', xaxis_tickangle=-25, xaxis_title='Entity', yaxis_title='Outstanding Fines ($)')
    fig.update_xaxes(categoryorder='array', categoryarray=top['entity'].tolist())
    return fig


def selected_neighborhoods(all_neighborhoods: bool, picked: List[str], neighborhood_names: List[str]) -> List[str]:
    # the "All neighborhoods" box stands in for select-all
    return list(neighborhood_names) if all_neighborhoods else list(picked)


def sidebar_criteria(neighborhood_names: List[str]) -> FilterCriteria | None:
    st.sidebar.header('Filter violations')
    today = date.today()
    date_range = st.sidebar.date_input(
        'Violation Date Range',
        value=(today - timedelta(days=DEFAULT_LOOKBACK_DAYS), today),
        min_value=EARLIEST_DATE,
        max_value=today,
    )
    defaults = [n for n in DEFAULT_NEIGHBORHOODS if n in neighborhood_names]
    all_neighborhoods = st.sidebar.checkbox('All neighborhoods', value=False)
    picked = st.sidebar.multiselect(
        'Neighborhoods',
        neighborhood_names,
        default=defaults,
        placeholder='Search neighborhoods',
        disabled=all_neighborhoods,
    )
    selected = selected_neighborhoods(all_neighborhoods, picked, neighborhood_names)
    fines_only = st.sidebar.toggle('Display only points with fines due?', value=False)

    if not isinstance(date_range, (list, tuple)) or len(date_range) != 2:
        # still picking the second date
        return None
    start, end = date_range
    return FilterCriteria.build(start, end, selected, fines_only)


def render_metrics(summary: Dict[str, float]) -> None:
    cols = st.columns(4)
    cols[0].metric('Violations', f"{summary['violations']:,}")
    cols[1].metric('With fines due', f"{summary['with_fines_due']:,}")
    cols[2].metric('Outstanding fines', f"${summary['outstanding_fines']:,.0f}")
    cols[3].metric('Neighborhoods', f"{summary['neighborhoods']:,}")


def main():
    st.set_page_config(page_title='Chicago Vacant Building Violations', layout='wide')
    st.markdown('## Vacant and Abandoned Building Violations in Chicago')

    try:
        dataset = load_dataset()
    except (LoadError, ParseError) as err:
        st.error(f'Could not load the violations dataset: {err}')
        st.stop()

    if 'controller' not in st.session_state:
        st.session_state['controller'] = build_controller(dataset)
    controller: ReactiveController = st.session_state['controller']

    criteria = sidebar_criteria(dataset.neighborhood_names)
    if criteria is not None:
        controller.set_criteria(criteria)
    elif controller.criteria is None:
        st.info('Pick a start and end date to see violations.')
        st.stop()

    outputs = controller.outputs
    render_metrics(outputs['summary'])

    map_tab, viz_tab, table_tab = st.tabs(['Violation Map', 'Data Visualizations', 'Data Table'])
    with map_tab:
        layers = outputs['map']
        basemap = st.radio('Base map', BASEMAPS, horizontal=True)
        st.plotly_chart(plot_violation_map(layers, basemap), use_container_width=True, config=PLOTLY_CONFIG)
        if layers.empty:
            st.info('No violations match the current filters.')

    with viz_tab:
        st.subheader('Violations by Neighborhood Over Time in Selected Data')
        counts = outputs['monthly']
        if counts.empty:
            st.info('No violations match the current filters.')
        else:
            st.plotly_chart(plot_monthly_counts(counts), use_container_width=True, config=PLOTLY_CONFIG)

        st.subheader('Top 6 Most Fined Entities in Selected Data')
        top = outputs['top_fines']
        if top.empty:
            st.info('No fined entities in the current selection.')
        else:
            st.plotly_chart(plot_top_fines(top), use_container_width=True, config=PLOTLY_CONFIG)

    with table_tab:
        st.download_button(
            'Download',
            data=outputs['csv'],
            file_name=EXPORT_FILENAME,
            mime='text/csv',
        )
        st.subheader('Filtered Vacant/Abandoned Violation Data')
        st.markdown(f'[More information about this data is available from the City of Chicago.]({DATASET_URL})')
        table = outputs['table']
        if table.empty:
            st.info('No violations match the current filters.')
        else:
            display = table.copy()
            display['issued_date'] = display['issued_date'].dt.date
            st.dataframe(display.rename(columns=TABLE_LABELS), hide_index=True, use_container_width=True)


if __name__ == '__main__':
    main()

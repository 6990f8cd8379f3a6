import io

import pandas as pd
import pytest

import violation_loader
from reactive_controller import ReactiveController
from conftest import TOKEN, FakeResponse
from utils.config import DashboardConfig
from view_adapters import build_map_layers, monthly_counts, to_csv_bytes, top_fined_entities
from violation_filters import FilterCriteria
from violation_loader import ViolationDatasetLoader


@pytest.fixture
def dataset(monkeypatch, neighborhoods_file, violations_payload):
    monkeypatch.setattr(violation_loader.requests, 'get', lambda *a, **k: FakeResponse(violations_payload))
    config = DashboardConfig(app_token=TOKEN, neighborhoods_path=neighborhoods_file)
    return ViolationDatasetLoader(config).load()


class TestPipeline:
    def test_load_filter_and_views(self, dataset):
        controller = ReactiveController(dataset.violations)
        controller.subscribe('map', lambda view: build_map_layers(view, dataset.polygons))
        controller.subscribe('monthly', monthly_counts)
        controller.subscribe('top_fines', top_fined_entities)
        controller.subscribe('csv', to_csv_bytes)

        controller.set_criteria(FilterCriteria.build('2022-05-01', '2022-12-31', {'Loop'}, fines_only=True))
        outputs = controller.outputs

        assert controller.view.records['docket_number'].tolist() == ['V2']
        assert outputs['map'].outlines['name'].tolist() == ['Loop']
        assert outputs['monthly']['count'].tolist() == [1]
        assert outputs['top_fines'].iloc[0].tolist() == ['Jane Doe', 150.0]
        exported = pd.read_csv(io.BytesIO(outputs['csv']))
        assert exported['docket_number'].tolist() == ['V2']
        assert exported['neighborhood'].tolist() == ['Loop']

    def test_records_are_not_mutated_by_filtering(self, dataset):
        before = dataset.violations.copy()
        controller = ReactiveController(dataset.violations)
        controller.set_criteria(FilterCriteria.build('2022-01-01', '2022-12-31', {'Loop', 'Uptown'}))
        controller.set_criteria(FilterCriteria.build('2022-01-01', '2022-12-31', set()))
        assert controller.view.empty
        pd.testing.assert_frame_equal(dataset.violations, before)

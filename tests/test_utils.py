import logging
from pathlib import Path

import pytest

from utils import clean_entity_name, normalize_entity
from utils.config import DEFAULT_LIMIT, DashboardConfig
from utils.exceptions import ConfigError, LoadError
from utils.logger_config import RedactTokenFilter, register_secret


class TestEntityNames:
    @pytest.mark.parametrize('raw, expected', [
        ('ACME LLC, ', 'ACME LLC'),
        ('JOHN DOE ;', 'JOHN DOE'),
        ('  SMITH, JOHN  ', 'SMITH, JOHN'),
        ('NO SUFFIX', 'NO SUFFIX'),
        (', ', None),
        (None, None),
        (float('nan'), None),
    ])
    def test_clean(self, raw, expected):
        assert clean_entity_name(raw) == expected

    def test_normalize_title_cases(self):
        assert normalize_entity('chicago land trust co, ') == 'Chicago Land Trust Co'
        assert normalize_entity(None) == 'Unknown'


class TestConfig:
    def test_from_env_defaults(self):
        config = DashboardConfig.from_env({'CHICAGO_APP_TOKEN': 'abc'})
        assert config.app_token == 'abc'
        assert config.limit == DEFAULT_LIMIT
        assert config.neighborhood_name_field == 'pri_neigh'
        assert config.violations_url.endswith('kc9i-wq85.geojson')

    def test_from_env_overrides(self):
        config = DashboardConfig.from_env({
            'CHICAGO_APP_TOKEN': 'abc',
            'NEIGHBORHOODS_PATH': '/tmp/hoods.geojson',
            'VIOLATIONS_LIMIT': '500',
            'REQUEST_TIMEOUT': '2.5',
        })
        assert config.neighborhoods_path == Path('/tmp/hoods.geojson')
        assert config.limit == 500
        assert config.timeout == 2.5

    def test_missing_token(self):
        with pytest.raises(ConfigError):
            DashboardConfig.from_env({})
        assert issubclass(ConfigError, LoadError)

    @pytest.mark.parametrize('key, value', [('VIOLATIONS_LIMIT', 'lots'), ('VIOLATIONS_LIMIT', '0'), ('REQUEST_TIMEOUT', '-1')])
    def test_invalid_numbers(self, key, value):
        with pytest.raises(ConfigError):
            DashboardConfig.from_env({'CHICAGO_APP_TOKEN': 'abc', key: value})

    def test_repr_hides_token(self):
        config = DashboardConfig.from_env({'CHICAGO_APP_TOKEN': 'very-secret'})
        assert 'very-secret' not in repr(config)


class TestRedaction:
    def _record(self, msg, *args):
        return logging.LogRecord('test', logging.INFO, __file__, 1, msg, args, None)

    def test_masks_query_parameter(self):
        record = self._record('GET %s', 'https://x.test/r.geojson?$$app_token=abc123&$limit=10')
        RedactTokenFilter().filter(record)
        assert record.getMessage() == 'GET https://x.test/r.geojson?$$app_token=***&$limit=10'

    def test_masks_known_secret(self):
        record = self._record('token is abc123')
        RedactTokenFilter(['abc123']).filter(record)
        assert 'abc123' not in record.getMessage()

    def test_masks_url_encoded_parameter(self):
        record = self._record('GET %s', 'https://x.test/r.geojson?%24%24app_token=abc123&%24limit=10')
        RedactTokenFilter().filter(record)
        assert record.getMessage() == 'GET https://x.test/r.geojson?%24%24app_token=***&%24limit=10'

    def test_registered_secret_masked_everywhere(self):
        register_secret('registered-xyz')
        record = self._record('config says %s', 'registered-xyz')
        RedactTokenFilter().filter(record)
        assert record.getMessage() == 'config says ***'

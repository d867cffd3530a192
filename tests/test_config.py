"""
Unit tests for environment configuration.
"""

import importlib.util

from influx_reporter import config


def load_config_module():
    """Import a private copy of the config module so the shared one keeps its values."""
    spec = importlib.util.spec_from_file_location('influx_reporter_config_copy', config.__file__)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


class TestEnvironment:

    def test_max_retries_from_environment(self, monkeypatch):
        monkeypatch.setenv('INFLUXDB_MAX_RETRIES', '3')
        assert load_config_module().MAX_RETRIES == 3

    def test_single_attempt_by_default(self, monkeypatch):
        monkeypatch.delenv('INFLUXDB_MAX_RETRIES', raising=False)
        assert load_config_module().MAX_RETRIES == 1

    def test_connection_settings_from_environment(self, monkeypatch):
        monkeypatch.setenv('INFLUXDB_URL', 'http://influx:8086')
        monkeypatch.setenv('INFLUXDB_DATABASE', 'app')
        monkeypatch.setenv('METRICS_FLUSH_INTERVAL', '2.5')

        module = load_config_module()

        assert module.INFLUXDB_URL == 'http://influx:8086'
        assert module.INFLUXDB_DATABASE == 'app'
        assert module.FLUSH_INTERVAL == 2.5

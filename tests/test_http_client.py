"""
Unit tests for the InfluxDB HTTP client.
"""

from datetime import datetime
from unittest import mock

import pytest
import pytz
import requests
from influx_reporter.aggregator import Batch, Measurement
from influx_reporter.config import ConfigurationError
from influx_reporter.http_client import InfluxDBClient

NOW = datetime(2024, 1, 2, 3, 4, 5, tzinfo=pytz.UTC)


def make_response(status_code=204, headers=None):
    response = requests.Response()
    response.status_code = status_code
    response.headers.update(headers or {})
    response.url = 'http://localhost:8086/'
    return response


def make_batch(database='metrics'):
    return Batch(database=database, points=[
        Measurement(name='endpoint', tags={'service': 'foo'}, time=NOW, fields={'reqs_count': 3}),
    ])


@pytest.fixture
def client():
    return InfluxDBClient('http://localhost:8086/', 'metrics', username='admin', password='secret',
                          retry_delay=0)


class TestConfiguration:

    @pytest.mark.parametrize('url', ['', 'localhost:8086', 'ftp://localhost', 'http://'])
    def test_invalid_url(self, url):
        with pytest.raises(ConfigurationError):
            InfluxDBClient(url, 'metrics')

    def test_missing_database(self):
        with pytest.raises(ConfigurationError):
            InfluxDBClient('http://localhost:8086', '')

    def test_basic_auth(self, client):
        assert client.session.auth == ('admin', 'secret')

    def test_no_auth_without_username(self):
        assert InfluxDBClient('http://localhost:8086', 'metrics').session.auth is None


class TestWrite:

    def test_posts_line_protocol(self, client):
        with mock.patch.object(client.session, 'post', return_value=make_response()) as post:
            assert client.write(make_batch()) == 1

        args, kwargs = post.call_args
        assert args == ('http://localhost:8086/write',)
        assert kwargs['params'] == {'db': 'metrics'}
        assert kwargs['data'].decode('utf-8').startswith('endpoint,service=foo reqs_count=3i ')
        assert kwargs['timeout'] == client.request_timeout

    def test_batch_database_wins(self, client):
        with mock.patch.object(client.session, 'post', return_value=make_response()) as post:
            client.write(make_batch(database='other'))
        assert post.call_args[1]['params'] == {'db': 'other'}

    def test_empty_batch_sends_nothing(self, client):
        with mock.patch.object(client.session, 'post') as post:
            assert client.write(Batch(database='metrics')) == 0
        post.assert_not_called()

    def test_rejected_batch_raises(self, client):
        with mock.patch.object(client.session, 'post', return_value=make_response(400)):
            with pytest.raises(requests.HTTPError):
                client.write(make_batch())

    def test_connection_error_retried_up_to_max_retries(self):
        client = InfluxDBClient('http://localhost:8086', 'metrics', max_retries=3, retry_delay=0)
        with mock.patch.object(client.session, 'post',
                               side_effect=requests.ConnectionError('refused')) as post:
            with pytest.raises(requests.ConnectionError):
                client.write(make_batch())
        assert post.call_count == 3

    def test_single_attempt_by_default(self, client):
        with mock.patch.object(client.session, 'post',
                               side_effect=requests.ConnectionError('refused')) as post:
            with pytest.raises(requests.ConnectionError):
                client.write(make_batch())
        assert post.call_count == 1


class TestPing:

    def test_ping_returns_version(self, client):
        response = make_response(204, {'X-Influxdb-Version': '1.8.10'})
        with mock.patch.object(client.session, 'get', return_value=response) as get:
            assert client.ping(timeout=5) == '1.8.10'
        get.assert_called_once_with('http://localhost:8086/ping', timeout=5)

    def test_ping_failure_raises(self, client):
        with mock.patch.object(client.session, 'get', side_effect=requests.Timeout('slow')):
            with pytest.raises(requests.Timeout):
                client.ping()

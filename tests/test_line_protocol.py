"""
Unit tests for line protocol encoding.
"""

from datetime import datetime

import pytz
from influx_reporter.aggregator import Batch, Measurement, build_batch
from influx_reporter.line_protocol import encode_point, encode_points, format_value, timestamp_ns
from influx_reporter.registry import Registry

NOW = datetime(2024, 1, 2, 3, 4, 5, 123456, tzinfo=pytz.UTC)
NOW_NS = 1704164645123456000


class TestFormatValue:

    def test_integers_carry_suffix(self):
        assert format_value(3) == '3i'

    def test_floats(self):
        assert format_value(0.5) == '0.5'

    def test_booleans(self):
        assert format_value(True) == 'true'

    def test_strings_are_quoted(self):
        assert format_value('say "hi"') == '"say \\"hi\\""'

    def test_non_finite_floats_are_dropped(self):
        assert format_value(float('nan')) is None
        assert format_value(float('inf')) is None


class TestEncodePoint:

    def test_timestamp_in_nanoseconds(self):
        assert timestamp_ns(NOW) == NOW_NS

    def test_naive_timestamp_is_utc(self):
        assert timestamp_ns(NOW.replace(tzinfo=None)) == NOW_NS

    def test_full_line(self):
        point = Measurement(
            name='namespace_endpoint',
            tags={'service': 'foo', 'env': 'prod'},
            time=NOW,
            fields={'reqs_count': 3, 'latency_mean': 1.5}
        )
        assert encode_point(point) == (
            f'namespace_endpoint,env=prod,service=foo latency_mean=1.5,reqs_count=3i {NOW_NS}'
        )

    def test_escaping(self):
        point = Measurement(
            name='my measurement,x',
            tags={'a key': 'v=1,2'},
            time=NOW,
            fields={'f=1': 1}
        )
        assert encode_point(point) == f'my\\ measurement\\,x,a\\ key=v\\=1\\,2 f\\=1=1i {NOW_NS}'

    def test_empty_tag_values_are_dropped(self):
        point = Measurement(name='m', tags={'host': ''}, time=NOW, fields={'x': 1})
        assert encode_point(point) == f'm x=1i {NOW_NS}'

    def test_point_without_writable_fields(self):
        point = Measurement(name='m', tags={}, time=NOW, fields={'x': float('nan')})
        assert encode_point(point) is None


class TestEncodePoints:

    def test_one_line_per_point(self):
        batch = Batch(database='metrics', points=[
            Measurement(name='a', tags={}, time=NOW, fields={'x': 1}),
            Measurement(name='b', tags={}, time=NOW, fields={}),
            Measurement(name='c', tags={}, time=NOW, fields={'y': 2.0}),
        ])
        assert encode_points(batch) == f'a x=1i {NOW_NS}\nc y=2.0 {NOW_NS}'

    def test_newlines_in_names_stay_on_one_line(self):
        point = Measurement(
            name='jobs\nqueue',
            tags={'host\r': 'a\nb'},
            time=NOW,
            fields={'bad\nname_count': 1, 'ok_count': 1}
        )
        line = encode_point(point)

        assert '\n' not in line and '\r' not in line
        assert line == f'jobs\\nqueue,host\\r=a\\nb bad\\nname_count=1i,ok_count=1i {NOW_NS}'


class TestEncodeRegistry:

    def test_bad_metric_name_does_not_lose_neighbours(self):
        registry = Registry()
        registry.counter('jobs.bad\nname').inc()
        registry.counter('jobs.ok').inc()

        body = encode_points(build_batch(registry, 'metrics', '', {}, NOW))

        assert body.count('\n') == 0
        assert 'ok_count=1i' in body

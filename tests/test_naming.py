"""
Unit tests for metric name splitting.
"""

import pytest
from influx_reporter.naming import field_name, split_measurement_name, split_tags


class TestSplitMeasurementName:
    """Test mapping of metric names onto measurements."""

    @pytest.mark.parametrize('name, expected', [
        ('a', ('a', '')),
        ('a.b', ('a', 'b')),
        ('a.b.c', ('a_b', 'c')),
        ('a.b.c.d', ('a_b_c', 'd')),
    ])
    def test_split(self, name, expected):
        assert split_measurement_name(name) == expected

    def test_sibling_metrics_share_measurement(self):
        assert split_measurement_name('endpoint.reqs')[0] == split_measurement_name('endpoint.latency')[0]

    def test_degenerate_names_do_not_raise(self):
        """Empty segments come through as whatever the split yields."""
        assert split_measurement_name('') == ('', '')
        assert split_measurement_name('.a') == ('', 'a')
        assert split_measurement_name('a.') == ('a', '')
        assert split_measurement_name('a..b') == ('a_', 'b')


class TestFieldName:

    def test_without_prefix(self):
        assert field_name('', 'x') == 'x'

    def test_with_prefix(self):
        assert field_name('p', 'x') == 'p_x'


class TestSplitTags:
    """Test inline tag parsing."""

    def test_tags_are_parsed(self):
        name, tags = split_tags('endpoint.reqs[method:GET,ignored,protocol:http]')
        assert name == 'endpoint.reqs'
        assert tags == {'method': 'GET', 'protocol': 'http'}

    def test_plain_name_is_unchanged(self):
        assert split_tags('endpoint.reqs') == ('endpoint.reqs', {})

    def test_unterminated_block_is_unchanged(self):
        assert split_tags('endpoint[method:GET') == ('endpoint[method:GET', {})

    def test_value_may_contain_colon(self):
        _, tags = split_tags('db.query[host:10.0.0.1:5432]')
        assert tags == {'host': '10.0.0.1:5432'}

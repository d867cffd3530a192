"""
InfluxDB reporter for in-memory metrics registries.
"""
from .aggregator import Batch, Measurement, build_batch
from .config import ConfigurationError
from .fields import encode_fields
from .http_client import InfluxDBClient
from .naming import field_name, split_measurement_name, split_tags
from .registry import (
    Counter,
    DuplicateMetric,
    Gauge,
    GaugeFloat,
    Histogram,
    Meter,
    Registry,
    Timer
)
from .reporter import Reporter, report

__all__ = [
    'Batch',
    'ConfigurationError',
    'Counter',
    'DuplicateMetric',
    'Gauge',
    'GaugeFloat',
    'Histogram',
    'InfluxDBClient',
    'Measurement',
    'Meter',
    'Registry',
    'Reporter',
    'Timer',
    'build_batch',
    'encode_fields',
    'field_name',
    'report',
    'split_measurement_name',
    'split_tags',
]

"""
Encodes registry metrics into InfluxDB field sets.

Each supported metric type maps to a fixed set of field suffixes, composed
with the field prefix derived from the metric name:

- Counter: count
- Gauge / GaugeFloat: gauge
- Histogram: histogram_{count,max,mean,min,stddev,variance,p50..p9999}
- Meter: meter_{count,m1,m5,m15,mean}
- Timer: timer_{histogram fields,m1,m5,m15,meanrate}
"""
import logging
from functools import singledispatch
from typing import Any, Dict, Union

from .naming import field_name
from .registry import Counter, Gauge, GaugeFloat, Histogram, HistogramSnapshot, Meter, Timer

logger = logging.getLogger(__name__)

PERCENTILES = (0.5, 0.75, 0.95, 0.99, 0.999, 0.9999)
PERCENTILE_NAMES = ('p50', 'p75', 'p95', 'p99', 'p999', 'p9999')

FieldValue = Union[int, float]


def _distribution_fields(prefix: str, snapshot: HistogramSnapshot) -> Dict[str, FieldValue]:
    fields = {
        field_name(prefix, 'count'): snapshot.count,
        field_name(prefix, 'max'): snapshot.max,
        field_name(prefix, 'mean'): snapshot.mean,
        field_name(prefix, 'min'): snapshot.min,
        field_name(prefix, 'stddev'): snapshot.stddev,
        field_name(prefix, 'variance'): snapshot.variance,
    }
    for name, score in zip(PERCENTILE_NAMES, snapshot.percentiles(PERCENTILES)):
        fields[field_name(prefix, name)] = score
    return fields


@singledispatch
def encode_fields(metric: Any, prefix: str) -> Dict[str, FieldValue]:
    """
    Encode a metric into a mapping of field name -> value.

    Metric types outside the supported set produce no fields.

    Args:
        metric: A registry metric
        prefix (str): Field prefix for every field name, may be empty

    Returns:
        dict: Field names mapped to numeric values
    """
    logger.warning("Skipping unsupported metric type %s (field prefix %r)",
                   type(metric).__name__, prefix)
    return {}


@encode_fields.register
def _(metric: Counter, prefix: str) -> Dict[str, FieldValue]:
    return {field_name(prefix, 'count'): metric.snapshot().count}


@encode_fields.register(Gauge)
@encode_fields.register(GaugeFloat)
def _(metric, prefix: str) -> Dict[str, FieldValue]:
    return {field_name(prefix, 'gauge'): metric.snapshot().value}


@encode_fields.register
def _(metric: Histogram, prefix: str) -> Dict[str, FieldValue]:
    return _distribution_fields(field_name(prefix, 'histogram'), metric.snapshot())


@encode_fields.register
def _(metric: Meter, prefix: str) -> Dict[str, FieldValue]:
    ms = metric.snapshot()
    prefix = field_name(prefix, 'meter')
    return {
        field_name(prefix, 'count'): ms.count,
        field_name(prefix, 'm1'): ms.rate1,
        field_name(prefix, 'm5'): ms.rate5,
        field_name(prefix, 'm15'): ms.rate15,
        field_name(prefix, 'mean'): ms.rate_mean,
    }


@encode_fields.register
def _(metric: Timer, prefix: str) -> Dict[str, FieldValue]:
    ts = metric.snapshot()
    prefix = field_name(prefix, 'timer')
    fields = _distribution_fields(prefix, ts.histogram)
    fields[field_name(prefix, 'm1')] = ts.meter.rate1
    fields[field_name(prefix, 'm5')] = ts.meter.rate5
    fields[field_name(prefix, 'm15')] = ts.meter.rate15
    fields[field_name(prefix, 'meanrate')] = ts.meter.rate_mean
    return fields

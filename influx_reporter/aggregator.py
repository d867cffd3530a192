"""
Aggregates registry metrics into measurement points.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterator, List, Optional, Tuple, Union

from .fields import encode_fields
from .naming import split_measurement_name, split_tags

logger = logging.getLogger(__name__)


@dataclass
class Measurement:
    """A named, tagged, timestamped set of fields."""
    name: str
    tags: Dict[str, str]
    time: datetime
    fields: Dict[str, Union[int, float]] = field(default_factory=dict)


@dataclass
class Batch:
    """All measurements produced by one flush, bound to a database."""
    database: str
    points: List[Measurement] = field(default_factory=list)

    def __iter__(self) -> Iterator[Measurement]:
        return iter(self.points)

    def __len__(self) -> int:
        return len(self.points)


def build_batch(registry, database: str, prefix: str, tags: Optional[Dict[str, str]],
                timestamp: datetime, parse_name_tags: bool = False) -> Batch:
    """
    Drain the registry once and group its metrics into measurements.

    Metrics whose names split onto the same measurement share one point;
    their fields are merged into it and a repeated field name keeps the
    value written last.

    Args:
        registry: Object exposing ``each(callback)`` over (name, metric) pairs
        database (str): Target database of the batch
        prefix (str): Prepended to every measurement name
        tags (dict, optional): Tags applied to every measurement
        timestamp (datetime): Time stamped on every measurement
        parse_name_tags (bool): Read ``[key:value,...]`` tags from metric names;
            measurements are then keyed by name and tag set

    Returns:
        Batch: One measurement per distinct measurement key
    """
    tags = dict(tags or {})
    points: Dict[Tuple[str, Tuple[Tuple[str, str], ...]], Measurement] = {}

    def add_metric(name, metric):
        point_tags = tags
        if parse_name_tags:
            name, name_tags = split_tags(name)
            if name_tags:
                point_tags = dict(tags)
                point_tags.update(name_tags)

        measurement, field_prefix = split_measurement_name(name)
        measurement = prefix + measurement

        key = (measurement, tuple(sorted(point_tags.items())) if parse_name_tags else ())
        point = points.get(key)
        if point is None:
            point = Measurement(name=measurement, tags=point_tags, time=timestamp)
            points[key] = point

        for key_name, value in encode_fields(metric, field_prefix).items():
            if key_name in point.fields:
                logger.warning("Field %s of measurement %s written twice, keeping the value from %s",
                               key_name, measurement, name)
            point.fields[key_name] = value

    registry.each(add_metric)
    return Batch(database=database, points=list(points.values()))

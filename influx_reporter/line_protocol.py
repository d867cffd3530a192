"""
InfluxDB line protocol encoding.

    measurement[,tag_key=tag_value...] field_key=field_value[,...] timestamp_ns
"""
import logging
import math
from datetime import datetime
from typing import Iterable, Optional

import pytz

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=pytz.UTC)

_MEASUREMENT_ESCAPES = str.maketrans({',': r'\,', ' ': r'\ ', '\n': r'\n', '\r': r'\r'})
_KEY_ESCAPES = str.maketrans({',': r'\,', '=': r'\=', ' ': r'\ ', '\n': r'\n', '\r': r'\r'})


def escape_measurement(name: str) -> str:
    return name.translate(_MEASUREMENT_ESCAPES)


def escape_key(key: str) -> str:
    """Escape a tag key, tag value or field key."""
    return key.translate(_KEY_ESCAPES)


def timestamp_ns(timestamp: datetime) -> int:
    """Nanoseconds since the Unix epoch, without float rounding."""
    if timestamp.tzinfo is None:
        timestamp = pytz.UTC.localize(timestamp)
    delta = timestamp - EPOCH
    return (delta.days * 86400 + delta.seconds) * 10 ** 9 + delta.microseconds * 1000


def format_value(value) -> Optional[str]:
    """
    Format a field value, or return None for values InfluxDB cannot store.
    """
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, int):
        return f"{value}i"
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return None
        return repr(value)
    if isinstance(value, str):
        escaped = value.replace('\\', '\\\\').replace('"', '\\"')
        return f'"{escaped}"'
    return None


def encode_point(point) -> Optional[str]:
    """
    Encode one measurement as a line, or None if it has no writable fields.
    """
    fields = []
    for key in sorted(point.fields):
        value = format_value(point.fields[key])
        if value is None:
            logger.debug("Dropping field %s of %s with unwritable value %r",
                         key, point.name, point.fields[key])
            continue
        fields.append(f"{escape_key(key)}={value}")
    if not fields:
        return None

    line = escape_measurement(point.name)
    for key in sorted(point.tags):
        value = point.tags[key]
        if value == '':
            continue
        line += f",{escape_key(key)}={escape_key(str(value))}"
    return f"{line} {','.join(fields)} {timestamp_ns(point.time)}"


def encode_points(points: Iterable) -> str:
    lines = []
    for point in points:
        line = encode_point(point)
        if line is None:
            logger.debug("Skipping measurement %s with no writable fields", point.name)
            continue
        lines.append(line)
    return '\n'.join(lines)

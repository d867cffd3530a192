"""
Mapping of dot-delimited metric names onto measurement and field names.
"""
from typing import Dict, Tuple


def split_measurement_name(name: str) -> Tuple[str, str]:
    """
    Split a metric name into a measurement name and a field prefix.

    The last dot-delimited segment becomes the field prefix and everything
    before it, joined with ``_``, becomes the measurement. A name without
    dots is a measurement with an empty field prefix.

        >>> split_measurement_name('endpoint.reqs')
        ('endpoint', 'reqs')
        >>> split_measurement_name('a.b.c.d')
        ('a_b_c', 'd')

    Args:
        name (str): Metric name

    Returns:
        tuple: (measurement, field_prefix)
    """
    dot_count = name.count('.')
    if dot_count == 0:
        return name, ''
    if dot_count == 1:
        measurement, extra = name.split('.', 1)
        return measurement, extra

    parts = name.split('.', dot_count)
    measurement = '_'.join(parts[:dot_count])
    extra = parts[dot_count].replace('.', '_')
    return measurement, extra


def field_name(prefix: str, name: str) -> str:
    if prefix:
        return prefix + '_' + name
    return name


def split_tags(name: str) -> Tuple[str, Dict[str, str]]:
    """
    Strip inline tags from a metric name.

    ``endpoint.reqs[method:GET,protocol:http]`` yields ``endpoint.reqs`` and
    ``{'method': 'GET', 'protocol': 'http'}``. Entries without a ``:`` are
    ignored. Names without a trailing bracket block come back unchanged.

    Args:
        name (str): Metric name, optionally carrying inline tags

    Returns:
        tuple: (base_name, tags)
    """
    start = name.find('[')
    if start == -1 or not name.endswith(']'):
        return name, {}

    tags = {}
    for entry in name[start + 1:-1].split(','):
        if ':' not in entry:
            continue
        key, value = entry.split(':', 1)
        key = key.strip()
        if key:
            tags[key] = value.strip()
    return name[:start], tags

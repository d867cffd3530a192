"""
Configuration settings for the InfluxDB reporter.
"""
import os

# Server configuration
INFLUXDB_URL = os.getenv('INFLUXDB_URL', 'http://localhost:8086')
INFLUXDB_DATABASE = os.getenv('INFLUXDB_DATABASE', 'metrics')
INFLUXDB_USERNAME = os.getenv('INFLUXDB_USERNAME', '')
INFLUXDB_PASSWORD = os.getenv('INFLUXDB_PASSWORD', '')

# Reporter configuration
METRICS_PREFIX = os.getenv('METRICS_PREFIX', '')
FLUSH_INTERVAL = float(os.getenv('METRICS_FLUSH_INTERVAL', '10'))  # seconds

# Health check configuration
PING_INTERVAL = 5  # seconds
PING_TIMEOUT = 5  # seconds

# HTTP client configuration
REQUEST_TIMEOUT = 30  # seconds
MAX_RETRIES = int(os.getenv('INFLUXDB_MAX_RETRIES', '1'))  # attempts per write, 1 means no retry
RETRY_DELAY = 1  # seconds

# Runtime stats configuration
RUNTIME_STATS_INTERVAL = float(os.getenv('RUNTIME_STATS_INTERVAL', '5'))  # seconds

# Logging configuration
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')


class ConfigurationError(ValueError):
    """Raised for connection or reporter parameters that cannot be used."""

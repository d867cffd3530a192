"""
Periodic reporter posting registry metrics to InfluxDB.

A single dispatcher thread owns the InfluxDB client and waits on two
deadlines: the flush interval and a fixed health check interval. Only one
of them is handled at a time, so a flush never sees the client while it is
being replaced and a slow flush delays a pending health check.
"""
import logging
import threading
import time
from datetime import datetime
from typing import Dict, Optional

import pytz
import requests

from . import config
from .aggregator import build_batch
from .config import ConfigurationError
from .http_client import InfluxDBClient

logger = logging.getLogger(__name__)


def normalize_prefix(prefix: Optional[str]) -> str:
    if prefix and not prefix.endswith('_'):
        return prefix + '_'
    return prefix or ''


class Reporter:
    """Flushes a metrics registry to InfluxDB at a fixed interval."""

    _clock = staticmethod(time.monotonic)
    _sleep = staticmethod(time.sleep)

    def __init__(
        self,
        registry,
        interval: float,
        url: str,
        database: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        prefix: str = '',
        tags: Optional[Dict[str, str]] = None,
        parse_name_tags: bool = False,
        ping_interval: float = config.PING_INTERVAL,
        ping_timeout: float = config.PING_TIMEOUT,
        request_timeout: Optional[float] = None,
        max_retries: Optional[int] = None
    ):
        """
        Initialize the reporter. No connection is made until ``make_client()``.

        Args:
            registry: Metrics registry exposing ``each(callback)``
            interval (float): Seconds between flushes
            url (str): Base URL of the InfluxDB server
            database (str): Database the metrics are written to
            username (str, optional): InfluxDB username
            password (str, optional): InfluxDB password
            prefix (str): Prefix for every measurement name, ``_`` is appended if missing
            tags (dict, optional): Tags applied to every measurement
            parse_name_tags (bool): Read ``[key:value,...]`` tags from metric names
            ping_interval (float): Seconds between health checks
            ping_timeout (float): Seconds to wait for a health check answer
            request_timeout (float, optional): Write timeout in seconds
            max_retries (int, optional): Attempts per write on connection errors

        Raises:
            ConfigurationError: If the interval is not positive
        """
        if interval <= 0:
            raise ConfigurationError(f"Flush interval must be positive, got {interval}")

        self.registry = registry
        self.interval = interval
        self.url = url
        self.database = database
        self.username = username
        self.password = password
        self.prefix = normalize_prefix(prefix)
        self.tags = dict(tags or {})
        self.parse_name_tags = parse_name_tags
        self.ping_interval = ping_interval
        self.ping_timeout = ping_timeout
        self.request_timeout = request_timeout
        self.max_retries = max_retries

        self.client: Optional[InfluxDBClient] = None

    def make_client(self) -> None:
        """
        Replace the client with a new one built from the stored parameters.

        The previous client is closed only once its replacement exists.

        Raises:
            ConfigurationError: If the connection parameters are invalid
        """
        client = InfluxDBClient(
            url=self.url,
            database=self.database,
            username=self.username,
            password=self.password,
            request_timeout=self.request_timeout,
            max_retries=self.max_retries
        )
        old_client, self.client = self.client, client
        if old_client is not None:
            old_client.close()

    def send(self) -> int:
        """
        Write one batch built from the current registry contents.

        Returns:
            int: Number of points written

        Raises:
            requests.RequestException: If the batch could not be written
        """
        now = datetime.now(pytz.UTC)
        batch = build_batch(
            self.registry,
            self.database,
            self.prefix,
            self.tags,
            now,
            parse_name_tags=self.parse_name_tags
        )
        return self.client.write(batch)

    def flush(self) -> None:
        """Send the registry, dropping the batch if the write fails."""
        try:
            written = self.send()
            logger.debug("Sent %s points to InfluxDB", written)
        except requests.exceptions.RequestException as e:
            logger.error("Unable to send metrics to InfluxDB: %s", e)

    def check_connection(self) -> bool:
        """
        Ping the server and recreate the client if it does not answer.

        Returns:
            bool: True if the ping succeeded
        """
        if self.client is not None:
            try:
                self.client.ping(timeout=self.ping_timeout)
                return True
            except requests.exceptions.RequestException as e:
                logger.warning("Got error while sending a ping to InfluxDB, trying to recreate client: %s", e)

        try:
            self.make_client()
        except Exception as e:
            logger.error("Unable to make InfluxDB client: %s", e)
        return False

    def _reschedule(self, deadline: float, interval: float, started: float, name: str) -> float:
        next_deadline = deadline + interval
        if next_deadline <= started:
            # Ticks missed while waiting on the other trigger collapse into this one
            next_deadline += ((started - next_deadline) // interval + 1) * interval
        if next_deadline < self._clock():
            logger.warning("%s took longer than its interval. Next %s will start immediately.",
                           name.capitalize(), name)
        return next_deadline

    def run(self) -> None:
        """Flush and health check forever. Never returns."""
        handlers = {
            'flush': (self.interval, self.flush),
            'health check': (self.ping_interval, self.check_connection),
        }
        start = self._clock()
        deadlines = {name: start + interval for name, (interval, _) in handlers.items()}

        logger.info("Reporting to InfluxDB at %s (database %s) every %ss", self.url, self.database, self.interval)
        while True:
            name = min(deadlines, key=deadlines.get)
            wait_time = deadlines[name] - self._clock()
            if wait_time > 0:
                self._sleep(wait_time)

            interval, handler = handlers[name]
            started = self._clock()
            try:
                handler()
            except Exception:
                logger.exception("Unexpected error during InfluxDB %s", name)
            deadlines[name] = self._reschedule(deadlines[name], interval, started, name)

    def start(self) -> threading.Thread:
        """Run the reporter on a daemon thread."""
        thread = threading.Thread(target=self.run, name='influxdb-reporter', daemon=True)
        thread.start()
        return thread


def report(registry, interval: float, url: str, database: str, username: Optional[str] = None,
           password: Optional[str] = None, prefix: str = '', tags: Optional[Dict[str, str]] = None,
           **kwargs) -> None:
    """
    Report the registry to InfluxDB every ``interval`` seconds, forever.

    Raises:
        ConfigurationError: If the connection parameters are invalid; raised before reporting starts
    """
    reporter = Reporter(registry, interval, url, database, username=username, password=password,
                        prefix=prefix, tags=tags, **kwargs)
    reporter.make_client()
    reporter.run()

"""
HTTP client for writing measurement batches to InfluxDB.
"""
import logging
import time
from typing import Optional
from urllib.parse import urlparse

import requests
from retrying import retry

from . import config
from .config import ConfigurationError
from .line_protocol import encode_points

logger = logging.getLogger(__name__)


class InfluxDBClient:
    """Connection to an InfluxDB 1.x HTTP endpoint."""

    def __init__(
        self,
        url: str,
        database: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        request_timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None
    ):
        """
        Initialize the client.

        Args:
            url (str): Base URL of the server, e.g. http://localhost:8086
            database (str): Database the batches are written to
            username (str, optional): Username for basic authentication
            password (str, optional): Password for basic authentication
            request_timeout (float, optional): Write timeout in seconds. Defaults to config.REQUEST_TIMEOUT.
            max_retries (int, optional): Attempts per write on connection errors. Defaults to config.MAX_RETRIES.
            retry_delay (float, optional): Delay between attempts in seconds. Defaults to config.RETRY_DELAY.

        Raises:
            ConfigurationError: If the URL or database is unusable
        """
        parsed = urlparse(url or '')
        if parsed.scheme not in ('http', 'https') or not parsed.netloc:
            raise ConfigurationError(f"Invalid InfluxDB url: {url!r}")
        if not database:
            raise ConfigurationError("InfluxDB database name is required")

        self.url = url.rstrip('/')
        self.database = database
        self.request_timeout = request_timeout or config.REQUEST_TIMEOUT
        self.max_retries = max_retries or config.MAX_RETRIES
        self.retry_delay = retry_delay if retry_delay is not None else config.RETRY_DELAY

        self.session = requests.Session()
        if username:
            self.session.auth = (username, password or '')

    def _retry_if_connection_error(self, exception: Exception) -> bool:
        return isinstance(exception, (requests.ConnectionError, requests.Timeout))

    def write(self, batch) -> int:
        """
        Write a batch of measurements.

        Args:
            batch (Batch): Measurements to write; ``batch.database`` overrides the client default

        Returns:
            int: Number of lines sent

        Raises:
            requests.RequestException: If the server rejects the batch or cannot be reached
        """
        body = encode_points(batch)
        if not body:
            logger.debug("Nothing to write to InfluxDB")
            return 0

        params = {'db': batch.database or self.database}

        @retry(
            retry_on_exception=self._retry_if_connection_error,
            stop_max_attempt_number=self.max_retries,
            wait_fixed=self.retry_delay * 1000  # milliseconds
        )
        def _send_request():
            response = self.session.post(
                f"{self.url}/write",
                params=params,
                data=body.encode('utf-8'),
                headers={'Content-Type': 'text/plain; charset=utf-8'},
                timeout=self.request_timeout
            )
            response.raise_for_status()
            return response

        _send_request()
        lines = body.count('\n') + 1
        logger.debug("Wrote %s points to InfluxDB database %s", lines, params['db'])
        return lines

    def ping(self, timeout: float = config.PING_TIMEOUT) -> str:
        """
        Check that the server is alive.

        Args:
            timeout (float): Seconds to wait for the answer

        Returns:
            str: Server version reported by the ping endpoint

        Raises:
            requests.RequestException: If the server does not answer or answers with an error
        """
        start = time.monotonic()
        response = self.session.get(f"{self.url}/ping", timeout=timeout)
        response.raise_for_status()
        version = response.headers.get('X-Influxdb-Version', '')
        logger.debug("InfluxDB ping answered in %.3fs (version %s)", time.monotonic() - start, version)
        return version

    def close(self) -> None:
        self.session.close()

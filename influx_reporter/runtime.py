"""
Process and system statistics captured into a registry.

Registered metrics:
- process.cpu_percent, process.memory_percent (float gauges)
- process.memory_rss, process.memory_vms, process.num_threads (gauges)
- system.cpu_percent, system.memory_percent, system.disk_percent (float gauges)
- process.capture (timer of the capture itself)
"""
import logging
import time

import psutil

from . import config
from .registry import Gauge, GaugeFloat, Timer

logger = logging.getLogger(__name__)

FLOAT_GAUGES = (
    'process.cpu_percent',
    'process.memory_percent',
    'system.cpu_percent',
    'system.memory_percent',
    'system.disk_percent',
)
INT_GAUGES = (
    'process.memory_rss',
    'process.memory_vms',
    'process.num_threads',
)
CAPTURE_TIMER = 'process.capture'


def register_runtime_stats(registry) -> None:
    """Register the runtime metrics in the registry."""
    for name in FLOAT_GAUGES:
        registry.register(name, GaugeFloat())
    for name in INT_GAUGES:
        registry.register(name, Gauge())
    registry.register(CAPTURE_TIMER, Timer())


def capture_runtime_stats_once(registry, process=None, disk_path: str = '/') -> None:
    """
    Update the runtime metrics from psutil.

    Args:
        registry: Registry previously passed to ``register_runtime_stats``
        process (psutil.Process, optional): Process to inspect. Defaults to the current process.
        disk_path (str): Mount point reported by system.disk_percent
    """
    process = process or psutil.Process()
    with registry.get(CAPTURE_TIMER).time():
        with process.oneshot():
            memory = process.memory_info()
            registry.get('process.cpu_percent').update(process.cpu_percent(interval=None))
            registry.get('process.memory_percent').update(process.memory_percent())
            registry.get('process.memory_rss').update(memory.rss)
            registry.get('process.memory_vms').update(memory.vms)
            registry.get('process.num_threads').update(process.num_threads())

        registry.get('system.cpu_percent').update(psutil.cpu_percent(interval=None))
        registry.get('system.memory_percent').update(psutil.virtual_memory().percent)
        registry.get('system.disk_percent').update(psutil.disk_usage(disk_path).percent)


def capture_runtime_stats(registry, interval: float = config.RUNTIME_STATS_INTERVAL) -> None:
    """Capture runtime statistics every ``interval`` seconds, forever."""
    process = psutil.Process()
    while True:
        try:
            capture_runtime_stats_once(registry, process)
        except psutil.Error as e:
            logger.error("Error capturing runtime stats: %s", e)
        except Exception:
            logger.exception("Unexpected error capturing runtime stats")
        time.sleep(interval)

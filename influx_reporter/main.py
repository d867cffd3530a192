#!/usr/bin/env python3
"""
CLI application reporting process and system metrics to InfluxDB.
"""
import argparse
import json
import logging
import os
import sys
import threading
from typing import Any, Dict, List, Optional

from . import config
from .config import ConfigurationError
from .registry import Registry
from .reporter import Reporter
from .runtime import capture_runtime_stats, register_runtime_stats

# Setup logging
logger = logging.getLogger(__name__)


def setup_logging(log_level: str) -> None:
    """
    Setup logging with the specified log level.

    Args:
        log_level (str): Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    numeric_level = getattr(logging, log_level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {log_level}")

    logging.basicConfig(
        level=numeric_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def parse_tags(specs: Optional[List[str]]) -> Dict[str, str]:
    """
    Parse tag specifications of the form "key=value".

    Raises:
        ValueError: If a specification has no "=" or an empty key
    """
    tags = {}
    for spec in specs or []:
        if '=' not in spec:
            raise ValueError(f"Invalid tag {spec!r}, expected key=value")
        key, value = spec.split('=', 1)
        key = key.strip()
        if not key:
            raise ValueError(f"Invalid tag {spec!r}, empty key")
        tags[key] = value.strip()
    return tags


def load_config_from_file(config_file: str) -> Dict[str, Any]:
    """
    Load configuration from a JSON file.

    Args:
        config_file (str): Path to the JSON config file

    Returns:
        dict: Configuration dictionary with argument names as keys
    """
    if not os.path.exists(config_file):
        logger.error("Config file not found: %s", config_file)
        return {}

    try:
        with open(config_file, 'r') as f:
            file_config = json.load(f)
            logger.debug("Loaded configuration from %s", config_file)
            return file_config
    except (json.JSONDecodeError, ValueError) as e:
        logger.error("Error parsing config file %s: %s", config_file, e)
        return {}


def _flag(value):
    if not isinstance(value, bool):
        raise ValueError(f"expected true or false, got {value!r}")
    return value


def option_types(parser: argparse.ArgumentParser) -> Dict[str, Any]:
    """Map each option destination to the callable converting its value."""
    types = {}
    for action in parser._actions:
        if action.type is not None:
            types[action.dest] = action.type
        elif isinstance(action.const, bool):
            types[action.dest] = _flag
    return types


def merge_config_with_args(file_config: Dict[str, Any], args: argparse.Namespace,
                           defaults: argparse.Namespace,
                           types: Optional[Dict[str, Any]] = None,
                           choices: Optional[Dict[str, Any]] = None) -> argparse.Namespace:
    """
    Merge configuration from a file with command line arguments.
    Command line arguments take precedence over config file values.

    Args:
        file_config (dict): Configuration dictionary from file
        args (argparse.Namespace): Command line arguments
        defaults (argparse.Namespace): Parser defaults, used to tell which arguments were given
        types (dict, optional): Converters applied to file values, by argument name
        choices (dict, optional): Allowed values, by argument name

    Returns:
        argparse.Namespace: Updated arguments namespace

    Raises:
        ValueError: If a file value cannot be converted or is not an allowed choice
    """
    args_dict = vars(args)
    default_dict = vars(defaults)
    types = types or {}
    choices = choices or {}

    for key, value in file_config.items():
        arg_key = key.replace('-', '_')
        if arg_key not in args_dict:
            logger.warning("Ignoring unknown config file option: %s", key)
            continue
        # Only use the file value when the command line left the default
        if args_dict[arg_key] != default_dict.get(arg_key):
            continue

        convert = types.get(arg_key)
        if convert is not None:
            try:
                if isinstance(value, list):
                    value = [convert(item) for item in value]
                else:
                    value = convert(value)
            except (TypeError, ValueError) as e:
                raise ValueError(f"Invalid value for config file option {key}: {value!r} ({e})")
        if arg_key in choices and value not in choices[arg_key]:
            raise ValueError(f"Invalid value for config file option {key}: {value!r}, "
                             f"choose from {', '.join(map(str, choices[arg_key]))}")
        args_dict[arg_key] = value

    return argparse.Namespace(**args_dict)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Report process and system metrics to InfluxDB.',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument('--config-file', type=str,
                        help='Path to JSON configuration file')
    parser.add_argument('--log-level', type=str, default=config.LOG_LEVEL,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        help='Log level')

    # InfluxDB connection
    parser.add_argument('--url', type=str, default=config.INFLUXDB_URL,
                        help='Base URL of the InfluxDB server')
    parser.add_argument('--database', type=str, default=config.INFLUXDB_DATABASE,
                        help='Database to write to')
    parser.add_argument('--username', type=str, default=config.INFLUXDB_USERNAME,
                        help='InfluxDB username')
    parser.add_argument('--password', type=str, default=config.INFLUXDB_PASSWORD,
                        help='InfluxDB password')
    parser.add_argument('--request-timeout', type=float, default=config.REQUEST_TIMEOUT,
                        help='Write timeout in seconds')
    parser.add_argument('--max-retries', type=int, default=config.MAX_RETRIES,
                        help='Attempts per write on connection errors')

    # Reporting
    parser.add_argument('--interval', type=float, default=config.FLUSH_INTERVAL,
                        help='Seconds between flushes')
    parser.add_argument('--prefix', type=str, default=config.METRICS_PREFIX,
                        help='Prefix for every measurement name')
    parser.add_argument('--tag', dest='tags', type=str, action='append', default=[],
                        help='Tag applied to every measurement, as key=value (repeatable)')
    parser.add_argument('--parse-name-tags', action='store_true',
                        help='Read [key:value,...] tags from metric names')
    parser.add_argument('--no-runtime-stats', dest='runtime_stats', action='store_false',
                        help='Do not capture process and system statistics')
    parser.add_argument('--runtime-interval', type=float, default=config.RUNTIME_STATS_INTERVAL,
                        help='Seconds between runtime statistics captures')
    return parser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.config_file:
        file_config = load_config_from_file(args.config_file)
        if file_config:
            choices = {a.dest: a.choices for a in parser._actions if a.choices}
            try:
                args = merge_config_with_args(file_config, args, parser.parse_args([]),
                                              option_types(parser), choices)
            except ValueError as e:
                parser.error(str(e))
    return args


def build_reporter(args: argparse.Namespace, registry: Registry) -> Reporter:
    """
    Create a connected reporter from parsed arguments.

    Raises:
        ConfigurationError: If the connection parameters are invalid
        ValueError: If a tag specification is malformed
    """
    reporter = Reporter(
        registry,
        args.interval,
        args.url,
        args.database,
        username=args.username or None,
        password=args.password or None,
        prefix=args.prefix,
        tags=parse_tags(args.tags),
        parse_name_tags=args.parse_name_tags,
        request_timeout=args.request_timeout,
        max_retries=args.max_retries
    )
    reporter.make_client()
    return reporter


def main(argv: Optional[List[str]] = None) -> int:
    """Main function to parse arguments and run the reporter."""
    args = parse_args(argv)
    setup_logging(args.log_level)

    registry = Registry()
    try:
        reporter = build_reporter(args, registry)
    except (ConfigurationError, ValueError) as e:
        logger.error("Unable to start InfluxDB reporter: %s", e)
        return 1

    if args.runtime_stats:
        register_runtime_stats(registry)
        threading.Thread(
            target=capture_runtime_stats,
            args=(registry, args.runtime_interval),
            name='runtime-stats',
            daemon=True
        ).start()

    try:
        reporter.run()
    except KeyboardInterrupt:
        logger.info("Reporting interrupted by user.")
    return 0


if __name__ == "__main__":
    sys.exit(main())

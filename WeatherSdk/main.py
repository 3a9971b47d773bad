"""Command-line weather lookup for one or more cities."""
import argparse
import logging
import os
import signal
import sys
import time
from typing import List, Optional

from dotenv import load_dotenv

from weather_config import Mode, WeatherConfig, VALID_UNITS, default_thread_pool_size
from weather_provider import WeatherProviderError
from weather_registry import registry
from weather_service import WeatherService


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser("OpenWeather city lookup")
    parser.add_argument("cities", nargs="+", help="City names, e.g. London \"Paris,FR\"")
    parser.add_argument("--mode", choices=[m.value for m in Mode], default=Mode.ON_DEMAND.value)
    parser.add_argument("--cache-ttl", type=float, default=600)
    parser.add_argument("--poll-interval", type=float, default=600)
    parser.add_argument("--max-cache-size", type=int, default=10)
    parser.add_argument("--pool-size", type=int, default=default_thread_pool_size())
    parser.add_argument("--timeout", type=float, default=10, help="HTTP timeout in seconds")
    parser.add_argument("--units", choices=VALID_UNITS, default="standard")
    parser.add_argument("--lang", default=os.getenv("WEATHER_LANG", "en"))
    parser.add_argument("--watch", action="store_true", help="Keep printing until interrupted")
    parser.add_argument("--refresh", type=float, default=30.0, help="Seconds between lookups with --watch")
    parser.add_argument("--log-file", default=None)
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args(argv)


def setup_logging(log_file: Optional[str], verbose: bool) -> None:
    log_level = logging.DEBUG if verbose else logging.INFO
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=handlers
    )


def load_api_key() -> str:
    load_dotenv()
    api_key = os.getenv("WEATHER_API_KEY")
    if not api_key:
        raise SystemExit("Missing WEATHER_API_KEY in environment")
    return api_key


def build_config(args: argparse.Namespace) -> WeatherConfig:
    try:
        config = WeatherConfig(
            mode=Mode(args.mode),
            ttl_seconds=args.cache_ttl,
            polling_interval_seconds=args.poll_interval,
            max_cache_size=args.max_cache_size,
            thread_pool_size=args.pool_size,
            request_timeout_seconds=args.timeout,
            units=args.units,
            lang=args.lang,
        )
    except ValueError as exc:
        raise SystemExit(f"Invalid configuration: {exc}") from exc
    logging.info("Configuration loaded: mode=%s ttl=%s units=%s", config.mode.value, config.ttl_seconds, config.units)
    return config


def print_weather(service: WeatherService, cities: List[str]) -> int:
    """Print one JSON line per city. Returns the number of failed lookups."""
    failures = 0
    for city in cities:
        try:
            print(service.get_by_city(city), flush=True)
        except WeatherProviderError as err:
            logging.error("Weather lookup failed for '%s': %s", city, err)
            failures += 1
    return failures


def signal_handler(signum, frame):
    logging.info("Received signal %s, shutting down", signum)
    raise KeyboardInterrupt()


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_file, args.verbose)
    api_key = load_api_key()
    service = registry.create(api_key, build_config(args))

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    failures = 0
    try:
        failures = print_weather(service, args.cities)
        while args.watch:
            time.sleep(max(args.refresh, 1.0))
            failures = print_weather(service, args.cities)
    except KeyboardInterrupt:
        logging.info("Stopping")
    finally:
        registry.shutdown()
        logging.info("Weather services closed")
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())

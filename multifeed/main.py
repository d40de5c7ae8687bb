#!/usr/bin/env python3
"""multifeed price aggregator.

Reads prices from multiple heterogeneous providers, rejects stale and
outlying readings and publishes one freshness-weighted canonical price.

Sources are configured in a JSON file (see multifeed/src/SourceConfig.py).
"""

import argparse
import asyncio
import logging
import os
import sys

from .src.errors import AggregatorError
from .src.PriceService import PriceService
from .src.providers import get_available_providers
from .src.SourceConfig import SourceConfigError, load_sources_file
from .src.SourceRegistry import (
    MAX_AGGREGATOR_DECIMALS,
    AggregationParameters,
    SourceRegistry,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def parse_api_keys(api_key_str: str | None) -> dict[str, str]:
    """Parse comma-separated API key string into a dictionary.

    Format: provider1=key1,provider2=key2
    Example: http_json=abc123,coinbase=xyz789

    :param api_key_str: Comma-separated API key string.
    :returns: Dict mapping provider names to API keys.
    """
    if not api_key_str:
        return {}

    api_keys = {}
    for item in api_key_str.split(","):
        item = item.strip()
        if "=" in item:
            provider, key = item.split("=", 1)
            api_keys[provider.strip().lower()] = key.strip()
    return api_keys


def parse_env_api_keys() -> dict[str, str]:
    """Parse API keys from individual environment variables.

    Looks for: API_KEY_HTTP_JSON, API_KEY_COINBASE, etc.

    :returns: Dict mapping provider names to API keys.
    """
    api_keys = {}
    prefixes = ["API_KEY_", "APIKEY_"]

    for key, value in os.environ.items():
        for prefix in prefixes:
            if key.startswith(prefix) and value:
                provider = key[len(prefix):].lower()
                api_keys[provider] = value
                break

    return api_keys


def env_flag(name: str, default: bool) -> bool:
    """Read a boolean environment variable (1/true/yes/on)."""
    value = os.environ.get(name)
    if not value:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def main() -> None:
    """Main entry point for the multifeed CLI."""
    available_providers = get_available_providers()

    parser = argparse.ArgumentParser(
        description="multifeed: Multi-source weighted price aggregation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Available provider types:
  {', '.join(available_providers)}

Examples:
  # Aggregate once and print the price
  python -m multifeed.main --sources-file sources.json --once

  # Poll every 30 seconds with a 10 minute staleness window
  python -m multifeed.main --sources-file sources.json \\
      --poll-period 30 --stale-threshold 600 --allow-stale-fallback

Environment variables (CLI args take precedence):
  SOURCES_FILE, AGGREGATOR_DECIMALS, STALE_THRESHOLD, DECAY_LAMBDA,
  MAX_DEVIATION_BPS, OUTLIER_DETECTION, ALLOW_STALE_FALLBACK, PRICE_ID,
  POLL_PERIOD, FETCH_TIMEOUT, API_KEYS, API_KEY_HTTP_JSON, etc.
""",
    )

    parser.add_argument(
        "--sources-file",
        dest="sources_file",
        type=str,
        help="Path to the JSON sources file",
        default=os.environ.get("SOURCES_FILE"),
    )

    parser.add_argument(
        "--decimals",
        type=int,
        help=f"Output decimal scale (maximum: {MAX_AGGREGATOR_DECIMALS}, default: 8)",
        default=int(os.environ.get("AGGREGATOR_DECIMALS") or "8"),
    )

    parser.add_argument(
        "--stale-threshold",
        dest="stale_threshold",
        type=int,
        help="Max reading age in seconds (default: 3600)",
        default=int(os.environ.get("STALE_THRESHOLD") or "3600"),
    )

    parser.add_argument(
        "--decay-lambda",
        dest="decay_lambda",
        type=int,
        help="Freshness decay rate, 0 weighs all fresh readings equally (default: 1000)",
        default=int(os.environ.get("DECAY_LAMBDA") or "1000"),
    )

    parser.add_argument(
        "--max-deviation-bps",
        dest="max_deviation_bps",
        type=int,
        help="Outlier band around the median in basis points (default: 500)",
        default=int(os.environ.get("MAX_DEVIATION_BPS") or "500"),
    )

    parser.add_argument(
        "--no-outlier-detection",
        dest="outlier_detection",
        action="store_false",
        help="Disable median-band outlier rejection",
        default=env_flag("OUTLIER_DETECTION", True),
    )

    parser.add_argument(
        "--allow-stale-fallback",
        dest="allow_stale_fallback",
        action="store_true",
        help="Return the newest reading when every reading is stale",
        default=env_flag("ALLOW_STALE_FALLBACK", False),
    )

    parser.add_argument(
        "--price-id",
        dest="price_id",
        type=str,
        help="Identifier accepted by the structured price read",
        default=os.environ.get("PRICE_ID"),
    )

    parser.add_argument(
        "--poll-period",
        dest="poll_period",
        type=int,
        help="Seconds between aggregation rounds (minimum: 1, default: 60)",
        default=int(os.environ.get("POLL_PERIOD") or "60"),
    )

    parser.add_argument(
        "--fetch-timeout",
        dest="fetch_timeout",
        type=float,
        help="Timeout for each provider read in seconds (default: 10.0)",
        default=float(os.environ.get("FETCH_TIMEOUT") or "10.0"),
    )

    parser.add_argument(
        "--api-keys",
        dest="api_keys",
        type=str,
        help="Comma-separated API keys (e.g., http_json=abc,coinbase=xyz)",
        default=os.environ.get("API_KEYS"),
    )

    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single aggregation round and exit",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    args = parser.parse_args()

    # Configure logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    # Validate arguments
    if not args.sources_file:
        parser.error("--sources-file (or SOURCES_FILE) is required")

    if args.poll_period < 1:
        parser.error("--poll-period must be at least 1 second")

    if args.fetch_timeout <= 0:
        parser.error("--fetch-timeout must be positive")

    try:
        parameters = AggregationParameters(
            stale_threshold=args.stale_threshold,
            decay_lambda=args.decay_lambda,
            max_price_deviation_bps=args.max_deviation_bps,
            outlier_detection_enabled=args.outlier_detection,
            allow_stale_fallback=args.allow_stale_fallback,
            aggregator_decimals=args.decimals,
        )
    except (ValueError, AggregatorError) as e:
        parser.error(str(e))

    # Parse API keys (CLI + environment)
    api_keys = parse_env_api_keys()
    api_keys.update(parse_api_keys(args.api_keys))

    try:
        source_config = load_sources_file(
            args.sources_file, api_keys=api_keys, timeout=args.fetch_timeout
        )
    except SourceConfigError as e:
        parser.error(str(e))

    registry = SourceRegistry(parameters)
    try:
        source_config.apply(registry)
    except AggregatorError as e:
        parser.error(f"Invalid sources file: {e}")

    # Log configuration
    logger.info("=" * 60)
    logger.info("multifeed - Weighted Multi-Source Aggregation")
    logger.info("=" * 60)
    logger.info(f"Sources:           {', '.join(d.name for d in source_config.all_sources())}")
    logger.info(f"Decimals:          {parameters.aggregator_decimals}")
    logger.info(f"Stale Threshold:   {parameters.stale_threshold}s")
    logger.info(f"Decay Lambda:      {parameters.decay_lambda}")
    logger.info(
        f"Outlier Band:      {parameters.max_price_deviation_bps} bps"
        if parameters.outlier_detection_enabled
        else "Outlier Band:      disabled"
    )
    logger.info(f"Stale Fallback:    {'enabled' if parameters.allow_stale_fallback else 'disabled'}")
    logger.info(f"Poll Period:       {args.poll_period}s")
    logger.info(f"Fetch Timeout:     {args.fetch_timeout}s")
    if api_keys:
        logger.info(f"API Keys:          {', '.join(api_keys.keys())}")
    logger.info("=" * 60)

    service = PriceService(
        registry,
        poll_period=args.poll_period,
        fetch_timeout=args.fetch_timeout,
        price_id=args.price_id,
    )

    try:
        if args.once:
            asyncio.run(service.run(iterations=1))
            if service.last_result is None:
                sys.exit(1)
            print(service.last_result.price)
        else:
            asyncio.run(service.run())
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()

"""Command-line entrypoints for the BMLT geocoding client."""
from __future__ import annotations

import argparse
import asyncio
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import orjson
import tomllib
from dotenv import load_dotenv

from bmltgeo.directory.geo_params import geographic_search_params, validate_coordinates
from bmltgeo.geocoding.errors import BmltGeoError, ConfigurationError, wrap_error
from bmltgeo.geocoding.options import options_from_settings
from bmltgeo.geocoding.service import GeocodingService, open_geocoding_service
from bmltgeo.observability.log import configure_logging
from bmltgeo.observability.metrics import MetricsRegistry, record_duration

DEFAULT_SETTINGS = Path("config/settings.toml")
DEFAULT_LOGGING = Path("config/logging.yaml")

ENV_OVERRIDES = {
    "BMLTGEO_USER_AGENT": "user_agent",
    "BMLTGEO_BASE_URL": "base_url",
}


def load_settings(path: Path) -> Dict[str, Any]:
    """Read the TOML configuration file and apply environment overrides."""
    settings: Dict[str, Any] = {}
    if path.exists():
        with path.open("rb") as handle:
            try:
                settings = tomllib.load(handle)
            except tomllib.TOMLDecodeError as exc:
                raise ConfigurationError(f"Invalid settings file {path}: {exc}", cause=exc) from exc
    geocoding = settings.setdefault("geocoding", {})
    for env_name, key in ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value:
            geocoding[key] = value
    return settings


def build_arg_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser."""
    parser = argparse.ArgumentParser(prog="bmltgeo", description="Rate-limited Nominatim geocoding for BMLT")
    parser.add_argument("--settings", default=str(DEFAULT_SETTINGS), help="Path to settings.toml")
    parser.add_argument("--metrics-out", help="Write request counters to this JSON file")
    sub = parser.add_subparsers(dest="command", required=True)

    geocode = sub.add_parser("geocode", help="Resolve an address to coordinates")
    geocode.add_argument("address")
    geocode.add_argument("--country-code", help="Country code bias, e.g. us")

    reverse = sub.add_parser("reverse", help="Resolve coordinates to an address")
    reverse.add_argument("latitude", type=float)
    reverse.add_argument("longitude", type=float)

    batch = sub.add_parser("batch", help="Geocode several addresses")
    batch.add_argument("addresses", nargs="+")
    batch.add_argument("--detailed", action="store_true", help="Report failures instead of dropping them")

    params = sub.add_parser("search-params", help="Print BMLT search parameters for an address")
    params.add_argument("address")
    radius = params.add_mutually_exclusive_group()
    radius.add_argument("--radius-miles", type=float)
    radius.add_argument("--radius-km", type=float)

    sub.add_parser("validate-config", help="Validate the settings file")

    return parser


def _emit(payload: Any) -> None:
    print(orjson.dumps(payload, option=orjson.OPT_INDENT_2).decode())


def _describe_error(error: Optional[BaseException]) -> Optional[Dict[str, Any]]:
    if error is None:
        return None
    return wrap_error(error, "batch_geocode").to_dict()


async def _dispatch(args: argparse.Namespace, service: GeocodingService) -> Any:
    if args.command == "geocode":
        overrides = {"country_code": args.country_code} if args.country_code else {}
        result = await service.geocode(args.address, **overrides)
        return result.model_dump()
    if args.command == "reverse":
        coordinates = validate_coordinates(args.latitude, args.longitude)
        result = await service.reverse_geocode(coordinates)
        return result.model_dump()
    if args.command == "batch":
        if args.detailed:
            outcomes = await service.batch_geocode_detailed(args.addresses)
            return [
                {
                    "address": outcome.address,
                    "result": outcome.result.model_dump() if outcome.result else None,
                    "error": _describe_error(outcome.error),
                }
                for outcome in outcomes
            ]
        return [result.model_dump() for result in await service.batch_geocode(args.addresses)]
    if args.command == "search-params":
        result = await service.geocode(args.address)
        return geographic_search_params(
            result.coordinates,
            radius_miles=args.radius_miles,
            radius_km=args.radius_km,
        )
    raise ValueError(f"Unknown command {args.command}")


async def run_command(args: argparse.Namespace, settings: Dict[str, Any], metrics: MetricsRegistry) -> Any:
    """Execute one geocoding command against a freshly opened service."""
    async with open_geocoding_service(settings, metrics=metrics) as service:
        with record_duration(metrics, "run_duration_ms"):
            return await _dispatch(args, service)


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the CLI."""
    load_dotenv()
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    configure_logging(DEFAULT_LOGGING)

    try:
        settings = load_settings(Path(args.settings))
        if args.command == "validate-config":
            options, rate_limit, provider = options_from_settings(settings)
            _emit(
                {
                    "geocoding": options.model_dump(),
                    "rate_limit": rate_limit.model_dump(),
                    "provider": provider.model_dump(),
                }
            )
            return

        metrics = MetricsRegistry()
        try:
            _emit(asyncio.run(run_command(args, settings, metrics)))
        finally:
            if args.metrics_out:
                run_id = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S")
                metrics.export(path=Path(args.metrics_out), run_id=run_id)
    except BmltGeoError as exc:
        _emit({"error": exc.to_dict(), "message": exc.user_message()})
        raise SystemExit(1)


if __name__ == "__main__":
    main()

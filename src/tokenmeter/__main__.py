import argparse
import asyncio
import json
import sys
from pathlib import Path

import structlog

from tokenmeter.cli import parse_args
from tokenmeter.config import Config
from tokenmeter.logging import setup_logging
from tokenmeter.models import UsageData
from tokenmeter.pricing.catalog import build_manifest_from_catalogs, load_catalog_dir
from tokenmeter.pricing.manifest import (
    calculate_cost,
    configure_pricing,
    get_cached_manifest,
    get_model_pricing,
    load_manifest,
)
from tokenmeter.pricing.models import PricingManifest

logger = structlog.get_logger()


def _load_manifest_file(path: "str") -> "PricingManifest":
    with open(path, encoding="utf-8") as fh:
        return PricingManifest.from_dict(json.load(fh))


def price(config: "Config", args: "argparse.Namespace") -> "dict[str, object]":
    """
    prices one call and returns the result as a JSON-ready dict.
    """
    configure_pricing(config)

    if args.manifest_path:
        manifest = _load_manifest_file(args.manifest_path)
        source = args.manifest_path
    elif args.refresh:
        manifest = asyncio.run(load_manifest(force_refresh=True))
        source = "remote"
    else:
        manifest = get_cached_manifest()
        source = "bundled"

    pricing = get_model_pricing(args.provider, args.model, manifest)
    if pricing is None:
        raise SystemExit(f"No pricing for {args.provider}/{args.model} in {source} table.")

    usage = UsageData(
        provider=args.provider,
        model=args.model,
        input_units=args.input_units,
        output_units=args.output_units,
        cached_input_units=args.cached_input_units,
    )
    cost = calculate_cost(usage, pricing)
    logger.info("call_priced", provider=args.provider, model=args.model, cost_usd=cost)
    return {
        "provider": args.provider,
        "model": args.model,
        "unit": pricing.unit.value,
        "cost_usd": cost,
        "manifest_version": manifest.version,
    }


def build_manifest(args: "argparse.Namespace") -> "PricingManifest":
    catalog_dir = Path(args.catalog_dir)
    if not catalog_dir.is_dir():
        raise SystemExit(f"Catalog directory not found: {catalog_dir}")

    manifest = build_manifest_from_catalogs(
        load_catalog_dir(catalog_dir), version=args.manifest_version
    )
    logger.info(
        "manifest_built",
        providers=len(manifest.providers),
        models=manifest.model_count(),
    )
    return manifest


def main(argv: "list[str] | None" = None) -> "None":
    config, args = parse_args(argv)
    setup_logging(config.log_level)

    if args.command == "price":
        print(json.dumps(price(config, args)))
        return

    manifest = build_manifest(args)
    output = json.dumps(manifest.to_dict(), indent=2, sort_keys=True)
    if args.output_path:
        Path(args.output_path).write_text(output + "\n", encoding="utf-8")
        logger.info("manifest_written", path=args.output_path)
    else:
        sys.stdout.write(output + "\n")


if __name__ == "__main__":
    main()

import argparse

from tokenmeter.config import Config
from tokenmeter.constants import PACKAGE_NAME, VERSION

LOG_LEVELS = ["debug", "info", "warning", "error", "none"]


def build_parser() -> "argparse.ArgumentParser":
    parser = argparse.ArgumentParser(
        prog=PACKAGE_NAME,
        description="Cost metering for AI SDK calls",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument(
        "--log.level",
        dest="log_level",
        default=None,
        choices=LOG_LEVELS,
        help="Log level (default: $TOKENMETER_LOG_LEVEL or info)",
    )
    parser.add_argument(
        "--offline",
        dest="offline_mode",
        action="store_true",
        default=None,
        help="Never fetch pricing over the network",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    price = commands.add_parser("price", help="Price a single call")
    price.add_argument("--provider", required=True, help="Provider id, e.g. openai")
    price.add_argument("--model", required=True, help="Model id, e.g. gpt-4o")
    price.add_argument("--input", dest="input_units", type=float, default=0, help="Input units")
    price.add_argument("--output", dest="output_units", type=float, default=0, help="Output units")
    price.add_argument(
        "--cached", dest="cached_input_units", type=float, default=0, help="Cached input units"
    )
    source = price.add_mutually_exclusive_group()
    source.add_argument(
        "--manifest", dest="manifest_path", default=None, help="Price against a manifest JSON file"
    )
    source.add_argument(
        "--refresh",
        action="store_true",
        help="Refresh the rate table from the remote sources first",
    )

    build = commands.add_parser(
        "build-manifest", help="Build a manifest from a directory of provider catalogs"
    )
    build.add_argument("catalog_dir", help="Directory of <provider>.json catalogs")
    build.add_argument(
        "--output", dest="output_path", default=None, help="Write to a file instead of stdout"
    )
    build.add_argument("--manifest-version", dest="manifest_version", default="1.0.0")

    return parser


def parse_args(argv: "list[str] | None" = None) -> "tuple[Config, argparse.Namespace]":
    args = build_parser().parse_args(argv)
    config = Config.from_env()
    if args.log_level is not None:
        config.log_level = args.log_level
    if args.offline_mode is not None:
        config.offline_mode = args.offline_mode
    return (config, args)

"""CLI entrypoint: ``bluegreen-deployer --config ./config.yml --loglevel INFO``."""

from __future__ import annotations

import argparse
import sys

from bluegreen_deployer.core.config import LOG_LEVELS


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="bluegreen-deployer", description="Blue/green deployer service")
    parser.add_argument("--config", default=None, help="Path to the environments YAML file (default ./config.yml)")
    parser.add_argument(
        "--loglevel",
        default=None,
        help="One of DEBUG, INFO, NOTI, WARN, ERROR, CRIT",
    )
    args = parser.parse_args(argv)

    if args.loglevel and args.loglevel.strip().upper() not in LOG_LEVELS:
        print(f"bluegreen-deployer: unable to get log level: {args.loglevel}", file=sys.stderr)
        sys.exit(2)

    from bluegreen_deployer.main import run

    run(config_path=args.config, log_level=args.loglevel)


if __name__ == "__main__":
    main()

"""Run the gateway: python -m ledgergate [--host HOST] [--port PORT]."""

import argparse
import logging

import uvicorn

from ledgergate.app import create_app
from ledgergate.config import LedgergateConfig


def parse_args(config: LedgergateConfig, argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="ledgergate")
    parser.add_argument("--host", default=config.host)
    parser.add_argument("--port", type=int, default=config.port)
    parser.add_argument(
        "--log-level",
        default="info",
        type=str.lower,
        choices=["critical", "error", "warning", "info", "debug"],
    )
    return parser.parse_args(argv)


def main() -> None:
    config = LedgergateConfig()
    args = parse_args(config)
    config = config.model_copy(update={"host": args.host, "port": args.port})

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(create_app(config), host=config.host, port=config.port, log_level=args.log_level.lower())


if __name__ == "__main__":
    main()

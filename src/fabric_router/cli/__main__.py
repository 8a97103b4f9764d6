"""Entry point for the interactive router.

Usage:
    python -m fabric_router.cli [--config PATH] [--mode MODE] [--log-level LEVEL] [--validate]
"""

import argparse
import asyncio
import logging
import os
import sys
from typing import Optional

from fabric_router.app_config import AppConfig
from fabric_router.cli.router_shell import RouterShell
from fabric_router.configs import CONFIGS, FABRIC_AGENTS_CONFIG, LOG_LEVEL, ROUTER_MODE
from fabric_router.exceptions import ConfigurationError
from fabric_router.registry_loader import load_registry
from fabric_router.router_factory import ROUTER_MODES, create_protocol_client, create_router
from fabric_router.services.intent_classifier import IntentClassifier


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="fabric-router",
        description="Route natural-language questions to Fabric Data Agents",
    )
    parser.add_argument("--config", help="Path to the agent registry (JSON or YAML)")
    parser.add_argument("--mode", choices=ROUTER_MODES, help="Routing strategy")
    parser.add_argument("--log-level", help="Logging level (DEBUG, INFO, WARNING, ERROR)")
    parser.add_argument("--env-file", help="Path to a .env file")
    parser.add_argument(
        "--validate",
        action="store_true",
        help="Check connectivity to every agent and exit",
    )
    return parser.parse_args(argv)


async def run(args: argparse.Namespace, app_config: AppConfig) -> int:
    registry = load_registry(args.config or app_config.get(FABRIC_AGENTS_CONFIG.env_name))
    protocol_client = create_protocol_client(app_config, registry)
    classifier = IntentClassifier(protocol_client)

    if args.validate:
        shell = RouterShell(router=None, registry=registry, classifier=classifier)
        results = await shell.validate()
        return 0 if results and all(results.values()) else 1

    router = create_router(app_config, registry, protocol_client=protocol_client)
    await router.initialize()
    shell = RouterShell(router=router, registry=registry, classifier=classifier)
    await shell.run()
    return 0


def main(argv: Optional[list[str]] = None) -> None:
    """Main entry point."""
    args = parse_args(argv)

    # Command-line flags take precedence over the environment
    if args.mode:
        os.environ[ROUTER_MODE.env_name] = args.mode
    if args.log_level:
        os.environ[LOG_LEVEL.env_name] = args.log_level

    AppConfig.add_configs(CONFIGS)
    try:
        app_config = AppConfig(env_file=args.env_file)
    except ConfigurationError as e:
        print(f"Configuration error: {e}")
        sys.exit(1)

    logging.basicConfig(
        level=(app_config.get(LOG_LEVEL.env_name) or "INFO").upper(),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    try:
        exit_code = asyncio.run(run(args, app_config))
    except ConfigurationError as e:
        print(f"Configuration error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        exit_code = 0
    sys.exit(exit_code)


if __name__ == "__main__":
    main()

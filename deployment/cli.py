"""
Deployment CLI
Parses arguments, configures logging and maps failures to exit codes
"""

import os
import sys
import asyncio
import argparse
from typing import List, Mapping, Optional
from web3 import Web3
from loguru import logger

from blockchain.contract_manager import ContractManager

from .config import load_deploy_settings, load_network_config
from .driver import DeploymentDriver, DeploymentResult
from .errors import DeploymentError
from .parameters import DeploymentParameters
from .verification import verify_deployment

EXIT_SUCCESS = 0
EXIT_FAILURE = 1

ENV_ADDRESS_KEY = "KIPUBANK_ADDRESS"

STDERR_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function} - {message}"


def configure_logging(level: str = "INFO", log_file: Optional[str] = None):
    """
    Send logs to stderr (stdout carries only the result line)

    Tracebacks are logged without frame variables: the signing key is a
    local in the account and signing frames.
    """
    logger.remove()
    logger.add(
        sys.stderr,
        format=STDERR_FORMAT,
        level=level,
        backtrace=False,
        diagnose=False
    )

    if log_file:
        logger.add(
            log_file,
            rotation="1 day",
            retention="7 days",
            format=FILE_FORMAT,
            level="DEBUG",
            backtrace=False,
            diagnose=False
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="deploy.py",
        description="Deploy the KipuBank contract"
    )
    parser.add_argument(
        "--network",
        default="goerli",
        help="Target network (default: goerli)"
    )
    parser.add_argument(
        "--bank-cap",
        metavar="ETH",
        help="Total deposit ceiling in ether (default from config: 100)"
    )
    parser.add_argument(
        "--max-withdrawal",
        metavar="ETH",
        help="Per-withdrawal ceiling in ether (default from config: 1)"
    )
    parser.add_argument(
        "--timeout",
        type=float,
        metavar="SECONDS",
        help="Seconds to wait for confirmation, 0 waits forever (default from config: 300)"
    )
    parser.add_argument(
        "--artifacts",
        metavar="DIR",
        help="Build-artifact directory (default: artifacts)"
    )
    parser.add_argument(
        "--config",
        metavar="FILE",
        help="Deploy settings file (default: config/deploy_config.json)"
    )
    parser.add_argument(
        "--verify",
        action="store_true",
        help="Verify the source on the block explorer after deploying"
    )
    parser.add_argument(
        "--update-env",
        action="store_true",
        help=f"Record the address as {ENV_ADDRESS_KEY} in .env"
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)"
    )
    parser.add_argument(
        "--log-file",
        metavar="PATH",
        help="Also write a rotating debug log to PATH"
    )
    return parser


def update_env_file(contract_address: str, env_path: str = ".env", key: str = ENV_ADDRESS_KEY):
    """Update or add key=contract_address in env_path"""
    lines = []
    if os.path.exists(env_path):
        with open(env_path, 'r') as f:
            lines = f.readlines()

    found = False
    for i, line in enumerate(lines):
        if line.startswith(f'{key}='):
            lines[i] = f'{key}={contract_address}\n'
            found = True
            break

    if not found:
        if lines and not lines[-1].endswith('\n'):
            lines[-1] += '\n'
        lines.append(f'{key}={contract_address}\n')

    with open(env_path, 'w') as f:
        f.writelines(lines)

    logger.success(f"Updated {env_path} with {key}")


def _resolve_timeout(args, settings) -> Optional[float]:
    timeout = args.timeout if args.timeout is not None else settings.confirmation_timeout
    if timeout is None or timeout <= 0:
        return None
    return float(timeout)


def main(
    argv: Optional[List[str]] = None,
    environ: Optional[Mapping[str, str]] = None,
    w3: Optional[Web3] = None
) -> int:
    """
    Run one deployment

    Returns:
        0 on success, 1 on any failure
    """
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level, args.log_file)

    try:
        settings = load_deploy_settings(args.config)
        config = load_network_config(args.network, environ, settings.networks)

        parameters = DeploymentParameters.from_ether(
            args.bank_cap if args.bank_cap is not None else settings.bank_cap_ether,
            args.max_withdrawal if args.max_withdrawal is not None else settings.max_withdrawal_ether,
        )

        contract_manager = ContractManager(args.artifacts or settings.artifacts_dir)
        driver = DeploymentDriver(config, settings, contract_manager, w3=w3)

        result: DeploymentResult = asyncio.run(
            driver.deploy(parameters, timeout=_resolve_timeout(args, settings))
        )
    except DeploymentError as e:
        logger.error(f"Deployment failed: {e}")
        return EXIT_FAILURE
    except KeyboardInterrupt:
        logger.error("Deployment interrupted")
        return EXIT_FAILURE
    except Exception as e:
        logger.opt(exception=e).error(f"Deployment failed: {e}")
        return EXIT_FAILURE

    print(f"{result.contract_name} deployed at: {result.address}")

    if args.update_env:
        try:
            update_env_file(result.address)
        except OSError as e:
            logger.error(f"Error updating .env file: {e}")
            return EXIT_FAILURE

    if args.verify:
        try:
            asyncio.run(verify_deployment(result, config, settings, contract_manager))
        except Exception as e:
            logger.error(f"Verification failed: {e}")
            return EXIT_FAILURE

    return EXIT_SUCCESS

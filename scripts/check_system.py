"""
System Check Script
Verifies configuration, connectivity and artifacts before deploying
"""

import sys
import argparse
from typing import Optional
from web3 import Web3
from loguru import logger

from blockchain.contract_manager import ContractManager
from blockchain.wallet_manager import WalletManager
from deployment.config import load_deploy_settings, load_network_config
from deployment.errors import DeploymentError

MIN_BALANCE_ETH = 0.05


def check_environment_variables(config) -> bool:
    """Check that the variables the deployment needs are set"""
    logger.info("Checking environment variables...")

    ok = True
    if not config.endpoint_url:
        logger.error(f"  ✗ RPC URL for '{config.network}' not set")
        ok = False
    else:
        logger.success("  ✓ RPC URL set")

    if not config.can_sign:
        logger.error("  ✗ PRIVATE_KEY not set")
        ok = False
    else:
        logger.success("  ✓ PRIVATE_KEY set")

    if not config.can_verify:
        logger.warning("  ETHERSCAN_API_KEY not set - --verify will be skipped")

    return ok


def check_rpc_connection(config, w3: Optional[Web3] = None) -> Optional[Web3]:
    """Check RPC endpoint connection and chain id"""
    logger.info("Checking RPC connection...")

    if w3 is None:
        if not config.endpoint_url:
            logger.warning("  No RPC URL - skipping")
            return None
        w3 = Web3(Web3.HTTPProvider(config.endpoint_url))

    try:
        if not w3.is_connected():
            logger.error("  ✗ Connection failed")
            return None

        chain_id = w3.eth.chain_id
        block = w3.eth.block_number
    except Exception as e:
        logger.error(f"  ✗ {e}")
        return None

    if config.chain_id is not None and chain_id != config.chain_id:
        logger.error(f"  ✗ Connected to chain {chain_id}, expected {config.chain_id}")
        return None

    logger.success(f"  ✓ Connected (chain {chain_id}, block {block})")
    return w3


def check_wallet_balance(config, w3: Optional[Web3]) -> bool:
    """Check deployer balance"""
    logger.info("Checking deployer balance...")

    if w3 is None:
        logger.warning("  No RPC connection - skipping balance check")
        return False

    try:
        wallet = WalletManager(config.signing_credential)
    except DeploymentError as e:
        logger.error(f"  ✗ {e}")
        return False

    try:
        balance = wallet.get_balance_ether(w3)
    except Exception as e:
        logger.error(f"  ✗ Balance query failed: {e}")
        return False

    logger.info(f"  Deployer: {balance:.4f} ETH")

    if balance < MIN_BALANCE_ETH:
        logger.warning(f"  ⚠ Deployer balance low (need at least {MIN_BALANCE_ETH} ETH)")
        return False

    logger.success("  ✓ Deployer balance sufficient")
    return True


def check_artifact(settings, artifacts_dir: Optional[str] = None) -> bool:
    """Check that the contract has been compiled"""
    logger.info("Checking contract artifact...")

    manager = ContractManager(artifacts_dir or settings.artifacts_dir)
    try:
        artifact = manager.load_artifact(settings.contract_name)
    except DeploymentError as e:
        logger.error(f"  ✗ {e}")
        return False

    logger.success(f"  ✓ {artifact.fully_qualified_name} ({artifact.path})")

    if artifact.build_info_path:
        logger.success("  ✓ Build-info present (verification possible)")
    else:
        logger.warning("  No build-info - verification will not be possible")

    return True


def main(argv=None, environ=None, w3: Optional[Web3] = None) -> int:
    """Run all system checks"""
    parser = argparse.ArgumentParser(description="KipuBank deployment preflight")
    parser.add_argument("--network", default="goerli")
    parser.add_argument("--config")
    parser.add_argument("--artifacts")
    args = parser.parse_args(argv)

    logger.info("=" * 70)
    logger.info("KipuBank Deployment Check")
    logger.info("=" * 70)

    settings = load_deploy_settings(args.config)
    config = load_network_config(args.network, environ, settings.networks)

    results = []

    logger.info("")
    results.append(("Environment Variables", check_environment_variables(config)))

    logger.info("")
    w3 = check_rpc_connection(config, w3)
    results.append(("RPC Connection", w3 is not None))

    logger.info("")
    results.append(("Deployer Balance", check_wallet_balance(config, w3)))

    logger.info("")
    results.append(("Contract Artifact", check_artifact(settings, args.artifacts)))

    # Summary
    logger.info("")
    logger.info("=" * 70)
    logger.info("Summary")
    logger.info("=" * 70)

    passed = sum(1 for _, result in results if result)
    total = len(results)

    for name, result in results:
        status = "✓ PASS" if result else "✗ FAIL"
        logger.info(f"  {status}: {name}")

    logger.info("")
    logger.info(f"Total: {passed}/{total} checks passed")

    if passed == total:
        logger.success("✅ Ready to deploy: python deploy.py --network " + args.network)
        return 0

    logger.error("❌ Not ready - fix issues above")
    return 1


if __name__ == "__main__":
    sys.exit(main())

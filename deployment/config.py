"""
Configuration Loader
Builds the network configuration from the environment and the deploy
settings from config/deploy_config.json
"""

import os
import json
import copy
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional
from loguru import logger
from dotenv import load_dotenv

load_dotenv()


DEFAULT_CONFIG_PATH = "config/deploy_config.json"

PRIVATE_KEY_VAR = "PRIVATE_KEY"
ETHERSCAN_API_KEY_VAR = "ETHERSCAN_API_KEY"

# Network table. Structure: NETWORKS[name] -> chain id, RPC variable, explorer API
NETWORKS: Dict[str, Dict] = {
    "goerli": {
        "chain_id": 5,
        "rpc_env": "GOERLI_RPC_URL",
        "default_rpc_url": "",
        "explorer_api_url": "https://api.etherscan.io/v2/api",
        "explorer_url": "https://goerli.etherscan.io",
    },
    "sepolia": {
        "chain_id": 11155111,
        "rpc_env": "SEPOLIA_RPC_URL",
        "default_rpc_url": "",
        "explorer_api_url": "https://api.etherscan.io/v2/api",
        "explorer_url": "https://sepolia.etherscan.io",
    },
    "localhost": {
        "chain_id": 31337,
        "rpc_env": "LOCALHOST_RPC_URL",
        "default_rpc_url": "http://127.0.0.1:8545",
        "explorer_api_url": "",
        "explorer_url": "",
    },
}

DEFAULT_SETTINGS: Dict = {
    "contract_name": "KipuBank",
    "artifacts_dir": "artifacts",
    "solidity_version": "0.8.17",
    "constructor": {
        "bank_cap_ether": "100",
        "max_withdrawal_ether": "1",
    },
    "gas_settings": {
        "gas_limit_buffer": 1.2,
        "default_gas_limit": 3000000,
        "max_gas_price_gwei": 200,
        "priority_fee_gwei": 1.5,
    },
    "confirmation": {
        "timeout_seconds": 300,
        "poll_interval_seconds": 2,
    },
    "verification": {
        "poll_interval_seconds": 5,
        "max_attempts": 20,
    },
    "networks": NETWORKS,
}


@dataclass(frozen=True)
class NetworkConfig:
    """
    Network and tooling configuration, built once at startup

    Absent variables are represented as empty strings. The signing
    credential is kept out of repr so it never reaches a log line.
    """
    network: str
    endpoint_url: str = ""
    signing_credential: str = field(default="", repr=False)
    verification_api_key: str = field(default="", repr=False)
    chain_id: Optional[int] = None

    @property
    def can_sign(self) -> bool:
        return bool(self.signing_credential)

    @property
    def can_verify(self) -> bool:
        return bool(self.verification_api_key)


@dataclass(frozen=True)
class DeploySettings:
    """Deploy settings loaded from JSON (or the built-in defaults)"""
    contract_name: str
    artifacts_dir: str
    solidity_version: str
    bank_cap_ether: str
    max_withdrawal_ether: str
    gas_limit_buffer: float
    default_gas_limit: int
    max_gas_price_gwei: float
    priority_fee_gwei: float
    confirmation_timeout: Optional[float]
    poll_interval: float
    verification_poll_interval: float
    verification_max_attempts: int
    networks: Dict[str, Dict] = field(default_factory=dict)

    def network(self, name: str) -> Dict:
        """Get network definition or raise for an unknown name"""
        try:
            return self.networks[name]
        except KeyError:
            raise ValueError(
                f"Unknown network '{name}' (available: {', '.join(sorted(self.networks))})"
            ) from None


def load_network_config(
    network: str = "goerli",
    environ: Optional[Mapping[str, str]] = None,
    networks: Optional[Dict[str, Dict]] = None
) -> NetworkConfig:
    """
    Read endpoint, signing key and verification key from the environment

    Args:
        network: Network name from the network table
        environ: Mapping to read instead of os.environ (tests)
        networks: Network table to use instead of NETWORKS

    Returns:
        NetworkConfig; missing variables become empty strings
    """
    environ = os.environ if environ is None else environ
    networks = NETWORKS if networks is None else networks

    if network not in networks:
        raise ValueError(
            f"Unknown network '{network}' (available: {', '.join(sorted(networks))})"
        )

    definition = networks[network]
    endpoint_url = environ.get(definition["rpc_env"], "") or definition.get("default_rpc_url", "")

    config = NetworkConfig(
        network=network,
        endpoint_url=endpoint_url,
        signing_credential=environ.get(PRIVATE_KEY_VAR, ""),
        verification_api_key=environ.get(ETHERSCAN_API_KEY_VAR, ""),
        chain_id=definition.get("chain_id"),
    )

    logger.debug(
        f"Network config loaded: {network} "
        f"(rpc={'set' if config.endpoint_url else 'empty'}, "
        f"signer={'set' if config.can_sign else 'empty'}, "
        f"explorer key={'set' if config.can_verify else 'empty'})"
    )
    return config


def _merge(base: Dict, override: Dict) -> Dict:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_deploy_settings(path: Optional[str] = None) -> DeploySettings:
    """
    Load deploy settings, falling back to defaults if the file is missing

    Args:
        path: JSON settings file (default: config/deploy_config.json)

    Returns:
        DeploySettings
    """
    path = path or DEFAULT_CONFIG_PATH
    raw = DEFAULT_SETTINGS

    if os.path.exists(path):
        with open(path, 'r') as f:
            raw = _merge(DEFAULT_SETTINGS, json.load(f))
        logger.debug(f"Deploy settings loaded from {path}")
    else:
        logger.warning(f"Settings file not found: {path} - using defaults")

    gas = raw["gas_settings"]
    confirmation = raw["confirmation"]
    verification = raw["verification"]

    return DeploySettings(
        contract_name=raw["contract_name"],
        artifacts_dir=raw["artifacts_dir"],
        solidity_version=raw["solidity_version"],
        bank_cap_ether=str(raw["constructor"]["bank_cap_ether"]),
        max_withdrawal_ether=str(raw["constructor"]["max_withdrawal_ether"]),
        gas_limit_buffer=float(gas["gas_limit_buffer"]),
        default_gas_limit=int(gas["default_gas_limit"]),
        max_gas_price_gwei=float(gas["max_gas_price_gwei"]),
        priority_fee_gwei=float(gas["priority_fee_gwei"]),
        confirmation_timeout=confirmation["timeout_seconds"],
        poll_interval=float(confirmation["poll_interval_seconds"]),
        verification_poll_interval=float(verification["poll_interval_seconds"]),
        verification_max_attempts=int(verification["max_attempts"]),
        networks=raw["networks"],
    )

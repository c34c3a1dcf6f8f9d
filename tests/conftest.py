"""
Shared fixtures: a compiled KipuBank artifact cache and a mocked node
"""

import json
import dataclasses
from unittest.mock import MagicMock

import pytest
from loguru import logger
from web3 import Web3

from deployment.config import load_deploy_settings

# Hardhat default account #0
PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
DEPLOYER = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"

# Init code that ignores its arguments and deploys a one-byte runtime (STOP)
INIT_CODE = "0x600060005360016000f3"

KIPUBANK_ABI = [
    {
        "inputs": [
            {"internalType": "uint256", "name": "_bankCap", "type": "uint256"},
            {"internalType": "uint256", "name": "_maxWithdrawal", "type": "uint256"}
        ],
        "stateMutability": "nonpayable",
        "type": "constructor"
    },
    {
        "inputs": [],
        "name": "bankCap",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    }
]

BUILD_INFO = {
    "_format": "hh-sol-build-info-1",
    "id": "b1d0",
    "solcVersion": "0.8.17",
    "solcLongVersion": "0.8.17+commit.8df45f5f",
    "input": {
        "language": "Solidity",
        "sources": {"contracts/KipuBank.sol": {"content": "// SPDX-License-Identifier: MIT\n"}},
        "settings": {"optimizer": {"enabled": False, "runs": 200}}
    }
}


def write_artifacts(root, bytecode=INIT_CODE, with_build_info=True):
    """Lay out a Hardhat artifacts/ tree for KipuBank under root"""
    contract_dir = root / "contracts" / "KipuBank.sol"
    contract_dir.mkdir(parents=True)

    (contract_dir / "KipuBank.json").write_text(json.dumps({
        "_format": "hh-sol-artifact-1",
        "contractName": "KipuBank",
        "sourceName": "contracts/KipuBank.sol",
        "abi": KIPUBANK_ABI,
        "bytecode": bytecode,
        "deployedBytecode": "0x00",
        "linkReferences": {},
        "deployedLinkReferences": {}
    }))

    if with_build_info:
        build_info_dir = root / "build-info"
        build_info_dir.mkdir()
        (build_info_dir / "b1d0.json").write_text(json.dumps(BUILD_INFO))
        (contract_dir / "KipuBank.dbg.json").write_text(json.dumps({
            "_format": "hh-sol-dbg-1",
            "buildInfo": "../../build-info/b1d0.json"
        }))

    return root


@pytest.fixture
def artifacts_dir(tmp_path):
    """Artifact cache with KipuBank and its build-info"""
    return write_artifacts(tmp_path / "artifacts")


@pytest.fixture
def settings(tmp_path, artifacts_dir):
    """Default settings pointed at the test artifacts, with fast polling"""
    defaults = load_deploy_settings(str(tmp_path / "missing.json"))
    return dataclasses.replace(
        defaults,
        artifacts_dir=str(artifacts_dir),
        poll_interval=0.01,
        verification_poll_interval=0
    )


def make_receipt(address, status=1, block_number=1, gas_used=120000):
    return {
        'status': status,
        'contractAddress': address,
        'blockNumber': block_number,
        'gasUsed': gas_used
    }


@pytest.fixture
def w3():
    """Mocked node on goerli that confirms every deployment"""
    mock = MagicMock()
    mock.is_connected.return_value = True
    mock.from_wei = Web3.from_wei
    mock.eth.chain_id = 5
    mock.eth.estimate_gas.return_value = 200000
    mock.eth.get_block.return_value = {'baseFeePerGas': Web3.to_wei(10, 'gwei')}
    mock.eth.max_priority_fee = Web3.to_wei(1, 'gwei')
    mock.eth.get_balance.return_value = Web3.to_wei(10, 'ether')
    mock.eth.get_transaction_count.return_value = 0
    mock.eth.send_raw_transaction.return_value = bytes.fromhex('11' * 32)
    mock.eth.get_transaction_receipt.return_value = make_receipt(
        '0x5FbDB2315678afecb367f032d93F642f64180aa3'
    )
    mock.eth.get_code.return_value = b'\x00'
    return mock


@pytest.fixture(autouse=True)
def reset_logger():
    """Drop sinks bound to a test's captured streams"""
    yield
    logger.remove()

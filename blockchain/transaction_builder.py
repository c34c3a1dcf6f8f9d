"""
Transaction Builder
Constructs the contract-creation transaction
"""

from typing import Dict, List, Sequence
from web3 import Web3
from eth_abi import encode
from loguru import logger

from .contract_manager import ContractArtifact


def _abi_type(param: Dict) -> str:
    """Canonical ABI type string, expanding tuples"""
    abi_type = param['type']
    if abi_type.startswith('tuple'):
        inner = ','.join(_abi_type(c) for c in param.get('components', []))
        return f"({inner}){abi_type[len('tuple'):]}"
    return abi_type


class TransactionBuilder:
    """
    Builds contract-creation transactions

    Creation tx data = init bytecode + ABI-encoded constructor arguments,
    with no 'to' field.
    """

    def __init__(self, w3: Web3, deployer_address: str):
        """
        Initialize Transaction Builder

        Args:
            w3: Web3 instance
            deployer_address: Address that signs and pays for the deployment
        """
        self.w3 = w3
        self.deployer_address = Web3.to_checksum_address(deployer_address)

    def encode_constructor_args(self, artifact: ContractArtifact, args: Sequence) -> bytes:
        """
        Encode constructor arguments against the artifact ABI

        Args:
            artifact: Contract artifact
            args: Constructor argument values, in order

        Returns:
            Encoded bytes (empty when the constructor takes no arguments)
        """
        inputs = artifact.constructor_inputs()

        if len(inputs) != len(args):
            raise ValueError(
                f"{artifact.contract_name} constructor takes {len(inputs)} arguments, "
                f"got {len(args)}"
            )

        if not inputs:
            return b''

        types: List[str] = [_abi_type(param) for param in inputs]
        return encode(types, list(args))

    def build_deployment_tx(
        self,
        artifact: ContractArtifact,
        args: Sequence,
        chain_id: int
    ) -> Dict:
        """
        Build the unsigned creation transaction, without gas or nonce

        Args:
            artifact: Contract artifact
            args: Constructor arguments
            chain_id: Target chain id

        Returns:
            Transaction dict
        """
        encoded_args = self.encode_constructor_args(artifact, args)
        data = artifact.bytecode + encoded_args.hex()

        logger.debug(
            f"Creation data: {len(artifact.bytecode) // 2 - 1} bytes code + "
            f"{len(encoded_args)} bytes args"
        )

        return {
            'from': self.deployer_address,
            'value': 0,
            'data': data,
            'chainId': chain_id
        }

    def finalize(self, tx: Dict, nonce: int, gas_limit: int, fee_params: Dict[str, int]) -> Dict:
        """Add nonce, gas limit and fee fields to tx"""
        final_tx = dict(tx)
        final_tx['nonce'] = nonce
        final_tx['gas'] = gas_limit
        final_tx.update(fee_params)
        return final_tx

    def get_nonce(self) -> int:
        """Next nonce for the deployer, including pending transactions"""
        return self.w3.eth.get_transaction_count(self.deployer_address, 'pending')

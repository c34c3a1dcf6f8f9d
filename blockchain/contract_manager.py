"""
Contract Manager
Resolves compiled contract artifacts and checks deployed code
"""

import os
import json
import glob
from dataclasses import dataclass
from typing import Dict, List, Optional
from web3 import Web3
from loguru import logger

from deployment.errors import ArtifactNotFoundError, DeploymentError


@dataclass
class ContractArtifact:
    """Compiled contract: ABI, creation bytecode and where it came from"""
    contract_name: str
    source_name: str
    abi: List[Dict]
    bytecode: str
    path: str
    build_info_path: Optional[str] = None

    @property
    def fully_qualified_name(self) -> str:
        return f"{self.source_name}:{self.contract_name}"

    def constructor_inputs(self) -> List[Dict]:
        """ABI inputs of the constructor (empty if it takes none)"""
        for entry in self.abi:
            if entry.get('type') == 'constructor':
                return entry.get('inputs', [])
        return []


class ContractManager:
    """
    Reads contract artifacts from a Hardhat (or Foundry) build cache

    Hardhat layout:
        artifacts/<sourceName>/<ContractName>.json
        artifacts/<sourceName>/<ContractName>.dbg.json -> ../../build-info/<id>.json
    """

    def __init__(self, artifacts_dir: str = "artifacts"):
        """
        Initialize Contract Manager

        Args:
            artifacts_dir: Root of the build-artifact cache
        """
        self.artifacts_dir = artifacts_dir
        self._cache: Dict[str, ContractArtifact] = {}

    def load_artifact(self, contract_name: str) -> ContractArtifact:
        """
        Load an artifact by contract name

        Args:
            contract_name: "KipuBank" or fully qualified
                "contracts/KipuBank.sol:KipuBank"

        Returns:
            ContractArtifact
        """
        if contract_name in self._cache:
            return self._cache[contract_name]

        path = self._find_artifact_path(contract_name)

        with open(path, 'r') as f:
            contract_json = json.load(f)

        bytecode = contract_json.get('bytecode')
        # Foundry nests the hex under "object"
        if isinstance(bytecode, dict):
            bytecode = bytecode.get('object')

        if not bytecode or bytecode in ('0x', ''):
            raise ArtifactNotFoundError(
                f"Artifact {path} has no creation bytecode (abstract contract or interface?)"
            )

        if not bytecode.startswith('0x'):
            bytecode = '0x' + bytecode

        link_references = contract_json.get('linkReferences') or {}
        if link_references or '__$' in bytecode:
            raise DeploymentError(
                f"{contract_name} requires library linking, which is not supported"
            )

        artifact = ContractArtifact(
            contract_name=contract_json.get('contractName', contract_name.split(':')[-1]),
            source_name=contract_json.get('sourceName', ''),
            abi=contract_json['abi'],
            bytecode=bytecode,
            path=path,
            build_info_path=self._find_build_info(path),
        )

        self._cache[contract_name] = artifact
        logger.debug(f"Artifact loaded: {artifact.fully_qualified_name} ({path})")
        return artifact

    def _find_artifact_path(self, contract_name: str) -> str:
        """Locate <ContractName>.json under the artifacts directory"""
        if not os.path.isdir(self.artifacts_dir):
            raise ArtifactNotFoundError(
                f"Artifacts directory not found: {self.artifacts_dir} "
                f"(run 'npx hardhat compile' first)"
            )

        if ':' in contract_name:
            source_name, name = contract_name.rsplit(':', 1)
            path = os.path.join(self.artifacts_dir, source_name, f"{name}.json")
            if not os.path.exists(path):
                raise ArtifactNotFoundError(f"Contract artifact not found: {path}")
            return path

        pattern = os.path.join(self.artifacts_dir, '**', f"{contract_name}.json")
        matches = [
            p for p in glob.glob(pattern, recursive=True)
            if 'build-info' not in p.split(os.sep)
        ]

        if not matches:
            raise ArtifactNotFoundError(
                f"Contract artifact not found for {contract_name} in {self.artifacts_dir} "
                f"(run 'npx hardhat compile' first)"
            )

        if len(matches) > 1:
            raise ArtifactNotFoundError(
                f"Multiple artifacts named {contract_name}: {', '.join(sorted(matches))} "
                f"- use the fully qualified name"
            )

        return matches[0]

    def _find_build_info(self, artifact_path: str) -> Optional[str]:
        """Follow the Hardhat .dbg.json pointer to the build-info file"""
        dbg_path = artifact_path[:-len('.json')] + '.dbg.json'

        if not os.path.exists(dbg_path):
            return None

        try:
            with open(dbg_path, 'r') as f:
                build_info = json.load(f).get('buildInfo')
        except (OSError, ValueError) as e:
            logger.warning(f"Unreadable debug file {dbg_path}: {e}")
            return None

        if not build_info:
            return None

        path = os.path.normpath(os.path.join(os.path.dirname(dbg_path), build_info))
        return path if os.path.exists(path) else None

    def load_build_info(self, artifact: ContractArtifact) -> Dict:
        """
        Load the compiler input/version that produced the artifact

        Returns:
            Build-info dict with 'solcVersion', 'solcLongVersion' and 'input'
        """
        if not artifact.build_info_path:
            raise ArtifactNotFoundError(
                f"No build-info for {artifact.fully_qualified_name} "
                f"(recompile with Hardhat to regenerate it)"
            )

        with open(artifact.build_info_path, 'r') as f:
            return json.load(f)


def has_code(w3: Web3, address: str) -> bool:
    """Check that runtime code exists at address"""
    code = w3.eth.get_code(Web3.to_checksum_address(address))
    return code not in (b'', '0x', None) and len(code) > 0

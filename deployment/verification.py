"""
Contract Verification
Submits deployed contract sources to an Etherscan-compatible explorer
"""

import json
import asyncio
from typing import Dict, Optional
import aiohttp
from loguru import logger

from blockchain.contract_manager import ContractArtifact, ContractManager
from .errors import VerificationError

REQUEST_TIMEOUT = 30


class EtherscanVerifier:
    """
    Etherscan v2 API client for source verification

    Flow: verifysourcecode -> guid -> checkverifystatus until Pass/Fail
    """

    def __init__(
        self,
        api_url: str,
        api_key: str,
        chain_id: int,
        poll_interval: float = 5,
        max_attempts: int = 20,
        session: Optional[aiohttp.ClientSession] = None
    ):
        """
        Initialize verifier

        Args:
            api_url: Explorer API endpoint
            api_key: Explorer API key
            chain_id: Chain the contract lives on
            poll_interval: Seconds between status checks
            max_attempts: Status checks (and code-lookup retries) before giving up
            session: Shared aiohttp session (one is created per call otherwise)
        """
        if not api_url:
            raise VerificationError("No verification API configured for this network")
        if not api_key:
            raise VerificationError("ETHERSCAN_API_KEY is not set")

        self.api_url = api_url
        self.api_key = api_key
        self.chain_id = chain_id
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self.session = session

    async def verify(
        self,
        address: str,
        artifact: ContractArtifact,
        build_info: Dict,
        constructor_args: str
    ) -> str:
        """
        Verify a deployed contract

        Args:
            address: Deployed contract address
            artifact: Artifact the contract was deployed from
            build_info: Hardhat build-info for the artifact
            constructor_args: ABI-encoded constructor arguments (hex)

        Returns:
            Final status message from the explorer
        """
        payload = {
            'apikey': self.api_key,
            'module': 'contract',
            'action': 'verifysourcecode',
            'contractaddress': address,
            'sourceCode': json.dumps(build_info['input']),
            'codeformat': 'solidity-standard-json-input',
            'contractname': artifact.fully_qualified_name,
            'compilerversion': f"v{build_info['solcLongVersion']}",
            # Etherscan spells it this way
            'constructorArguements': constructor_args[2:] if constructor_args.startswith('0x') else constructor_args,
        }

        if self.session is not None:
            return await self._verify(self.session, address, payload)

        async with aiohttp.ClientSession() as session:
            return await self._verify(session, address, payload)

    async def _verify(self, session: aiohttp.ClientSession, address: str, payload: Dict) -> str:
        guid = await self._submit(session, address, payload)
        if guid is None:
            return "Already Verified"

        logger.info(f"Verification submitted (guid {guid})")
        return await self._wait_for_status(session, guid)

    async def _submit(self, session: aiohttp.ClientSession, address: str, payload: Dict) -> Optional[str]:
        """Submit sources; returns guid, or None if already verified"""
        for attempt in range(1, self.max_attempts + 1):
            data = await self._request(session, 'POST', data=payload)
            result = str(data.get('result', ''))

            if data.get('status') == '1':
                return result

            if 'already verified' in result.lower():
                logger.info(f"{address} is already verified")
                return None

            # Explorer has not indexed the new contract yet
            if 'unable to locate contractcode' in result.lower():
                logger.debug(f"Explorer has no code for {address} yet (attempt {attempt})")
                await asyncio.sleep(self.poll_interval)
                continue

            raise VerificationError(f"Verification request rejected: {result}")

        raise VerificationError(f"Explorer never indexed {address}")

    async def _wait_for_status(self, session: aiohttp.ClientSession, guid: str) -> str:
        params = {
            'apikey': self.api_key,
            'module': 'contract',
            'action': 'checkverifystatus',
            'guid': guid,
        }

        for _ in range(self.max_attempts):
            data = await self._request(session, 'GET', params=params)
            result = str(data.get('result', ''))

            if 'pending' in result.lower():
                await asyncio.sleep(self.poll_interval)
                continue

            if data.get('status') == '1' or 'already verified' in result.lower():
                logger.success(f"Verification: {result}")
                return result

            raise VerificationError(f"Verification failed: {result}")

        raise VerificationError(f"Verification still pending after {self.max_attempts} checks")

    async def _request(self, session: aiohttp.ClientSession, method: str, **kwargs) -> Dict:
        params = dict(kwargs.pop('params', {}))
        params['chainid'] = self.chain_id

        try:
            async with session.request(
                method,
                self.api_url,
                params=params,
                timeout=aiohttp.ClientTimeout(total=REQUEST_TIMEOUT),
                **kwargs
            ) as response:
                if response.status != 200:
                    raise VerificationError(f"Explorer API returned HTTP {response.status}")
                return await response.json(content_type=None)
        except aiohttp.ClientError as e:
            raise VerificationError(f"Explorer API request failed: {e}") from e


async def verify_deployment(
    result,
    config,
    settings,
    contract_manager: ContractManager,
    session: Optional[aiohttp.ClientSession] = None
) -> Optional[str]:
    """
    Verify a DeploymentResult on the network's explorer

    Skips (returns None) when no API key is configured.
    """
    if not config.can_verify:
        logger.warning("ETHERSCAN_API_KEY not set - skipping verification")
        return None

    network = settings.network(config.network)
    artifact = contract_manager.load_artifact(settings.contract_name)
    build_info = contract_manager.load_build_info(artifact)

    verifier = EtherscanVerifier(
        api_url=network.get('explorer_api_url', ''),
        api_key=config.verification_api_key,
        chain_id=result.chain_id,
        poll_interval=settings.verification_poll_interval,
        max_attempts=settings.verification_max_attempts,
        session=session,
    )

    logger.info(f"Verifying {artifact.fully_qualified_name} at {result.address}")
    return await verifier.verify(result.address, artifact, build_info, result.constructor_args)

"""On-chain round-style feed provider.

Reads ``latestRoundData()`` from an aggregator contract exposing the common
round interface and reports ``(answer, updatedAt)``. The answer is a signed
integer on-chain; a negative answer is passed through and rejected by the
collector like any other malformed price.

Contract calls are blocking, so they run in a worker thread. The collector's
timeout cannot cancel that thread; the RPC request itself is bounded by
``timeout``, which the sources file loader caps at the collector's
``fetch_timeout``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from web3 import Web3

from .base import PriceProvider, ProviderConfigError, ProviderError, register_provider

if TYPE_CHECKING:
    from web3.contract import Contract

logger = logging.getLogger(__name__)

ROUND_FEED_ABI = [
    {
        "inputs": [],
        "name": "latestRoundData",
        "outputs": [
            {"name": "roundId", "type": "uint80"},
            {"name": "answer", "type": "int256"},
            {"name": "startedAt", "type": "uint256"},
            {"name": "updatedAt", "type": "uint256"},
            {"name": "answeredInRound", "type": "uint80"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "decimals",
        "outputs": [{"name": "", "type": "uint8"}],
        "stateMutability": "view",
        "type": "function",
    },
]


@register_provider
class RoundContractProvider(PriceProvider):
    """Provider for a round-style aggregator contract.

    :ivar address: Checksummed contract address.
    :ivar contract: Web3 contract instance.
    """

    name = "round_contract"

    def __init__(
        self,
        address: str | None = None,
        rpc_url: str | None = None,
        contract: Contract | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
    ):
        """Initialize the provider.

        :param address: Aggregator contract address.
        :param rpc_url: JSON-RPC endpoint used to build a Web3 connection.
        :param contract: Pre-built contract instance (takes precedence).
        :param timeout: RPC request timeout; keep it within the collector's
            ``fetch_timeout`` so a timed-out read does not linger.
        :raises ProviderConfigError: If neither a contract nor address/rpc_url is given.
        """
        super().__init__(api_key=api_key, timeout=timeout)
        if contract is None:
            if not address or not rpc_url:
                raise ProviderConfigError(
                    "round_contract provider requires 'address' and 'rpc_url'"
                )
            w3 = Web3(
                Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": self.timeout})
            )
            contract = w3.eth.contract(
                address=Web3.to_checksum_address(address), abi=ROUND_FEED_ABI
            )
        self.contract = contract
        self.address = contract.address

    def _latest_round_data(self) -> tuple[int, int, int, int, int]:
        return self.contract.functions.latestRoundData().call()

    async def read(self, sender: str, key: str) -> tuple[int, int]:
        """Read the latest round.

        :param sender: Ignored.
        :param key: Ignored.
        :returns: Tuple of (answer, updated_at).
        :raises ProviderError: If the contract call fails.
        """
        try:
            round_data = await asyncio.to_thread(self._latest_round_data)
        except Exception as e:
            raise ProviderError(f"latestRoundData() failed on {self.address}: {e}") from e

        try:
            _, answer, _, updated_at, _ = round_data
        except (TypeError, ValueError) as e:
            raise ProviderError(f"Malformed round data from {self.address}: {round_data!r}") from e

        return int(answer), int(updated_at)

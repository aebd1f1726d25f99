"""On-chain account state: balances, allowances, approvals, gas and receipts.

The ERC-20 ABI is kept inline so no separate JSON artefacts need to ship with
the package. Only read calls and unsigned transaction building happen here;
signing and broadcasting belong to :mod:`dexarb.signer`.
"""

from __future__ import annotations

import logging
from typing import Any

from web3 import AsyncWeb3, Web3

from .config import ZERO_ADDRESS
from .models import Asset, TxReceipt

log = logging.getLogger(__name__)

MAX_UINT256 = 2**256 - 1

ERC20_ABI = [
    {
        "name": "approve",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "_spender", "type": "address"},
            {"name": "_value", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "name": "allowance",
        "type": "function",
        "stateMutability": "view",
        "inputs": [
            {"name": "_owner", "type": "address"},
            {"name": "_spender", "type": "address"},
        ],
        "outputs": [{"name": "remaining", "type": "uint256"}],
    },
    {
        "name": "balanceOf",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "_owner", "type": "address"}],
        "outputs": [{"name": "balance", "type": "uint256"}],
    },
]


class ChainClient:
    """Account and token state reads for one chain over :class:`AsyncWeb3`."""

    def __init__(self, w3: AsyncWeb3, native_address: str = ZERO_ADDRESS) -> None:
        self.w3 = w3
        self.native_address = native_address.lower()

    def is_native(self, asset: Asset) -> bool:
        return asset.key == self.native_address

    def _token(self, asset: Asset) -> Any:
        return self.w3.eth.contract(
            address=Web3.to_checksum_address(asset.address), abi=ERC20_ABI
        )

    async def get_balance(self, asset: Asset, owner: str) -> int:
        """Return *owner*'s balance of *asset* in raw units."""

        owner = Web3.to_checksum_address(owner)
        if self.is_native(asset):
            return int(await self.w3.eth.get_balance(owner))
        return int(await self._token(asset).functions.balanceOf(owner).call())

    async def get_allowance(self, asset: Asset, owner: str, spender: str) -> int:
        """Return the amount *spender* may move out of *owner*'s *asset* balance."""

        if self.is_native(asset):
            return MAX_UINT256
        return int(
            await self._token(asset)
            .functions.allowance(
                Web3.to_checksum_address(owner), Web3.to_checksum_address(spender)
            )
            .call()
        )

    async def build_approval(
        self, asset: Asset, owner: str, spender: str, amount: int = MAX_UINT256
    ) -> dict[str, Any]:
        """Return an unsigned ``approve`` transaction for *spender*."""

        return dict(
            await self._token(asset)
            .functions.approve(Web3.to_checksum_address(spender), int(amount))
            .build_transaction({"from": Web3.to_checksum_address(owner)})
        )

    async def gas_price(self) -> int:
        """Return the current network gas price in wei."""

        return int(await self.w3.eth.gas_price)

    async def wait_for_receipt(self, tx_id: str, timeout: float) -> TxReceipt:
        """Block until *tx_id* is mined and return its terminal status."""

        receipt = await self.w3.eth.wait_for_transaction_receipt(
            tx_id, timeout=timeout
        )
        status = int(receipt.get("status", 0))
        log.debug("receipt %s status=%s gas=%s", tx_id, status, receipt.get("gasUsed"))
        return TxReceipt(
            tx_id=tx_id,
            success=status == 1,
            gas_used=int(receipt.get("gasUsed", 0) or 0),
            block_number=receipt.get("blockNumber"),
        )


def connect(rpc_url: str) -> AsyncWeb3:
    """Return an :class:`AsyncWeb3` instance bound to *rpc_url*."""

    if not rpc_url:
        raise EnvironmentError("RPC_URL must be configured")
    return AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url))

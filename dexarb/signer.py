"""Signing boundary.

Every transaction the engine submits goes through a :class:`Signer`. Nonce
sequencing is the signer's job; key material never leaves it.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any

from eth_account import Account
from web3 import AsyncWeb3, Web3

log = logging.getLogger(__name__)


class Signer(ABC):
    """Custody interface consumed by venue clients and the orchestrator."""

    @abstractmethod
    async def get_address(self) -> str:
        """Return the checksummed account address."""

    @abstractmethod
    async def sign_and_submit(self, transaction: dict[str, Any]) -> str:
        """Sign *transaction*, broadcast it and return the transaction id."""


class LocalAccountSigner(Signer):
    """Signer backed by a local private key held in an :mod:`eth_account` account.

    Nonces are allocated under a lock starting from the pending transaction
    count, so legs submitted back to back never reuse a nonce. A failed
    broadcast forces a resync on the next submission.
    """

    def __init__(self, w3: AsyncWeb3, private_key: str) -> None:
        if not private_key:
            raise EnvironmentError("PRIVATE_KEY must be configured for signing")
        self.w3 = w3
        self._account = Account.from_key(private_key)
        self._nonce: int | None = None
        self._lock = asyncio.Lock()

    async def get_address(self) -> str:
        return self._account.address

    async def _next_nonce(self) -> int:
        if self._nonce is None:
            self._nonce = int(
                await self.w3.eth.get_transaction_count(self._account.address, "pending")
            )
        return self._nonce

    async def sign_and_submit(self, transaction: dict[str, Any]) -> str:
        async with self._lock:
            tx = dict(transaction)
            tx["from"] = self._account.address
            tx["nonce"] = await self._next_nonce()
            tx.setdefault("chainId", int(await self.w3.eth.chain_id))
            if "gasPrice" not in tx and "maxFeePerGas" not in tx:
                tx["gasPrice"] = int(await self.w3.eth.gas_price)
            if "gas" not in tx:
                tx["gas"] = int(await self.w3.eth.estimate_gas(tx))
            signed = self._account.sign_transaction(tx)
            try:
                tx_hash = await self.w3.eth.send_raw_transaction(signed.raw_transaction)
            except Exception:
                self._nonce = None
                raise
            self._nonce = tx["nonce"] + 1
            tx_id = Web3.to_hex(tx_hash)
            log.info("submitted tx %s nonce=%s", tx_id, tx["nonce"])
            return tx_id

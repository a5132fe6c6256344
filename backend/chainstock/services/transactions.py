"""Assemble, sign and submit one contract write.

Every submission runs nonce -> estimate -> encode -> gas price -> envelope ->
sign -> send -> receipt while holding a process-wide lock. Writes for different
products share the account nonce and do not interleave.

Failures are raised as ``LedgerExecutionError`` with the underlying message
and are never retried here.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from eth_account.signers.local import LocalAccount

from chainstock.services.exceptions import InventoryError, LedgerExecutionError
from chainstock.services.ledger import ContractCall, LedgerClient

logger = logging.getLogger(__name__)

GAS_CEILING = 500000


def gas_limit(estimate: int, ceiling: int = GAS_CEILING) -> int:
    """estimate * 1.2, floored, capped at ``ceiling``."""
    return min(int(estimate) * 12 // 10, ceiling)


@dataclass
class PendingTransaction:
    call: ContractCall
    data: str
    nonce: int
    gas: int
    gas_price: int
    chain_id: int
    to: str
    raw: bytes | None = None
    tx_hash: str | None = None

    def envelope(self) -> dict:
        return {
            "to": self.to,
            "value": 0,
            "data": self.data,
            "nonce": self.nonce,
            "gas": self.gas,
            "gasPrice": self.gas_price,
            "chainId": self.chain_id,
        }


@dataclass(frozen=True)
class TxConfirmation:
    transaction_hash: str
    block_number: int | None = None
    gas_used: int | None = None


class TransactionBuilder:
    def __init__(
        self,
        ledger: LedgerClient,
        account: LocalAccount,
        gas_ceiling: int = GAS_CEILING,
        receipt_timeout: float = 120.0,
    ):
        self.ledger = ledger
        self.account = account
        self.gas_ceiling = gas_ceiling
        self.receipt_timeout = receipt_timeout
        self._lock = asyncio.Lock()

    @property
    def address(self) -> str:
        return self.account.address

    async def submit(self, call: ContractCall) -> TxConfirmation:
        async with self._lock:
            try:
                return await self._submit(call)
            except InventoryError:
                raise
            except Exception as exc:
                logger.error("Transaction %s failed: %s", call.function, exc)
                raise LedgerExecutionError(str(exc)) from exc

    async def _submit(self, call: ContractCall) -> TxConfirmation:
        nonce = await self.ledger.get_transaction_count(self.address)
        estimate = await self.ledger.estimate_gas(call, self.address)
        data = self.ledger.encode_call(call)
        gas_price = await self.ledger.gas_price()

        pending = PendingTransaction(
            call=call,
            data=data,
            nonce=nonce,
            gas=gas_limit(estimate, self.gas_ceiling),
            gas_price=gas_price,
            chain_id=await self.ledger.chain_id(),
            to=self.ledger.contract_address,
        )

        signed = self.account.sign_transaction(pending.envelope())
        pending.raw = bytes(signed.raw_transaction)

        pending.tx_hash = await self.ledger.send_raw_transaction(pending.raw)
        logger.info(
            "Sent %s nonce=%d gas=%d tx=%s", call.function, nonce, pending.gas, pending.tx_hash
        )

        receipt = await self.ledger.wait_for_receipt(pending.tx_hash, self.receipt_timeout)
        if receipt.get("status") == 0:
            raise LedgerExecutionError(f"Transaction reverted: {pending.tx_hash}")

        return TxConfirmation(
            transaction_hash=receipt.get("transactionHash") or pending.tx_hash,
            block_number=receipt.get("blockNumber"),
            gas_used=receipt.get("gasUsed"),
        )

"""Ledger client: the Inventory contract seen through JSON-RPC.

``LedgerClient`` is what the service depends on; ``Web3LedgerClient`` is the
production implementation on web3.py's async API. Read errors are mapped onto
the inventory taxonomy here so callers never see web3 exception types.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol, Sequence

from web3 import AsyncHTTPProvider, AsyncWeb3, Web3
from web3.exceptions import ContractLogicError

from chainstock.services.exceptions import (
    LedgerExecutionError,
    ProductNotFound,
    TransientIOError,
)

logger = logging.getLogger(__name__)

ABI_PATH = Path(__file__).resolve().parents[1] / "abi" / "Inventory.json"


def load_abi(path: Path = ABI_PATH) -> list[dict]:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


@dataclass(frozen=True)
class ContractCall:
    function: str
    args: tuple = ()

    def __str__(self) -> str:
        return f"{self.function}{self.args!r}"


class LedgerClient(Protocol):
    @property
    def contract_address(self) -> str: ...

    # reads
    async def get_product(self, product_id: str) -> Sequence[Any]: ...
    async def get_product_count(self) -> int: ...
    async def get_product_ids(self, start: int, limit: int) -> list[str]: ...
    async def owner(self) -> str: ...
    async def get_balance(self, address: str) -> int: ...

    # transaction assembly
    async def get_transaction_count(self, address: str) -> int: ...
    async def estimate_gas(self, call: ContractCall, sender: str) -> int: ...
    def encode_call(self, call: ContractCall) -> str: ...
    async def gas_price(self) -> int: ...
    async def chain_id(self) -> int: ...
    async def send_raw_transaction(self, raw: bytes) -> str: ...
    async def wait_for_receipt(self, tx_hash: str, timeout: float) -> dict: ...


def _revert_reason(exc: ContractLogicError) -> str:
    return getattr(exc, "message", None) or str(exc)


def _is_missing(exc: ContractLogicError) -> bool:
    return "does not exist" in _revert_reason(exc).lower()


class Web3LedgerClient:
    def __init__(self, rpc_url: str, contract_address: str, abi: list[dict] | None = None,
                 chain_id: int | None = None):
        self.w3 = AsyncWeb3(AsyncHTTPProvider(rpc_url))
        self._address = Web3.to_checksum_address(contract_address)
        self.contract = self.w3.eth.contract(address=self._address, abi=abi or load_abi())
        self._chain_id = chain_id

    @property
    def contract_address(self) -> str:
        return self._address

    async def _read(self, what: str, pending):
        try:
            return await pending
        except ContractLogicError as exc:
            raise LedgerExecutionError(f"{what} reverted: {_revert_reason(exc)}") from exc
        except Exception as exc:
            logger.debug("%s failed", what, exc_info=True)
            raise TransientIOError(f"{what} failed: {exc}") from exc

    # -------------------------
    # Reads
    # -------------------------

    async def get_product(self, product_id: str) -> Sequence[Any]:
        try:
            return await self.contract.functions.getProduct(product_id).call()
        except ContractLogicError as exc:
            if _is_missing(exc):
                raise ProductNotFound(product_id) from exc
            raise LedgerExecutionError(_revert_reason(exc)) from exc
        except Exception as exc:
            raise TransientIOError(f"getProduct({product_id}) failed: {exc}") from exc

    async def get_product_count(self) -> int:
        return int(await self._read("getProductCount", self.contract.functions.getProductCount().call()))

    async def get_product_ids(self, start: int, limit: int) -> list[str]:
        ids = await self._read("getProductIds", self.contract.functions.getProductIds(start, limit).call())
        return list(ids)

    async def owner(self) -> str:
        return await self._read("owner", self.contract.functions.owner().call())

    async def get_balance(self, address: str) -> int:
        return await self._read("getBalance", self.w3.eth.get_balance(address))

    # -------------------------
    # Transaction assembly
    # -------------------------

    async def get_transaction_count(self, address: str) -> int:
        return await self.w3.eth.get_transaction_count(address, "pending")

    async def estimate_gas(self, call: ContractCall, sender: str) -> int:
        fn = getattr(self.contract.functions, call.function)
        return await fn(*call.args).estimate_gas({"from": sender})

    def encode_call(self, call: ContractCall) -> str:
        return self.contract.encode_abi(call.function, args=list(call.args))

    async def gas_price(self) -> int:
        return await self.w3.eth.gas_price

    async def chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = await self.w3.eth.chain_id
        return self._chain_id

    async def send_raw_transaction(self, raw: bytes) -> str:
        tx_hash = await self.w3.eth.send_raw_transaction(raw)
        tx_hash = Web3.to_hex(tx_hash)
        logger.debug("Broadcast %s", tx_hash)
        return tx_hash

    async def wait_for_receipt(self, tx_hash: str, timeout: float) -> dict:
        receipt = await self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
        return {
            "transactionHash": Web3.to_hex(receipt["transactionHash"]),
            "status": receipt.get("status", 1),
            "blockNumber": receipt.get("blockNumber"),
            "gasUsed": receipt.get("gasUsed"),
        }

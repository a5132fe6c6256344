from __future__ import annotations

import asyncio
from collections import Counter

import pytest
from eth_account import Account
from fastapi.testclient import TestClient
from web3 import Web3

from chainstock.services.exceptions import ProductNotFound
from chainstock.services.inventory import InventoryService
from chainstock.services.ledger import ContractCall
from chainstock.services.product_cache import ProductCache
from chainstock.services.retry import RetryPolicy
from chainstock.services.transactions import TransactionBuilder

# Hardhat's first dev account; never funded anywhere real.
TEST_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
CONTRACT = Web3.to_checksum_address("0x5fbdb2315678afecb367f032d93f642f64180aa3")


class FakeLedger:
    """In-memory Inventory contract speaking the LedgerClient interface."""

    contract_address = CONTRACT

    def __init__(self):
        self.products: dict[str, list] = {}
        self.ids: list[str] = []
        self.calls: list[str] = []
        self.reads = Counter()
        self.nonce = 0
        self.gas_estimate = 100000
        self.receipt_status = 1
        self.owner_address = Account.from_key(TEST_KEY).address
        self.balance = 10**18
        self._failures: dict[str, list[Exception]] = {}
        self._pending: ContractCall | None = None

    def fail_next(self, method: str, exc: Exception, times: int = 1) -> None:
        self._failures.setdefault(method, []).extend([exc] * times)

    def _step(self, method: str) -> None:
        self.calls.append(method)
        queue = self._failures.get(method)
        if queue:
            raise queue.pop(0)

    def add(self, product_id: str, **fields) -> None:
        record = {
            "id": product_id, "name": "Box", "sku": f"SKU-{product_id}", "batch_no": "B001",
            "expiry_date": "2026-01-01", "origin": "Nairobi", "location": "Nairobi",
            "sold": False, "sale_date": "", "uid": f"UID-{product_id}", "price": 0,
            "category": "Others", "quantity_in_stock": 1, "status": 0, "icon": "Box",
        }
        record.update(fields)
        self.products[product_id] = list(record.values())
        if product_id not in self.ids:
            self.ids.append(product_id)

    # reads

    async def get_product(self, product_id):
        self.reads["getProduct"] += 1
        self._step("get_product")
        if product_id not in self.products:
            raise ProductNotFound(product_id)
        return tuple(self.products[product_id])

    async def get_product_count(self):
        self.reads["getProductCount"] += 1
        self._step("get_product_count")
        return len(self.ids)

    async def get_product_ids(self, start, limit):
        self.reads["getProductIds"] += 1
        self._step("get_product_ids")
        return self.ids[start:start + limit]

    async def owner(self):
        return self.owner_address

    async def get_balance(self, address):
        return self.balance

    # writes

    async def get_transaction_count(self, address):
        self._step("get_transaction_count")
        await asyncio.sleep(0)
        return self.nonce

    async def estimate_gas(self, call, sender):
        self._step("estimate_gas")
        product_id = call.args[0]
        if call.function == "registerProduct" and product_id in self.products:
            raise Exception("execution reverted: Product already exists")
        if call.function != "registerProduct" and product_id not in self.products:
            raise Exception("execution reverted: Product does not exist")
        await asyncio.sleep(0)
        return self.gas_estimate

    def encode_call(self, call):
        self._step("encode_call")
        self._pending = call
        return "0x" + call.function.encode().hex()

    async def gas_price(self):
        self._step("gas_price")
        return 1_000_000_000

    async def chain_id(self):
        return 31337

    async def send_raw_transaction(self, raw):
        self._step("send_raw_transaction")
        tx_hash = Web3.to_hex(Web3.keccak(raw))
        if self.receipt_status:
            self._apply(self._pending)
        self.nonce += 1
        return tx_hash

    async def wait_for_receipt(self, tx_hash, timeout):
        self._step("wait_for_receipt")
        return {"transactionHash": tx_hash, "status": self.receipt_status,
                "blockNumber": self.nonce, "gasUsed": 21000}

    def _apply(self, call: ContractCall) -> None:
        args = call.args
        if call.function == "registerProduct":
            (pid, name, sku, batch_no, expiry, origin, location, uid,
             category, qty, status, icon) = args
            self.add(pid, name=name, sku=sku, batch_no=batch_no, expiry_date=expiry,
                     origin=origin, location=location, uid=uid, category=category,
                     quantity_in_stock=qty, status=status, icon=icon)
        elif call.function == "updateLocation":
            pid, location, price, status = args
            record = self.products[pid]
            record[6], record[10], record[13] = location, price, status
            record[7] = status == 2
        elif call.function == "logSale":
            pid, sale_date, price = args
            record = self.products[pid]
            record[7], record[8], record[10], record[13] = True, sale_date, price, 2
        elif call.function == "deleteProduct":
            (pid,) = args
            del self.products[pid]
            self.ids.remove(pid)


class RecordingAccount:
    """Wraps a real LocalAccount and keeps every envelope it signs."""

    def __init__(self, key: str = TEST_KEY):
        self._account = Account.from_key(key)
        self.envelopes: list[dict] = []

    @property
    def address(self) -> str:
        return self._account.address

    def sign_transaction(self, tx: dict):
        self.envelopes.append(dict(tx))
        return self._account.sign_transaction(tx)


@pytest.fixture()
def ledger():
    return FakeLedger()


@pytest.fixture()
def account():
    return RecordingAccount()


@pytest.fixture()
def sleeps():
    return []


@pytest.fixture()
def service(ledger, account, sleeps):
    async def fake_sleep(seconds):
        sleeps.append(seconds)

    return InventoryService(
        ledger,
        TransactionBuilder(ledger, account),
        cache=ProductCache(),
        retry=RetryPolicy(attempts=3, delay_ms=2000, give_up_on=(ProductNotFound,), sleep=fake_sleep),
    )


@pytest.fixture()
def client(service):
    from chainstock.main import app

    app.state.service = service
    yield TestClient(app)
    del app.state.service

"""Inventory use cases on top of the ledger.

Writes go through the ``TransactionBuilder`` and, only once the receipt is in,
invalidate the product and the listing in the ``ProductCache``. Reads are
served from the cache or fetched through the ``RetryPolicy``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from web3 import Web3

from chainstock.models.product import Product, RawProduct, decode_product
from chainstock.schemas.requests import LogSaleRequest, RegisterRequest, UpdateLocationRequest
from chainstock.services import status_codec, tag_payload
from chainstock.services.exceptions import InventoryError, ProductNotFound, SaleAlreadyLogged
from chainstock.services.ledger import ContractCall, LedgerClient
from chainstock.services.product_cache import LISTING_KEY, CacheEntry, ProductCache
from chainstock.services.retry import RetryPolicy
from chainstock.services.transactions import TransactionBuilder, TxConfirmation

logger = logging.getLogger(__name__)


@dataclass
class TagResult:
    message: str
    confirmation: TxConfirmation
    product: Product | None = None


def describe_status(product: Product) -> str:
    head = f"Product {product.id} ({product.name})"
    if product.status == "en route":
        return f"{head} is en route to {product.location}."
    if product.status == "arrived":
        return f"{head} has arrived at {product.location}."
    if product.status == "sold":
        return f"{head} was sold on {product.sale_date} for {product.price} units."
    return f"{head} has an unknown status."


class InventoryService:
    def __init__(
        self,
        ledger: LedgerClient,
        builder: TransactionBuilder,
        cache: ProductCache | None = None,
        retry: RetryPolicy | None = None,
        allow_resale: bool = True,
    ):
        self.ledger = ledger
        self.builder = builder
        self.cache = cache if cache is not None else ProductCache()
        self.retry = retry or RetryPolicy(give_up_on=(ProductNotFound,))
        self.allow_resale = allow_resale

    # -------------------------
    # Writes
    # -------------------------

    async def _write(self, product_id: str, call: ContractCall) -> TxConfirmation:
        confirmation = await self.builder.submit(call)
        self.cache.invalidate_write(product_id)
        logger.info("%s(%s) confirmed in %s", call.function, product_id, confirmation.transaction_hash)
        return confirmation

    async def register_product(self, req: RegisterRequest) -> TxConfirmation:
        # duplicate ids are rejected by the contract, not here
        call = ContractCall("registerProduct", (
            req.id, req.name, req.sku, req.batch_no, req.expiry_date, req.origin,
            req.location, req.uid, req.category, req.quantity_in_stock,
            status_codec.encode(req.status), req.icon,
        ))
        return await self._write(req.id, call)

    async def update_location(self, req: UpdateLocationRequest) -> TxConfirmation:
        call = ContractCall("updateLocation", (
            req.product_id, req.location, req.price, status_codec.encode(req.status),
        ))
        return await self._write(req.product_id, call)

    async def log_sale(self, req: LogSaleRequest) -> TxConfirmation:
        if not self.allow_resale:
            current = await self.get_product(req.product_id)
            if current.status == "sold":
                raise SaleAlreadyLogged(
                    f"Product {req.product_id} was already sold on {current.sale_date}."
                )
        call = ContractCall("logSale", (req.product_id, req.sale_date, req.price))
        return await self._write(req.product_id, call)

    async def delete_product(self, product_id: str) -> TxConfirmation:
        return await self._write(product_id, ContractCall("deleteProduct", (product_id,)))

    # -------------------------
    # Tag-originated writes
    # -------------------------

    async def _read_back(self, product_id: str) -> Product | None:
        # the write is already confirmed; a failed re-read must not hide that
        try:
            return await self.get_product(product_id)
        except InventoryError as exc:
            logger.warning("Could not re-read %s after write: %s", product_id, exc)
            return None

    async def register_from_tag(self, text: str | None, tag_id: str | None) -> TagResult:
        req = tag_payload.parse_register(text, tag_id)
        logger.info("Tag register %s (tag %s)", req.id, tag_id)
        confirmation = await self.register_product(req)
        # built locally: the ledger already has exactly these values
        product = Product(
            id=req.id,
            name=req.name,
            sku=req.sku,
            batch_no=req.batch_no,
            expiry_date=req.expiry_date,
            origin=req.origin,
            location=req.location,
            uid=req.uid,
            category=req.category,
            quantity_in_stock=req.quantity_in_stock,
            status=status_codec.normalize(req.status),
            icon=req.icon,
        )
        message = f"Product {req.id} ({req.name}) successfully registered via NFC."
        return TagResult(message, confirmation, product)

    async def update_location_from_tag(self, text: str | None) -> TagResult:
        req = tag_payload.parse_location(text)
        logger.info("Tag location update %s -> %s", req.product_id, req.location)
        confirmation = await self.update_location(req)
        message = (
            f"Location updated for product {req.product_id} to {req.location} "
            f"with status {status_codec.normalize(req.status)}."
        )
        return TagResult(message, confirmation, await self._read_back(req.product_id))

    async def log_sale_from_tag(self, text: str | None) -> TagResult:
        req = tag_payload.parse_sale(text)
        logger.info("Tag sale %s on %s", req.product_id, req.sale_date)
        confirmation = await self.log_sale(req)
        message = f"Sale logged for product {req.product_id} on {req.sale_date} for {req.price} units."
        return TagResult(message, confirmation, await self._read_back(req.product_id))

    # -------------------------
    # Reads
    # -------------------------

    async def _fetch_raw(self, product_id: str, generation: tuple[int, int]) -> RawProduct:
        values = await self.retry.run(lambda: self.ledger.get_product(product_id))
        raw = RawProduct.from_call(values)
        self.cache.put(product_id, CacheEntry.from_raw(raw), if_generation=generation)
        return raw

    async def get_product(self, product_id: str) -> Product:
        entry = self.cache.get(product_id)
        if entry is not None and entry.decoded:
            logger.debug("Serving product %s from cache", product_id)
            return entry.data

        generation = self.cache.generation(product_id)
        raw = entry.raw if entry is not None else await self._fetch_raw(product_id, generation)
        product = decode_product(raw)
        if not product.id:
            raise ProductNotFound(product_id)
        self.cache.put(product_id, CacheEntry.from_decoded(product, raw=raw), if_generation=generation)
        return product

    async def list_products(self) -> list[Product]:
        entry = self.cache.get(LISTING_KEY)
        if entry is not None:
            logger.debug("Serving listing from cache")
            return entry.data

        generation = self.cache.generation(LISTING_KEY)
        count = await self.retry.run(self.ledger.get_product_count)
        ids = await self.retry.run(lambda: self.ledger.get_product_ids(0, count))

        products = []
        for product_id in ids:
            cached = self.cache.get(product_id)
            try:
                if cached is not None and cached.raw is not None:
                    raw = cached.raw
                else:
                    raw = await self._fetch_raw(product_id, self.cache.generation(product_id))
            except ProductNotFound:
                continue
            product = decode_product(raw)
            if not product.id:
                continue  # tombstone
            products.append(product)

        self.cache.put(LISTING_KEY, CacheEntry.from_decoded(products), if_generation=generation)
        logger.info("Fetched %d products from ledger", len(products))
        return products

    async def check_status(self, product_id: str) -> tuple[Product, str]:
        product = await self.get_product(product_id)
        return product, describe_status(product)

    # -------------------------
    # Startup
    # -------------------------

    async def check_account(self) -> None:
        address = self.builder.address
        logger.info("Account address: %s", address)
        try:
            owner = await self.ledger.owner()
            logger.info("Contract owner: %s", owner)
            if owner.lower() != address.lower():
                logger.warning("The account address does not match the contract owner.")
        except Exception as exc:
            logger.error("Error checking contract ownership: %s", exc)

        try:
            balance = await self.ledger.get_balance(address)
            logger.info("Account balance: %s ETH", Web3.from_wei(balance, "ether"))
            if balance == 0:
                logger.warning("Account has 0 ETH; writes will fail until it is funded.")
        except Exception as exc:
            logger.error("Error checking balance: %s", exc)

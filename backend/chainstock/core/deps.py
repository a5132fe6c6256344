from eth_account import Account
from fastapi import FastAPI, Request

from chainstock.core.config import Settings, settings
from chainstock.services.exceptions import ProductNotFound
from chainstock.services.inventory import InventoryService
from chainstock.services.ledger import Web3LedgerClient
from chainstock.services.product_cache import ProductCache
from chainstock.services.retry import RetryPolicy
from chainstock.services.transactions import TransactionBuilder


def build_service(cfg: Settings = settings) -> InventoryService:
    if not cfg.PRIVATE_KEY:
        raise RuntimeError("PRIVATE_KEY is missing in .env")
    if not cfg.CONTRACT_ADDRESS:
        raise RuntimeError("CONTRACT_ADDRESS is missing in .env")

    key = cfg.PRIVATE_KEY if cfg.PRIVATE_KEY.startswith("0x") else "0x" + cfg.PRIVATE_KEY
    account = Account.from_key(key)

    ledger = Web3LedgerClient(cfg.RPC_URL, cfg.CONTRACT_ADDRESS, chain_id=cfg.CHAIN_ID)
    builder = TransactionBuilder(
        ledger,
        account,
        gas_ceiling=cfg.GAS_CEILING,
        receipt_timeout=cfg.RECEIPT_TIMEOUT,
    )
    retry = RetryPolicy(
        attempts=cfg.RETRY_ATTEMPTS,
        delay_ms=cfg.RETRY_DELAY_MS,
        give_up_on=(ProductNotFound,),
    )
    return InventoryService(
        ledger,
        builder,
        cache=ProductCache(),
        retry=retry,
        allow_resale=cfg.ALLOW_RESALE,
    )


def service_for(app: FastAPI) -> InventoryService:
    # one service (and so one cache and one write lock) per app
    service = getattr(app.state, "service", None)
    if service is None:
        service = build_service()
        app.state.service = service
    return service


def get_service(request: Request) -> InventoryService:
    return service_for(request.app)

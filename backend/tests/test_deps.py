import logging

import pytest
from eth_account import Account
from fastapi import FastAPI

from chainstock.core.config import settings
from chainstock.core.deps import build_service, service_for
from chainstock.core.logging import setup_logger
from chainstock.services.ledger import ContractCall

KEY = "ac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
CONTRACT = "0x5FbDB2315678afecb367f032d93F642f64180aa3"


@pytest.fixture()
def configured(monkeypatch):
    monkeypatch.setattr(settings, "PRIVATE_KEY", KEY)
    monkeypatch.setattr(settings, "CONTRACT_ADDRESS", CONTRACT)
    monkeypatch.setattr(settings, "RETRY_ATTEMPTS", 5)
    monkeypatch.setattr(settings, "ALLOW_RESALE", False)
    return settings


def test_missing_private_key(monkeypatch):
    monkeypatch.setattr(settings, "PRIVATE_KEY", None)
    monkeypatch.setattr(settings, "CONTRACT_ADDRESS", CONTRACT)
    with pytest.raises(RuntimeError, match="PRIVATE_KEY"):
        build_service()


def test_missing_contract_address(monkeypatch):
    monkeypatch.setattr(settings, "PRIVATE_KEY", KEY)
    monkeypatch.setattr(settings, "CONTRACT_ADDRESS", None)
    with pytest.raises(RuntimeError, match="CONTRACT_ADDRESS"):
        build_service()


def test_build_service_from_settings(configured):
    service = build_service()

    assert service.builder.address == Account.from_key("0x" + KEY).address
    assert service.ledger.contract_address == CONTRACT
    assert service.retry.attempts == 5
    assert service.allow_resale is False
    assert len(service.cache) == 0


def test_contract_calls_encode_offline(configured):
    ledger = build_service().ledger
    data = ledger.encode_call(ContractCall("deleteProduct", ("P1",)))
    assert data.startswith("0x")
    assert len(data) > 10


def test_one_service_per_app(configured):
    app = FastAPI()
    assert service_for(app) is service_for(app)
    assert service_for(FastAPI()) is not service_for(app)


def test_setup_logger_is_idempotent():
    logger = setup_logger("chainstock.test", level="DEBUG")
    again = setup_logger("chainstock.test", level="INFO")

    assert again is logger
    assert len(logger.handlers) == 1
    assert logger.level == logging.INFO

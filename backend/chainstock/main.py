import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import Body, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.templating import Jinja2Templates

from chainstock.core.config import settings
from chainstock.core.deps import get_service, service_for
from chainstock.core.logging import setup_logger
from chainstock.models.product import Product
from chainstock.schemas.requests import (
    DeleteRequest,
    LogSaleRequest,
    RegisterRequest,
    UpdateLocationRequest,
    parse_body,
)
from chainstock.services.exceptions import InventoryError, ProductNotFound, ValidationError
from chainstock.services.inventory import InventoryService
from chainstock.services.tag_payload import parse_product_id

logger = logging.getLogger(__name__)

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logger(level=settings.LOG_LEVEL)
    if settings.STARTUP_CHECKS:
        await service_for(app).check_account()
    yield


app = FastAPI(title="ChainStock Inventory API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)


# -------------------------
# Response helpers
# -------------------------

def _json_error(exc: InventoryError) -> JSONResponse:
    key = "message" if isinstance(exc, ProductNotFound) else "error"
    return JSONResponse({"success": False, key: exc.message}, status_code=exc.status_code)


def _page(request: Request, title: str, message: str, success: bool = True,
          product: Product | None = None, tx_hash: str | None = None, status_code: int = 200):
    return templates.TemplateResponse(
        request,
        "result.html",
        {
            "title": title,
            "message": message,
            "success": success,
            "product": product,
            "tx_hash": tx_hash,
            "explorer_url": settings.EXPLORER_TX_URL,
            "home_url": settings.FRONTEND_URL,
        },
        status_code=status_code,
    )


def _error_page(request: Request, title: str, action: str, exc: InventoryError):
    # validation and not-found messages are shown as-is, ledger faults get context
    message = exc.message if exc.status_code < 500 else f"Error {action}: {exc.message}"
    return _page(request, title, message, success=False, status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    # bodies that are not JSON at all never reach parse_body
    logger.warning("Rejected request body on %s: %s", request.url.path, exc.errors())
    return _json_error(ValidationError("Missing required fields"))


@app.get("/")
def health():
    return {"status": "ok"}


# -------------------------
# JSON (UI) endpoints
# -------------------------

@app.post("/register")
async def register(payload: Any = Body(None), service: InventoryService = Depends(get_service)):
    try:
        req = parse_body(RegisterRequest, payload)
        tx = await service.register_product(req)
    except InventoryError as exc:
        logger.error("Error registering product (UI): %s", exc.message)
        return _json_error(exc)
    return {"success": True, "transactionHash": tx.transaction_hash}


@app.post("/updateLocation")
async def update_location(payload: Any = Body(None), service: InventoryService = Depends(get_service)):
    try:
        req = parse_body(UpdateLocationRequest, payload)
        tx = await service.update_location(req)
    except InventoryError as exc:
        logger.error("Error updating location (UI): %s", exc.message)
        return _json_error(exc)
    return {"success": True, "transactionHash": tx.transaction_hash}


@app.post("/logSale")
async def log_sale(payload: Any = Body(None), service: InventoryService = Depends(get_service)):
    try:
        req = parse_body(LogSaleRequest, payload)
        tx = await service.log_sale(req)
    except InventoryError as exc:
        logger.error("Error logging sale (UI): %s", exc.message)
        return _json_error(exc)
    return {"success": True, "transactionHash": tx.transaction_hash}


@app.post("/deleteProduct")
async def delete_product(payload: Any = Body(None), service: InventoryService = Depends(get_service)):
    try:
        req = parse_body(DeleteRequest, payload)
        tx = await service.delete_product(req.id)
    except InventoryError as exc:
        logger.error("Error deleting product: %s", exc.message)
        return _json_error(exc)
    return {"success": True, "transactionHash": tx.transaction_hash}


@app.get("/products")
async def list_products(service: InventoryService = Depends(get_service)):
    try:
        products = await service.list_products()
    except InventoryError as exc:
        logger.error("Error fetching products: %s", exc.message)
        return _json_error(exc)
    return [p.to_json() for p in products]


@app.get("/product/{product_id}")
async def get_product(product_id: str, service: InventoryService = Depends(get_service)):
    try:
        product = await service.get_product(product_id)
    except InventoryError as exc:
        if not isinstance(exc, ProductNotFound):
            logger.error("Error fetching product %s: %s", product_id, exc.message)
        return _json_error(exc)
    return product.to_json()


# -------------------------
# Tag (NFC) endpoints, answered with HTML
# -------------------------

@app.get("/register")
async def register_tag(request: Request, text: str | None = None, tagid: str = "none",
                       service: InventoryService = Depends(get_service)):
    try:
        result = await service.register_from_tag(text, tagid)
    except InventoryError as exc:
        logger.error("Error registering NFC product: %s", exc.message)
        return _error_page(request, "Registration Failed", "registering product", exc)
    return _page(request, "Product Registered", result.message,
                 product=result.product, tx_hash=result.confirmation.transaction_hash)


@app.get("/updateLocation")
async def update_location_tag(request: Request, text: str | None = None, tagid: str = "none",
                              service: InventoryService = Depends(get_service)):
    try:
        result = await service.update_location_from_tag(text)
    except InventoryError as exc:
        logger.error("Error updating location (NFC, tag %s): %s", tagid, exc.message)
        return _error_page(request, "Update Failed", "updating location", exc)
    return _page(request, "Location Updated", result.message,
                 product=result.product, tx_hash=result.confirmation.transaction_hash)


@app.get("/logSale")
async def log_sale_tag(request: Request, text: str | None = None, tagid: str = "none",
                       service: InventoryService = Depends(get_service)):
    try:
        result = await service.log_sale_from_tag(text)
    except InventoryError as exc:
        logger.error("Error logging sale (NFC, tag %s): %s", tagid, exc.message)
        return _error_page(request, "Sale Failed", "logging sale", exc)
    return _page(request, "Sale Logged", result.message,
                 product=result.product, tx_hash=result.confirmation.transaction_hash)


@app.get("/checkProduct")
async def check_product(request: Request, text: str | None = None, tagid: str = "none",
                        service: InventoryService = Depends(get_service)):
    try:
        product_id = parse_product_id(text)
        logger.info("Checking product %s with tag %s", product_id, tagid)
        product, message = await service.check_status(product_id)
    except InventoryError as exc:
        return _error_page(request, "Check Failed", "checking product", exc)
    return _page(request, "Product Status", message, product=product)

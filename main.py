import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import List, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator
from pymongo.database import Database
from starlette.exceptions import HTTPException as StarletteHTTPException

import database
from auth import AuthService, GoogleIdentityVerifier, SessionIdentity, SessionTokens, optional_session, require_session
from config import Settings, load_settings
from errors import AuthError, CheckoutError, ValidationError
from logging_config import configure_logging, request_id_middleware
from orders import OrderService
from payments import RazorpayGateway
from schemas import CustomerDetails, LineItem, OrderSummary

logger = logging.getLogger("checkout.api")


# Request models
class CreateOrderRequest(BaseModel):
    amount: Optional[float] = Field(None, gt=0, allow_inf_nan=False)
    currency: Optional[str] = Field(None, pattern=r"^[A-Z]{3}$")
    summary: Optional[OrderSummary] = None
    products: List[LineItem] = Field(..., min_length=1, validation_alias=AliasChoices("products", "cart", "items"))
    customer: CustomerDetails

    @field_validator("currency", mode="before")
    @classmethod
    def _upper_currency(cls, v):
        return v.strip().upper() if isinstance(v, str) else v

    @model_validator(mode="after")
    def _amount_present(self) -> "CreateOrderRequest":
        if self.summary is None and self.amount is None:
            raise ValueError("amount or summary is required")
        if self.summary is not None and self.amount is not None and abs(self.summary.total - self.amount) > 0.01:
            raise ValueError("amount does not match summary total")
        return self

    @property
    def charge_total(self) -> float:
        return self.summary.total if self.summary is not None else self.amount


class VerifyPaymentRequest(BaseModel):
    order_id: str = Field(..., min_length=1, validation_alias=AliasChoices("orderId", "razorpay_order_id"))
    payment_id: str = Field(..., min_length=1, validation_alias=AliasChoices("paymentId", "razorpay_payment_id"))
    signature: str = Field(..., min_length=1, validation_alias=AliasChoices("signature", "razorpay_signature"))


class GoogleAuthRequest(BaseModel):
    token: str = Field(..., min_length=1)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(CheckoutError)
    async def checkout_error_handler(request: Request, exc: CheckoutError):
        if exc.status_code >= 500:
            logger.error("request failed", extra={"error": exc.message, "path": request.url.path})
        else:
            logger.warning("request rejected", extra={"error": exc.message, "path": request.url.path, "status": exc.status_code})
        return _error(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        fields = []
        for err in exc.errors():
            loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
            fields.append(loc or err.get("msg", "body"))
        error = ValidationError("Missing or invalid fields: " + ", ".join(dict.fromkeys(fields))) if fields else ValidationError()
        logger.warning("validation failed", extra={"path": request.url.path, "fields": fields})
        return _error(error.status_code, error.message)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("unhandled error", extra={"path": request.url.path})
        return _error(500, "Internal server error")


def create_app(
    settings: Optional[Settings] = None,
    db: Optional[Database] = None,
    gateway: Optional[RazorpayGateway] = None,
    identity: Optional[GoogleIdentityVerifier] = None,
) -> FastAPI:
    if settings is None:
        # uvicorn --factory main:create_app
        settings = load_settings()
        configure_logging(settings.log_level)
    db = db if db is not None else database.connect(settings)
    gateway = gateway or RazorpayGateway(settings.razorpay_key_id, settings.razorpay_key_secret)
    identity = identity or GoogleIdentityVerifier(settings.google_client_id)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            database.ensure_indexes(db)
            logger.info("mongodb connected")
        except Exception:
            logger.exception("mongodb connection error")
        gateway.ping()
        yield

    app = FastAPI(title="Checkout API", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "Accept"],
    )
    app.middleware("http")(request_id_middleware)
    _register_error_handlers(app)

    app.state.settings = settings
    app.state.db = db
    app.state.order_service = OrderService(db, gateway, settings.razorpay_key_secret, settings.default_currency)
    app.state.auth_service = AuthService(
        db, identity, SessionTokens(settings.jwt_secret, timedelta(days=settings.session_ttl_days))
    )

    @app.get("/")
    async def root():
        return {"message": "Checkout API running"}

    @app.get("/test")
    def test_database():
        response = {
            "backend": "✅ Running",
            "database": "❌ Not Available",
        }
        if database.ping(db):
            response["database"] = "✅ Connected"
            response["collections"] = db.list_collection_names()[:10]
        return response

    @app.get("/health")
    def health():
        return {
            "status": "OK",
            "timestamp": database.utcnow().isoformat(),
            "razorpay": "Connected" if gateway.key_id else "Not connected",
            "database": "Connected" if database.ping(db) else "Not connected",
        }

    @app.get("/api/health")
    async def api_health():
        return {"ok": True}

    # Auth endpoints
    @app.get("/config/google")
    async def google_config():
        return {"clientId": settings.google_client_id}

    @app.post("/auth/google")
    def google_login(req: GoogleAuthRequest):
        return app.state.auth_service.login(req.token)

    @app.get("/api/auth/check")
    def auth_check(session: SessionIdentity = Depends(require_session)):
        return {"success": True, "user": app.state.auth_service.get_profile(session.user_id)}

    # Orders
    @app.post("/create-order")
    @app.post("/api/orders/create")
    def create_order(req: CreateOrderRequest, session: Optional[SessionIdentity] = Depends(optional_session)):
        if session is None and settings.checkout_requires_login:
            raise AuthError("Access token required")
        return app.state.order_service.create_order(
            items=req.products,
            customer=req.customer,
            total=req.charge_total,
            summary=req.summary,
            currency=req.currency,
            user_id=session.user_id if session else None,
        )

    @app.post("/verify-payment")
    @app.post("/api/orders/verify")
    def verify_payment(req: VerifyPaymentRequest):
        app.state.order_service.verify_payment(req.order_id, req.payment_id, req.signature)
        return {"success": True, "message": "Payment verified successfully"}

    @app.get("/api/user/orders")
    def user_orders(session: SessionIdentity = Depends(require_session)):
        return {"success": True, "orders": app.state.order_service.list_for_user(session.user_id)}

    return app


if __name__ == "__main__":
    import uvicorn

    settings = load_settings()
    configure_logging(settings.log_level)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)

import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Callable, List, Optional

from fastapi import Depends, FastAPI, Header, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .balance import BalanceAggregator
from .config import Settings
from .db import Database
from .errors import AuthError, LedgerError
from .identity import IdentityProvider
from .logging_config import configure_logging, get_logger
from .models import (
    AccountBalance,
    AuthOut,
    CreateTransactionIn,
    LedgerEntryOut,
    LoginIn,
    RegisterIn,
    RegisterOut,
    UpdateProfileIn,
    UserOut,
)
from .store import LedgerStore
from .writer import TransactionWriter

logger = get_logger("http")


def get_writer(request: Request) -> TransactionWriter:
    return request.app.state.writer


def get_store(request: Request) -> LedgerStore:
    return request.app.state.store


def get_aggregator(request: Request) -> BalanceAggregator:
    return request.app.state.aggregator


def get_identity(request: Request) -> IdentityProvider:
    return request.app.state.identity


def get_current_user(
    auth: Optional[str] = Header(default=None, alias="Authorization"),
    identity: IdentityProvider = Depends(get_identity),
) -> uuid.UUID:
    return identity.subject_from_header(auth)


def authorize_account(
    account_id: uuid.UUID,
    request: Request,
    auth: Optional[str] = Header(default=None, alias="Authorization"),
    identity: IdentityProvider = Depends(get_identity),
) -> uuid.UUID:
    # without ownership enforcement any caller may name any account
    if request.app.state.settings.enforce_account_ownership:
        if identity.subject_from_header(auth) != account_id:
            raise AuthError("Not allowed to access this account", status_code=403)
    return account_id


def create_app(
    settings: Optional[Settings] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    db = Database(settings.database_url, echo=settings.sql_echo)
    db.init_db()
    store = LedgerStore(db, clock=clock)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        db.dispose()

    app = FastAPI(title="ledger-service", lifespan=lifespan)
    app.state.settings = settings
    app.state.db = db
    app.state.store = store
    app.state.writer = TransactionWriter(store)
    app.state.aggregator = BalanceAggregator(store)
    app.state.identity = IdentityProvider(db, settings)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "%s %s -> %d (%.1f ms)",
            request.method,
            request.url.path,
            response.status_code,
            (time.perf_counter() - started) * 1000,
        )
        return response

    @app.exception_handler(LedgerError)
    async def handle_ledger_error(request: Request, exc: LedgerError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message}, headers=headers)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})

    @app.get("/health")
    def health():
        return {"status": "ok"}

    # ---- identity ----

    @app.post("/v1/auth/register", response_model=RegisterOut, status_code=201)
    def register(body: RegisterIn, identity: IdentityProvider = Depends(get_identity)):
        user, token = identity.register(body.email, body.password, body.name)
        return RegisterOut(token=token, user=UserOut.model_validate(user))

    @app.post("/v1/auth/login", response_model=AuthOut)
    def login(body: LoginIn, identity: IdentityProvider = Depends(get_identity)):
        user, token = identity.authenticate(body.email, body.password)
        return AuthOut(token=token, user=UserOut.model_validate(user))

    @app.get("/v1/auth/me", response_model=UserOut)
    def me(
        user_id: uuid.UUID = Depends(get_current_user),
        identity: IdentityProvider = Depends(get_identity),
    ):
        return UserOut.model_validate(identity.get_user(user_id))

    @app.patch("/v1/auth/me", response_model=UserOut)
    def update_me(
        body: UpdateProfileIn,
        user_id: uuid.UUID = Depends(get_current_user),
        identity: IdentityProvider = Depends(get_identity),
    ):
        return UserOut.model_validate(identity.update_profile(user_id, body.name))

    # ---- ledger ----

    @app.post(
        "/v1/users/{account_id}/transactions",
        response_model=LedgerEntryOut,
        status_code=201,
    )
    def create_transaction(
        body: CreateTransactionIn,
        account_id: uuid.UUID = Depends(authorize_account),
        writer: TransactionWriter = Depends(get_writer),
    ):
        logger.info("Creating transaction for user %s: %s", account_id, body)
        entry = writer.create_entry(account_id, body.amount, body.transaction_type, body.description)
        return LedgerEntryOut.model_validate(entry)

    @app.get("/v1/users/{account_id}/transactions", response_model=List[LedgerEntryOut])
    def list_transactions(
        account_id: uuid.UUID = Depends(authorize_account),
        store: LedgerStore = Depends(get_store),
    ):
        entries = store.list_by_account(account_id)
        logger.info("Found %d transactions for user %s", len(entries), account_id)
        return [LedgerEntryOut.model_validate(e) for e in entries]

    @app.get("/v1/users/{account_id}/balance", response_model=AccountBalance)
    def get_balance(
        account_id: uuid.UUID = Depends(authorize_account),
        aggregator: BalanceAggregator = Depends(get_aggregator),
    ):
        return aggregator.get_balance(account_id)

    return app

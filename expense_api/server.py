"""FastAPI application exposing the authenticated expense endpoints."""
from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import __version__, crud, schemas
from .auth import AuthContext, get_token_service, require_user
from .config import ConfigurationError, Settings
from .cors import OriginPolicy, install_cors
from .database import Database, get_db, mask_url
from .logging import configure_logging, setup_logger
from .security import TokenService, dummy_secret_hash, verify_secret

LOG = setup_logger(__name__)
ACCESS_LOG = setup_logger("expense_api.access")

HEALTH_MESSAGE = "Expense Tracker API is running."
INVALID_CREDENTIALS = "Invalid credentials"

auth_router = APIRouter(prefix="/auth", tags=["auth"])
expense_router = APIRouter(prefix="/expenses", tags=["expenses"])


@auth_router.post(
    "/register",
    response_model=schemas.UserRead,
    status_code=status.HTTP_201_CREATED,
)
def register(credentials: schemas.Credentials, db: Session = Depends(get_db)) -> schemas.UserRead:
    try:
        user = crud.create_user(db, credentials.identifier, credentials.secret)
    except crud.EntityConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except crud.EntityValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    LOG.info("Registered user %s", user.id)
    return user


@auth_router.post("/login", response_model=schemas.TokenRead)
def login(
    credentials: schemas.Credentials,
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
) -> schemas.TokenRead:
    user = crud.get_user_by_identifier(db, credentials.identifier)
    if user is None:
        verify_secret(credentials.secret, dummy_secret_hash())
        LOG.info("Login failed for unknown identifier")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_CREDENTIALS)
    if not verify_secret(credentials.secret, user.secret_hash):
        LOG.info("Login failed for user %s", user.id)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_CREDENTIALS)
    return schemas.TokenRead(token=tokens.issue(user.id))


@expense_router.get("", response_model=List[schemas.ExpenseRead])
def list_expenses(
    auth: AuthContext = Depends(require_user),
    db: Session = Depends(get_db),
) -> List[schemas.ExpenseRead]:
    return crud.list_expenses_for_user(db, auth.user_id)


@expense_router.post(
    "",
    response_model=schemas.ExpenseRead,
    status_code=status.HTTP_201_CREATED,
)
def create_expense(
    expense_in: schemas.ExpenseCreate,
    auth: AuthContext = Depends(require_user),
    db: Session = Depends(get_db),
) -> schemas.ExpenseRead:
    try:
        return crud.create_expense(db, auth.user_id, expense_in.description, expense_in.amount)
    except crud.EntityValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


def _format_validation_errors(exc: RequestValidationError) -> str:
    messages = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        message = str(error.get("msg", "Invalid value")).removeprefix("Value error, ")
        messages.append(f"{field}: {message}" if field else message)
    return "; ".join(messages) or "Invalid request body"


async def _validation_error_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": _format_validation_errors(exc)},
    )


async def _database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    LOG.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    message = str(getattr(exc, "orig", None) or exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": message},
    )


async def _log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    ACCESS_LOG.info(
        "%s %s -> %s",
        request.method,
        request.url.path,
        response.status_code,
        extra={
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "process_time_ms": round(elapsed_ms, 2),
            "user_id": getattr(request.state, "user_id", None),
        },
    )
    return response


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    """Build the application with its process-wide collaborators.

    The database is connected during the lifespan startup phase; a failure
    there propagates so the server refuses to start.
    """

    settings = settings or Settings.from_env()
    database = database or Database(settings.database_url, pool_pre_ping=True)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        database.init()
        LOG.info("Server is running on port %s", settings.port)
        yield
        database.dispose()

    app = FastAPI(title="Expense Tracker API", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.database = database
    app.state.token_service = TokenService(settings.jwt_secret, settings.token_ttl)

    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(SQLAlchemyError, _database_error_handler)
    app.middleware("http")(_log_requests)
    install_cors(
        app,
        OriginPolicy.build(settings.allowed_origins, settings.trusted_origin_suffixes),
    )

    @app.get("/", response_class=PlainTextResponse, tags=["system"])
    def healthcheck() -> str:
        return HEALTH_MESSAGE

    app.include_router(auth_router)
    app.include_router(expense_router)
    return app


def main() -> None:
    """Entrypoint for running the API server."""

    import uvicorn
    from dotenv import load_dotenv

    load_dotenv()
    configure_logging()
    try:
        settings = Settings.from_env()
    except ConfigurationError as exc:
        LOG.error("Invalid configuration: %s", exc)
        raise SystemExit(1) from exc
    LOG.info("Using database %s", mask_url(settings.database_url))
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlmodel import Session

from hire_ledger.config import get_settings
from hire_ledger.db import create_db_and_tables, engine
from hire_ledger.error import HireLedgerError
from hire_ledger.routers import auth, dashboard, images, items, orders, users
from hire_ledger.services.users import ensure_bootstrap_admin

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    create_db_and_tables()  # 启动阶段建表
    if settings.bootstrap_admin_email and settings.bootstrap_admin_password:
        with Session(engine) as session:
            ensure_bootstrap_admin(
                session,
                settings.bootstrap_admin_email,
                settings.bootstrap_admin_password,
                settings.bootstrap_admin_name,
            )
    yield
    logger.info("hire ledger shut down")


app = FastAPI(title="Hire Ledger", lifespan=lifespan)

app.include_router(auth.router)
app.include_router(users.router)
app.include_router(items.router)
app.include_router(orders.router)
app.include_router(dashboard.router)
app.include_router(images.router)


@app.get("/health")
def health():
    return {"ok": True}


@app.exception_handler(HireLedgerError)
async def hire_ledger_error_handler(request: Request, exc: HireLedgerError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": {"code": exc.code, "message": exc.message}},
        headers=exc.headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={"code": "VALIDATION_ERROR", "message": "Request validation failed", "errors": exc.errors()},
    )

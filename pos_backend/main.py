import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import List, Optional

import uvicorn
from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from . import crud, models, reports, schemas  # noqa: F401  models registers the tables
from .auth import create_access_token, decode_access_token
from .config import load_settings
from .db import AppContext
from .logging_config import init_log

logger = logging.getLogger(__name__)


# -------------------- Dependencies --------------------

def get_context(request: Request) -> AppContext:
    return request.app.state.context


# Dependency to get DB session per request; the pooled connection goes back on close
def get_db(ctx: AppContext = Depends(get_context)):
    db = ctx.SessionLocal()
    try:
        yield db
    finally:
        db.close()


def require_user(authorization: Optional[str] = Header(default=None), ctx: AppContext = Depends(get_context)) -> dict:
    parts = (authorization or "").split(None, 1)
    token = parts[1].strip() if len(parts) == 2 and parts[0].lower() == "bearer" else None
    if not token:
        raise HTTPException(status_code=401, detail="token required")
    check = decode_access_token(token, ctx.settings.jwt_secret)
    if not check.ok:
        raise HTTPException(status_code=403, detail=f"invalid token ({check.error})")
    return check.claims


# -------------------- Error handlers --------------------

async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("database error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "internal server error"})


# -------------------- App --------------------

def create_app(context: Optional[AppContext] = None) -> FastAPI:
    """Build the API. Without an explicit context one is built from the environment at startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        ctx = context or AppContext(load_settings())
        init_log(ctx.settings.log_level)
        # Create tables if not existing
        ctx.create_all()
        app.state.context = ctx
        logger.info("POS backend ready (pool size %d)", ctx.settings.pool_size)
        try:
            yield
        finally:
            ctx.dispose()

    app = FastAPI(title="POS Backend", lifespan=lifespan)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, database_exception_handler)

    @app.get("/health")
    def health(ctx: AppContext = Depends(get_context)):
        try:
            with ctx.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError:
            logger.exception("health check failed")
            return JSONResponse(status_code=500, content={"status": "error", "message": "Database connection failed"})
        return {"status": "ok", "message": "Database connected"}

    # -------------------- Auth --------------------

    @app.post("/auth/register", status_code=201)
    def register(user: schemas.UserCreate, db: Session = Depends(get_db)):
        try:
            created = crud.create_user(db, user)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        logger.info("registered user %s (%s)", created.username, created.role)
        return {"userId": created.id}

    @app.post("/auth/login", response_model=schemas.LoginResponse)
    def login(payload: schemas.LoginRequest, db: Session = Depends(get_db), ctx: AppContext = Depends(get_context)):
        user = crud.authenticate(db, payload.username, payload.password)
        if not user:
            raise HTTPException(status_code=401, detail="invalid credentials")
        token = create_access_token(
            user.id, user.username, user.role, ctx.settings.jwt_secret, ctx.settings.token_ttl_seconds
        )
        return {"token": token, "user": schemas.UserRead.model_validate(user)}

    # -------------------- Menu --------------------

    @app.get("/menu", response_model=List[schemas.MenuItemRead])
    def get_menu(db: Session = Depends(get_db)):
        return crud.list_menu_items(db)

    @app.get("/menu/{item_id}", response_model=schemas.MenuItemRead)
    def get_menu_item(item_id: int, db: Session = Depends(get_db)):
        item = crud.get_menu_item(db, item_id)
        if not item:
            raise HTTPException(status_code=404, detail="menu item not found")
        return item

    @app.post("/menu", status_code=201, dependencies=[Depends(require_user)])
    def create_menu_item(item: schemas.MenuItemCreate, db: Session = Depends(get_db)):
        try:
            created = crud.create_menu_item(db, item)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {"id": created.id}

    @app.put("/menu/{item_id}", response_model=schemas.MenuItemRead, dependencies=[Depends(require_user)])
    def update_menu_item(item_id: int, item: schemas.MenuItemCreate, db: Session = Depends(get_db)):
        try:
            updated = crud.update_menu_item(db, item_id, item)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        if not updated:
            raise HTTPException(status_code=404, detail="menu item not found")
        return updated

    @app.delete("/menu/{item_id}", dependencies=[Depends(require_user)])
    def delete_menu_item(item_id: int, db: Session = Depends(get_db)):
        ok = crud.delete_menu_item(db, item_id)
        if not ok:
            raise HTTPException(status_code=404, detail="menu item not found")
        return {"deleted": item_id}

    # -------------------- Transactions --------------------

    @app.post("/transactions", status_code=201)
    async def create_transaction(request: Request, db: Session = Depends(get_db)):
        # Public sale entry point: every failure, malformed carts included, is a 500.
        # The body is read raw so that record_sale alone decides what is malformed.
        try:
            payload = await request.json()
        except ValueError:
            payload = None
        try:
            transaction_id = await run_in_threadpool(crud.record_sale, db, payload)
        except crud.SaleError as e:
            raise HTTPException(status_code=500, detail=str(e))
        return {"transactionId": transaction_id}

    @app.get("/transactions", response_model=List[schemas.TransactionSummary], dependencies=[Depends(require_user)])
    def get_transactions(
        start_date: Optional[date] = Query(default=None, alias="startDate"),
        end_date: Optional[date] = Query(default=None, alias="endDate"),
        db: Session = Depends(get_db),
    ):
        return crud.list_transactions(db, start_date, end_date)

    @app.get("/transactions/{transaction_id}", response_model=schemas.TransactionDetail, dependencies=[Depends(require_user)])
    def get_transaction(transaction_id: int, db: Session = Depends(get_db)):
        transaction = crud.get_transaction(db, transaction_id)
        if not transaction:
            raise HTTPException(status_code=404, detail="transaction not found")
        return transaction

    # -------------------- Reports --------------------

    @app.get("/reports/omset", dependencies=[Depends(require_user)])
    def get_omset(db: Session = Depends(get_db)):
        return reports.omset(db)

    @app.get("/reports/sales-chart", dependencies=[Depends(require_user)])
    def get_sales_chart(db: Session = Depends(get_db)):
        return reports.sales_chart(db)

    @app.get("/reports/top-products", dependencies=[Depends(require_user)])
    def get_top_products(db: Session = Depends(get_db)):
        return reports.top_products(db)

    return app


app = create_app()


def run():
    settings = load_settings()
    uvicorn.run(create_app(AppContext(settings)), host="0.0.0.0", port=settings.port)

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from app.config.mongodb import mongodb
from app.config.setting import settings
from app.domains.auth.middleware import jwt_auth
from app.domains.auth.routes import router as auth_router
from app.domains.billing.routes import router as billing_router
from app.domains.billing.services import BillingService
from app.domains.lenden.routes import router as lenden_router
from app.domains.lenden.services import LendenService
from app.domains.nominees.routes import router as nominee_router
from app.domains.nominees.services import NomineeService
from app.domains.transactions.ledger import LedgerAggregator
from app.domains.transactions.reconciler import BalanceReconciler
from app.domains.transactions.routes import router as transaction_router
from app.domains.transactions.services import TransactionService
from app.shared.errors import LedgerError, StorageError, ValidationError
from app.shared.gateway import MongoGateway, PersistenceGateway
from app.shared.schema import describe_errors
from dotenv import load_dotenv
import logging

load_dotenv()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s - %(message)s"
)

logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.parsed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    headers = {"Retry-After": "1"} if isinstance(exc, StorageError) else None
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    error = ValidationError(describe_errors(exc.errors()))
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


def wire_services(app: FastAPI, gateway: PersistenceGateway) -> None:
    """Build the services around one gateway and keep them on app.state."""
    ledger = LedgerAggregator(gateway)
    reconciler = BalanceReconciler(gateway, ledger)
    app.state.gateway = gateway
    app.state.ledger = ledger
    app.state.reconciler = reconciler
    app.state.nominee_service = NomineeService(gateway)
    app.state.transaction_service = TransactionService(gateway, reconciler)
    app.state.lenden_service = LendenService(gateway)
    app.state.billing_service = BillingService(gateway)


@app.on_event("startup")
async def startup():
    try:
        await mongodb.init_db()
        await mongodb.ensure_indexes()
    except Exception as e:
        logger.error(f"MongoDB connection failed: {str(e)}")
        raise

    wire_services(app, MongoGateway(mongodb.db, timeout_seconds=settings.storage_timeout_seconds))
    logger.info(f"{settings.app_name} started ({settings.environment})")


@app.on_event("shutdown")
def shutdown_db():
    mongodb.close()


protected = [Depends(jwt_auth)]

app.include_router(auth_router, tags=["Auth"])
app.include_router(nominee_router, tags=["Nominee"], dependencies=protected)
app.include_router(transaction_router, tags=["Transaction"], dependencies=protected)
app.include_router(lenden_router, tags=["Lenden"], dependencies=protected)
app.include_router(billing_router, tags=["Billing"], dependencies=protected)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=settings.port)

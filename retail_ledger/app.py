"""FastAPI app initialization, exception handling"""

import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.exceptions import ResponseValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from retail_ledger.config import Config, get_config
from retail_ledger.errors.base import ApplicationError
from retail_ledger.errors.common import ConstraintViolation
from retail_ledger.routes.customer import customer_router
from retail_ledger.routes.customer_payment import customer_payment_router
from retail_ledger.routes.payment_method import payment_method_router
from retail_ledger.routes.sale import sale_router
from retail_ledger.routes.sales_return import sales_return_router
from retail_ledger.routes.treasury import treasury_router
from retail_ledger.routes.treasury_entry import treasury_entry_router
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

logger = logging.getLogger(__name__)

config: Config = get_config()
app = FastAPI(title=config.app_name, version=config.app_version)
app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ResponseValidationError)
async def response_validation_exception_handler(
    request: Request, exc: ResponseValidationError
):
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Response validation error encountered",
            "errors": exc.errors(),
        },
    )


@app.exception_handler(ApplicationError)
def application_exception_handler(request: Request, exc: ApplicationError):
    c = {
        "error_code": exc.error_code,
        "error": exc.error,
        "where": exc.where,
    }
    logger.error(c)
    # Only print full traceback when in debug logging
    if logger.isEnabledFor(logging.DEBUG):
        traceback.print_exception(exc)
    return JSONResponse(
        status_code=exc.http_code or 418,
        content=c,
    )


@app.exception_handler(IntegrityError)
def integrity_exception_handler(request: Request, exc: IntegrityError):
    # foreign key and unique conflicts surface as a domain error
    return application_exception_handler(
        request, ConstraintViolation(exc.orig, where=request.url.path)
    )


@app.exception_handler(SQLAlchemyError)
def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.error(exc)
    # Only print full traceback when in debug logging
    if logger.isEnabledFor(logging.DEBUG):
        traceback.print_exception(exc)
    return JSONResponse(
        status_code=418,
        content={"error_code": 1500, "error": exc._message()},
    )


app.include_router(treasury_router)
app.include_router(treasury_entry_router)
app.include_router(payment_method_router)
app.include_router(customer_router)
app.include_router(customer_payment_router)
app.include_router(sale_router)
app.include_router(sales_return_router)

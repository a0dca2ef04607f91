"""Entrypoint for the FastAPI application."""

import os

import structlog
from dotenv import load_dotenv

# Load .env locally only; deployed environments inject variables directly.
env_path = os.path.join(os.path.dirname(__file__), "../.env")
if os.path.exists(env_path):
    load_dotenv(dotenv_path=os.path.abspath(env_path))

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api import contacts, health, invoices
from .core.logging import configure_logging

LOGGER = structlog.get_logger(__name__)


async def _invalid_request_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed invoice payloads as 400 with the field errors."""

    LOGGER.info("invoice_request_invalid", path=request.url.path, errors=len(exc.errors()))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "Invalid invoice data",
            "details": jsonable_encoder(exc.errors()),
        },
    )


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="SmartInvoice", version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RequestValidationError, _invalid_request_handler)

    app.include_router(health.router, prefix="/api")
    app.include_router(contacts.router, prefix="/api")
    app.include_router(invoices.router, prefix="/api")

    return app


app = create_app()

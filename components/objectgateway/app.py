from __future__ import annotations
import os
from typing import Optional

from fastapi import FastAPI

from . import make_service_from_env
from .http import install_error_handlers, router
from .observability import RequestContextMiddleware
from .service import ObjectGatewayService

APP_NAME = "objectgateway"
APP_VERSION = os.getenv("APP_VERSION", "0.1.0")


def create_app(service: Optional[ObjectGatewayService] = None) -> FastAPI:
    app = FastAPI(title=APP_NAME, version=APP_VERSION)
    app.add_middleware(RequestContextMiddleware)
    install_error_handlers(app)
    app.state.object_gateway = service or make_service_from_env()

    app.include_router(router, prefix="/v1")
    return app

# FastAPI application

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from utils.config import Config
from utils.logger import setup_logging
from utils.response import create_error_response
from api.middleware import setup_middleware

from api.orders import orders_router
from api.schedules import schedules_router
from db.errors import FulfillmentError
from db.manager import DatabaseManager
from db.schema import initialize_schema

config = Config()

setup_logging(config.config)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle"""
    logger.info("Catering fulfillment API starting...")
    logger.info(f"Environment: {config.env}")
    logger.info(f"Debug mode: {config.config['app']['debug']}")

    if config.get('database.init_on_startup', True):
        db_config = config.get_database_config()
        with DatabaseManager(db_config['path'], auto_connect=True) as db:
            initialize_schema(db)

    yield

    logger.info("Catering fulfillment API shutting down...")


app = FastAPI(
    title=config.config['app']['name'],
    version=config.config['app']['version'],
    description=config.config['app']['description'],
    debug=config.config['app']['debug'],
    lifespan=lifespan
)

setup_middleware(app, config.config)

app.include_router(orders_router, tags=["orders"])
app.include_router(schedules_router, tags=["schedules"])


@app.exception_handler(FulfillmentError)
async def fulfillment_exception_handler(request: Request, exc: FulfillmentError):
    """Domain rejection: explain the violated rule to the caller"""
    logger.warning(f"{request.method} {request.url.path} rejected ({type(exc).__name__}): {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(exc.message, data={"error_type": type(exc).__name__})
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(exc.detail),
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content=create_error_response("Internal server error")
    )


@app.get("/")
async def root():
    """Root health check"""
    return {
        "message": "Catering fulfillment API is running",
        "version": config.config['app']['version'],
        "status": "healthy"
    }


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "version": config.config['app']['version'],
        "environment": config.env
    }


@app.get("/api/info")
async def api_info():
    return {
        "name": config.config['app']['name'],
        "version": config.config['app']['version'],
        "description": config.config['app']['description'],
        "environment": config.env,
        "endpoints": {
            "orders": "/api/orders",
            "schedules": "/api/schedules"
        }
    }


if __name__ == "__main__":
    import uvicorn

    server_config = config.config['server']

    uvicorn.run(
        "api.main:app",
        host=server_config.get('host', '127.0.0.1'),
        port=server_config.get('port', 8000),
        reload=server_config.get('reload', False),
        workers=1 if server_config.get('reload', False) else server_config.get('workers', 1),
        log_level="debug" if config.config['app']['debug'] else "info"
    )

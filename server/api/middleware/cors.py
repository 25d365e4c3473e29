# CORS middleware

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from typing import Dict, Any

DEFAULT_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173"
]


def setup_cors_middleware(app: FastAPI, config: Dict[str, Any]):
    """
    Allow the storefront and staff dashboards to call the API

    Args:
        app: FastAPI application
        config: config dict
    """
    cors_config = config.get('cors', {})

    # drop origins whose ${ENV_VAR} was never set
    origins = [origin for origin in cors_config.get('allowed_origins', DEFAULT_ORIGINS)
               if origin and not origin.startswith('${')]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=cors_config.get('allow_credentials', True),
        allow_methods=cors_config.get('allowed_methods', ["*"]),
        allow_headers=cors_config.get('allowed_headers', ["*"]),
    )

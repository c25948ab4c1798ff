"""
HTTP API for the voter lookup web front end.

Endpoints:
    GET /health
    GET /api/search-voters?ward=&method=&query=
    GET /api/voter-details?epic=&ward=
    GET /api/configured-ward?wardSet=

Errors are returned as ``{"error": ...}`` bodies with 400/404/500 status.
"""

from __future__ import annotations

from typing import Optional

from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Config, get_config
from .exceptions import ValidationError, VoterLookupError, VoterNotFoundError
from .logger import get_logger
from .models import SearchMethod
from .persistence import PostgresDatastore
from .presenters import format_search_response, format_voter_details
from .search import VoterSearchService
from .wards import resolve_ward_set, validate_ward

logger = get_logger(__name__)

WARD_SET_PARAMS = ("wardSet", "wardset", "WardSet", "WARDSET", "set", "ward")


def _error(status_code: int, error: str, message: Optional[str] = None) -> JSONResponse:
    body = {"error": error}
    if message:
        body["message"] = message
    return JSONResponse(status_code=status_code, content=body)


def _ward_set_identifier(request: Request) -> Optional[str]:
    for name in WARD_SET_PARAMS:
        value = request.query_params.get(name)
        if value:
            return value
    return None


def create_app(
    service: Optional[VoterSearchService] = None,
    config: Optional[Config] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        service: Search service (default: backed by PostgresDatastore)
        config: Application configuration (default: global config)
    """
    config = config or get_config()
    if service is None:
        service = VoterSearchService(PostgresDatastore(config.db), config.search)

    app = FastAPI(title="Voter Lookup API", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )
    app.state.service = service
    app.state.config = config

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    @app.get("/api/search-voters")
    def search_voters(
        ward: Optional[str] = Query(default=None),
        method: Optional[str] = Query(default=None),
        query: Optional[str] = Query(default=None),
    ):
        if not ward or not method or not query:
            return _error(400, "Missing required parameters: ward, method, query")
        try:
            ward_no = validate_ward(ward, config.wards.all_wards())
            search_method = SearchMethod.parse(method)
        except ValidationError as e:
            return _error(400, e.message)

        try:
            records = service.search(query, ward_no, search_method)
        except VoterLookupError as e:
            logger.error(f"Search voters error: {e}")
            return _error(500, "Internal server error", e.message)
        return format_search_response(records)

    @app.get("/api/voter-details")
    def voter_details(
        epic: Optional[str] = Query(default=None),
        ward: Optional[str] = Query(default=None),
    ):
        if not epic or not ward:
            return _error(400, "Missing required parameters: epic, ward")
        try:
            ward_no = validate_ward(ward, config.wards.all_wards())
            details = service.get_voter_details(epic, ward_no)
        except ValidationError as e:
            return _error(400, e.message)
        except VoterNotFoundError:
            return _error(404, "Voter not found")
        except VoterLookupError as e:
            logger.error(f"Get voter details error: {e}")
            return _error(500, "Internal server error", e.message)
        return format_voter_details(details)

    @app.get("/api/configured-ward")
    def configured_ward(request: Request):
        identifier = _ward_set_identifier(request)
        host = request.headers.get("host") or request.headers.get("x-forwarded-host")
        wards = resolve_ward_set(identifier, host, config.wards)
        if not wards:
            return _error(
                500,
                "No ward configured. Please set WARD_SET_* environment variables "
                "or use ?wardSet= parameter in URL.",
            )
        return {
            "success": True,
            "ward": wards[0],
            "allWards": wards,
            "isMultiple": len(wards) > 1,
            "wardSet": identifier,
            "configuredWard": ",".join(wards),
        }

    return app

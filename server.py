"""HTTP API over the company directory."""

import logging
import math
from contextlib import asynccontextmanager
from typing import Any, List, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from queries import CompanyFilters, get_by_ids, list_companies
from settings import settings
from store import Snapshot, load_snapshot, parse_float

MAX_IDS = 50
# Page size requested when the client omits ``limit``; clamped downstream.
DEFAULT_REQUEST_LIMIT = 200

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s | %(levelname)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("companies")


class ApiError(Exception):
    """Error answered with ``{"error": {"code", "message"}}``."""

    def __init__(self, status_code: int, code: str, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message


def error_body(code: str, message: str) -> dict:
    return {"error": {"code": code, "message": message}}


# ---------------------------------------------------------------------------
# Request parsing
# ---------------------------------------------------------------------------
def parse_number(text: Optional[str], default: float) -> float:
    """Parse numeric query text; blank text is 0, unparsable text is NaN."""
    if text is None:
        return default
    return parse_float(text)


def parse_active(text: Optional[str]) -> Optional[bool]:
    if text is None:
        return None
    return text == "true"


def parse_ids(raw: str) -> List[int]:
    """Parse a comma separated id list, raising ``ApiError`` when invalid."""
    tokens = [token.strip() for token in raw.split(",")]
    tokens = [token for token in tokens if token]

    ids: List[int] = []
    for token in tokens:
        number = parse_float(token)
        if not math.isfinite(number) or not number.is_integer() or number < 0:
            raise ApiError(400, "BAD_REQUEST", "Invalid company id(s).")
        ids.append(int(number))

    if not ids:
        raise ApiError(400, "BAD_REQUEST", "Invalid company id(s).")
    if len(ids) > MAX_IDS:
        raise ApiError(400, "BAD_REQUEST", f"Too many ids (max {MAX_IDS}).")
    return ids


def get_snapshot(request: Request) -> Snapshot:
    snapshot = getattr(request.app.state, "snapshot", None)
    if snapshot is None:
        raise RuntimeError("Snapshot not loaded")
    return snapshot


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
def create_app(snapshot: Optional[Snapshot] = None) -> FastAPI:
    """Return the API bound to *snapshot*.

    Without a snapshot, one is loaded from the configured directories when
    the application starts.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "snapshot", None) is None:
            app.state.snapshot = load_snapshot(settings.companies_dir, settings.employees_dir)
        yield

    app = FastAPI(title="Company Directory", lifespan=lifespan)
    app.state.snapshot = snapshot
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    @app.exception_handler(ApiError)
    async def api_error(request: Request, exc: ApiError):
        return JSONResponse(status_code=exc.status_code, content=error_body(exc.code, exc.message))

    @app.exception_handler(Exception)
    async def universal_error(request: Request, exc: Exception):
        logger.exception("Unhandled exception: %s", exc)
        return JSONResponse(status_code=500, content=error_body("INTERNAL_ERROR", str(exc)))

    @app.get("/health")
    async def health():
        return {"ok": True}

    @app.get("/companies")
    async def all_companies(
        limit: Optional[str] = None,
        offset: Optional[str] = None,
        companyName: Optional[str] = None,
        employeeName: Optional[str] = None,
        active: Optional[str] = None,
        snapshot: Snapshot = Depends(get_snapshot),
    ):
        filters = CompanyFilters(
            limit=parse_number(limit, DEFAULT_REQUEST_LIMIT),
            offset=parse_number(offset, 0),
            company_name=companyName,
            employee_name=employeeName,
            active=parse_active(active),
        )
        result = list_companies(snapshot, filters)
        return result.model_dump(exclude_none=True)

    @app.get("/companies/{company_ids}")
    async def companies_by_ids(company_ids: str, snapshot: Snapshot = Depends(get_snapshot)):
        ids = parse_ids(company_ids)
        views = get_by_ids(snapshot, ids)

        if len(ids) == 1:
            if views[0] is None:
                raise ApiError(404, "NOT_FOUND", "Company not found.")
            return {"data": views[0].model_dump(exclude_none=True)}

        body: List[Any] = [v.model_dump(exclude_none=True) if v is not None else None for v in views]
        return body

    return app


app = create_app()


def run_servers(host: Optional[str] = None, port: Optional[int] = None) -> None:
    """Load the dataset and serve the API with uvicorn."""
    snapshot = load_snapshot(settings.companies_dir, settings.employees_dir)
    api = create_app(snapshot)
    host = host or settings.HOST
    port = port or settings.PORT
    logger.info("Server running at http://%s:%d", host, port)
    uvicorn.run(api, host=host, port=port, log_level=settings.LOG_LEVEL.lower())


if __name__ == "__main__":
    run_servers()

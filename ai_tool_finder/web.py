"""JSON API for browsing and searching the AI tool catalog."""

import logging
from typing import List
from typing import Optional

from fasthtml.fastapp import fast_app
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from .assembler import ToolAssembler
from .config import Settings
from .config import load_settings
from .errors import CatalogError
from .models import CatalogModel
from .models import SearchQuery
from .openai_utils import build_openai_client
from .recommender import OpenAIRanker
from .search import SearchOrchestrator
from .seed import load_seed_document
from .seed import seed_catalog
from .storage import DEFAULT_FEATURED_LIMIT
from .storage import MAX_SQL_INTEGER
from .storage import CatalogStore
from .storage import build_store

logger = logging.getLogger(__name__)


def error_response(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"message": message}, status_code=status_code)


def models_response(records: List[CatalogModel]) -> JSONResponse:
    return JSONResponse([record.to_wire() for record in records])


def parse_int(raw: str) -> Optional[int]:
    """Parse an id or limit from the URL; ``None`` if it is not an integer the store can bind."""
    try:
        value = int(raw)
    except ValueError:
        return None
    if abs(value) > MAX_SQL_INTEGER:
        return None
    return value


def format_validation_error(exc: ValidationError) -> str:
    """Render pydantic errors as one human-readable line."""
    parts = []
    for error in exc.errors():
        message = error["msg"].removeprefix("Value error, ")
        location = ".".join(str(part) for part in error["loc"])
        parts.append(f'{message} at "{location}"' if location else message)
    return "Validation error: " + "; ".join(parts)


def build_orchestrator(store: CatalogStore, settings: Settings) -> SearchOrchestrator:
    ranker = OpenAIRanker(build_openai_client(settings), settings.search_model)
    return SearchOrchestrator(store, ranker)


def create_app(
    store: Optional[CatalogStore] = None,
    orchestrator: Optional[SearchOrchestrator] = None,
    settings: Optional[Settings] = None,
):
    """Build the web app around an explicit store and search orchestrator.

    Anything not passed in is built from ``settings`` (or the environment), and
    a freshly built store is seeded according to ``CATALOG_SEED``.
    """
    if store is None or orchestrator is None:
        settings = settings or load_settings()
    if store is None:
        store = build_store(settings)
        document = load_seed_document(settings)
        if document is not None:
            seed_catalog(store, document)
    if orchestrator is None:
        orchestrator = build_orchestrator(store, settings)

    assembler = ToolAssembler(store)
    app, rt = fast_app()

    @rt("/health", methods=["get"])
    def health():
        return JSONResponse({"status": "ok"})

    @rt("/api/tools", methods=["get"])
    def list_tools():
        try:
            return models_response(assembler.decorate_all(store.get_tools()))
        except CatalogError as e:
            logger.error(f"Error getting tools: {e}")
            return error_response("Failed to retrieve tools", 500)

    @rt("/api/tools/featured", methods=["get"])
    def featured_tools(request: Request):
        raw_limit = request.query_params.get("limit")
        limit = DEFAULT_FEATURED_LIMIT if raw_limit is None else parse_int(raw_limit)
        if limit is None or limit < 0:
            return error_response("limit must be a non-negative integer", 400)

        try:
            return models_response(assembler.decorate_all(store.get_featured_tools(limit)))
        except CatalogError as e:
            logger.error(f"Error getting featured tools: {e}")
            return error_response("Failed to retrieve featured tools", 500)

    @rt("/api/categories", methods=["get"])
    def list_categories():
        try:
            return models_response(store.get_categories())
        except CatalogError as e:
            logger.error(f"Error getting categories: {e}")
            return error_response("Failed to retrieve categories", 500)

    @rt("/api/tools/category/{category_id}", methods=["get"])
    def tools_by_category(category_id: str):
        parsed_id = parse_int(category_id)
        if parsed_id is None:
            return error_response(f"Invalid category id: {category_id}", 400)

        try:
            return models_response(assembler.decorate_all(store.get_tools_by_category(parsed_id)))
        except CatalogError as e:
            logger.error(f"Error getting tools by category: {e}")
            return error_response("Failed to retrieve tools by category", 500)

    async def search(request: Request):
        try:
            body = await request.json()
        except ValueError:
            return error_response("Validation error: request body must be JSON", 400)

        try:
            search_query = SearchQuery.model_validate(body)
        except ValidationError as e:
            return error_response(format_validation_error(e), 400)

        try:
            result = await run_in_threadpool(orchestrator.search, search_query.query)
        except CatalogError as e:
            logger.error(f"Error in search endpoint: {e}")
            return error_response("Failed to search for tools", 500)

        return JSONResponse(result.to_wire())

    # Plain starlette route: fasthtml would parse the body into handler
    # arguments first and fail on JSON that is not an object.
    app.routes.insert(0, Route("/api/search", search, methods=["POST"]))

    return app

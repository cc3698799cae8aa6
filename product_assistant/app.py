from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .assistant import ProductAssistant
from .cache import CacheService, LocalCache, build_shared_client
from .catalog import CatalogLoader
from .config import Settings, load_settings
from .conversation import ConversationSession, ConversationStore
from .gemini_client import GeminiClient
from .language_service import GeminiLanguageService
from .models import (
    ConversationStartResponse,
    ErrorResponse,
    HealthResponse,
    ProductAttributeResponse,
    QueryRequest,
    QueryResponse,
    SimilarProductsResponse,
)
from .similarity import ProductResolver

BASE_DIR = Path(__file__).resolve().parent
ENV_PATH = BASE_DIR / ".env"
API_VERSION = "1.0.0"
INVALID_QUERY_MESSAGE = "Invalid query format"

logger = logging.getLogger("product_assistant.api")


def configure_logging(level_name: str) -> None:
    """Configure root logging once; later calls only adjust the package level."""
    log_level = getattr(logging, level_name.upper(), logging.INFO)
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=log_level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        )
    logging.getLogger("product_assistant").setLevel(log_level)


def build_assistant(settings: Settings) -> ProductAssistant:
    """Purpose: Assemble the production object graph from Settings.
    Inputs/Outputs: Input is Settings; output is a ready ProductAssistant.
    Side Effects / State: Connects to Redis when configured and configures the
        Gemini SDK. The catalog itself loads lazily on first use.
    Dependencies: CacheService, ConversationStore, CatalogLoader, GeminiClient.
    Failure Modes: A missing GEMINI_API_KEY raises ValueError; an unreachable
        Redis only downgrades to local-only caching.
    If Removed: create_app cannot run without an injected assistant.
    Testing Notes: Tests inject their own assistant instead of calling this.
    """
    # Cache tiers first; conversations and answers both live there.
    cache = CacheService(
        local=LocalCache(),
        shared=build_shared_client(settings.redis_url),
        backfill_ttl=settings.local_backfill_ttl,
    )
    language = GeminiLanguageService(GeminiClient(settings), settings.prompts_dir)
    return ProductAssistant(
        catalog_loader=CatalogLoader(settings.data_path),
        resolver=ProductResolver(),
        conversations=ConversationStore(cache, ttl=settings.conversation_ttl),
        cache=cache,
        language=language,
        query_ttl=settings.query_cache_ttl,
    )


def _error(status_code: int, message: str) -> JSONResponse:
    body = ErrorResponse(message=message, timestamp=datetime.now(timezone.utc))
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json", by_alias=True))


def create_app(assistant: Optional[ProductAssistant] = None) -> FastAPI:
    """Purpose: Build the FastAPI application and register the routes.
    Inputs/Outputs: Input is an optional pre-built assistant; output is a FastAPI app.
    Side Effects / State: Loads .env, configures logging and, without an injected
        assistant, builds the production services.
    Dependencies: FastAPI, python-dotenv, load_settings, build_assistant.
    Failure Modes: Startup errors from build_assistant propagate.
    If Removed: The service has no HTTP surface.
    Testing Notes: Pass a ProductAssistant wired with fakes and use TestClient.
    """
    # Environment first so Settings sees .env values.
    if ENV_PATH.exists():
        load_dotenv(ENV_PATH, override=True)
    settings = load_settings()
    configure_logging(settings.log_level)
    if assistant is None:
        assistant = build_assistant(settings)

    app = FastAPI(title="SKF Product Assistant", version=API_VERSION)
    app.state.assistant = assistant

    @app.exception_handler(RequestValidationError)
    def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.info("rejected request path=%s errors=%s", request.url.path, len(exc.errors()))
        return _error(400, INVALID_QUERY_MESSAGE)

    @app.get("/api/health", response_model=HealthResponse, response_model_by_alias=True)
    def health() -> HealthResponse:
        return HealthResponse(status="Healthy", timestamp=datetime.now(timezone.utc), version=API_VERSION)

    @app.post(
        "/api/conversation/start",
        response_model=ConversationStartResponse,
        response_model_by_alias=True,
    )
    def start_conversation() -> ConversationStartResponse:
        return assistant.start_conversation()

    @app.get("/api/conversation/{conversation_id}", response_model=ConversationSession)
    def get_conversation(conversation_id: str) -> ConversationSession:
        session = assistant.get_conversation(conversation_id)
        if session is None:
            raise HTTPException(status_code=404, detail="Conversation not found")
        return session

    @app.delete("/api/conversation/{conversation_id}", status_code=204)
    def delete_conversation(conversation_id: str) -> Response:
        assistant.delete_conversation(conversation_id)
        return Response(status_code=204)

    @app.post("/api/query", response_model=QueryResponse, response_model_by_alias=True)
    def query_product(request: QueryRequest):
        """Purpose: Answer a free-text product question.
        Inputs/Outputs: Input is QueryRequest; output is QueryResponse or a 400 error.
        Side Effects / State: Updates the conversation and the answer cache.
        Dependencies: ProductAssistant.process_query.
        Failure Modes: Blank queries return 400; processing errors come back as
            SystemError results with status 200.
        If Removed: The main feature of the service is unavailable.
        Testing Notes: Post a blank query and verify the 400 body.
        """
        # Blank input never reaches the pipeline from HTTP.
        if not request.query.strip():
            return _error(400, INVALID_QUERY_MESSAGE)
        return assistant.process_query(request.query, request.conversation_id)

    @app.get(
        "/api/product/{product_name}/attribute/{attribute_name}",
        response_model=ProductAttributeResponse,
        response_model_by_alias=True,
    )
    def get_product_attribute(product_name: str, attribute_name: str) -> ProductAttributeResponse:
        return assistant.get_product_attribute(product_name, attribute_name)

    @app.get(
        "/api/product/{product_name}/similar",
        response_model=SimilarProductsResponse,
        response_model_by_alias=True,
    )
    def get_similar_products(product_name: str) -> SimilarProductsResponse:
        return assistant.get_similar_products(product_name)

    return app


def main() -> None:
    """Run the API with uvicorn using HOST and PORT from the environment."""
    if ENV_PATH.exists():
        load_dotenv(ENV_PATH, override=True)
    settings = load_settings()
    uvicorn.run(
        "product_assistant.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()

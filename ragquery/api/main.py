"""FastAPI application factory and uvicorn entry point."""

from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ragquery import __version__
from ragquery.agents.assistant import build_assistant
from ragquery.api.dependencies import ServiceState
from ragquery.api.feedback import FeedbackLog
from ragquery.api.routes import router
from ragquery.exceptions import ConfigurationError, ProviderError, ValidationError
from ragquery.providers.completion import CompletionProvider, create_completion_provider
from ragquery.providers.embeddings import EmbeddingProvider, create_embedding_provider
from ragquery.utils.config import Settings, get_settings
from ragquery.utils.logger import get_logger, setup_logger
from ragquery.vectorstore.corpus_store import CorpusStore, load_corpus

logger = get_logger()


async def verify_embedding_dimension(embedder: EmbeddingProvider, store: CorpusStore) -> None:
    """
    Embed a sample string and compare its length with the corpus dimension.

    An unreachable provider is only logged; a dimension mismatch means the
    corpus was built with a different model and is fatal.

    Raises:
        ConfigurationError: If the sample vector length differs from the corpus
    """
    if store.dimension is None:
        return

    try:
        sample = await embedder.embed("dimension check")
    except ProviderError as e:
        logger.warning(f"Could not verify embedding dimension at startup: {e}")
        return

    if len(sample) != store.dimension:
        raise ConfigurationError(
            f"Embedding model {embedder.name} returns {len(sample)} dimensions "
            f"but the corpus has {store.dimension}"
        )
    logger.info(f"Embedding dimension verified: {store.dimension}")


async def build_service_state(
    settings: Settings,
    embedder: Optional[EmbeddingProvider] = None,
    completion_provider: Optional[CompletionProvider] = None
) -> ServiceState:
    """
    Load the corpus and wire providers into the shared service state.

    Args:
        settings: Application settings
        embedder: Pre-built embedding provider (tests inject fakes here)
        completion_provider: Pre-built completion provider

    Returns:
        ServiceState

    Raises:
        ConfigurationError: On any unusable corpus or provider configuration
    """
    store = load_corpus(settings.corpus_path)

    if settings.embedding_dimension and store.dimension not in (None, settings.embedding_dimension):
        raise ConfigurationError(
            f"Corpus dimension {store.dimension} does not match "
            f"configured EMBEDDING_DIMENSION={settings.embedding_dimension}"
        )

    needs_embedding = settings.rag_selector_strategy == "vector"
    if needs_embedding and embedder is None:
        embedder = create_embedding_provider(settings)
    if completion_provider is None:
        completion_provider = create_completion_provider(settings)

    if needs_embedding and settings.verify_embedding_on_startup:
        await verify_embedding_dimension(embedder, store)

    assistant = build_assistant(
        store,
        settings,
        embedder if needs_embedding else None,
        completion_provider,
    )

    return ServiceState(
        settings=settings,
        store=store,
        assistant=assistant,
        completion_provider=completion_provider,
        feedback_log=FeedbackLog(settings.feedback_log_path),
        embedder=embedder if needs_embedding else None,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    setup_logger(settings)

    logger.info("Starting RAG query service...")
    logger.info(f"Corpus: {settings.corpus_path}")
    logger.info(f"Selector strategy: {settings.rag_selector_strategy}")
    logger.info(f"Completion provider: {settings.completion_provider}")

    state = await build_service_state(
        settings,
        embedder=app.state.embedder_override,
        completion_provider=app.state.completion_override,
    )
    app.state.service = state
    logger.info(f"Service ready with {len(state.store)} passages")

    try:
        yield
    finally:
        await state.aclose()
        logger.info("Service stopped")


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        logger.warning(f"Rejected request: {exc}")
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Malformed request body: {exc.errors()}")
        return JSONResponse(
            status_code=400,
            content={"detail": "Invalid request: malformed body"},
        )

    @app.exception_handler(ProviderError)
    async def provider_error_handler(request: Request, exc: ProviderError):
        logger.error(f"Provider failure: {exc}")
        return JSONResponse(
            status_code=502,
            content={"error": "Error processing request", "details": exc.message},
        )

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(request: Request, exc: ConfigurationError):
        logger.error(f"Configuration error: {exc}")
        return JSONResponse(status_code=500, content={"detail": "Service misconfigured"})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error: {exc}")
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def create_app(
    settings: Optional[Settings] = None,
    embedder: Optional[EmbeddingProvider] = None,
    completion_provider: Optional[CompletionProvider] = None
) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        settings: Settings to use instead of the environment
        embedder: Embedding provider override
        completion_provider: Completion provider override

    Returns:
        FastAPI app; the corpus is loaded when its lifespan starts
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="RAG Query Service",
        description="Grounded question answering over a pre-embedded corpus",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.embedder_override = embedder
    app.state.completion_override = completion_provider

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(router)

    return app


def main():
    """Start the HTTP server."""
    settings = get_settings()
    setup_logger(settings)

    logger.info(f"Listening on {settings.host}:{settings.port}")
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception as e:
        logger.exception(f"Fatal error: {e}")

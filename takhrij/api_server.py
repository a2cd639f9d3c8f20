"""
Takhrij - FastAPI Server
========================

Endpoints:
- POST /search-hadith   - Fuzzy lookup in the nine collections, AI fallback on a miss
- POST /gpt-commentary  - Commentary, chain of narrators and evaluation for one hadith
- POST /narrator-bio    - Structured biography of a narrator
- GET  /health          - Health check

The collections are loaded in the background at startup. The server answers
immediately; until the index is built every search is treated as a miss.

Every failure inside an endpoint degrades to a fixed payload. Provider error
text and stack traces are only logged.
"""

import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from datetime import datetime
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from takhrij.config import get_settings
from takhrij.logging_config import setup_logging
from takhrij.models import (
    CommentaryRequest,
    CommentaryResponse,
    HealthResponse,
    NarratorBioRequest,
    NarratorBioResponse,
    SearchRequest,
    SearchResponse,
)
from takhrij.services import Services, build_services
from takhrij.utils.fallbacks import FALLBACK_FAILED_MESSAGE, failed_bio, failed_commentary

logger = logging.getLogger(__name__)


# ==========================================
#  DEPENDENCIES
# ==========================================

def get_services(request: Request) -> Services:
    return request.app.state.services


def resolve_client_id(request: Request) -> str:
    """First X-Forwarded-For address, else the connection address."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


# ==========================================
#  LIFESPAN
# ==========================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    services: Services = app.state.services

    load_task: Optional[asyncio.Task] = None
    if services.corpus.loader is not None and not services.corpus.is_ready:
        logger.info("Loading hadith collections in the background")
        load_task = asyncio.create_task(services.load_corpus())
    app.state.load_task = load_task

    yield

    if load_task is not None and not load_task.done():
        load_task.cancel()
        with suppress(asyncio.CancelledError):
            await load_task


# ==========================================
#  APP FACTORY
# ==========================================

def create_app(services: Optional[Services] = None) -> FastAPI:
    """
    Build the FastAPI app.

    Without arguments the services are wired from environment settings, so
    this also works as a uvicorn factory:
        uvicorn takhrij.api_server:create_app --factory
    """
    if services is None:
        settings = get_settings()
        setup_logging(
            console_level=settings.log_level,
            log_dir=settings.log_dir if settings.log_to_file else None,
        )
        services = build_services(settings)

    settings = services.settings

    app = FastAPI(
        title="Takhrij - Hadith Finder",
        description="Fuzzy lookup in the nine hadith collections with labelled AI fallback",
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials="*" not in settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ==========================================
    #  HEALTH CHECK
    # ==========================================

    @app.get("/health", response_model=HealthResponse)
    async def health_check(services: Services = Depends(get_services)):
        """Health check endpoint"""
        return HealthResponse(
            status="healthy",
            version=services.settings.app_version,
            index_ready=services.corpus.is_ready,
            indexed_records=services.corpus.index.size,
            collections=services.corpus.counts(),
            commentary_cache_entries=len(services.commentary_cache),
            bio_cache_entries=len(services.bio_cache),
            timestamp=datetime.now().isoformat(),
        )

    # ==========================================
    #  SEARCH
    # ==========================================

    @app.post("/search-hadith", response_model=SearchResponse)
    async def search_hadith(request: SearchRequest, services: Services = Depends(get_services)):
        """Matches from the collections, or a labelled AI answer when nothing matches."""
        logger.info(f"[/search-hadith] Query: '{request.query[:100]}'")
        try:
            result = await services.search.search(request.query)
        except Exception as e:
            logger.error(f"[/search-hadith] Error: {e}", exc_info=True)
            result = FALLBACK_FAILED_MESSAGE
        return SearchResponse(result=result)

    # ==========================================
    #  COMMENTARY
    # ==========================================

    @app.post("/gpt-commentary", response_model=CommentaryResponse)
    async def gpt_commentary(
        body: CommentaryRequest,
        request: Request,
        services: Services = Depends(get_services),
    ):
        """Commentary, chain and evaluation for one hadith."""
        client_id = resolve_client_id(request)
        logger.info(f"[/gpt-commentary] {body.reference} ({body.collection}) from {client_id}")
        try:
            return await services.commentary.comment(body, client_id)
        except Exception as e:
            logger.error(f"[/gpt-commentary] Error: {e}", exc_info=True)
            return failed_commentary()

    # ==========================================
    #  NARRATOR BIO
    # ==========================================

    @app.post("/narrator-bio", response_model=NarratorBioResponse)
    async def narrator_bio(
        body: NarratorBioRequest,
        request: Request,
        services: Services = Depends(get_services),
    ):
        """Structured biography of one narrator."""
        client_id = resolve_client_id(request)
        logger.info(f"[/narrator-bio] Name: '{body.name}' from {client_id}")
        try:
            return await services.narrator_bio.describe(body.name, client_id)
        except Exception as e:
            logger.error(f"[/narrator-bio] Error: {e}", exc_info=True)
            return failed_bio()

    return app


# ==========================================
#  MAIN
# ==========================================

def main():
    import uvicorn

    settings = get_settings()
    app = create_app()

    logger.info("=" * 60)
    logger.info(f"{settings.app_name} v{settings.app_version} API Server")
    logger.info("Endpoints:")
    logger.info("  POST /search-hadith   - Hadith lookup with AI fallback")
    logger.info("  POST /gpt-commentary  - Commentary, chain, evaluation")
    logger.info("  POST /narrator-bio    - Narrator biography")
    logger.info("  GET  /health          - Health check")
    logger.info(f"Starting server on http://{settings.host}:{settings.port}")
    logger.info("=" * 60)

    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()

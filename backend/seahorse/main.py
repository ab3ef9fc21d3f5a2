"""
FastAPI Application Entry Point

Configures and runs the Seahorse agent backend service. Initializes the
agent in the background on startup, broadcasting progress to connected
chat sessions, then serves grounded answers over HTTP and WebSocket.
"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Callable, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from seahorse.config import settings
from seahorse.exceptions import InitializationError
from seahorse.models.schemas import ProgressReport
from seahorse.routers import chat, health
from seahorse.services.agent import Agent


def configure_logging() -> None:
    """Configure application logging."""
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    # Configure root logger
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )

    # Set specific loggers
    logging.getLogger("uvicorn").setLevel(log_level)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("websockets").setLevel(logging.WARNING)

    # Reduce noise from httpx/httpcore and the Gemini SDK
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("google_genai").setLevel(logging.WARNING)


# Configure logging on module load
configure_logging()
logger = logging.getLogger(__name__)


async def broadcast_progress(report: ProgressReport) -> None:
    """Forward an initialization progress report to every chat session."""
    await chat.manager.broadcast({"type": "progress", **report.to_dict()})


async def initialize_agent(agent: Agent) -> None:
    """Run agent initialization; failures leave the agent in ERROR."""
    try:
        await agent.initialize(progress_callback=broadcast_progress)
        logger.info("Agent ready")
    except InitializationError as e:
        logger.error(f"Agent initialization failed: {e}")


def create_app(agent_factory: Optional[Callable[[], Agent]] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        agent_factory: Builds the agent on startup. Defaults to an Agent
            wired from settings.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """
        Application lifespan events.

        Startup:
        - Log configuration
        - Create the agent and start initializing it

        Shutdown:
        - Stop a pending initialization
        - Close active connections
        """
        # Startup
        logger.info(f"Starting Seahorse Agent v{app.version}")
        logger.info(f"Debug mode: {settings.debug}")
        logger.info(f"Gemini model: {settings.gemini_model}")
        logger.info(f"Registry: {settings.registry_backend} ({settings.registry_contract_id})")

        if not settings.gemini_api_key:
            logger.warning("GEMINI_API_KEY not set - using mock chat model and hashing embeddings")
        else:
            logger.info("Gemini API key configured")

        agent = (agent_factory or Agent)()
        app.state.agent = agent
        app.state.generation_lock = asyncio.Lock()
        app.state.init_task = asyncio.create_task(initialize_agent(agent))

        yield

        # Shutdown
        logger.info("Shutting down Seahorse Agent")

        init_task = app.state.init_task
        if not init_task.done():
            init_task.cancel()
            await asyncio.gather(init_task, return_exceptions=True)

        await chat.manager.close_all()
        logger.info("All connections closed")

    app = FastAPI(
        title="Seahorse Agent",
        description="""
Retrieval-augmented chat over data published by registry providers.

## Features

- **Provider Ingestion**: Fetches every provider's items from the registry on startup
- **Semantic Search**: Exact cosine-similarity search over embedded chunks
- **Grounded Answers**: Questions are answered with the retrieved context
- **Notes**: Add your own notes to the index at runtime

## WebSocket Protocol

Connect to `/ws/chat` to start a session.

### Messages from Client

- `question`: Ask a question (`direct: true` bypasses retrieval)
- `get_status`: Agent status
- `ping`: Connection health check

### Messages to Client

- `progress`: Initialization progress
- `token`: Streamed answer tokens
- `context`: Retrieved context items
- `done`: Full answer
- `error`: Error notifications
- `pong`: Response to ping
""",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Configure CORS
    cors_origins = settings.cors_origins
    if settings.debug:
        # In debug mode, be more permissive
        cors_origins = ["*"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(health.router, tags=["Health"])
    app.include_router(chat.router)

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint with basic service information."""
        return {
            "name": "Seahorse Agent",
            "version": "1.0.0",
            "status": "running",
            "docs": "/docs",
            "websocket": "/ws/chat",
        }

    @app.get("/config")
    async def get_config() -> dict:
        """
        Get current configuration (non-sensitive values only).

        Useful for debugging and verification.
        """
        return {
            "gemini_model": settings.gemini_model,
            "embedding_model": settings.embedding_model,
            "embedding_dimension": settings.embedding_dimension,
            "chunk_size": settings.chunk_size,
            "chunk_overlap": settings.chunk_overlap,
            "search_top_k": settings.search_top_k,
            "max_response_tokens": settings.max_response_tokens,
            "temperature": settings.temperature,
            "top_p": settings.top_p,
            "registry_backend": settings.registry_backend,
            "registry_contract_id": settings.registry_contract_id,
            "gemini_configured": bool(settings.gemini_api_key),
        }

    return app


app = create_app()


# For running directly with Python
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "seahorse.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )

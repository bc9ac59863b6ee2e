"""FastAPI application for the evidence checker."""

import contextlib
import logging

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from ..infrastructure.dependencies import get_service_container
from .endpoints import cases, health

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the semantic judge when configured and shut it down on exit."""
    container = get_service_container()
    if container.settings.judge_configured:
        judge = await container.get_judge()
        if judge is None:
            logger.warning("⚠️ Starting without semantic judge")

    yield

    await container.shutdown()


app = FastAPI(
    title="Evidence Checker API",
    description="Verifies that an investigation's narrative is backed by captured evidence",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(cases.router)

from __future__ import annotations

from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root before any settings are read
project_root = Path(__file__).parent.parent
env_path = project_root / ".env"

if env_path.exists():
    load_dotenv(env_path)

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ingestion.db.session import init_schema
from ingestion.settings import get_settings
from ingestion.utils.logging import configure_logging, get_logger

from . import news_service as news_service_module
from .news_service import NewsService
from .routes import router

settings = get_settings()
configure_logging(settings.structlog_level, settings.log_json)
get_logger(__name__).info("api.startup", extra={"env_file_loaded": env_path.exists()})

app = FastAPI(title="Plotwist News API", version="0.1.0")

init_schema(settings)

news_service_module.news_service = NewsService.from_settings(settings)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=True,
)

app.include_router(router)


@app.get("/healthz", tags=["system"])
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}

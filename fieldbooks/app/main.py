import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fieldbooks.app.api.v1.api import api_router
from fieldbooks.app.core.config import settings
from fieldbooks.app.models import registry  # noqa: F401  (register all mappers)

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Fieldbooks Business Management API")

# ─── CORS ───────────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Authorization", "Content-Type", "Accept"],
)

app.include_router(api_router)

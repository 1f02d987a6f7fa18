"""Application settings read from the environment (and `.env` via python-dotenv)."""

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

DEFAULT_INDEXING_SERVICE_URL = "http://localhost:8000"


class Settings(BaseModel):
    indexing_service_url: str = DEFAULT_INDEXING_SERVICE_URL
    database_url: Optional[str] = None
    frontend_origin: str = "http://localhost:3000"
    port: int = 3001
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build settings from environment variables.

        EXTERNAL_AI_API_URL is still honoured for deployments configured
        before INDEXING_SERVICE_URL existed.
        """
        load_dotenv()
        indexing_url = (
            os.getenv("INDEXING_SERVICE_URL")
            or os.getenv("EXTERNAL_AI_API_URL")
            or DEFAULT_INDEXING_SERVICE_URL
        )
        return cls(
            indexing_service_url=indexing_url.rstrip("/"),
            database_url=os.getenv("APP_DATABASE_URL") or None,
            frontend_origin=os.getenv("FRONTEND_ORIGIN", "http://localhost:3000"),
            port=int(os.getenv("PORT", "3001")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper()
        )

"""Configuration du service Around (ingestion + recherche géographique)."""
from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Configuration de l'application."""

    # Meilisearch
    MEILISEARCH_URL: str = "http://localhost:7700"
    MEILISEARCH_API_KEY: str = ""
    INDEX_NAME: str = "around"
    # Champ géographique réservé de Meilisearch
    GEO_FIELD: str = "_geo"
    TASK_TIMEOUT_MS: int = 5000
    # None = taille de page par défaut du moteur (20 hits)
    SEARCH_LIMIT: Optional[int] = None

    # Recherche
    DEFAULT_RANGE_KM: float = 200.0

    # Azure Blob Storage
    BLOB_CONNECTION_STRING: str = ""
    BUCKET_NAME: str = "post-images"

    # Pas d'authentification : auteur fixe
    DEFAULT_USER: str = "1111"

    # HTTP
    CORS_ORIGINS: List[str] = ["*"]

    # Logs
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    LOG_TO_FILE: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()

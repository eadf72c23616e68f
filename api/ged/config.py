from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # --- Config de base ---
    # "sqlite://" = base en mémoire, perdue à l'arrêt (comme la démo d'origine)
    DATABASE_URL: str = "sqlite://"
    CORS_ORIGINS: str = "http://localhost:3000"
    MAX_UPLOAD_MB: int = 10
    SEED_DEMO_DATA: bool = True
    LOG_LEVEL: str = "info"

    # --- Extraction des métadonnées ---
    EXTRACTION_BACKEND: str = "gemini"        # gemini / heuristique / aucun
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_MODEL: str = "gemini-1.5-flash"
    EXTRACTION_TIMEOUT_SECONDS: float = 20.0
    OCR_LANG: str = "fra"

    # --- Valeurs de repli à l'enregistrement ---
    DEFAULT_TITLE: str = "Document Sans Titre"
    DEFAULT_SERVICE: str = "Direction Générale"
    DEFAULT_DESCRIPTION: str = "Document numérisé via terminal mobile."


settings = Settings()

# church_admin/core/config.py
import os
from pydantic_settings import BaseSettings
from pydantic_settings import SettingsConfigDict
from typing import List
from functools import lru_cache

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Application Settings
    APP_NAME: str = "Church Admin API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    DOCS_ENABLED: bool = True

    # Server Settings
    HOST: str = "0.0.0.0"
    PORT: int = int(os.environ.get("PORT", 8000))

    # CORS Settings (comma-separated strings to avoid JSON parsing in env)
    ALLOWED_ORIGINS: str = os.environ.get("ALLOWED_ORIGINS", "*")
    ALLOWED_METHODS: str = os.environ.get("ALLOWED_METHODS", "GET,POST,PUT,PATCH,DELETE,OPTIONS")
    ALLOWED_HEADERS: str = os.environ.get("ALLOWED_HEADERS", "*")
    CORS_ALLOW_CREDENTIALS: bool = True

    # Middleware settings
    GZIP_MIN_SIZE: int = 500

    # Firebase Settings
    FIREBASE_PROJECT_ID: str = os.environ.get("FIREBASE_PROJECT_ID", "")
    FIREBASE_PRIVATE_KEY: str = os.environ.get("FIREBASE_PRIVATE_KEY", "").replace('\\n', '\n')
    FIREBASE_CLIENT_EMAIL: str = os.environ.get("FIREBASE_CLIENT_EMAIL", "")
    FIREBASE_DATABASE_URL: str = os.environ.get("FIREBASE_DATABASE_URL", "")
    AUTH_REQUIRED: bool = True

    # Storage backend: "firestore" or "memory" (empty picks firestore only when credentials exist)
    STORAGE_BACKEND: str = os.environ.get("STORAGE_BACKEND", "")

    # Firestore collections
    DEPARTMENTS_COLLECTION: str = "church_departments"
    DEPARTMENT_TRANSACTIONS_COLLECTION: str = "church_department_transactions"
    DEPARTMENT_TRANSFERS_COLLECTION: str = "church_department_transfers"
    PROFESSIONALS_COLLECTION: str = "profissionaisAssistencia"
    APPOINTMENTS_COLLECTION: str = "agendamentosAssistencia"

    # Ledger
    LEDGER_QUERY_LIMIT: int = 10000
    LEDGER_SCAN_PAGE_SIZE: int = 500
    TRANSACTIONS_PAGE_LIMIT: int = 100

    # Scheduling defaults applied when a professional has no usable template
    DEFAULT_CONSULTATION_MINUTES: int = 50
    DEFAULT_WORKING_HOURS_START: str = "07:00"
    DEFAULT_WORKING_HOURS_END: str = "21:00"
    DEFAULT_WORKING_WEEKDAYS: str = "1,2,3,4,5"

    # Logging Settings
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    def _split_csv(self, value: str) -> List[str]:
        if value is None:
            return []
        value = value.strip()
        if value == "":
            return []
        return [item.strip() for item in value.split(",")]

    @property
    def allowed_origins_list(self) -> List[str]:
        return self._split_csv(self.ALLOWED_ORIGINS)

    @property
    def allowed_methods_list(self) -> List[str]:
        return self._split_csv(self.ALLOWED_METHODS)

    @property
    def allowed_headers_list(self) -> List[str]:
        return self._split_csv(self.ALLOWED_HEADERS)

    @property
    def default_working_weekdays(self) -> List[int]:
        return [int(d) for d in self._split_csv(self.DEFAULT_WORKING_WEEKDAYS)]

    @property
    def firebase_configured(self) -> bool:
        return bool(self.FIREBASE_PROJECT_ID and self.FIREBASE_CLIENT_EMAIL and self.FIREBASE_PRIVATE_KEY)

    @property
    def storage_backend(self) -> str:
        backend = self.STORAGE_BACKEND.strip().lower()
        if backend:
            return backend
        return "firestore" if self.firebase_configured else "memory"

@lru_cache()
def get_settings() -> Settings:
    return Settings()

settings: Settings = get_settings()

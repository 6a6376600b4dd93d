"""Application settings and validation."""

import os
from pathlib import Path

BASE = Path(__file__).resolve().parent.parent

OBJECT_STORE_BACKENDS = ("memory", "cloudinary")


class Settings:
    ENV: str
    DATABASE_URL: str
    OBJECT_STORE: str
    CLOUDINARY_CLOUD_NAME: str
    CLOUDINARY_API_KEY: str
    CLOUDINARY_API_SECRET: str
    MEDIA_ROOT_FOLDER: str
    MAX_PAGE_SIZE: int
    DEFAULT_PAGE_SIZE: int
    MAX_MEDIA_BYTES: int
    MAX_PROFILE_BYTES: int
    ALLOW_DEV_CORS: bool
    CLIENT_URL: str
    LOG_LEVEL: str

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE / 'app.db'}")
        self.OBJECT_STORE = os.getenv("OBJECT_STORE", "memory").lower()
        self.CLOUDINARY_CLOUD_NAME = os.getenv("CLOUDINARY_CLOUD_NAME", "")
        self.CLOUDINARY_API_KEY = os.getenv("CLOUDINARY_API_KEY", "")
        self.CLOUDINARY_API_SECRET = os.getenv("CLOUDINARY_API_SECRET", "")
        self.MEDIA_ROOT_FOLDER = os.getenv("MEDIA_ROOT_FOLDER", "cyberwhisper").strip("/")
        self.MAX_PAGE_SIZE = int(os.getenv("MAX_PAGE_SIZE", "100"))
        self.DEFAULT_PAGE_SIZE = int(os.getenv("DEFAULT_PAGE_SIZE", "20"))
        self.MAX_MEDIA_BYTES = int(os.getenv("MAX_MEDIA_BYTES", str(10 * 1024 * 1024)))  # blogs + gallery
        self.MAX_PROFILE_BYTES = int(os.getenv("MAX_PROFILE_BYTES", str(5 * 1024 * 1024)))
        self.ALLOW_DEV_CORS = os.getenv("ALLOW_DEV_CORS", "true").lower() == "true"
        self.CLIENT_URL = os.getenv("CLIENT_URL", "")
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self._validate()

    def _validate(self):
        if self.OBJECT_STORE not in OBJECT_STORE_BACKENDS:
            raise RuntimeError(f"OBJECT_STORE must be one of: {', '.join(OBJECT_STORE_BACKENDS)}")
        if self.OBJECT_STORE == "cloudinary":
            missing = [
                name for name in ("CLOUDINARY_CLOUD_NAME", "CLOUDINARY_API_KEY", "CLOUDINARY_API_SECRET")
                if not getattr(self, name)
            ]
            if missing:
                raise RuntimeError(f"cloudinary object store requires {', '.join(missing)}")
        if self.MAX_PAGE_SIZE < 1:
            raise RuntimeError("MAX_PAGE_SIZE must be >= 1")
        if not 1 <= self.DEFAULT_PAGE_SIZE <= self.MAX_PAGE_SIZE:
            raise RuntimeError("DEFAULT_PAGE_SIZE must be between 1 and MAX_PAGE_SIZE")

    def cors_origins(self) -> list:
        """Origins allowed when dev CORS is disabled."""
        origins = [
            "http://localhost:3000",
            "http://localhost:3001",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:3001",
        ]
        if self.CLIENT_URL:
            origins.append(self.CLIENT_URL)
        return origins


settings = Settings()

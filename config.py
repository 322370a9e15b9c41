"""
Runtime settings for the Musify API, read from the environment.
"""

import os
from pathlib import Path

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

PORT = int(os.getenv("PORT", 8000))
API_PREFIX = "/api"
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

STORAGE_ROOT = Path(os.getenv("STORAGE_ROOT", "storage"))
PUBLIC_DIR = STORAGE_ROOT / "public"
MUSIC_DIR = STORAGE_ROOT / "musics"

# URL prefixes handed back to clients for stored files; songs are served by
# the streaming route, which resolves them by file name
PUBLIC_URL_PREFIX = "/public"
MUSIC_URL_PREFIX = f"{API_PREFIX}/storage/stream"

LOG_DIR = Path(os.getenv("LOG_DIR", "logs"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

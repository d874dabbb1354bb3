from __future__ import annotations

import os
import shlex
import sys
from pathlib import Path

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).resolve().parents[1]

load_dotenv(ROOT_DIR / ".env")

# SQLite file; the launcher checks it exists before starting the servers
DB_PATH = Path(os.getenv("DENTAL_DB_PATH", str(ROOT_DIR / "database" / "dental_clinic.db")))

# In production: set it through the environment
JWT_SECRET = os.getenv("JWT_SECRET", "CHANGE_ME_DEV_SECRET")
JWT_ALG = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("JWT_EXPIRE_MINUTES", "480"))

API_HOST = os.getenv("API_HOST", "127.0.0.1")
API_PORT = int(os.getenv("API_PORT", "5000"))
CLIENT_PORT = int(os.getenv("CLIENT_PORT", "3000"))
API_BASE = os.getenv("API_BASE", f"http://localhost:{API_PORT}")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

_PYTHON = shlex.quote(sys.executable)
SEED_COMMAND = os.getenv("DENTAL_SEED_COMMAND", f"{_PYTHON} -m backend.seed")
DEV_COMMAND = os.getenv("DENTAL_DEV_COMMAND", f"{_PYTHON} -m backend.dev")

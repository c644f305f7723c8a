"""Configuration settings for the Permit Tracker backend."""
import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from project root
project_root = Path(__file__).resolve().parent.parent.parent
env_path = project_root / ".env"
load_dotenv(env_path)
load_dotenv()  # Fallback: try loading from current working directory

# Default to SQLite for development (app.db in project root)
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{project_root / 'app.db'}")

# Comma-separated list of origins allowed by the CORS middleware
ALLOWED_ORIGINS = [
    o.strip()
    for o in os.getenv("ALLOWED_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").split(",")
    if o.strip()
]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Audit trail read side
AUDIT_DEFAULT_LIMIT = int(os.getenv("AUDIT_DEFAULT_LIMIT", "50"))
AUDIT_MAX_LIMIT = int(os.getenv("AUDIT_MAX_LIMIT", "200"))
AUDIT_STATS_TOP_N = int(os.getenv("AUDIT_STATS_TOP_N", "5"))

# When true, audit write failures raise instead of being logged and dropped
AUDIT_STRICT = os.getenv("AUDIT_STRICT", "false").lower() == "true"

# impostor_game/config.py
import os
from pathlib import Path

# Repository
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./impostor_game.db")

# Session credentials
JWT_SECRET = os.getenv("JWT_SECRET", "dev-only-change-me-impostor-game-secret")
JWT_ALGORITHM = "HS256"
SESSION_TTL_HOURS = int(os.getenv("SESSION_TTL_HOURS", "24"))

# Room rules
MAX_PLAYERS = int(os.getenv("MAX_PLAYERS", "20"))
MIN_PLAYERS = int(os.getenv("MIN_PLAYERS", "3"))
MAX_NAME_LENGTH = 20
ROOM_CODE_LENGTH = 6

# Maintenance sweep thresholds
PRESENCE_STALE_SECONDS = int(os.getenv("PRESENCE_STALE_SECONDS", "90"))
EMPTY_ROOM_GRACE_SECONDS = int(os.getenv("EMPTY_ROOM_GRACE_SECONDS", "600"))
ENDED_ROOM_RETENTION_HOURS = int(os.getenv("ENDED_ROOM_RETENTION_HOURS", "24"))
MAINTENANCE_KEY = os.getenv("MAINTENANCE_KEY")

# Word rotation
WORD_PACKS_DIR = Path(os.getenv("WORD_PACKS_DIR", Path(__file__).parent / "packs"))
WORD_HISTORY_LOOKBACK = int(os.getenv("WORD_HISTORY_LOOKBACK", "20"))
RECENT_WORD_WINDOW = int(os.getenv("RECENT_WORD_WINDOW", "10"))

# HTTP
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

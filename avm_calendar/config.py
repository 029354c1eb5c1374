# config.py
import os
from dotenv import load_dotenv

load_dotenv()  # loads .env

def int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"Environment variable '{name}' must be an integer, got {raw!r}.") from None

# --- Calendar endpoints ---
CALENDAR_HTTP = os.getenv("CALENDAR_HTTP", "http://localhost:8000")
CALENDAR_WS   = os.getenv("CALENDAR_WS",   "ws://localhost:8000")

# --- Server ---
HOST = os.getenv("HOST", "127.0.0.1")
PORT = int_env("PORT", 8000)
SUBSCRIBER_QUEUE_SIZE = int_env("SUBSCRIBER_QUEUE_SIZE", 256)

# --- Logging ---
LOG_LEVEL  = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "console")

# --- Demo defaults from .env ---
ORGANIZER    = os.environ.get("ORGANIZER", "organizer@example.com")
PARTICIPANTS = os.environ.get("PARTICIPANTS", "alice@example.com,bob@example.com").split(",")
MEETING_DATE = int_env("MEETING_DATE", 1693440000)
AGENDA       = os.environ.get("AGENDA", "Design Sync")
MEET_LINK    = os.environ.get("MEET_LINK", "https://example.com/meeting")

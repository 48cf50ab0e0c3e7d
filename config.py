# config.py
import os
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name, default):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# Server
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "1998"))

# WhatsApp Web / browser
WHATSAPP_URL = os.getenv("WHATSAPP_URL", "https://web.whatsapp.com")
WA_SESSION_DIR = os.getenv("WA_SESSION_DIR", ".wa_session")
CHROME_PATH = os.getenv("CHROME_PATH") or None
CDP_URL = os.getenv("CDP_URL") or None
HEADLESS = _env_bool("HEADLESS", True)
WA_PROTOCOL_TIMEOUT = float(os.getenv("WA_PROTOCOL_TIMEOUT", "300"))
WA_POLL_INTERVAL = float(os.getenv("WA_POLL_INTERVAL", "1.0"))

# Group listing retries
GROUP_FETCH_ATTEMPTS = int(os.getenv("GROUP_FETCH_ATTEMPTS", "5"))
GROUP_RETRY_BACKOFF = float(os.getenv("GROUP_RETRY_BACKOFF", "3.0"))

# Kafka (optional mirror of session events)
KAFKA_BOOTSTRAP_SERVERS = os.getenv("KAFKA_BOOTSTRAP_SERVERS", "")
KAFKA_TOPIC_SESSION_EVENTS = os.getenv("KAFKA_TOPIC_SESSION_EVENTS", "whatsapp_session_events")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_DIR = os.getenv("LOG_DIR", "logs")

# Misc
DEBUG = _env_bool("DEBUG", False)

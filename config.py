import os

try:
    from dotenv import load_dotenv
    load_dotenv()
except ImportError:
    pass  # dotenv is optional for production, but useful locally

class Settings:
    # --- Slack ---
    SLACK_BOT_TOKEN = os.environ.get("SLACK_BOT_TOKEN")
    SLACK_APP_TOKEN = os.environ.get("SLACK_APP_TOKEN")
    SLACK_SIGNING_SECRET = os.environ.get("SLACK_SIGNING_SECRET")

    # --- OpenAI / LLM ---
    OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY")
    OPENAI_MODEL = os.environ.get("OPENAI_MODEL", "gpt-4o")
    OPENAI_MAX_TOKENS = int(os.environ.get("OPENAI_MAX_TOKENS", "1000"))
    OPENAI_TIMEOUT = int(os.environ.get("OPENAI_TIMEOUT", "30"))

    # --- Database ---
    DATABASE_URL = os.environ.get("DATABASE_URL")
    DATABASE_PUBLIC_URL = os.environ.get("DATABASE_PUBLIC_URL")
    DB_PING_INTERVAL = float(os.environ.get("DB_PING_INTERVAL", "60"))

    # --- Redis (Celery broker) ---
    REDIS_URL = os.environ.get("REDIS_URL")

    # --- Runtime ---
    PORT = int(os.environ.get("PORT", "3000"))
    ENVIRONMENT = os.environ.get("ENVIRONMENT", "development")
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    DEFAULT_TIMEZONE = os.environ.get("DEFAULT_TIMEZONE", "America/Los_Angeles")

    # --- Reminders ---
    # "timer": in-process asyncio timers backed by the reminders table
    # "slack": chat.scheduleMessage, Slack owns the schedule
    REMINDER_DELIVERY = os.environ.get("REMINDER_DELIVERY", "timer")

    # --- Commands ---
    CONVO_DEFAULT_LIMIT = int(os.environ.get("CONVO_DEFAULT_LIMIT", "50"))
    CONVO_MAX_LIMIT = int(os.environ.get("CONVO_MAX_LIMIT", "100"))
    POST_ORDER_DELAY = float(os.environ.get("POST_ORDER_DELAY", "0.1"))
    IN_FLIGHT_RELEASE_DELAY = float(os.environ.get("IN_FLIGHT_RELEASE_DELAY", "5"))

    # --- Socket mode / worker supervision ---
    KEEPALIVE_INTERVAL = float(os.environ.get("KEEPALIVE_INTERVAL", "30"))
    WORKER_HEARTBEAT_TIMEOUT = float(os.environ.get("WORKER_HEARTBEAT_TIMEOUT", "120"))
    WORKER_RESTART_DELAY = float(os.environ.get("WORKER_RESTART_DELAY", "5"))

    # --- Keepalive script ---
    CONTROLLER_URL = os.environ.get("CONTROLLER_URL", "http://localhost:3000")
    KEEPALIVE_PING_INTERVAL = float(os.environ.get("KEEPALIVE_PING_INTERVAL", "60"))

    # --- Add more as needed ---

settings = Settings()

import os
import logging
from dotenv import load_dotenv
import pytz

load_dotenv()

logger = logging.getLogger(__name__)


# Bad values fall back to the default with a warning instead of failing the import
def env_float(name, default):
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("%s=%r is not a number, using %s", name, raw, default)
        return default
    if value <= 0:
        logger.warning("%s=%r must be positive, using %s", name, raw, default)
        return default
    return value


def env_log_level(name, default="INFO"):
    level = (os.getenv(name) or default).strip().upper()
    # getLevelName maps known names to their number and anything else to a string
    if not isinstance(logging.getLevelName(level), int):
        logger.warning("%s=%r is not a logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL), using %s",
                       name, level, default)
        return default
    return level


def env_timezone(name, default="US/Eastern"):
    zone = (os.getenv(name) or default).strip()
    if zone not in pytz.all_timezones_set:
        logger.warning("%s=%r is not a known timezone, using %s", name, zone, default)
        return default
    return zone


SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY")
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")

# "functions" -> Supabase edge functions, "gemini" -> call Gemini directly
AI_BACKEND = os.getenv("AI_BACKEND", "functions").lower()
ANALYZE_FUNCTION = os.getenv("ANALYZE_FUNCTION", "analyze-plant")
CONSULTANT_FUNCTION = os.getenv("CONSULTANT_FUNCTION", "ai-plant-consultant")

PLANTS_TABLE = os.getenv("PLANTS_TABLE", "medicinal_plants")
FAVORITES_TABLE = os.getenv("FAVORITES_TABLE", "user_favorites")

CHAT_TIMEZONE = env_timezone("CHAT_TIMEZONE")
REQUEST_TIMEOUT = env_float("REQUEST_TIMEOUT", 30.0)
LOG_LEVEL = env_log_level("LOG_LEVEL")

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)

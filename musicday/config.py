import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

# Airtable Configuration
AIRTABLE_API_KEY = os.getenv("AIRTABLE_API_KEY")
AIRTABLE_BASE_ID = os.getenv("AIRTABLE_BASE_ID")
AIRTABLE_API_URL = os.getenv("AIRTABLE_API_URL", "https://api.airtable.com/v0")
# Seconds to wait after a 429 before retrying the same request
AIRTABLE_RATE_LIMIT_WAIT = float(os.getenv("AIRTABLE_RATE_LIMIT_WAIT", "30"))
AIRTABLE_MAX_RETRIES = int(os.getenv("AIRTABLE_MAX_RETRIES", "3"))

# Cloudflare R2 Configuration
R2_ACCOUNT_ID = os.getenv("R2_ACCOUNT_ID")
R2_ACCESS_KEY_ID = os.getenv("R2_ACCESS_KEY_ID")
R2_SECRET_ACCESS_KEY = os.getenv("R2_SECRET_ACCESS_KEY")
R2_BUCKET_NAME = os.getenv("R2_BUCKET_NAME", "musicday")

# Signed URL lifetimes (seconds)
AUDIO_UPLOAD_URL_TTL = int(os.getenv("AUDIO_UPLOAD_URL_TTL", "3600"))
AUDIO_PLAYBACK_URL_TTL = int(os.getenv("AUDIO_PLAYBACK_URL_TTL", "3600"))
AUDIO_DOWNLOAD_URL_TTL = int(os.getenv("AUDIO_DOWNLOAD_URL_TTL", "86400"))

# Security - CRITICAL: No default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

SESSION_TTL_HOURS = int(os.getenv("SESSION_TTL_HOURS", "168"))

# Public app URL used in email links
APP_URL = os.getenv("APP_URL", "http://localhost:3000")

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "Minimusiker <info@minimusiker.de>")
# Minimum pause between two automated sends (Resend allows ~2 req/s)
EMAIL_RATE_LIMIT_DELAY_MS = int(os.getenv("EMAIL_RATE_LIMIT_DELAY_MS", "500"))

# Resolver cache (positive hits only)
RESOLVER_CACHE_TTL = int(os.getenv("RESOLVER_CACHE_TTL", "300"))

# All trigger-hour and release scheduling is done in school-local time
LOCAL_TIMEZONE = os.getenv("LOCAL_TIMEZONE", "Europe/Berlin")

"""
Runtime configuration for the reel worker.

Everything is read from the environment once at import time. Only the port,
the allowed cross-origin caller, and provider credentials are configurable;
bucket names and upload limits are fixed.
"""

import os

from dotenv import load_dotenv

load_dotenv()


class Settings:
    PROJECT_NAME: str = "reelworker"

    PORT: int = int(os.getenv("PORT", "3000"))
    FRONTEND_URL: str = os.getenv("FRONTEND_URL", "*")

    # ── Storage ──────────────────────────────────────────────────────────────
    SUPABASE_URL: str = os.getenv("SUPABASE_URL", "")
    SUPABASE_SERVICE_KEY: str = (
        os.getenv("SUPABASE_SERVICE_KEY") or os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")
    )

    # ── AI providers ─────────────────────────────────────────────────────────
    GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY") or os.getenv("NANO_BANANA_KEY", "")
    KIE_API_KEY: str = os.getenv("KIE_API_KEY", "")


settings = Settings()

# ── Fixed limits ─────────────────────────────────────────────────────────────

MAX_UPLOAD_BYTES = 10 * 1024 * 1024
UPLOAD_CACHE_CONTROL = "3600"

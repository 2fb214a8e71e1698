"""
Unsent Pro API — Configuration
All settings are read from environment variables with sensible defaults.
"""
import os
from pathlib import Path

# ── Auth ──────────────────────────────────────────────────────────────────────
API_KEY               = os.getenv("API_KEY", "")  # Empty = every request rejected

# ── Database ──────────────────────────────────────────────────────────────────
DATABASE_PATH         = os.getenv("DATABASE_PATH", "subscriptions.db")

# ── Purchase validation ───────────────────────────────────────────────────────
# apple | adapty | revenuecat | none. VALIDATATION_METHOD is the legacy spelling.
VALIDATION_METHOD     = (
    os.getenv("VALIDATION_METHOD") or os.getenv("VALIDATATION_METHOD") or "none"
).strip().lower()

APPLE_KEY_ID          = os.getenv("APPLE_KEY_ID", "")
APPLE_ISSUER_ID       = os.getenv("APPLE_ISSUER_ID", "")
APPLE_BUNDLE_ID       = os.getenv("APPLE_BUNDLE_ID", "")
APPLE_PRIVATE_KEY     = os.getenv("APPLE_PRIVATE_KEY", "").replace("\\n", "\n")  # PKCS#8 PEM

ADAPTY_SECRET_API_KEY     = os.getenv("ADAPTY_SECRET_API_KEY", "")
REVENUECAT_SECRET_API_KEY = os.getenv("REVENUECAT_SECRET_API_KEY", "")
REVENUECAT_PROJECT_ID     = os.getenv("REVENUECAT_PROJECT_ID", "")

# ── Message generation ────────────────────────────────────────────────────────
OPENAI_API_KEY        = os.getenv("OPENAI_API_KEY", "")
OPENAI_MODEL          = os.getenv("OPENAI_MODEL", "gpt-3.5-turbo")
OPENAI_MAX_TOKENS     = int(os.getenv("OPENAI_MAX_TOKENS", "600"))
OPENAI_TEMPERATURE    = float(os.getenv("OPENAI_TEMPERATURE", "0.8"))
PROMPTS_DIR           = Path(os.getenv("PROMPTS_DIR", str(Path(__file__).resolve().parent / "prompts")))

# ── Logging ───────────────────────────────────────────────────────────────────
LOG_LEVEL             = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_PRETTY            = os.getenv("LOG_PRETTY", "false").lower() == "true"  # indent JSON in dev

# ── Rate limiting ─────────────────────────────────────────────────────────────
RATE_LIMIT_ENABLED    = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"

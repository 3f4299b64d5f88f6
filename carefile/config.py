import os

from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes", "on")


OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY", "")

# LLM configuration
LLM_PROVIDER = os.getenv("LLM_PROVIDER", "auto")
LLM_DEFAULT_TIER = os.getenv("LLM_DEFAULT_TIER", "standard")
LLM_MODEL_FAST = os.getenv("LLM_MODEL_FAST", "")
LLM_MODEL_STANDARD = os.getenv("LLM_MODEL_STANDARD", "")
LLM_MODEL_HIGH = os.getenv("LLM_MODEL_HIGH", "")

# Demo/Debug mode (explicit)
DUMMY_MODE = _flag("DUMMY_MODE")

# Analysis
ANALYSIS_LANGUAGE = os.getenv("ANALYSIS_LANGUAGE", "French")
ANALYSIS_MAX_TOKENS = int(os.getenv("ANALYSIS_MAX_TOKENS", "2000"))
INVOICE_MAX_TOKENS = int(os.getenv("INVOICE_MAX_TOKENS", "3000"))
ANALYSIS_WORKERS = int(os.getenv("ANALYSIS_WORKERS", "1"))
# Finished background jobs kept for status lookups; older ones are forgotten
ANALYSIS_JOB_HISTORY = int(os.getenv("ANALYSIS_JOB_HISTORY", "500"))

DATABASE_PATH = os.getenv("DATABASE_PATH", "carefile.db")

DATABASE_URL = os.getenv("DATABASE_URL", "")
DATABASE_MAX_CONNECTIONS = int(os.getenv("DATABASE_MAX_CONNECTIONS", "5"))

# Bulk-clear endpoint; left empty the endpoint refuses every request
ADMIN_SECRET_KEY = os.getenv("ADMIN_SECRET_KEY", "")

# Google Drive (fallback retrieval of scanned documents)
GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID", "")
GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET", "")
GOOGLE_REFRESH_TOKEN = os.getenv("GOOGLE_REFRESH_TOKEN", "")

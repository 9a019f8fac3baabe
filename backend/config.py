import os
from dotenv import load_dotenv

load_dotenv()

# Resolved once so the app and alembic open the same file from any cwd
DATABASE_PATH = os.path.abspath(
    os.getenv("DATABASE_PATH", os.path.join(os.path.dirname(os.path.abspath(__file__)), "todos.db"))
)

# Completion provider
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")
LLM_MODEL = os.getenv("LLM_MODEL", "claude-sonnet-4-5")
LLM_PARSE_MAX_TOKENS = int(os.getenv("LLM_PARSE_MAX_TOKENS", "512"))
LLM_SUMMARY_MAX_TOKENS = int(os.getenv("LLM_SUMMARY_MAX_TOKENS", "2048"))
LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "30"))

# Sessions are issued by the external auth provider; we only verify them
DEFAULT_JWT_SECRET = "change-me-in-production-local-development-only"
JWT_SECRET = os.getenv("JWT_SECRET", DEFAULT_JWT_SECRET)
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

"""Application configuration loaded from environment variables."""

import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent

# --- Site ---
SITE_OWNER: str = os.getenv("SITE_OWNER", "Ahmad")
SITE_TAGLINE: str = os.getenv(
    "SITE_TAGLINE", "AI, quantum computing and aerospace engineering projects"
)

# --- Security ---
SECRET_KEY: str = os.getenv("SECRET_KEY", "change-me-in-production")
ALGORITHM: str = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "720"))
ADMIN_USERNAME: str = os.getenv("ADMIN_USERNAME", "admin")
ADMIN_PASSWORD: str = os.getenv("ADMIN_PASSWORD", "admin123")

# --- Database ---
DATABASE_URL: str = os.getenv("DATABASE_URL", f"sqlite:///{BASE_DIR / 'portfolio.db'}")

# --- Chat provider (OpenRouter-compatible) ---
OPENROUTER_BASE_URL: str = os.getenv("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1")
OPENROUTER_API_KEY: str = os.getenv("OPENROUTER_API_KEY", "")
DEFAULT_LLM_MODEL: str = os.getenv("DEFAULT_LLM_MODEL", "openai/gpt-4o")
LLM_TEMPERATURE: float = float(os.getenv("LLM_TEMPERATURE", "0.5"))
LLM_MAX_TOKENS: int = int(os.getenv("LLM_MAX_TOKENS", "500"))
CHAT_HISTORY_LIMIT: int = int(os.getenv("CHAT_HISTORY_LIMIT", "12"))

# --- Revalidation ---
REVALIDATION_SECRET: str = os.getenv("REVALIDATION_SECRET", "")
REVALIDATION_WEBHOOK_URL: str = os.getenv("REVALIDATION_WEBHOOK_URL", "")
PAGE_CACHE_TTL: int = int(os.getenv("PAGE_CACHE_TTL", "3600"))
PAGE_CACHE_SIZE: int = int(os.getenv("PAGE_CACHE_SIZE", "256"))

# --- Rate Limiting ---
CHAT_RATE_LIMIT: str = os.getenv("CHAT_RATE_LIMIT", "20/minute")

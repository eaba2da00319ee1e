import os
from dotenv import load_dotenv

# Carrega o .env da raiz do projeto
load_dotenv()


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./vendafacil.db")
ENV = os.getenv("ENV", "dev")
ENV_NORMALIZED = ENV.lower()
IS_DEV = ENV_NORMALIZED in {"dev", "development", "local"}
IS_TEST = ENV_NORMALIZED == "test"
IS_PROD = ENV_NORMALIZED in {"prod", "production"}

# CORS
_cors_env = os.getenv("CORS_ORIGINS", "")
CORS_ORIGINS = [origin.strip() for origin in _cors_env.split(",") if origin.strip() and origin.strip() != "*"]

if not CORS_ORIGINS and IS_DEV:
    CORS_ORIGINS = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

# Sessão da equipe (cookie assinado)
STAFF_SESSION_SECRET = os.getenv("STAFF_SESSION_SECRET", "")
STAFF_SESSION_MAX_AGE_SECONDS = int(os.getenv("STAFF_SESSION_MAX_AGE_SECONDS", "43200"))
STAFF_SESSION_COOKIE_SECURE = _env_flag("STAFF_SESSION_COOKIE_SECURE", "0" if (IS_DEV or IS_TEST) else "1")
STAFF_SESSION_COOKIE_SAMESITE = os.getenv("STAFF_SESSION_COOKIE_SAMESITE", "lax").strip().lower()
if STAFF_SESSION_COOKIE_SAMESITE not in {"lax", "strict", "none"}:
    STAFF_SESSION_COOKIE_SAMESITE = "lax"

# Produção (KDS/BDS)
PRODUCTION_DEFAULT_PREP_MINUTES = int(os.getenv("PRODUCTION_DEFAULT_PREP_MINUTES", "15"))

# Tempo real
REALTIME_QUEUE_SIZE = int(os.getenv("REALTIME_QUEUE_SIZE", "100"))

# Acesso / planos
TRIAL_DAYS = int(os.getenv("TRIAL_DAYS", "7"))

# Bootstrap de loja para DEV
DEV_OWNER_EMAIL = os.getenv("DEV_OWNER_EMAIL", "dono@vendafacil.com.br").strip()
DEV_OWNER_PASSWORD = os.getenv("DEV_OWNER_PASSWORD", "").strip()
DEV_STORE_NAME = os.getenv("DEV_STORE_NAME", "Loja Demo").strip() or "Loja Demo"
DEV_BOOTSTRAP_ALLOW = _env_flag("DEV_BOOTSTRAP_ALLOW", "0")

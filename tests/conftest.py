import os

# Precisa valer antes de qualquer import de vendafacil.core.config
os.environ["ENV"] = "test"
os.environ["STAFF_SESSION_SECRET"] = "test-staff-session-secret"
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUTO_APPLY_MIGRATIONS", "0")

# config.py - Database, shop hours and background job settings
import os
import logging
from datetime import time
from sqlalchemy import create_engine
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import sessionmaker

logger = logging.getLogger(__name__)

# Check if we're in production (Vercel sets this automatically)
IS_PRODUCTION = os.getenv("VERCEL") is not None or os.getenv("VERCEL_ENV") is not None

if IS_PRODUCTION:
    DATABASE_URL = os.getenv("DATABASE_URL")
    if not DATABASE_URL:
        raise ValueError("DATABASE_URL environment variable is required in production")

    SECRET_KEY = os.getenv("SECRET_KEY")
    if not SECRET_KEY:
        raise ValueError("SECRET_KEY environment variable is required in production")
else:
    # Local: SQLite file unless a database is given explicitly
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./dashq.db")
    SECRET_KEY = os.getenv("SECRET_KEY", "double_dog123")

# Handle different PostgreSQL URL formats
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)


def _env_time(name: str, default: str) -> time:
    return time.fromisoformat(os.getenv(name, default))


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "t")


# Shop settings. All business-hour math is done in this timezone,
# never in the host machine's local time.
SHOP_TIMEZONE = os.getenv("SHOP_TIMEZONE", "Asia/Manila")
SHOP_OPENING_TIME = _env_time("SHOP_OPENING_TIME", "10:30")
SHOP_CLOSING_TIME = _env_time("SHOP_CLOSING_TIME", "19:00")
SLOT_STEP_MINUTES = int(os.getenv("SLOT_STEP_MINUTES", 30))
DEFAULT_SERVICE_DURATION = int(os.getenv("DEFAULT_SERVICE_DURATION", 30))

# Background jobs
SCHEDULER_ENABLED = _env_flag("SCHEDULER_ENABLED", "true")
CONVERTER_INTERVAL_SECONDS = int(os.getenv("CONVERTER_INTERVAL_SECONDS", 300))
APPOINTMENT_LEAD_MINUTES = int(os.getenv("APPOINTMENT_LEAD_MINUTES", 30))
NOTIFICATION_SWEEP_SECONDS = int(os.getenv("NOTIFICATION_SWEEP_SECONDS", 60))
CLOSING_CLEANUP_ENABLED = _env_flag("CLOSING_CLEANUP_ENABLED", "true")

# Notification sink
N8N_WEBHOOK_URL = os.getenv("N8N_WEBHOOK_URL")
WEBHOOK_TIMEOUT_SECONDS = float(os.getenv("WEBHOOK_TIMEOUT_SECONDS", 10))
FIREBASE_SERVICE_ACCOUNT = os.getenv("FIREBASE_SERVICE_ACCOUNT")

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(
    DATABASE_URL,
    pool_pre_ping=True,
    pool_recycle=300,  # Recycle connections every 5 minutes
    connect_args=connect_args,
    echo=False  # Set to True for SQL debugging
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

# JWT settings - session-based auth, tokens live until logout
ALGORITHM = "HS256"

SESSION_CLEANUP_HOURS = 24 * 30  # Clean up inactive sessions after 30 days
MAX_SESSIONS_PER_USER = 5  # Maximum concurrent sessions per user

logger.info(f"Running in {'PRODUCTION' if IS_PRODUCTION else 'LOCAL development'} mode")


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory():
    """Session factory for work that outlives the request (background tasks)"""
    return SessionLocal

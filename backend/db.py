from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from backend.config import DATABASE_URL
from backend.models import Base  # noqa: F401 (re-exported for alembic)

# -------------------------------------------------
# SQLAlchemy engine & session
# -------------------------------------------------
connect_args = {}

if DATABASE_URL.startswith("sqlite"):
    # Scheduler runs use the session from a worker thread
    connect_args["check_same_thread"] = False

engine = create_engine(
    DATABASE_URL,
    pool_pre_ping=True,
    connect_args=connect_args,
)

SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
)

# -------------------------------------------------
# Dependency for FastAPI
# -------------------------------------------------
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

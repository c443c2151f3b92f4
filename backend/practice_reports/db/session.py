from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from practice_reports.core.config import get_settings


settings = get_settings()

# Reads fan out across worker threads, so the pool has to cover one
# overview pipeline (six reads) plus a background pre-warm.
engine = create_engine(
    settings.database_url,
    future=True,
    pool_pre_ping=True,
    pool_size=8,
    max_overflow=8,
    pool_recycle=300,
)

SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
)

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from config import DATABASE_URL, DB_STATEMENT_TIMEOUT_MS


def _connect_args(url: str) -> dict:
    if url.startswith("postgresql"):
        # every statement on the pool is bounded
        return {"options": f"-c statement_timeout={DB_STATEMENT_TIMEOUT_MS}"}
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_engine(
    DATABASE_URL,
    connect_args=_connect_args(DATABASE_URL),
    pool_pre_ping=True,
)
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

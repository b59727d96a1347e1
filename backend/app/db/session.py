from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import get_settings

settings = get_settings()


def _engine_options(database_url: str) -> dict:
    if database_url.startswith("sqlite"):
        options: dict = {"connect_args": {"check_same_thread": False}}
        if database_url.endswith("://") or ":memory:" in database_url:
            # One shared connection, otherwise every thread sees its own empty database.
            options["poolclass"] = StaticPool
        return options
    return {
        "pool_pre_ping": True,
        "pool_timeout": settings.database_pool_timeout_seconds,
    }


engine = create_engine(
    settings.database_url,
    echo=settings.database_echo,
    **_engine_options(settings.database_url),
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

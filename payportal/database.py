from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from payportal.config import Settings

Base = declarative_base()


def build_engine(settings: Settings):
    url = settings.database_url
    if url.startswith("sqlite"):
        # busy timeout bounds how long a writer waits on a locked database
        connect_args = {"check_same_thread": False, "timeout": settings.store_timeout}
        return create_engine(url, connect_args=connect_args)

    connect_args = {}
    if url.startswith("postgresql"):
        connect_args["connect_timeout"] = max(1, int(settings.store_timeout))
    return create_engine(
        url,
        connect_args=connect_args,
        pool_timeout=settings.store_timeout,
        pool_pre_ping=True,
    )


def build_session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)

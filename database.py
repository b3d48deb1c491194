import logging

from sqlmodel import SQLModel, create_engine, Session

from config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

if not settings.database_url:
    raise ValueError("DATABASE_URL environment variable is not set.")

engine = create_engine(settings.database_url, echo=settings.database_echo)

def init_db():
    """
    Creates the tables defined in models.py.
    """
    # Registers the tables on SQLModel.metadata
    import models  # noqa: F401

    SQLModel.metadata.create_all(engine)
    logger.info("Database tables created successfully.")

def get_session():
    """
    Dependency to get a DB session per request.
    """
    with Session(engine) as session:
        yield session

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from listseerr.core.config import settings

connect_args = {}
if settings.DATABASE_URL.startswith("sqlite"):
    # Scheduler callbacks and request handlers share the engine across threads
    connect_args = {"check_same_thread": False}

engine = create_engine(settings.DATABASE_URL, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

import logging
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import scoped_session, sessionmaker, declarative_base
from libris.configs import DB_URI, DEBUG

logger = logging.getLogger(__name__)
# Only use client_encoding for PostgreSQL, not SQLite
engine_kwargs = {'echo': DEBUG}
if DB_URI.startswith('sqlite'):
    # a single shared connection keeps an in-memory database alive across threads
    engine_kwargs['connect_args'] = {'check_same_thread': False}
    engine_kwargs['poolclass'] = StaticPool
else:
    engine_kwargs['client_encoding'] = 'utf8'
engine = create_engine(DB_URI, **engine_kwargs)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
session = scoped_session(SessionLocal)

Base = declarative_base()

def get_db():
    """FastAPI dependency yielding a session for one request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def init(bind=engine, db=None):
    """Creates tables and seeds the department reference set."""
    from libris.core.models import Department
    try:
        Base.metadata.create_all(bind=bind)
        db = db or session
        Department.seed(db)
        return db
    except Exception as e:
        logger.warning(f"[WARNING] Database initialization failed: {e}")

"""
Database engine + session factory.

SQLite for local dev and the seed script, Postgres in production. The schema
is owned by Alembic; nothing here creates tables.
"""
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from leadflow.config import DATABASE_URL


class Base(DeclarativeBase):
    pass


def normalize_url(raw_url):
    """Hosted Postgres hands out postgres:// URLs; SQLAlchemy 2.x wants postgresql://."""
    return raw_url.replace('postgres://', 'postgresql://', 1)


url = normalize_url(DATABASE_URL)

if url.startswith('sqlite'):
    # Flask threads and the scheduler loop share one file
    engine = create_engine(url, connect_args={'check_same_thread': False})

    @event.listens_for(engine, 'connect')
    def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute('PRAGMA foreign_keys=ON')
        cursor.close()
else:
    engine = create_engine(url, pool_pre_ping=True, pool_size=5, max_overflow=10)

SessionLocal = sessionmaker(bind=engine)


def get_session():
    """New session; callers close it in a finally block."""
    return SessionLocal()

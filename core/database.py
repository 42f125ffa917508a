# Library declaration and packages to be installed
import os
from dotenv import load_dotenv
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base
load_dotenv()

# Configure according to the deployment method's database url :
DATABASE_URL = os.getenv("DATABASE_URL")

if not DATABASE_URL:

    raise ValueError("DATABASE_URL not found in .env file")


def enable_sqlite_immediate_transactions(target: Engine) -> None:
    """
    Make every SQLite transaction start with BEGIN IMMEDIATE.

    Concurrent scan requests then queue on the write lock (up to the
    connection timeout) instead of failing with "database is locked"
    when a reader tries to upgrade.
    """
    @event.listens_for(target, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(target, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


# Creating the thread to connect to the database url and local engine
engine = create_engine(
    DATABASE_URL,

    connect_args={"check_same_thread": False, "timeout": 30} if DATABASE_URL.startswith("sqlite") else {},

    pool_pre_ping=True

)

if engine.url.drivername.startswith("sqlite"):
    enable_sqlite_immediate_transactions(engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def get_db():
    """
    Dependency to provide a DB session for FastAPI routes.
    Ensures sessions are closed automatically to prevent memory leaks.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

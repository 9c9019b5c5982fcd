"""
Database connection handling for API Workbench.

Uses SQLAlchemy to open the single database session the user works with.
The session is owned by the controller state and handed to the SQL executor
per call; there is no pooling beyond what one connection needs.
"""

import logging
import threading

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine, URL
from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from .exceptions import DatabaseError
from .schemas.database import ConnectionConfig


logger = logging.getLogger(__name__)

# PostgreSQL through psycopg2
DRIVER_NAME = "postgresql+psycopg2"


def build_database_url(config: ConnectionConfig) -> URL:
    """Build the SQLAlchemy URL for a connection config."""
    return URL.create(
        DRIVER_NAME,
        username=config.user,
        password=config.password or None,
        host=config.host,
        port=config.port,
        database=config.database,
        query={"sslmode": config.ssl_mode},
    )


class SqlSession:
    """
    An open database connection.

    A SQLAlchemy connection must not be used by two threads at once; every
    caller that touches `connection` from a worker thread holds `lock`.

    Attributes:
        engine: The SQLAlchemy engine the connection came from
        description: Connection description shown to the user and stored in
            query history (never includes the password)
    """

    def __init__(self, engine: Engine, description: str):
        self.engine = engine
        self.description = description
        self.lock = threading.Lock()
        self._connection: Connection | None = engine.connect()

    @property
    def connection(self) -> Connection:
        if self._connection is None or self._connection.closed:
            raise DatabaseError("Not connected to database", connection_lost=True)
        return self._connection

    @property
    def closed(self) -> bool:
        return self._connection is None or self._connection.closed or self._connection.invalidated

    def ping(self) -> None:
        self.connection.execute(text("SELECT 1"))
        self.connection.rollback()

    def close(self) -> None:
        """Close the connection and release the engine, after any running statement."""
        with self.lock:
            if self._connection is not None:
                try:
                    self._connection.close()
                except SQLAlchemyError as e:
                    logger.warning("Error closing connection to %s: %s", self.description, e)
                self._connection = None
            self.engine.dispose()

    def __repr__(self) -> str:
        return f"SqlSession({self.description!r})"


def is_connection_lost(exc: Exception, session: SqlSession | None = None) -> bool:
    """Tell a dropped connection apart from an ordinary query failure."""
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True
    if isinstance(exc, DatabaseError) and exc.connection_lost:
        return True
    return session is not None and session.closed


def connect(config: ConnectionConfig, connect_timeout: int = 10) -> SqlSession:
    """
    Open a database session and verify it with a ping.

    Raises:
        DatabaseError: if the driver is missing or the server cannot be reached
    """
    try:
        engine = create_engine(
            build_database_url(config),
            connect_args={"connect_timeout": connect_timeout},
            pool_size=1,
            max_overflow=0,
        )
    except (ImportError, SQLAlchemyError) as e:
        raise DatabaseError("Failed to open connection", e)

    try:
        session = SqlSession(engine, config.describe())
        session.ping()
    except SQLAlchemyError as e:
        engine.dispose()
        logger.error("Connection to %s failed: %s", config.describe(), e)
        raise DatabaseError("Failed to connect to database", e)

    logger.info("Connected to %s", config.describe())
    return session

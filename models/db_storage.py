from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.orm import scoped_session, sessionmaker
from sqlalchemy.pool import StaticPool

from models.base_model import Base


class DBStorage:
    __engine = None
    __session = None

    def __init__(self, database_url: str, echo: bool = False):
        """Initialize engine for the given database URL"""
        engine_kwargs = {"echo": echo}
        if database_url.startswith("sqlite"):
            # Flask may serve requests from other threads than the one that opened the connection
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if database_url in ("sqlite://", "sqlite:///:memory:"):
                # A single shared connection, otherwise every checkout sees an empty database
                engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs["pool_pre_ping"] = True
        self.__engine = create_engine(database_url, **engine_kwargs)

        if self.__engine.url.get_backend_name() == "sqlite":
            @event.listens_for(self.__engine, "connect")
            def _set_sqlite_pragma(dbapi_connection, connection_record):
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()

    def reload(self):
        """Create tables and start session"""
        Base.metadata.create_all(self.__engine)
        session_factory = sessionmaker(bind=self.__engine, expire_on_commit=False)
        self.__session = scoped_session(session_factory)

    def new(self, obj):
        """Add object to session"""
        self.__session.add(obj)

    def flush(self):
        """Push pending changes to the database without committing"""
        self.__session.flush()

    def refresh(self, obj):
        """Reload obj's column values from the database"""
        self.__session.refresh(obj)

    def rollback(self):
        self.__session.rollback()

    @contextmanager
    def transaction(self):
        """
        Unit of work: commit when the block exits normally,
        roll back and re-raise on any exception.
        """
        try:
            yield self.__session
            self.__session.commit()
        except Exception:
            self.__session.rollback()
            raise

    def close(self):
        """Remove session (for API teardown)"""
        self.__session.remove()

    def dispose(self):
        """Release every pooled connection"""
        if self.__session is not None:
            self.__session.remove()
        self.__engine.dispose()

    # expose the SQLAlchemy session for advanced querying (joins, filters, etc.)
    def get_session(self):
        return self.__session

from contextlib import contextmanager
import os
from pathlib import Path
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ..models.base import Base


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///data/app.db")


def build_engine(database_url: str) -> Engine:
    # sqlite cannot create the parent directory itself
    if database_url.startswith("sqlite:///") and ":memory:" not in database_url:
        db_path = database_url.split("sqlite:///")[-1]
        try:
            parent = Path(db_path).expanduser().resolve().parent
            parent.mkdir(parents=True, exist_ok=True)
        except OSError:
            pass
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        # every session must share the one in-memory connection
        return create_engine(
            database_url,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(database_url, future=True)


def make_session_factory(engine: Engine, *, create_tables: bool = True):
    """Return a ``get_session``-style context manager factory bound to ``engine``."""
    if create_tables:
        import_models()
        Base.metadata.create_all(engine)
    session_local = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, future=True)

    @contextmanager
    def get_session():
        session = session_local()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    return get_session


def import_models() -> None:
    # registers every table on Base.metadata
    from ..models import category, order, payment_method, product  # noqa: F401


_default_factory = None


@contextmanager
def get_session():
    global _default_factory
    if _default_factory is None:
        _default_factory = make_session_factory(build_engine(DATABASE_URL))
    with _default_factory() as session:
        yield session

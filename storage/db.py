from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from .models import Base


def make_engine(url: str, echo: bool = False) -> Engine:
    kwargs = {"echo": echo, "future": True}
    if url == "sqlite://" or (url.startswith("sqlite") and ":memory:" in url):
        # one shared connection, otherwise each session sees an empty database
        kwargs.update(connect_args={"check_same_thread": False}, poolclass=StaticPool)
    elif url.startswith("sqlite"):
        # Streamlit reruns scripts on worker threads
        kwargs.update(connect_args={"check_same_thread": False})
    return create_engine(url, **kwargs)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, future=True, expire_on_commit=False)


def init_db(engine: Engine):
    Base.metadata.create_all(bind=engine)

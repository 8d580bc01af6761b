"""Engine and session setup for the fund store."""

from __future__ import annotations

import os
from sqlalchemy import create_engine
from sqlalchemy.orm import scoped_session, sessionmaker

from .models import Base


def init_db(database_uri: str, create_tables: bool = True):
    """Return ``(engine, Session)`` for ``database_uri``.

    ``Session`` is a ``scoped_session`` whose objects stay usable after
    commit, since the API serialises records once the transaction is done.
    A missing folder for a file backed SQLite database is created first.
    """
    if database_uri.startswith("sqlite:///"):
        folder = os.path.dirname(database_uri[len("sqlite:///"):])
        if folder:
            os.makedirs(folder, exist_ok=True)

    engine = create_engine(database_uri)
    if create_tables:
        Base.metadata.create_all(bind=engine)
    Session = scoped_session(sessionmaker(bind=engine, expire_on_commit=False))
    return engine, Session

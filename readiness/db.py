from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path

from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session, sessionmaker

from readiness.models import Base, Question

log = logging.getLogger(__name__)

_lock = threading.Lock()
_engine = None
_SessionLocal = None

DATA_DIR = Path(__file__).parent / "data"


def default_db_path() -> Path:
    """``READINESS_DB_PATH`` if set, else ``readiness/data/readiness.db``."""
    env = os.environ.get("READINESS_DB_PATH")
    return Path(env) if env else DATA_DIR / "readiness.db"


def init_db(db_path: str | Path | None = None) -> None:
    global _engine, _SessionLocal
    with _lock:
        if _engine is not None:
            _engine.dispose()
        db_path = Path(db_path) if db_path is not None else default_db_path()
        db_path.parent.mkdir(parents=True, exist_ok=True)
        url = f"sqlite:///{db_path}"
        _engine = create_engine(url, connect_args={"check_same_thread": False})
        Base.metadata.create_all(_engine)
        _SessionLocal = sessionmaker(bind=_engine, autoflush=False, expire_on_commit=False)
        log.info("Database ready at %s", db_path)
    seed_questions(_SessionLocal)


def get_session() -> Session:
    with _lock:
        if _SessionLocal is None:
            raise RuntimeError("init_db() has not been called")
        factory = _SessionLocal
    return factory()  # type: ignore[misc]


def seed_questions(factory: sessionmaker) -> int:
    """Insert the default question bank if the questions table is empty.

    Returns the number of questions inserted.
    """
    from readiness.question_bank import default_question_rows

    with factory() as session:
        count = session.execute(select(func.count(Question.id))).scalar() or 0
        if count > 0:
            return 0
        rows = default_question_rows()
        for row in rows:
            options = row.pop("options")
            session.add(Question(**row, options_json=json.dumps(options)))
        session.commit()
    log.info("Seeded %d default questions", len(rows))
    return len(rows)

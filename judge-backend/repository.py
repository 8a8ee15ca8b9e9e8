# repository.py

from typing import List, Optional

from sqlalchemy.orm import sessionmaker

from config import HISTORY_LIMIT
from database import SessionLocal
from models import Judgment
from schemas import JudgmentRecord


class JudgmentRepository:
    """Durable storage for judgments. Each call uses its own session."""

    def __init__(self, session_factory: sessionmaker = SessionLocal) -> None:
        self._session_factory = session_factory

    def save(self, record: JudgmentRecord) -> None:
        db = self._session_factory()
        try:
            db.add(Judgment(**record.model_dump()))
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def recent(self, limit: int = HISTORY_LIMIT) -> List[JudgmentRecord]:
        db = self._session_factory()
        try:
            rows = (
                db.query(Judgment)
                .order_by(Judgment.created_at.desc())
                .limit(limit)
                .all()
            )
            return [JudgmentRecord.model_validate(row) for row in rows]
        finally:
            db.close()

    def get(self, judgment_id: str) -> Optional[JudgmentRecord]:
        db = self._session_factory()
        try:
            row = db.query(Judgment).filter(Judgment.id == judgment_id).first()
            return JudgmentRecord.model_validate(row) if row else None
        finally:
            db.close()

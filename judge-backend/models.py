# models.py

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String, Text
from database import Base

class Judgment(Base):
    """A judged video: transcript, feedback and the clamped overall score."""

    __tablename__ = "judgments"
    __table_args__ = (
        CheckConstraint("score >= 1 AND score <= 100", name="ck_judgments_score_range"),
    )

    id = Column(String(36), primary_key=True, index=True)
    video_filename = Column(Text, nullable=False)
    transcript = Column(Text, nullable=False)
    feedback = Column(Text, nullable=False)  # rubric JSON or legacy plain text
    score = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)

"""
Pydantic models for data validation in the Video Judge backend.
"""

import json
from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator


class UploadedVideo(BaseModel):
    """An incoming upload, as declared by the client."""
    filename: str
    size: int
    content_type: Optional[str] = None
    content: bytes = b""


class CategoryScore(BaseModel):
    score: int
    comment: str = ""


class EvaluationRubric(BaseModel):
    """Structured evaluation elicited from the judging model."""
    score: Optional[int] = None
    categories: Dict[str, CategoryScore]
    summary: str = ""
    tips: List[str] = []


class JudgeResult(BaseModel):
    score: int
    feedback: str


class JudgmentRecord(BaseModel):
    """The persisted result, also returned to the caller of the pipeline."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    video_filename: str
    transcript: str
    feedback: str
    score: int
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        # SQLite hands back naive timestamps; they were written in UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class JudgmentResponse(JudgmentRecord):
    """Judgment as served over HTTP, with the rubric decoded when present."""
    evaluation: Optional[EvaluationRubric] = None

    @classmethod
    def from_record(cls, record) -> "JudgmentResponse":
        data = JudgmentRecord.model_validate(record).model_dump()
        return cls(**data, evaluation=parse_feedback(data["feedback"]))


class StatusResponse(BaseModel):
    status: str
    ffmpeg_available: bool


def parse_feedback(feedback: str) -> Optional[EvaluationRubric]:
    """
    Decode stored feedback into a rubric. Legacy judgments hold plain text
    feedback, for which None is returned.
    """
    try:
        data = json.loads(feedback)
    except (TypeError, ValueError):
        return None
    if not isinstance(data, dict) or "categories" not in data:
        return None
    try:
        return EvaluationRubric.model_validate(data)
    except ValidationError:
        return None

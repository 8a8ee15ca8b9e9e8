# judge-backend/tests/conftest.py

import os
import sys

# Keep the default engine off disk; tests build their own in-memory database
os.environ.setdefault("DATABASE_URL", "sqlite://")

# Add the parent directory to the Python path so we can import from it
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base
from exceptions import PipelineError
from pipeline import JudgePipeline
from repository import JudgmentRepository
from schemas import JudgeResult, UploadedVideo
from services import ScratchSpace


class FakeExtractor:
    """Stands in for ffmpeg: writes a dummy WAV or raises the given error."""

    def __init__(self, error: PipelineError = None):
        self.error = error
        self.calls = []
        self.cancel_events = []

    def extract(self, video_path, audio_path, cancel_event=None):
        self.cancel_events.append(cancel_event)
        self.calls.append((video_path, audio_path))
        with open(audio_path, "wb") as f:
            f.write(b"RIFF")
        if self.error:
            raise self.error

    def is_available(self):
        return True


class FakeTranscriber:
    def __init__(self, text="Hello world, this is a test.", error: Exception = None):
        self.text = text
        self.error = error
        self.calls = []

    def transcribe(self, audio_path):
        self.calls.append(audio_path)
        if self.error:
            raise self.error
        return self.text


class FakeJudge:
    def __init__(self, score=72, feedback="Clear and well paced."):
        self.result = JudgeResult(score=score, feedback=feedback)
        self.calls = []

    def judge(self, transcript):
        self.calls.append(transcript)
        return self.result


class BrokenRepository:
    def __init__(self):
        self.attempts = 0

    def save(self, record):
        self.attempts += 1
        raise RuntimeError("database is down")


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def repository(session_factory):
    return JudgmentRepository(session_factory)


@pytest.fixture
def scratch(tmp_path):
    return ScratchSpace(str(tmp_path / "scratch"))


@pytest.fixture
def make_pipeline(scratch, repository):
    def _make(extractor=None, transcriber=None, judge=None, repo=None):
        return JudgePipeline(
            scratch=scratch,
            extractor=extractor or FakeExtractor(),
            transcriber=transcriber or FakeTranscriber(),
            judge=judge or FakeJudge(),
            repository=repo or repository,
        )
    return _make


@pytest.fixture
def video():
    def _video(size=10 * 1024 * 1024, content_type="video/mp4", filename="talk.mp4"):
        return UploadedVideo(filename=filename, size=size, content_type=content_type, content=b"\x00\x00\x00\x18ftypmp42")
    return _video

# pipeline.py

import uuid
import logging
import threading
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, Optional

from config import MAX_UPLOAD_BYTES, ALLOWED_VIDEO_TYPES
from exceptions import JobCancelled, NoSpeechDetected, PipelineError, ValidationError
from repository import JudgmentRepository
from schemas import JudgmentRecord, UploadedVideo
from services import AudioExtractor, ContentJudge, ScratchSpace, Transcriber


class JobState(str, Enum):
    VALIDATING = "validating"
    EXTRACTING = "extracting"
    TRANSCRIBING = "transcribing"
    JUDGING = "judging"
    PERSISTING = "persisting"
    DONE = "done"
    ABORTED = "aborted"


class JobContext:
    """Per-request state: the job id doubles as the judgment id."""

    def __init__(self, job_id: Optional[str] = None):
        self.job_id = job_id or str(uuid.uuid4())
        self.video_path: Optional[str] = None
        self.audio_path: Optional[str] = None
        self.state = JobState.VALIDATING

    def advance(self, state: JobState) -> None:
        logging.info(f"[{self.job_id}] {self.state.value} -> {state.value}")
        self.state = state


class JudgePipeline:
    """
    Runs one judging job end to end: validate, extract audio, transcribe,
    judge, persist. Collaborators are passed in so each can be swapped.

    A set `cancel_event` stops the job between stages and kills a running
    ffmpeg. The HTTP calls are not interrupted; they end at their timeouts.
    """

    def __init__(
        self,
        scratch: ScratchSpace,
        extractor: AudioExtractor,
        transcriber: Transcriber,
        judge: ContentJudge,
        repository: JudgmentRepository,
        max_upload_bytes: int = MAX_UPLOAD_BYTES,
        allowed_types: Iterable[str] = ALLOWED_VIDEO_TYPES,
    ):
        self.scratch = scratch
        self.extractor = extractor
        self.transcriber = transcriber
        self.judge = judge
        self.repository = repository
        self.max_upload_bytes = max_upload_bytes
        self.allowed_types = frozenset(allowed_types)

    def validate(self, upload: Optional[UploadedVideo]) -> UploadedVideo:
        if upload is None:
            raise ValidationError("No video file provided")
        if upload.size > self.max_upload_bytes:
            limit_mb = self.max_upload_bytes // (1024 * 1024)
            raise ValidationError(f"File too large. Maximum size is {limit_mb}MB.")
        if upload.content_type not in self.allowed_types:
            raise ValidationError("Invalid file type. Please upload an MP4, WebM, MOV, AVI, or MKV file.")
        return upload

    def run(self, upload: Optional[UploadedVideo], cancel_event: Optional[threading.Event] = None) -> JudgmentRecord:
        job = JobContext()
        try:
            upload = self.validate(upload)
            logging.info(
                f"[{job.job_id}] File received: {upload.filename} "
                f"({upload.size} bytes, type: {upload.content_type})"
            )
            with self.scratch.job_files(job.job_id, upload.filename) as (video_path, audio_path):
                job.video_path, job.audio_path = video_path, audio_path
                record = self._process(job, upload, cancel_event)
        except PipelineError as e:
            job.advance(JobState.ABORTED)
            logging.warning(f"[{job.job_id}] ❌ Aborted ({e.reason}): {e.detail}")
            raise
        except Exception as e:
            job.advance(JobState.ABORTED)
            logging.exception(f"[{job.job_id}] ❌ Unexpected error while processing video")
            raise PipelineError() from e

        job.advance(JobState.DONE)
        return record

    def _process(self, job: JobContext, upload: UploadedVideo, cancel_event) -> JudgmentRecord:
        with open(job.video_path, "wb") as buffer:
            buffer.write(upload.content)

        self._check_cancelled(job, cancel_event)
        job.advance(JobState.EXTRACTING)
        self.extractor.extract(job.video_path, job.audio_path, cancel_event=cancel_event)

        self._check_cancelled(job, cancel_event)
        job.advance(JobState.TRANSCRIBING)
        transcript = (self.transcriber.transcribe(job.audio_path) or "").strip()
        if not transcript:
            raise NoSpeechDetected()
        logging.info(f"[{job.job_id}] Transcript received: \"{transcript[:100]}...\"")

        self._check_cancelled(job, cancel_event)
        job.advance(JobState.JUDGING)
        result = self.judge.judge(transcript)

        record = JudgmentRecord(
            id=job.job_id,
            video_filename=upload.filename,
            transcript=transcript,
            feedback=result.feedback,
            score=result.score,
            created_at=datetime.now(timezone.utc),
        )

        job.advance(JobState.PERSISTING)
        self._persist(job, record)
        return record

    def _persist(self, job: JobContext, record: JudgmentRecord) -> None:
        # Losing the history row is preferable to losing computed feedback
        try:
            self.repository.save(record)
        except Exception:
            logging.exception(f"[{job.job_id}] Failed to save judgment; returning it anyway")

    @staticmethod
    def _check_cancelled(job: JobContext, cancel_event: Optional[threading.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise JobCancelled()

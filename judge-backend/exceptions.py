"""
Abort reasons for a judging job.

Every error that stops the pipeline is an HTTPException, so FastAPI turns it
into a response without extra handlers. The `detail` is the short,
user-facing message; diagnostics travel in the other attributes and are only
ever logged.
"""

from typing import Optional

from fastapi import HTTPException


class PipelineError(HTTPException):
    reason = "pipeline_error"
    status = 500
    message = "Failed to process video."

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(status_code=status_code or self.status, detail=message or self.message)


class ValidationError(PipelineError):
    reason = "validation_error"
    status = 400
    message = "Invalid upload."


class NoAudioTrack(PipelineError):
    reason = "no_audio_track"
    status = 422
    message = "No audio track found in the video. Please upload a video with sound."


class ExtractorUnavailable(PipelineError):
    reason = "extractor_unavailable"


class ExtractionFailed(PipelineError):
    reason = "extraction_failed"

    def __init__(self, returncode: Optional[int] = None, stderr: str = ""):
        super().__init__()
        self.returncode = returncode
        self.stderr = stderr


class ExtractionTimeout(PipelineError):
    reason = "extraction_timeout"
    status = 504
    message = "Audio extraction timed out."


class TranscriptionFailed(PipelineError):
    reason = "transcription_failed"
    status = 502
    message = "Failed to transcribe the video's audio."


class NoSpeechDetected(PipelineError):
    reason = "no_speech_detected"
    status = 422
    message = "No speech detected in video."


class JobCancelled(PipelineError):
    reason = "job_cancelled"
    status = 499
    message = "The request was cancelled."

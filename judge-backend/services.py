"""
Service classes for the Video Judge backend.
Contains ScratchSpace, AudioExtractor, Transcriber and ContentJudge.
"""

import os
import re
import json
import math
import shutil
import logging
import subprocess
import threading
import time
from contextlib import contextmanager
from typing import Iterator, Optional, Tuple

import ffmpeg
import requests

from config import (
    SCRATCH_DIR,
    FFMPEG_BINARY,
    FFMPEG_TIMEOUT_SECONDS,
    GROQ_API_BASE,
    TRANSCRIBE_MODEL,
    TRANSCRIBE_LANGUAGE,
    TRANSCRIBE_TIMEOUT_SECONDS,
    JUDGE_MODEL,
    JUDGE_MODE,
    JUDGE_TEMPERATURE,
    JUDGE_TIMEOUT_SECONDS,
    DEFAULT_SCORE,
    NO_FEEDBACK_MESSAGE,
    JUDGE_UNAVAILABLE_MESSAGE,
    SYSTEM_PROMPT,
    LEGACY_SYSTEM_PROMPT,
    USER_PROMPT_TEMPLATE,
)
from exceptions import (
    ExtractionFailed,
    ExtractionTimeout,
    ExtractorUnavailable,
    JobCancelled,
    NoAudioTrack,
    TranscriptionFailed,
)
from schemas import JudgeResult


class ScratchSpace:
    """Allocates and reclaims the per-job video and audio files."""

    def __init__(self, directory: str = SCRATCH_DIR):
        self.directory = directory
        os.makedirs(self.directory, exist_ok=True)

    def paths_for(self, job_id: str, filename: Optional[str]) -> Tuple[str, str]:
        ext = os.path.splitext(filename or "")[1].lstrip(".")
        ext = re.sub(r"[^A-Za-z0-9]", "", ext).lower() or "mp4"
        video_path = os.path.join(self.directory, f"{job_id}.{ext}")
        audio_path = os.path.join(self.directory, f"{job_id}.wav")
        return video_path, audio_path

    @contextmanager
    def job_files(self, job_id: str, filename: Optional[str]) -> Iterator[Tuple[str, str]]:
        """Yield (video_path, audio_path); both are removed when the block exits."""
        video_path, audio_path = self.paths_for(job_id, filename)
        try:
            yield video_path, audio_path
        finally:
            self.cleanup(video_path, audio_path)

    @staticmethod
    def cleanup(*paths: str) -> None:
        # Best effort: a failed removal must never mask the job's outcome
        for path in paths:
            try:
                if path and os.path.exists(path):
                    os.remove(path)
            except OSError as e:
                logging.warning(f"Could not delete scratch file {path}: {e}")


class AudioExtractor:
    """Demuxes a video into 16 kHz mono PCM WAV by running ffmpeg."""

    NO_AUDIO_MARKERS = (
        "does not contain any stream",
        "matches no streams",
    )

    def __init__(
        self,
        binary: str = FFMPEG_BINARY,
        timeout: Optional[float] = FFMPEG_TIMEOUT_SECONDS,
        poll_interval: float = 0.5,
    ):
        self.binary = binary
        self.timeout = timeout
        self.poll_interval = min(poll_interval, timeout) if timeout else poll_interval

    def is_available(self) -> bool:
        return shutil.which(self.binary) is not None

    def _build(self, video_path: str, audio_path: str):
        return (
            ffmpeg
            .input(video_path)
            .output(audio_path, vn=None, acodec="pcm_s16le", ar=16000, ac=1, f="wav")
            .overwrite_output()
        )

    def command(self, video_path: str, audio_path: str) -> list:
        return ffmpeg.compile(self._build(video_path, audio_path), cmd=self.binary)

    def _wait(self, process, video_path: str, cancel_event: Optional[threading.Event]) -> bytes:
        """
        Wait for ffmpeg in short slices so a cancelled request or an expired
        timeout kills the process instead of blocking until it exits.
        """
        deadline = time.monotonic() + self.timeout if self.timeout else None
        while True:
            try:
                _, stderr = process.communicate(timeout=self.poll_interval)
                return stderr
            except subprocess.TimeoutExpired:
                if cancel_event is not None and cancel_event.is_set():
                    process.kill()
                    process.communicate()
                    logging.warning(f"ffmpeg killed on {video_path}: job cancelled")
                    raise JobCancelled()
                if deadline is not None and time.monotonic() >= deadline:
                    process.kill()
                    process.communicate()
                    logging.error(f"❌ ffmpeg timed out after {self.timeout}s on {video_path}")
                    raise ExtractionTimeout()

    def extract(self, video_path: str, audio_path: str, cancel_event: Optional[threading.Event] = None) -> None:
        stream = self._build(video_path, audio_path)
        logging.info(f"🎬 Running ffmpeg command: {' '.join(self.command(video_path, audio_path))}")

        try:
            process = stream.run_async(cmd=self.binary, pipe_stdout=True, pipe_stderr=True)
        except OSError as e:
            logging.error(f"❌ Failed to start ffmpeg ({self.binary}): {e}")
            raise ExtractorUnavailable()

        stderr = self._wait(process, video_path, cancel_event)
        stderr = (stderr or b"").decode("utf8", errors="replace")
        if process.returncode != 0:
            if any(marker in stderr for marker in self.NO_AUDIO_MARKERS):
                logging.warning(f"No audio stream in {video_path}")
                raise NoAudioTrack()
            logging.error(f"❌ ffmpeg failed with code {process.returncode}. Stderr:\n{stderr}")
            raise ExtractionFailed(returncode=process.returncode, stderr=stderr)

        if not os.path.exists(audio_path):
            logging.error(f"❌ ffmpeg exited cleanly but {audio_path} was not written")
            raise ExtractionFailed(returncode=process.returncode, stderr=stderr)

        logging.info("✅ Audio extracted successfully.")


class Transcriber:
    """Sends extracted audio to an OpenAI-compatible speech-to-text endpoint."""

    def __init__(
        self,
        api_key: str,
        base_url: str = GROQ_API_BASE,
        model: str = TRANSCRIBE_MODEL,
        language: str = TRANSCRIBE_LANGUAGE,
        timeout: float = TRANSCRIBE_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.url = f"{base_url.rstrip('/')}/audio/transcriptions"
        self.model = model
        self.language = language
        self.timeout = timeout
        # Without a session every call is a plain requests.post
        self.session = session

    def transcribe(self, audio_path: str) -> str:
        logging.info(f"📝 Transcribing {audio_path} with {self.model}")
        try:
            with open(audio_path, "rb") as audio_file:
                response = (self.session or requests).post(
                    self.url,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    data={
                        "model": self.model,
                        "language": self.language,
                        "response_format": "text",
                    },
                    files={"file": (os.path.basename(audio_path), audio_file, "audio/wav")},
                    timeout=self.timeout,
                )
            response.raise_for_status()
        except requests.Timeout:
            logging.error(f"❌ Transcription timed out after {self.timeout}s")
            raise TranscriptionFailed("Transcription timed out.", status_code=504)
        except requests.HTTPError as e:
            logging.error(f"❌ Transcription service returned {e.response.status_code}: {e.response.text}")
            raise TranscriptionFailed()
        except (requests.RequestException, OSError) as e:
            logging.error(f"❌ Could not reach the transcription service: {e}")
            raise TranscriptionFailed()

        if not response.headers.get("content-type", "").startswith("application/json"):
            return response.text
        try:
            body = response.json()
        except ValueError:
            logging.error(f"❌ Transcription service sent malformed JSON: {response.text!r:.200}")
            raise TranscriptionFailed()
        if not isinstance(body, dict) or not isinstance(body.get("text", ""), str):
            logging.error(f"❌ Unexpected transcription response shape: {type(body).__name__}")
            raise TranscriptionFailed()
        return body.get("text", "")


_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def normalize_score(value) -> int:
    """
    Integer-parse a model-supplied score and clamp it into [1, 100].
    Missing, non-numeric and zero scores fall back to the default.
    """
    score = 0
    if isinstance(value, bool):
        score = 0
    elif isinstance(value, (int, float)):
        score = int(value) if math.isfinite(value) else 0
    elif isinstance(value, str):
        match = _LEADING_INT.match(value)
        score = int(match.group(1)) if match else 0
    if not score:
        score = DEFAULT_SCORE
    return min(100, max(1, score))


def parse_judge_response(content: str) -> JudgeResult:
    """Turn the model's reply into a usable result. Never raises."""
    if not isinstance(content, str):
        content = "" if content is None else str(content)
    try:
        parsed = json.loads(content or "{}")
    except (TypeError, ValueError):
        logging.warning("Judge returned non-JSON content; keeping it as plain feedback")
        return JudgeResult(score=DEFAULT_SCORE, feedback=content)

    if not isinstance(parsed, dict):
        return JudgeResult(score=DEFAULT_SCORE, feedback=NO_FEEDBACK_MESSAGE)

    score = normalize_score(parsed.get("score"))
    feedback = parsed.get("feedback")
    if feedback and not isinstance(feedback, str):
        feedback = json.dumps(feedback)
    elif not feedback and any(key in parsed for key in ("categories", "summary", "tips")):
        feedback = json.dumps({**parsed, "score": score})
    return JudgeResult(score=score, feedback=feedback or NO_FEEDBACK_MESSAGE)


def _message_content(body) -> str:
    """Pull the first choice's content out of a chat completion, whatever its shape."""
    choices = body.get("choices") if isinstance(body, dict) else None
    choice = choices[0] if isinstance(choices, list) and choices else {}
    message = choice.get("message") if isinstance(choice, dict) else None
    content = message.get("content") if isinstance(message, dict) else None

    # Content-part lists: [{"type": "text", "text": "..."}]
    if isinstance(content, list):
        content = "".join(
            str(part.get("text") or "") if isinstance(part, dict) else str(part)
            for part in content
        )
    elif content is not None and not isinstance(content, str):
        content = str(content)
    return content or "{}"


class ContentJudge:
    """Scores a transcript against the evaluation rubric with a chat model."""

    def __init__(
        self,
        api_key: str,
        base_url: str = GROQ_API_BASE,
        model: str = JUDGE_MODEL,
        mode: str = JUDGE_MODE,
        temperature: float = JUDGE_TEMPERATURE,
        timeout: float = JUDGE_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.url = f"{base_url.rstrip('/')}/chat/completions"
        self.model = model
        self.mode = mode
        self.temperature = temperature
        self.timeout = timeout
        # Without a session every call is a plain requests.post
        self.session = session

    def _payload(self, transcript: str) -> dict:
        system_prompt = LEGACY_SYSTEM_PROMPT if self.mode == "legacy" else SYSTEM_PROMPT
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": USER_PROMPT_TEMPLATE.format(transcript=transcript)},
            ],
            "temperature": self.temperature,
            "response_format": {"type": "json_object"},
        }

    def _complete(self, transcript: str) -> str:
        response = (self.session or requests).post(
            self.url,
            headers={"Authorization": f"Bearer {self.api_key}"},
            json=self._payload(transcript),
            timeout=self.timeout,
        )
        response.raise_for_status()
        return _message_content(response.json())

    def judge(self, transcript: str) -> JudgeResult:
        logging.info(f"⚖️ Sending transcript to {self.model} ({self.mode} mode)")
        try:
            content = self._complete(transcript)
        except (requests.RequestException, ValueError) as e:
            logging.error(f"❌ Judging service failed, degrading to default score: {e}")
            return JudgeResult(score=DEFAULT_SCORE, feedback=JUDGE_UNAVAILABLE_MESSAGE)
        return parse_judge_response(content)

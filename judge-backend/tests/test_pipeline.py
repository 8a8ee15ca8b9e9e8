# judge-backend/tests/test_pipeline.py

import os
import threading
import uuid

import pytest

from conftest import BrokenRepository, FakeExtractor, FakeJudge, FakeTranscriber
from exceptions import (
    ExtractionFailed,
    JobCancelled,
    NoAudioTrack,
    NoSpeechDetected,
    PipelineError,
    TranscriptionFailed,
    ValidationError,
)

MIB = 1024 * 1024


def _scratch_files(scratch):
    return os.listdir(scratch.directory)


def test_end_to_end_judgment_is_persisted_and_returned(make_pipeline, repository, scratch, video):
    judge = FakeJudge(score=72, feedback="Strong opening, tighten the middle.")
    pipeline = make_pipeline(judge=judge)

    record = pipeline.run(video())

    assert record.score == 72
    assert record.transcript == "Hello world, this is a test."
    assert uuid.UUID(record.id).version == 4
    assert judge.calls == ["Hello world, this is a test."]

    stored = repository.get(record.id)
    assert stored is not None
    assert stored.score == 72
    assert stored.video_filename == "talk.mp4"
    assert _scratch_files(scratch) == []


def test_each_job_gets_a_fresh_id(make_pipeline, video):
    pipeline = make_pipeline()
    assert pipeline.run(video()).id != pipeline.run(video()).id


def test_transcript_is_trimmed_before_judging(make_pipeline, video):
    judge = FakeJudge()
    pipeline = make_pipeline(transcriber=FakeTranscriber(text="  padded speech \n"), judge=judge)

    record = pipeline.run(video())

    assert judge.calls == ["padded speech"]
    assert record.transcript == "padded speech"


def test_missing_upload_is_rejected(make_pipeline, scratch):
    extractor = FakeExtractor()
    with pytest.raises(ValidationError) as exc:
        make_pipeline(extractor=extractor).run(None)
    assert exc.value.status_code == 400
    assert exc.value.detail == "No video file provided"
    assert extractor.calls == []


def test_pdf_is_rejected_before_extraction(make_pipeline, scratch, video):
    extractor = FakeExtractor()
    with pytest.raises(ValidationError) as exc:
        make_pipeline(extractor=extractor).run(video(content_type="application/pdf"))
    assert exc.value.status_code == 400
    assert len(extractor.calls) == 0
    assert _scratch_files(scratch) == []


def test_upload_one_byte_over_limit_is_rejected(make_pipeline, video):
    extractor = FakeExtractor()
    with pytest.raises(ValidationError) as exc:
        make_pipeline(extractor=extractor).run(video(size=50 * MIB + 1))
    assert "Maximum size is 50MB" in exc.value.detail
    assert extractor.calls == []


def test_upload_exactly_at_limit_is_accepted(make_pipeline, video):
    extractor = FakeExtractor()
    record = make_pipeline(extractor=extractor).run(video(size=50 * MIB))
    assert len(extractor.calls) == 1
    assert 1 <= record.score <= 100


@pytest.mark.parametrize("content_type", [
    "video/mp4", "video/webm", "video/quicktime", "video/x-msvideo", "video/x-matroska",
])
def test_accepted_video_types(make_pipeline, video, content_type):
    record = make_pipeline().run(video(content_type=content_type))
    assert record.score == 72


def test_no_audio_track_aborts_and_cleans_up(make_pipeline, repository, scratch, video):
    judge = FakeJudge()
    pipeline = make_pipeline(extractor=FakeExtractor(error=NoAudioTrack()), judge=judge)

    with pytest.raises(NoAudioTrack) as exc:
        pipeline.run(video())

    assert exc.value.status_code == 422
    assert "upload a video with sound" in exc.value.detail
    assert judge.calls == []
    assert repository.recent() == []
    assert _scratch_files(scratch) == []


def test_extraction_failure_aborts(make_pipeline, scratch, video):
    transcriber = FakeTranscriber()
    pipeline = make_pipeline(
        extractor=FakeExtractor(error=ExtractionFailed(returncode=1, stderr="moov atom not found")),
        transcriber=transcriber,
    )

    with pytest.raises(ExtractionFailed) as exc:
        pipeline.run(video())

    assert exc.value.status_code == 500
    assert "moov atom" not in exc.value.detail
    assert transcriber.calls == []
    assert _scratch_files(scratch) == []


def test_transcription_failure_aborts(make_pipeline, scratch, video):
    judge = FakeJudge()
    pipeline = make_pipeline(transcriber=FakeTranscriber(error=TranscriptionFailed()), judge=judge)

    with pytest.raises(TranscriptionFailed):
        pipeline.run(video())

    assert judge.calls == []
    assert _scratch_files(scratch) == []


def test_whitespace_transcript_aborts_before_judging(make_pipeline, repository, scratch, video):
    judge = FakeJudge()
    pipeline = make_pipeline(transcriber=FakeTranscriber(text="   "), judge=judge)

    with pytest.raises(NoSpeechDetected) as exc:
        pipeline.run(video())

    assert exc.value.status_code == 422
    assert judge.calls == []
    assert repository.recent() == []
    assert _scratch_files(scratch) == []


def test_persistence_failure_still_returns_judgment(make_pipeline, scratch, video):
    broken = BrokenRepository()
    record = make_pipeline(repo=broken).run(video())

    assert broken.attempts == 1
    assert record.score == 72
    assert _scratch_files(scratch) == []


def test_unexpected_error_is_classified_and_cleaned_up(make_pipeline, scratch, video):
    pipeline = make_pipeline(transcriber=FakeTranscriber(error=KeyError("text")))

    with pytest.raises(PipelineError) as exc:
        pipeline.run(video())

    assert exc.value.status_code == 500
    assert _scratch_files(scratch) == []


def test_cancelled_job_stops_and_cleans_up(make_pipeline, scratch, video):
    extractor = FakeExtractor()
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(JobCancelled):
        make_pipeline(extractor=extractor).run(video(), cancel_event=cancel)

    assert extractor.calls == []
    assert _scratch_files(scratch) == []


def test_cancel_during_extraction_stops_before_transcription(make_pipeline, scratch, video):
    cancel = threading.Event()

    class DisconnectingExtractor(FakeExtractor):
        def extract(self, video_path, audio_path, cancel_event=None):
            super().extract(video_path, audio_path, cancel_event=cancel_event)
            cancel.set()

    extractor, transcriber = DisconnectingExtractor(), FakeTranscriber()
    pipeline = make_pipeline(extractor=extractor, transcriber=transcriber)

    with pytest.raises(JobCancelled) as exc:
        pipeline.run(video(), cancel_event=cancel)

    assert extractor.cancel_events == [cancel]
    assert transcriber.calls == []
    assert exc.value.status_code == 499
    assert _scratch_files(scratch) == []

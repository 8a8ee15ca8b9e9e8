"""
Router for video judging endpoints.
Handles video submission and judgment history.
"""

import asyncio
import logging
import threading
from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import SQLAlchemyError

from config import DISCONNECT_POLL_SECONDS, HISTORY_LIMIT
from deps import get_pipeline, get_repository
from pipeline import JudgePipeline
from repository import JudgmentRepository
from schemas import JudgmentResponse, UploadedVideo


# Create the router
router = APIRouter(prefix="/api", tags=["judge"])


async def watch_disconnect(request: Request, cancel_event: threading.Event) -> None:
    """Set `cancel_event` once the client goes away."""
    while not cancel_event.is_set():
        if await request.is_disconnected():
            logging.warning("Client disconnected; cancelling judging job")
            cancel_event.set()
            return
        await asyncio.sleep(DISCONNECT_POLL_SECONDS)


@router.post("/judge", response_model=JudgmentResponse)
async def judge_video(
    request: Request,
    video: Optional[UploadFile] = File(None),
    pipeline: JudgePipeline = Depends(get_pipeline),
):
    """
    Runs the full judging pipeline on an uploaded video and returns the
    judgment. The job runs in the threadpool since every stage blocks.
    """
    upload = None
    if video is not None:
        # Never buffer more than one byte past the limit
        content = await video.read(pipeline.max_upload_bytes + 1)
        upload = UploadedVideo(
            filename=video.filename or "video",
            size=video.size if video.size is not None else len(content),
            content_type=video.content_type,
            content=content,
        )

    cancel_event = threading.Event()
    watcher = asyncio.create_task(watch_disconnect(request, cancel_event))
    try:
        record = await run_in_threadpool(pipeline.run, upload, cancel_event)
    finally:
        watcher.cancel()
    logging.info(f"✅ Judged {record.video_filename}: score {record.score}")
    return JudgmentResponse.from_record(record)


@router.get("/judgments", response_model=List[JudgmentResponse])
def list_judgments(
    limit: int = Query(HISTORY_LIMIT, ge=1, le=100),
    repository: JudgmentRepository = Depends(get_repository),
):
    """Most recent judgments, newest first."""
    try:
        records = repository.recent(limit)
    except SQLAlchemyError as e:
        logging.error(f"Failed to fetch judgments: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch judgments")
    return [JudgmentResponse.from_record(record) for record in records]


@router.get("/judgments/{judgment_id}", response_model=JudgmentResponse)
def get_judgment(judgment_id: str, repository: JudgmentRepository = Depends(get_repository)):
    try:
        record = repository.get(judgment_id)
    except SQLAlchemyError as e:
        logging.error(f"Failed to fetch judgment {judgment_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch judgments")
    if not record:
        raise HTTPException(status_code=404, detail="Judgment not found.")
    return JudgmentResponse.from_record(record)

# deps.py

from fastapi import FastAPI, Request

from config import GROQ_API_KEY, SCRATCH_DIR
from pipeline import JudgePipeline
from repository import JudgmentRepository
from services import AudioExtractor, ContentJudge, ScratchSpace, Transcriber


def init_services(app: FastAPI) -> None:
    """Build the process-wide collaborators once, at startup."""
    app.state.extractor = AudioExtractor()
    app.state.repository = JudgmentRepository()
    app.state.pipeline = JudgePipeline(
        scratch=ScratchSpace(SCRATCH_DIR),
        extractor=app.state.extractor,
        transcriber=Transcriber(api_key=GROQ_API_KEY),
        judge=ContentJudge(api_key=GROQ_API_KEY),
        repository=app.state.repository,
    )


def get_extractor(request: Request) -> AudioExtractor:
    return request.app.state.extractor


def get_repository(request: Request) -> JudgmentRepository:
    return request.app.state.repository


def get_pipeline(request: Request) -> JudgePipeline:
    return request.app.state.pipeline

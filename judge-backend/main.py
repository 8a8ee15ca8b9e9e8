import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import CORS_ORIGINS
from database import Base, engine
from deps import get_extractor, init_services
from routers import judge
from schemas import StatusResponse
from services import AudioExtractor

# --------------------------------------------------------------------------
# --- Configuration & Setup ---
# --------------------------------------------------------------------------

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    init_services(app)
    if not app.state.extractor.is_available():
        logging.warning("⚠️  ffmpeg not found in PATH. Audio extraction will fail.")
    yield


app = FastAPI(
    title="Video Judge",
    description="Transcribes short videos and scores the spoken content with an LLM.",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(judge.router)


@app.get("/", response_model=StatusResponse)
def read_root(extractor: AudioExtractor = Depends(get_extractor)):
    return {"status": "🚀 Video Judge is running!", "ffmpeg_available": extractor.is_available()}

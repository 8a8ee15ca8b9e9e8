"""
Configuration file for the Video Judge backend.
Contains all global constants and prompt engineering templates.
"""

import os
import tempfile

# --- Constants ---
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./judgments.db")

GROQ_API_KEY = os.getenv("GROQ_API_KEY", "")
GROQ_API_BASE = os.getenv("GROQ_API_BASE", "https://api.groq.com/openai/v1")
TRANSCRIBE_MODEL = os.getenv("TRANSCRIBE_MODEL", "whisper-large-v3-turbo")
TRANSCRIBE_LANGUAGE = "en"
JUDGE_MODEL = os.getenv("JUDGE_MODEL", "llama-3.3-70b-versatile")
JUDGE_MODE = os.getenv("JUDGE_MODE", "rubric")  # rubric | legacy
JUDGE_TEMPERATURE = float(os.getenv("JUDGE_TEMPERATURE", "0.7"))

FFMPEG_BINARY = os.getenv("FFMPEG_BINARY", "ffmpeg")
FFMPEG_TIMEOUT_SECONDS = float(os.getenv("FFMPEG_TIMEOUT_SECONDS", "120"))
TRANSCRIBE_TIMEOUT_SECONDS = float(os.getenv("TRANSCRIBE_TIMEOUT_SECONDS", "180"))
JUDGE_TIMEOUT_SECONDS = float(os.getenv("JUDGE_TIMEOUT_SECONDS", "180"))

SCRATCH_DIR = os.getenv(
    "VIDEO_JUDGE_SCRATCH_DIR", os.path.join(tempfile.gettempdir(), "video-judge")
)

MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(50 * 1024 * 1024)))
ALLOWED_VIDEO_TYPES = (
    "video/mp4",
    "video/webm",
    "video/quicktime",
    "video/x-msvideo",
    "video/x-matroska",
)

DISCONNECT_POLL_SECONDS = 1.0
HISTORY_LIMIT = int(os.getenv("HISTORY_LIMIT", "20"))
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")

DEFAULT_SCORE = 50
NO_FEEDBACK_MESSAGE = "No feedback generated."
JUDGE_UNAVAILABLE_MESSAGE = "Automated feedback is temporarily unavailable."

# --- Prompt Engineering Section ---

SYSTEM_PROMPT = """You are an expert content judge and coach. Your role is to evaluate spoken content from videos and provide actionable feedback.

Evaluate the content on these criteria, scoring each from 1 to 10 with a short comment:
1. **Clarity** (Is the message clear and easy to follow?)
2. **Engagement** (Is it interesting and attention-grabbing?)
3. **Structure** (Is it well-organized with a clear beginning, middle, and end?)
4. **Delivery** (Based on the transcript, does the speaker seem confident and natural?)
5. **Value** (Does the content provide value to the audience?)

You MUST respond ONLY with JSON in this exact format:
{
  "score": <overall number from 1-100>,
  "categories": {
    "clarity": {"score": <1-10>, "comment": "<one or two sentences>"},
    "engagement": {"score": <1-10>, "comment": "<one or two sentences>"},
    "structure": {"score": <1-10>, "comment": "<one or two sentences>"},
    "delivery": {"score": <1-10>, "comment": "<one or two sentences>"},
    "value": {"score": <1-10>, "comment": "<one or two sentences>"}
  },
  "summary": "<a short overall assessment>",
  "tips": ["<practical tip>", "<practical tip>", "<practical tip>"]
}

Be constructive, specific, and encouraging. Give practical tips for improvement.
"""

LEGACY_SYSTEM_PROMPT = """You are an expert content judge and coach. Your role is to evaluate spoken content from videos and provide actionable feedback.

Evaluate the content on these criteria:
1. **Clarity** (Is the message clear and easy to follow?)
2. **Engagement** (Is it interesting and attention-grabbing?)
3. **Structure** (Is it well-organized with a clear beginning, middle, and end?)
4. **Delivery** (Based on the transcript, does the speaker seem confident and natural?)
5. **Value** (Does the content provide value to the audience?)

You MUST respond in this exact JSON format:
{
  "score": <number from 1-100>,
  "feedback": "<Your detailed feedback as a single string with sections separated by newlines>"
}

Be constructive, specific, and encouraging. Give practical tips for improvement.
"""

USER_PROMPT_TEMPLATE = 'Please judge the following video transcript:\n\n"{transcript}"'

import os
from dotenv import load_dotenv

load_dotenv()


class Config:
    GEMINI_API_KEY = os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_AI_API_KEY")
    GEMINI_IMAGE_MODEL = os.getenv("GEMINI_IMAGE_MODEL", "gemini-2.5-flash-image")
    # seconds; the SDK takes milliseconds
    GEMINI_TIMEOUT = float(os.getenv("GEMINI_TIMEOUT", "60"))
    MAX_CONTENT_LENGTH = 10 * 1024 * 1024

# app/core/config.py
import os
import sys
from dotenv import load_dotenv

# Load .env once at application start
load_dotenv()

def _env_bool(name: str, default: str = "0") -> bool:
    v = str(os.environ.get(name, default)).strip().lower()
    return v in ("1", "true", "yes", "y", "on")

class Config:
    # =========================
    # APP / SECURITY
    # =========================
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key")
    TESTING = _env_bool("TESTING", "0")
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

    # BASE_DIR = folder leafdoc-backend
    BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(__file__)))

    # =========================
    # UPLOADS
    # =========================
    UPLOAD_DIR = os.environ.get("UPLOAD_DIR", os.path.join(BASE_DIR, "uploads"))
    MAX_UPLOAD_MB = int(os.environ.get("MAX_UPLOAD_MB", 16))
    MAX_CONTENT_LENGTH = MAX_UPLOAD_MB * 1024 * 1024

    # =========================
    # CLASSIFIER (external process)
    # =========================
    # Interpreter + script; the script gets the image path as its only argument
    CLASSIFIER_PYTHON = os.environ.get("CLASSIFIER_PYTHON", sys.executable or "python")
    CLASSIFIER_SCRIPT = os.environ.get(
        "CLASSIFIER_SCRIPT",
        os.path.join(BASE_DIR, "model", "predict.py"),
    )

    # =========================
    # GENERATIVE TEXT (Gemini)
    # =========================
    GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY", "")
    GEMINI_MODEL = os.environ.get("GEMINI_MODEL", "gemini-2.5-flash")
    GEMINI_API_BASE = os.environ.get(
        "GEMINI_API_BASE",
        "https://generativelanguage.googleapis.com/v1beta",
    )
    GEMINI_TIMEOUT_SECONDS = float(os.environ.get("GEMINI_TIMEOUT_SECONDS", 20))

    # "three_part" (chemical/organic/prevention) or "structured" (JSON plan).
    # Fixed for the lifetime of the process.
    REMEDY_DETAIL_MODE = os.environ.get("REMEDY_DETAIL_MODE", "three_part").strip().lower()

    # =========================
    # DATABASE (MySQL by default)
    # =========================
    DATABASE_URL = os.environ.get("DATABASE_URL", "")
    AUTO_CREATE_TABLES = _env_bool("AUTO_CREATE_TABLES", "0")

    DB_HOST = os.environ.get("DB_HOST", "localhost")
    DB_PORT = os.environ.get("DB_PORT", "3306")  # default MySQL
    DB_NAME = os.environ.get("DB_NAME", "leafdoc_db")
    DB_USER = os.environ.get("DB_USER", "root")
    DB_PASSWORD = os.environ.get("DB_PASSWORD", "")

    @classmethod
    def database_url(cls) -> str:
        """
        SQLAlchemy connection string. DATABASE_URL wins when set,
        otherwise MySQL through PyMySQL.
        """
        if cls.DATABASE_URL:
            return cls.DATABASE_URL
        return (
            f"mysql+pymysql://{cls.DB_USER}:{cls.DB_PASSWORD}"
            f"@{cls.DB_HOST}:{cls.DB_PORT}/{cls.DB_NAME}"
        )

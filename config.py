# config.py
import os

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = os.path.dirname(os.path.abspath(__file__))

ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
DEBUG = ENVIRONMENT == "development"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Paths
UPLOAD_DIR = os.getenv("UPLOAD_DIR", os.path.join(BASE_DIR, "uploads", "medical-images"))
DB_DIR = os.path.join(BASE_DIR, "database")
DB_PATH = os.path.join(DB_DIR, "app_data.db")
MODEL_PATH = os.getenv("MODEL_PATH", os.path.join(BASE_DIR, "model", "fibrosis_model.pth"))

# Database
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{DB_PATH}")
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)

# Create folders
os.makedirs(UPLOAD_DIR, exist_ok=True)
if DATABASE_URL.startswith("sqlite:///") and DATABASE_URL == f"sqlite:///{DB_PATH}":
    os.makedirs(DB_DIR, exist_ok=True)

# Auth
SECRET_KEY = os.getenv("JWT_SECRET", "dev-secret-change-in-production-09876543210")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "1440"))  # 24 hours
# bcrypt cost factor, never below 10
BCRYPT_ROUNDS = max(10, int(os.getenv("BCRYPT_ROUNDS", "12")))
MIN_PASSWORD_LENGTH = 6

# Uploads
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))

# Grading
GRADER = os.getenv("GRADER", "mock")
GRADES = ["F0", "F1", "F2", "F3", "F4"]
GRADE_LABELS = {
    "F0": "No fibrosis",
    "F1": "Mild fibrosis",
    "F2": "Moderate fibrosis",
    "F3": "Severe fibrosis",
    "F4": "Cirrhosis",
}
MOCK_CONFIDENCE_RANGE = (80, 99)
IMG_SIZE = (224, 224)

# Rate limiting
RATE_LIMIT = os.getenv("RATE_LIMIT", "100/15minutes")
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"

# CORS
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "CORS_ORIGINS",
        "http://localhost:3000,http://localhost:5173,http://127.0.0.1:5173",
    ).split(",")
    if origin.strip()
]

# Chat relay
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")
LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "30"))
LLM_MAX_ATTEMPTS = int(os.getenv("LLM_MAX_ATTEMPTS", "3"))

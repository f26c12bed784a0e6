import os


class Config:
    """Settings read from the environment, loaded with app.config.from_object()."""
    SECRET_KEY = os.getenv("FLASK_SECRET_KEY", "a-default-secret-key-for-development")

    # --- Firebase ---
    FIREBASE_KEY_B64 = os.getenv("FIREBASE_KEY_B64")
    FIREBASE_KEY_PATH = os.getenv(
        "FIREBASE_KEY_PATH",
        os.path.join(os.path.dirname(os.path.abspath(__file__)), "firebase_key.json"),
    )
    FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID")
    FIREBASE_BUCKET_NAME = os.getenv("FIREBASE_BUCKET_NAME")

    # --- App behaviour ---
    BYTEHUB_ENV = os.getenv("BYTEHUB_ENV", "development")
    APP_BASE_URL = os.getenv("APP_BASE_URL", "http://localhost:3000")
    MAX_CONTENT_LENGTH = int(os.getenv("MAX_UPLOAD_MB", "50")) * 1024 * 1024
    DEFAULT_LIST_LIMIT = int(os.getenv("DEFAULT_LIST_LIMIT", "20"))
    MAX_LIST_LIMIT = int(os.getenv("MAX_LIST_LIMIT", "100"))

    # --- Logging ---
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_DIR = os.getenv("LOG_DIR", "logs")

    TESTING = False


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = "testing"
    BYTEHUB_ENV = "development"
    LOG_DIR = None

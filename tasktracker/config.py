import os

SECRET_KEY = os.environ.get("SECRET_KEY", "TASKTRACKER_DEV_SECRET_KEY")
ALGORITHM = os.environ.get("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = float(os.environ.get("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24))

# Default to local SQLite for dev/tests; override via env in Docker/Prod
DATABASE_URL = os.environ.get("DATABASE_URL", "sqlite:///./tasktracker.db")

UPLOAD_DIR = os.environ.get("UPLOAD_DIR", "uploads")
MAX_FILE_SIZE = int(os.environ.get("MAX_FILE_SIZE", 10 * 1024 * 1024))

CORS_ORIGIN = os.environ.get("CORS_ORIGIN", "http://localhost:3000")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

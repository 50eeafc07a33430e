import os
from datetime import timedelta

APP_ENV = os.getenv("APP_ENV", "development")

DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://localhost:27017").replace(
    "<PASSWORD>", os.getenv("DATABASE_PASSWORD", "")
)
DATABASE_NAME = os.getenv("DATABASE_NAME", "tourbook")

JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me")
JWT_ALGORITHM = "HS256"
JWT_EXPIRES_IN = timedelta(hours=int(os.getenv("JWT_EXPIRES_IN_HOURS", "3")))
JWT_COOKIE_EXPIRES_IN = timedelta(hours=int(os.getenv("JWT_COOKIE_EXPIRES_IN_HOURS", "3")))

BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

EMAIL_HOST = os.getenv("EMAIL_HOST", "localhost")
EMAIL_PORT = int(os.getenv("EMAIL_PORT", "25"))
EMAIL_USERNAME = os.getenv("EMAIL_USERNAME")
EMAIL_PASSWORD = os.getenv("EMAIL_PASSWORD")
EMAIL_FROM = os.getenv("EMAIL_FROM", "Tourbook <noreply@tourbook.io>")

RATE_LIMIT = os.getenv("RATE_LIMIT", "100/hour")

PUBLIC_DIR = os.getenv("PUBLIC_DIR", os.path.join(os.path.dirname(os.path.abspath(__file__)), "public"))

CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))


def is_production():
    return APP_ENV == "production"

import io
import os
import tempfile

os.environ.setdefault("APP_ENV", "development")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("RATE_LIMIT", "10000/hour")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("PUBLIC_DIR", tempfile.mkdtemp(prefix="tourbook-public-"))

import mongomock
import pytest
from fastapi.testclient import TestClient
from PIL import Image

from tourbook import database
from tourbook.auth import sign_token
from tourbook.handlers import create_one
from tourbook.main import app
from tourbook.resources import tours
from tourbook.tours import tour_slug
from tourbook.utils import hash_password

PASSWORD = "pass1234"


@pytest.fixture(autouse=True)
def db():
    database.client = mongomock.MongoClient()
    yield database.get_db()
    database.client = None


@pytest.fixture
def client():
    return TestClient(app)


def make_user(db, name="Jonas", role="user", **fields):
    user = {
        "name": name,
        "email": f"{name.lower().replace(' ', '.')}@tourbook.io",
        "photo": "default.jpg",
        "role": role,
        "password": hash_password(PASSWORD),
        "activeUser": True,
        "__v": 0,
        **fields,
    }
    user["_id"] = db.users.insert_one(user).inserted_id
    return user


def auth_header(user):
    return {"Authorization": f"Bearer {sign_token(user['_id'])}"}


def tour_payload(**overrides):
    return {
        "name": "The Forest Hiker",
        "duration": 5,
        "maxGroupSize": 25,
        "difficulty": "easy",
        "price": 397,
        "summary": "Breathtaking hike through the Canadian Banff National Park",
        "imageCover": "tour-1-cover.jpg",
        **overrides,
    }


def make_tour(**overrides):
    return create_one(tours, tour_payload(**overrides), prepare=tour_slug)


def png_bytes(size=(800, 600)):
    buffer = io.BytesIO()
    Image.new("RGB", size, "green").save(buffer, "PNG")
    return buffer.getvalue()


@pytest.fixture
def user(db):
    return make_user(db)


@pytest.fixture
def admin(db):
    return make_user(db, name="Admin User", role="admin")

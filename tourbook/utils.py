import datetime
import hashlib
import secrets

from bson import ObjectId
from passlib.context import CryptContext

from . import config
from .errors import AppError

RESET_TOKEN_BYTES = 24
RESET_TOKEN_TTL = datetime.timedelta(minutes=10)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=config.BCRYPT_ROUNDS)


def normalize_id(d):
    if isinstance(d, ObjectId):
        return str(d)
    if isinstance(d, dict):
        return {x: normalize_id(d[x]) for x in d}
    if isinstance(d, (list, tuple)):
        return [normalize_id(x) for x in d]
    return d


def to_object_id(value, path="_id"):
    if isinstance(value, ObjectId):
        return value
    if not isinstance(value, str) or not ObjectId.is_valid(value):
        raise AppError(f"Invalid {path}: {value}.", 400)
    return ObjectId(value)


def filter_obj(obj, *allowed_fields):
    return {key: value for key, value in obj.items() if key in allowed_fields}


def hash_password(password):
    return pwd_context.hash(password)


def verify_password(password, hashed_password):
    if not isinstance(password, str) or not password or not hashed_password:
        return False
    return pwd_context.verify(password, hashed_password)


def hash_token(token):
    return hashlib.sha256(token.encode()).hexdigest()


def create_password_reset_token(now):
    """Return the raw token to mail out and the fields to store on the user."""
    reset_token = secrets.token_hex(RESET_TOKEN_BYTES)
    return reset_token, {
        "passwordResetToken": hash_token(reset_token),
        "passwordResetExpires": now + RESET_TOKEN_TTL,
    }


def changed_password_after(user, issued_at):
    changed_at = user.get("passwordChangedAt")
    if changed_at is None:
        return False
    changed_timestamp = int(changed_at.replace(tzinfo=datetime.timezone.utc).timestamp())
    return issued_at < changed_timestamp


def timestamp_ms():
    return int(datetime.datetime.now().timestamp() * 1000)

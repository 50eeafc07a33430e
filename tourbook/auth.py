import datetime
import logging
import smtplib

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from jose import ExpiredSignatureError, JWTError, jwt

from . import config
from .errors import AppError, handle_jwt_error, handle_jwt_expired
from .handlers import create_one
from .mail import send_email
from .models import PasswordChange, utcnow
from .resources import users
from .utils import (
    changed_password_after,
    create_password_reset_token,
    filter_obj,
    hash_password,
    hash_token,
    to_object_id,
    verify_password,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/users", tags=["auth"])


def sign_token(user_id, now=None):
    now = now or datetime.datetime.now(datetime.timezone.utc)
    claims = {"id": str(user_id), "iat": now, "exp": now + config.JWT_EXPIRES_IN}
    return jwt.encode(claims, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def create_send_token(user, status_code):
    token = sign_token(user["_id"])
    response = JSONResponse(
        status_code=status_code,
        content=jsonable_encoder({"status": "success", "token": token, "data": {"user": users.serialize(user)}}),
    )
    response.set_cookie(
        "jwt",
        token,
        expires=datetime.datetime.now(datetime.timezone.utc) + config.JWT_COOKIE_EXPIRES_IN,
        httponly=True,
        secure=config.is_production(),
    )
    return response


def get_token(request: Request):
    authorization = request.headers.get("authorization", "")
    if authorization.startswith("Bearer "):
        return authorization.split(" ", 1)[1].strip() or None
    return None


def protect(request: Request):
    token = get_token(request)
    if not token:
        raise AppError("You are not logged in! Please log in to get access.", 401)

    try:
        decoded = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise handle_jwt_expired()
    except JWTError:
        raise handle_jwt_error()

    user_id = decoded.get("id")
    if not isinstance(user_id, str):
        raise handle_jwt_error()
    current_user = users.collection.find_one({"_id": to_object_id(user_id), **users.base_filter})
    if current_user is None:
        raise AppError("The user belonging to this token no longer exists.", 401)

    if changed_password_after(current_user, decoded.get("iat", 0)):
        raise AppError("User recently changed password. Please log in again.", 401)

    request.state.user = current_user
    return current_user


def restrict_to(*roles):
    def check_role(current_user=Depends(protect)):
        if current_user.get("role") not in roles:
            raise AppError("You do not have permission to perform this action", 403)
        return current_user

    return check_role


def new_password_fields(payload):
    change = PasswordChange.model_validate(payload)
    return {
        "password": hash_password(change.password),
        # issued tokens must predate the change
        "passwordChangedAt": utcnow() - datetime.timedelta(seconds=1),
    }


def prepare_new_user(data):
    data = dict(data)
    data.pop("passwordConfirm", None)
    data["password"] = hash_password(data["password"])
    data["activeUser"] = True
    return data


@router.post("/signup", status_code=201)
def signup(payload: dict = Body(...)):
    fields = filter_obj(payload, "name", "email", "password", "passwordConfirm")
    new_user = create_one(users, fields, prepare=prepare_new_user)
    logger.info("New user signed up: %s", new_user["email"])
    return create_send_token(new_user, 201)


@router.post("/login")
def login(payload: dict = Body(...)):
    email = payload.get("email")
    password = payload.get("password")
    if not email or not password:
        raise AppError("Please provide email and password!", 400)

    user = users.collection.find_one({"email": str(email).strip().lower(), **users.base_filter})
    if user is None or not verify_password(password, user.get("password")):
        raise AppError("Incorrect email or password", 401)
    return create_send_token(user, 200)


@router.post("/forgotPassword")
def forgot_password(request: Request, payload: dict = Body(...)):
    email = payload.get("email")
    user = None
    if isinstance(email, str):
        user = users.collection.find_one({"email": email.strip().lower(), **users.base_filter})
    if user is None:
        raise AppError("There is no user with that email address.", 404)

    reset_token, reset_fields = create_password_reset_token(utcnow())
    users.collection.update_one({"_id": user["_id"]}, {"$set": reset_fields})

    reset_url = f"{str(request.base_url).rstrip('/')}/api/v1/users/resetPassword/{reset_token}"
    message = (
        f"Forgot your password? Submit a POST request with your new password and passwordConfirm to: {reset_url}."
        "\nThe link is valid for 10 minutes. If you didn't forget your password, please ignore this email!"
    )
    try:
        send_email(email=user["email"], subject="Your password reset token (valid for 10 min)", message=message)
    except (smtplib.SMTPException, OSError):
        logger.warning("Could not send password reset email to %s", user["email"], exc_info=True)
        users.collection.update_one(
            {"_id": user["_id"]}, {"$unset": {"passwordResetToken": "", "passwordResetExpires": ""}}
        )
        raise AppError("There was an error sending the email. Try again later!", 500)

    return {"status": "success", "message": "Token sent to email!"}


@router.post("/resetPassword/{token}")
def reset_password(token: str, payload: dict = Body(...)):
    user = users.collection.find_one(
        {"passwordResetToken": hash_token(token), "passwordResetExpires": {"$gt": utcnow()}, **users.base_filter}
    )
    if user is None:
        raise AppError("Token is invalid or has expired", 400)

    changes = new_password_fields(payload)
    users.collection.update_one(
        {"_id": user["_id"]},
        {"$set": changes, "$unset": {"passwordResetToken": "", "passwordResetExpires": ""}, "$inc": {"__v": 1}},
    )
    user.update(changes)
    return create_send_token(user, 200)


@router.patch("/updateMyPassword")
def update_my_password(payload: dict = Body(...), current_user=Depends(protect)):
    if not verify_password(payload.get("passwordCurrent"), current_user.get("password")):
        raise AppError("Your current password is wrong.", 401)

    changes = new_password_fields(payload)
    users.collection.update_one({"_id": current_user["_id"]}, {"$set": changes, "$inc": {"__v": 1}})
    current_user.update(changes)
    return create_send_token(current_user, 200)

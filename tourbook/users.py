from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from .auth import protect, restrict_to
from .errors import AppError
from .features import query_string_from
from .handlers import delete_one, get_all, get_one, update_one
from .images import Payload, read_payload, resize_user_photo
from .resources import users
from .utils import filter_obj

PASSWORD_FIELDS = ("password", "passwordConfirm", "passwordCurrent")

router = APIRouter(prefix="/api/v1/users", tags=["users"])


def reject_passwords(fields, hint):
    if any(field in fields for field in PASSWORD_FIELDS):
        raise AppError(f"This route is not for password updates. Please use {hint}.", 400)


@router.get("/me")
def get_me(current_user=Depends(protect)):
    return {"status": "success", "data": {"data": users.serialize(get_one(users, current_user["_id"]))}}


@router.patch("/updateMyData")
def update_my_data(payload: Payload = Depends(read_payload), current_user=Depends(protect)):
    reject_passwords(payload.fields, "/updateMyPassword")
    changes = filter_obj(payload.fields, "name", "email")
    photo = resize_user_photo(current_user["_id"], payload.files)
    if photo:
        changes["photo"] = photo
    user = update_one(users, current_user["_id"], changes)
    return {"status": "success", "data": {"user": users.serialize(user)}}


@router.delete("/deleteMyAccount", status_code=204)
def delete_my_account(current_user=Depends(protect)):
    users.collection.update_one({"_id": current_user["_id"]}, {"$set": {"activeUser": False}})
    return Response(status_code=204)


@router.get("", dependencies=[Depends(restrict_to("admin"))])
def get_all_users(request: Request):
    docs = get_all(users, query_string_from(request.query_params))
    return {"status": "success", "results": len(docs), "data": {"data": [users.serialize(doc) for doc in docs]}}


@router.post("", dependencies=[Depends(restrict_to("admin"))])
def create_user():
    raise AppError("This route is not defined! Please use /signup instead", 500)


@router.get("/{user_id}", dependencies=[Depends(restrict_to("admin"))])
def get_user(user_id: str):
    return {"status": "success", "data": {"data": users.serialize(get_one(users, user_id))}}


@router.patch("/{user_id}", dependencies=[Depends(restrict_to("admin"))])
def update_user(user_id: str, payload: Payload = Depends(read_payload)):
    reject_passwords(payload.fields, "/updateMyPassword or /resetPassword")
    user = update_one(users, user_id, payload.fields)
    return {"status": "success", "data": {"data": users.serialize(user)}}


@router.delete("/{user_id}", status_code=204, dependencies=[Depends(restrict_to("admin"))])
def delete_user(user_id: str):
    delete_one(users, user_id)
    return Response(status_code=204)

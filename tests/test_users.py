import os

from PIL import Image

from conftest import PASSWORD, auth_header, make_user, png_bytes
from tourbook import config

USERS = "/api/v1/users"


def test_get_me(client, user):
    res = client.get(f"{USERS}/me", headers=auth_header(user))

    assert res.status_code == 200
    data = res.json()["data"]["data"]
    assert data["name"] == user["name"]
    assert "password" not in data
    assert "activeUser" not in data


def test_update_my_data(client, db, user):
    body = {"name": "Jonas Schmedtmann", "role": "admin"}

    res = client.patch(f"{USERS}/updateMyData", json=body, headers=auth_header(user))

    assert res.status_code == 200
    assert res.json()["data"]["user"]["name"] == "Jonas Schmedtmann"
    assert db.users.find_one({"_id": user["_id"]})["role"] == "user"


def test_update_my_data_refuses_passwords(client, user):
    body = {"password": "newpass123", "passwordConfirm": "newpass123"}

    res = client.patch(f"{USERS}/updateMyData", json=body, headers=auth_header(user))

    assert res.status_code == 400
    assert res.json()["message"].startswith("This route is not for password updates.")


def test_update_my_photo(client, user):
    files = {"photo": ("me.png", png_bytes((1200, 900)), "image/png")}

    res = client.patch(f"{USERS}/updateMyData", files=files, headers=auth_header(user))

    assert res.status_code == 200
    photo = res.json()["data"]["user"]["photo"]
    assert photo.startswith(f"user-{user['_id']}-")
    path = os.path.join(config.PUBLIC_DIR, "img", "users", photo)
    with Image.open(path) as image:
        assert image.size == (500, 500)
        assert image.format == "JPEG"

    assert client.get(f"/img/users/{photo}").status_code == 200


def test_delete_my_account(client, db, user, admin):
    headers = auth_header(user)

    res = client.delete(f"{USERS}/deleteMyAccount", headers=headers)

    assert res.status_code == 204
    assert db.users.find_one({"_id": user["_id"]})["activeUser"] is False
    assert client.get(f"{USERS}/me", headers=headers).status_code == 401
    login = client.post(f"{USERS}/login", json={"email": user["email"], "password": PASSWORD})
    assert login.status_code == 401

    listed = client.get(USERS, headers=auth_header(admin)).json()["data"]["data"]
    assert [u["email"] for u in listed] == [admin["email"]]
    assert client.get(f"{USERS}/{user['_id']}", headers=auth_header(admin)).status_code == 404


def test_admin_manages_users(client, db, admin):
    guide = make_user(db, name="Lisa Guide")
    headers = auth_header(admin)

    res = client.get(f"{USERS}/{guide['_id']}", headers=headers)
    assert res.status_code == 200
    assert res.json()["data"]["data"]["email"] == guide["email"]

    res = client.patch(f"{USERS}/{guide['_id']}", json={"role": "lead-guide"}, headers=headers)
    assert res.status_code == 200
    assert res.json()["data"]["data"]["role"] == "lead-guide"

    res = client.patch(f"{USERS}/{guide['_id']}", json={"role": "emperor"}, headers=headers)
    assert res.status_code == 400

    res = client.delete(f"{USERS}/{guide['_id']}", headers=headers)
    assert res.status_code == 204
    assert db.users.find_one({"_id": guide["_id"]}) is None


def test_admin_cannot_create_users_directly(client, admin):
    res = client.post(USERS, json={}, headers=auth_header(admin))

    assert res.status_code == 500
    assert res.json()["message"] == "This route is not defined! Please use /signup instead"


def test_users_can_be_filtered_by_role(client, db, admin):
    make_user(db, name="Lisa Guide", role="guide")
    make_user(db, name="Steve Guide", role="guide")

    res = client.get(USERS, params={"role": "guide", "sort": "name"}, headers=auth_header(admin))

    assert [u["name"] for u in res.json()["data"]["data"]] == ["Lisa Guide", "Steve Guide"]


def test_users_cannot_be_filtered_by_hidden_fields(client, db, admin):
    make_user(db, name="Lisa Guide", passwordResetToken="abc")

    res = client.get(USERS, params={"passwordResetToken": "nope", "password[gte]": "$"}, headers=auth_header(admin))

    assert res.json()["results"] == 2

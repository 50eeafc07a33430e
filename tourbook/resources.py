import datetime

from bson import ObjectId

from .handlers import Resource
from .models import Review, Tour, User, UserUpdate

USER_HIDDEN_FIELDS = ("password", "passwordConfirm", "activeUser", "passwordResetToken", "passwordResetExpires")
ACTIVE_USERS = {"activeUser": {"$ne": False}}


def object_id(value):
    if not ObjectId.is_valid(value):
        raise ValueError(f"Invalid id: {value}")
    return ObjectId(value)


def date(value):
    return datetime.datetime.fromisoformat(value)


def tour_virtuals(doc):
    if "duration" not in doc:
        return {}
    return {"durationWeeks": doc["duration"] / 7}


tours = Resource(
    "tours",
    Tour,
    refs=("guides",),
    casts={
        "_id": object_id,
        "duration": float,
        "maxGroupSize": float,
        "ratingsAverage": float,
        "ratingsQuantity": float,
        "price": float,
        "priceDiscount": float,
        "createdAt": date,
        "startDates": date,
        "guides": object_id,
    },
    virtuals=tour_virtuals,
)

users = Resource(
    "users",
    User,
    update_model=UserUpdate,
    hidden=USER_HIDDEN_FIELDS,
    casts={"_id": object_id, "passwordChangedAt": date},
    base_filter=ACTIVE_USERS,
)

reviews = Resource(
    "reviews",
    Review,
    refs=("tour", "author"),
    casts={"_id": object_id, "rating": float, "createdAt": date, "tour": object_id, "author": object_id},
)

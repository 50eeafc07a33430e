import datetime
import math
from enum import Enum
from typing import Literal, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


def utcnow():
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


def round_rating(v):
    """Round to one decimal, halves upwards."""
    return math.floor(v * 10 + 0.5) / 10


class Document(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, use_enum_values=True, validate_default=True)


def as_naive_utc(v: datetime.datetime):
    if v.tzinfo is not None:
        v = v.astimezone(datetime.timezone.utc).replace(tzinfo=None)
    return v


def validate_object_id(v):
    if isinstance(v, ObjectId):
        return str(v)
    if not isinstance(v, str) or not ObjectId.is_valid(v):
        raise ValueError(f"Invalid id: {v}")
    return v


class GeoLocation(Document):
    type: Literal["Point"] = "Point"
    coordinates: tuple[float, float]  # lng, lat
    address: Optional[str] = None
    description: Optional[str] = None


class TourLocation(GeoLocation):
    day: Optional[int] = None


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    DIFFICULT = "difficult"


class Tour(Document):
    name: str
    duration: float
    max_group_size: int
    difficulty: Difficulty
    ratings_average: float = 4.5
    ratings_quantity: int = 0
    price: float
    price_discount: Optional[float] = None
    summary: str
    description: Optional[str] = None
    image_cover: str
    images: list[str] = []
    created_at: datetime.datetime = Field(default_factory=utcnow)
    start_dates: list[datetime.datetime] = []
    start_location: Optional[GeoLocation] = None
    locations: list[TourLocation] = []
    guides: list[str] = []

    @field_validator("name", "summary", "description")
    def strip_text(cls, v):
        return v.strip() if v is not None else v

    @field_validator("name")
    def validate_name(cls, v):
        if len(v) > 40:
            raise ValueError("A tour name must have less or equal than 40 characters")
        if len(v) < 10:
            raise ValueError("A tour name must have more or equal than 10 characters")
        return v

    @field_validator("duration", "max_group_size", "price")
    def validate_positive(cls, v):
        if v < 0:
            raise ValueError("Duration, group size and price cannot be negative")
        return v

    @field_validator("ratings_average")
    def validate_ratings_average(cls, v):
        if not 1 <= v <= 5:
            raise ValueError("Rating must be between 1.0 and 5.0")
        return round_rating(v)

    @field_validator("created_at")
    def validate_created_at(cls, v):
        return as_naive_utc(v)

    @field_validator("start_dates")
    def validate_start_dates(cls, v):
        return [as_naive_utc(date) for date in v]

    @field_validator("guides", mode="before")
    def validate_guides(cls, v):
        return [validate_object_id(guide) for guide in v]

    @model_validator(mode="after")
    def validate_price_discount(self):
        if self.price_discount is not None and self.price_discount >= self.price:
            raise ValueError(f"Discount price ({self.price_discount}) should be below regular price")
        return self


class Role(str, Enum):
    USER = "user"
    GUIDE = "guide"
    LEAD_GUIDE = "lead-guide"
    ADMIN = "admin"


class PasswordChange(Document):
    password: str
    password_confirm: str

    @field_validator("password")
    def validate_password(cls, v):
        if len(v) < 8:
            raise ValueError("A password must have at least 8 characters")
        return v

    @model_validator(mode="after")
    def validate_password_confirm(self):
        if self.password != self.password_confirm:
            raise ValueError("Passwords are not the same!")
        return self


def check_user_name(v):
    v = v.strip()
    if not v:
        raise ValueError("Please tell us your name!")
    if len(v) > 40:
        raise ValueError("A name must have less or equal than 40 characters")
    return v


class User(PasswordChange):
    name: str
    email: EmailStr
    photo: str = "default.jpg"
    role: Role = Role.USER

    @field_validator("name")
    def validate_name(cls, v):
        return check_user_name(v)

    @field_validator("email", mode="before")
    def normalize_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v


class UserUpdate(Document):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    photo: Optional[str] = None
    role: Optional[Role] = None

    @field_validator("name")
    def validate_name(cls, v):
        return check_user_name(v) if v is not None else v

    @field_validator("email", mode="before")
    def normalize_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v


class Review(Document):
    review: str
    rating: float
    created_at: datetime.datetime = Field(default_factory=utcnow)
    tour: str
    author: str

    @field_validator("review")
    def validate_review(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Review can not be empty!")
        return v

    @field_validator("rating")
    def validate_rating(cls, v):
        if not 1 <= v <= 5:
            raise ValueError("Rating must be between 1 and 5")
        return v

    @field_validator("created_at")
    def validate_created_at(cls, v):
        return as_naive_utc(v)

    @field_validator("tour", "author", mode="before")
    def validate_reference(cls, v):
        return validate_object_id(v)

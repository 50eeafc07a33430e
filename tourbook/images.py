import io
import json
import os

from fastapi import Request
from PIL import Image, ImageOps, UnidentifiedImageError
from starlette.datastructures import UploadFile

from . import config
from .errors import AppError
from .utils import timestamp_ms

MAX_JSON_BODY = 10 * 1024
JPEG_QUALITY = 90
TOUR_IMAGE_SIZE = (2000, 1333)
USER_PHOTO_SIZE = (500, 500)
MAX_TOUR_IMAGES = 3


class Upload:
    def __init__(self, content_type, data):
        self.content_type = content_type or ""
        self.data = data


class Payload:
    """Request body fields plus any uploaded files, keyed by form field name."""

    def __init__(self, fields=None, files=None):
        self.fields = fields or {}
        self.files = files or {}


async def read_payload(request: Request) -> Payload:
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("multipart/form-data"):
        form = await request.form()
        fields, files = {}, {}
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                files.setdefault(key, []).append(Upload(value.content_type, await value.read()))
            else:
                fields[key] = value
        return Payload(fields, files)

    body = await request.body()
    if len(body) > MAX_JSON_BODY:
        raise AppError("Request body is too large", 413)
    if not body.strip():
        return Payload()
    try:
        fields = json.loads(body)
    except ValueError:
        raise AppError("Request body is not valid JSON", 400)
    if not isinstance(fields, dict):
        raise AppError("Request body must be a JSON object", 400)
    return Payload(fields)


def image_filter(upload: Upload):
    if not upload.content_type.startswith("image"):
        raise AppError("Not an image! Please upload only images.", 400)


def resize_image(data, size, path):
    try:
        image = Image.open(io.BytesIO(data))
        image = ImageOps.fit(image.convert("RGB"), size)
    except (UnidentifiedImageError, OSError):
        raise AppError("Not an image! Please upload only images.", 400)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    image.save(path, "JPEG", quality=JPEG_QUALITY)


def image_path(kind, filename):
    return os.path.join(config.PUBLIC_DIR, "img", kind, filename)


def resize_tour_images(tour_id, files):
    """Store uploaded tour images and return the body fields naming them."""
    fields = {}
    covers = files.get("imageCover", [])
    images = files.get("images", [])
    if len(covers) > 1 or len(images) > MAX_TOUR_IMAGES:
        raise AppError(f"Upload at most 1 imageCover and {MAX_TOUR_IMAGES} images", 400)
    for upload in covers + images:
        image_filter(upload)

    stamp = timestamp_ms()
    if covers:
        fields["imageCover"] = f"tour-{tour_id}-{stamp}-cover.jpeg"
        resize_image(covers[0].data, TOUR_IMAGE_SIZE, image_path("tours", fields["imageCover"]))
    if images:
        fields["images"] = []
        for i, upload in enumerate(images, start=1):
            filename = f"tour-{tour_id}-{stamp}-{i}.jpeg"
            resize_image(upload.data, TOUR_IMAGE_SIZE, image_path("tours", filename))
            fields["images"].append(filename)
    return fields


def resize_user_photo(user_id, files):
    photos = files.get("photo", [])
    if not photos:
        return None
    if len(photos) > 1:
        raise AppError("Upload a single photo", 400)
    image_filter(photos[0])
    filename = f"user-{user_id}-{timestamp_ms()}.jpeg"
    resize_image(photos[0].data, USER_PHOTO_SIZE, image_path("users", filename))
    return filename

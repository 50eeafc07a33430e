import datetime

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response
from slugify import slugify

from . import reviews as review_routes
from .auth import restrict_to
from .errors import AppError
from .features import query_string_from
from .handlers import create_one, delete_one, get_all, get_one, update_one
from .images import Payload, read_payload, resize_tour_images
from .resources import ACTIVE_USERS, USER_HIDDEN_FIELDS, reviews, tours, users

EARTH_RADIUS_MI = 3963.2
EARTH_RADIUS_KM = 6378.1
METERS_TO_MI = 0.000621371
METERS_TO_KM = 0.001

router = APIRouter(prefix="/api/v1/tours", tags=["tours"])


def populate_guides(docs):
    guide_ids = {guide for doc in docs for guide in doc.get("guides", [])}
    if not guide_ids:
        return docs
    projection = {field: 0 for field in ("__v", "passwordChangedAt") + USER_HIDDEN_FIELDS}
    found = users.collection.find({"_id": {"$in": list(guide_ids)}, **ACTIVE_USERS}, projection)
    guides = {guide["_id"]: users.serialize(guide) for guide in found}
    for doc in docs:
        if "guides" in doc:
            doc["guides"] = [guides[guide] for guide in doc["guides"] if guide in guides]
    return docs


def send_tours(docs):
    docs = populate_guides(docs)
    return {"status": "success", "results": len(docs), "data": {"data": [tours.serialize(doc) for doc in docs]}}


def parse_latlng(latlng):
    lat, _, lng = latlng.partition(",")
    try:
        return float(lat), float(lng)
    except ValueError:
        raise AppError("Please provide latitude and longitude in the format lat,lng.", 400)


def tour_slug(data):
    return {**data, "slug": slugify(data["name"])}


@router.get("")
def get_all_tours(request: Request):
    return send_tours(get_all(tours, query_string_from(request.query_params)))


@router.get("/top-5-cheap-tours")
def alias_top_tours(request: Request):
    query_string = {**query_string_from(request.query_params), "limit": "5", "sort": "-ratingsAverage,price"}
    return send_tours(get_all(tours, query_string))


@router.get("/tour-stats")
def get_tour_stats():
    stats = list(
        tours.collection.aggregate(
            [
                {"$match": {"ratingsAverage": {"$gte": 4.5}}},
                {
                    "$group": {
                        "_id": "$difficulty",
                        "numTours": {"$sum": 1},
                        "numRatings": {"$sum": "$ratingsQuantity"},
                        "avgRating": {"$avg": "$ratingsAverage"},
                        "avgPrice": {"$avg": "$price"},
                        "minPrice": {"$min": "$price"},
                        "maxPrice": {"$max": "$price"},
                    }
                },
                {"$sort": {"avgPrice": 1}},
            ]
        )
    )
    return {"status": "success", "data": {"stats": stats}}


@router.get("/monthly-plan/{year}", dependencies=[Depends(restrict_to("admin", "lead-guide", "guide"))])
def get_monthly_plan(year: str):
    try:
        year = int(year)
        start, end = datetime.datetime(year, 1, 1), datetime.datetime(year + 1, 1, 1)
    except ValueError:
        raise AppError(f"Invalid year: {year}.", 400)

    plan = list(
        tours.collection.aggregate(
            [
                {"$unwind": "$startDates"},
                {"$match": {"startDates": {"$gte": start, "$lt": end}}},
                {"$group": {"_id": {"$month": "$startDates"}, "numTourStarts": {"$sum": 1}, "tours": {"$push": "$name"}}},
                {"$addFields": {"month": "$_id"}},
                {"$project": {"_id": 0}},
                {"$sort": {"numTourStarts": -1, "month": 1}},
            ]
        )
    )
    return {"status": "success", "data": {"plan": plan}}


@router.get("/tours-within/{distance}/center/{latlng}/unit/{unit}")
def get_tours_within(distance: float, latlng: str, unit: str):
    lat, lng = parse_latlng(latlng)
    radius = distance / (EARTH_RADIUS_MI if unit == "mi" else EARTH_RADIUS_KM)
    docs = list(
        tours.collection.find(
            {"startLocation": {"$geoWithin": {"$centerSphere": [[lng, lat], radius]}}}, tours.default_projection()
        )
    )
    return send_tours(docs)


@router.get("/distances/{latlng}/unit/{unit}")
def get_distances(latlng: str, unit: str):
    lat, lng = parse_latlng(latlng)
    multiplier = METERS_TO_MI if unit == "mi" else METERS_TO_KM
    distances = list(
        tours.collection.aggregate(
            [
                {
                    "$geoNear": {
                        "near": {"type": "Point", "coordinates": [lng, lat]},
                        "distanceField": "distance",
                        "distanceMultiplier": multiplier,
                    }
                },
                {"$project": {"distance": 1, "name": 1}},
            ]
        )
    )
    data = [{**tours.serialize(doc), "distance": round(doc["distance"], 2)} for doc in distances]
    return {"status": "success", "results": len(data), "data": {"data": data}}


@router.post("", status_code=201, dependencies=[Depends(restrict_to("admin", "lead-guide"))])
def create_tour(payload: Payload = Depends(read_payload)):
    tour = create_one(tours, payload.fields, prepare=tour_slug)
    return {"status": "success", "data": {"data": tours.serialize(populate_guides([tour])[0])}}


@router.get("/{tour_id}")
def get_tour(tour_id: str):
    tour = populate_guides([get_one(tours, tour_id)])[0]
    tour_reviews = reviews.collection.find({"tour": tour["_id"]}, reviews.default_projection())
    data = tours.serialize(tour)
    data["reviews"] = [reviews.serialize(review) for review in tour_reviews]
    return {"status": "success", "data": {"data": data}}


@router.patch("/{tour_id}", dependencies=[Depends(restrict_to("admin", "lead-guide"))])
def update_tour(tour_id: str, payload: Payload = Depends(read_payload)):
    patch = {**payload.fields, **resize_tour_images(tour_id, payload.files)}
    tour = update_one(tours, tour_id, patch)
    return {"status": "success", "data": {"data": tours.serialize(populate_guides([tour])[0])}}


@router.delete("/{tour_id}", status_code=204, dependencies=[Depends(restrict_to("admin", "lead-guide"))])
def delete_tour(tour_id: str):
    delete_one(tours, tour_id)
    return Response(status_code=204)


router.include_router(review_routes.router, prefix="/{tour_id}/reviews")

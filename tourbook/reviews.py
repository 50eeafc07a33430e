import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from .auth import protect, restrict_to
from .features import query_string_from
from .handlers import create_one, delete_one, get_all, get_one, update_one
from .images import Payload, read_payload
from .models import round_rating
from .resources import reviews, tours
from .utils import to_object_id

logger = logging.getLogger(__name__)

router = APIRouter(tags=["reviews"], dependencies=[Depends(protect)])


def calculate_tour_ratings(tour_id):
    """Store the average rating and number of reviews of a tour on the tour."""
    stats = list(
        reviews.collection.aggregate(
            [
                {"$match": {"tour": tour_id}},
                {"$group": {"_id": "$tour", "nRating": {"$sum": 1}, "avgRating": {"$avg": "$rating"}}},
            ]
        )
    )
    if stats:
        ratings = {"ratingsQuantity": stats[0]["nRating"], "ratingsAverage": round_rating(stats[0]["avgRating"])}
    else:
        ratings = {"ratingsQuantity": 0, "ratingsAverage": 0}
    tours.collection.update_one({"_id": tour_id}, {"$set": ratings})
    logger.debug("Tour %s ratings now %s", tour_id, ratings)
    return ratings


def tour_filter(request: Request):
    tour_id = request.path_params.get("tour_id")
    if tour_id is None:
        return None
    return {"tour": to_object_id(tour_id, "tour")}


@router.get("")
def get_all_reviews(request: Request):
    docs = get_all(reviews, query_string_from(request.query_params), parent_filter=tour_filter(request))
    return {"status": "success", "results": len(docs), "data": {"data": [reviews.serialize(doc) for doc in docs]}}


@router.post("", status_code=201)
def create_review(
    request: Request, payload: Payload = Depends(read_payload), current_user=Depends(restrict_to("user"))
):
    body = dict(payload.fields)
    tour_id = request.path_params.get("tour_id")
    if not body.get("tour") and tour_id:
        body["tour"] = tour_id
    if not body.get("author"):
        body["author"] = str(current_user["_id"])

    review = create_one(reviews, body)
    calculate_tour_ratings(review["tour"])
    return {"status": "success", "data": {"data": reviews.serialize(review)}}


@router.get("/{review_id}")
def get_review(review_id: str):
    return {"status": "success", "data": {"data": reviews.serialize(get_one(reviews, review_id))}}


@router.patch("/{review_id}", dependencies=[Depends(restrict_to("user", "admin"))])
def update_review(review_id: str, payload: Payload = Depends(read_payload)):
    previous = get_one(reviews, review_id)
    review = update_one(reviews, review_id, payload.fields)
    calculate_tour_ratings(review["tour"])
    if previous["tour"] != review["tour"]:
        calculate_tour_ratings(previous["tour"])
    return {"status": "success", "data": {"data": reviews.serialize(review)}}


@router.delete("/{review_id}", status_code=204, dependencies=[Depends(restrict_to("user", "admin"))])
def delete_review(review_id: str):
    review = delete_one(reviews, review_id)
    calculate_tour_ratings(review["tour"])
    return Response(status_code=204)

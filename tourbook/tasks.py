import logging

from celery import Celery

from . import config
from .models import utcnow
from .resources import reviews, tours, users
from .reviews import calculate_tour_ratings

logger = logging.getLogger(__name__)

celery_app = Celery("tourbook", broker=config.CELERY_BROKER_URL)


@celery_app.on_after_configure.connect
def setup_periodic_tasks(sender, **kwargs):
    sender.add_periodic_task(5 * 60, purge_expired_reset_tokens.s(), name="Forget expired password reset tokens")
    sender.add_periodic_task(5 * 60, reconcile_tour_ratings.s(), name="Recompute tour ratings from their reviews")


@celery_app.task
def purge_expired_reset_tokens():
    result = users.collection.update_many(
        {"passwordResetExpires": {"$lt": utcnow()}},
        {"$unset": {"passwordResetToken": "", "passwordResetExpires": ""}},
    )
    logger.info("Purged %d expired password reset tokens", result.modified_count)
    return result.modified_count


@celery_app.task
def reconcile_tour_ratings():
    """
    Ratings are written after the review that changed them, outside any
    transaction, so a crash in between leaves a tour stale until its next
    review write. This puts every tour back in line with its reviews.
    """
    tour_ids = set(reviews.collection.distinct("tour"))
    tour_ids.update(tour["_id"] for tour in tours.collection.find({"ratingsQuantity": {"$gt": 0}}, {"_id": 1}))
    for tour_id in tour_ids:
        calculate_tour_ratings(tour_id)
    logger.info("Reconciled ratings of %d tours", len(tour_ids))
    return len(tour_ids)

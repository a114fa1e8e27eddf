"""
Django signals for automatic rating recalculation.

Whenever a review is saved or deleted, the reviewee's rating and the rating
of the resource it is anchored to are recomputed from all non-hidden
reviews. Recomputation is a full aggregate, so edits, hides and deletions
are all handled the same way.
"""

import logging

from django.db import transaction
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from .models import Resource, Review, User
from .services.users import recalculate_resource_rating, recalculate_user_rating

logger = logging.getLogger(__name__)


def _recalculate_for(review, using):
    """
    Recompute the aggregates a review contributes to.

    Runs within the caller's transaction; a failure rolls back the review
    write as well so ratings and reviews never disagree.
    """
    with transaction.atomic(using=using):
        if User.objects.db_manager(using).filter(pk=review.reviewee_id).exists():
            recalculate_user_rating(review.reviewee_id, using=using)
        if review.resource_id and Resource.objects.db_manager(using).filter(pk=review.resource_id).exists():
            recalculate_resource_rating(review.resource_id, using=using)


@receiver(post_save, sender=Review)
def update_ratings_on_review_save(sender, instance, created, using='default', raw=False, **kwargs):
    """
    Recalculate ratings when a review is created or updated.

    Args:
        sender: The Review model class
        instance: The Review instance that was saved
        created: Boolean indicating if this is a new review
        using: Database alias the review was written to
        raw: True when loading fixtures; ratings are left untouched
    """
    if raw:
        return

    try:
        _recalculate_for(instance, using)
    except Exception as e:
        logger.error(
            f"Error updating ratings for review {instance.id}: {e}",
            exc_info=True
        )
        raise

    action = "created" if created else "updated"
    logger.info(
        f"Updated ratings for review {instance.id} ({action}): "
        f"reviewee={instance.reviewee_id}, rating={instance.rating}"
    )


@receiver(post_delete, sender=Review)
def update_ratings_on_review_delete(sender, instance, using='default', **kwargs):
    """
    Recalculate ratings when a review is deleted.

    When the reviewee or resource is being deleted in the same cascade the
    row may already be gone; those aggregates are skipped.
    """
    try:
        _recalculate_for(instance, using)
    except Exception as e:
        logger.error(
            f"Error updating ratings after deleting review {instance.id}: {e}",
            exc_info=True
        )
        raise

    logger.info(f"Updated ratings after deleting review {instance.id}")

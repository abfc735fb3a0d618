"""Tests for RatingService."""

import uuid
from unittest.mock import patch

import pytest
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from swapchat.exceptions import NotFoundError, NotParticipantError, ValidationError
from swapchat.models.notification import Notification
from swapchat.models.rating import Rating
from swapchat.schemas.rating import RatingCreate
from swapchat.services.profile_service import ProfileService
from swapchat.services.rating_service import RatingService


def _rating(request, value, comment="", rater=None, rated=None):
    return RatingCreate(
        rater_user_id=rater or request.requester_id,
        rated_user_id=rated or request.owner_id,
        rating=value,
        comment=comment,
        swap_request_id=request.id,
    )


def test_submit_rating_persists(db: Session, setup_swap_request):
    svc = RatingService(db)
    rating = svc.submit_rating(_rating(setup_swap_request, 5, "Great swap"))
    assert rating.id is not None

    stored = svc.get_ratings_for_user(setup_swap_request.owner_id)
    assert len(stored) == 1
    assert stored[0].rating == 5
    assert stored[0].comment == "Great swap"
    assert stored[0].rater_user_id == setup_swap_request.requester_id


def test_submit_rating_rejects_self_rating(db: Session, setup_swap_request):
    user = setup_swap_request.requester_id
    with pytest.raises(ValidationError):
        RatingService(db).submit_rating(
            _rating(setup_swap_request, 5, rater=user, rated=user)
        )
    assert db.query(Rating).count() == 0


@pytest.mark.parametrize("value", [0, 6, -1])
def test_submit_rating_rejects_out_of_range(db: Session, setup_swap_request, value):
    with pytest.raises(ValidationError):
        RatingService(db).submit_rating(_rating(setup_swap_request, value))
    assert db.query(Rating).count() == 0


def test_submit_rating_unknown_request(db: Session, requester_id, owner_id):
    data = RatingCreate(
        rater_user_id=requester_id,
        rated_user_id=owner_id,
        rating=4,
        swap_request_id=uuid.uuid4(),
    )
    with pytest.raises(NotFoundError):
        RatingService(db).submit_rating(data)


def test_submit_rating_by_outsider(db: Session, setup_swap_request, outsider_id):
    with pytest.raises(NotParticipantError):
        RatingService(db).submit_rating(
            _rating(setup_swap_request, 1, rater=outsider_id)
        )


def test_repeat_ratings_all_persist_and_latest_counts(db: Session, setup_swap_request):
    svc = RatingService(db)
    svc.submit_rating(_rating(setup_swap_request, 5))
    svc.submit_rating(_rating(setup_swap_request, 3))

    assert len(svc.get_ratings_for_request(setup_swap_request.id)) == 2
    assert svc.compute_user_rating(setup_swap_request.owner_id) == 3.0
    profile = ProfileService(db).get_profile(setup_swap_request.owner_id)
    assert profile.rating == 3.0


def test_compute_user_rating_averages_distinct_raters(
    db: Session, setup_swap_request, faker
):
    svc = RatingService(db)
    svc.submit_rating(_rating(setup_swap_request, 4))
    # A rating outside any swap counts on its own.
    other_rater = uuid.uuid4()
    svc.submit_rating(
        RatingCreate(
            rater_user_id=other_rater,
            rated_user_id=setup_swap_request.owner_id,
            rating=5,
        )
    )
    assert svc.compute_user_rating(setup_swap_request.owner_id) == 4.5
    assert svc.count_ratings_for_user(setup_swap_request.owner_id) == 2


def test_compute_user_rating_none_without_ratings(db: Session, owner_id):
    assert RatingService(db).compute_user_rating(owner_id) is None


def test_submit_rating_notifies_rated_user(db: Session, setup_swap_request):
    RatingService(db).submit_rating(_rating(setup_swap_request, 4))
    notes = db.query(Notification).all()
    assert len(notes) == 1
    assert notes[0].user_id == setup_swap_request.owner_id
    assert notes[0].type == "rating"


def test_submit_rating_survives_aggregate_failure(db: Session, setup_swap_request):
    svc = RatingService(db)
    with patch.object(
        svc._profiles, "update_rating", side_effect=SQLAlchemyError("profiles down")
    ):
        rating = svc.submit_rating(_rating(setup_swap_request, 2))
    assert rating.rating == 2
    assert db.query(Rating).count() == 1

import pytest
from sqlalchemy import update
from sqlmodel import select

from app.exceptions import (
    InvalidStatusTransition,
    PaymentProviderError,
    PurchaseNotFound,
    ReconciliationError,
)
from app.models.course_progress import CourseProgress
from app.models.course_purchase import CoursePurchase
from app.models.enrollment import CourseRoster, UserEnrollment
from app.models.purchase_event import PurchaseEvent
from app.services import enrollment_service
from app.services.purchase_service import reconcile


@pytest.fixture
def purchase(session, student, course):
    purchase = CoursePurchase(
        user_id=student.id,
        course_id=course.id,
        amount=course.price,
        status="pending",
        payment_id="plink_0001",
    )
    session.add(purchase)
    session.commit()
    session.refresh(purchase)
    return purchase


def _reconcile(session, purchase, amount=100000):
    return reconcile(
        session,
        course_id=purchase.course_id,
        user_id=purchase.user_id,
        purchase_id=purchase.id,
        final_amount=amount,
        source="webhook",
    )


def test_successful_payment_scenario(session, purchase, student, course):
    result = _reconcile(session, purchase)

    assert result.purchase.status == "completed"
    assert result.purchase.amount == 100000
    assert result.enrolled_course_ids == [course.id]
    assert result.roster_user_ids == [student.id]
    assert result.progress.completed is False
    assert result.progress.lecture_progress == []
    assert result.already_completed is False


def test_provider_amount_supersedes_quoted_price(session, purchase):
    result = _reconcile(session, purchase, amount=99000)

    assert result.purchase.amount == 99000


def test_reconcile_twice_converges(session, purchase, student, course):
    _reconcile(session, purchase)
    second = _reconcile(session, purchase)

    assert second.already_completed is True
    assert len(session.exec(select(CoursePurchase).where(CoursePurchase.status == "completed")).all()) == 1
    assert len(session.exec(select(UserEnrollment)).all()) == 1
    assert len(session.exec(select(CourseRoster)).all()) == 1
    assert len(session.exec(select(CourseProgress)).all()) == 1
    assert second.enrolled_course_ids == [course.id]
    assert second.roster_user_ids == [student.id]


def test_repeated_reconcile_is_recorded_on_timeline(session, purchase):
    _reconcile(session, purchase)
    _reconcile(session, purchase)

    events = [e.event_type for e in session.exec(
        select(PurchaseEvent).order_by(PurchaseEvent.created_at)
    ).all()]
    assert events == ["payment_completed", "reconciliation_repeated"]


def test_repeated_reconcile_repairs_partial_state(session, purchase, student, course):
    # first run crashed after marking the purchase completed
    purchase.status = "completed"
    session.add(purchase)
    session.commit()

    result = _reconcile(session, purchase)

    assert result.enrolled_course_ids == [course.id]
    assert result.roster_user_ids == [student.id]
    assert result.progress.id is not None


def test_unknown_purchase(session, student, course):
    with pytest.raises(PurchaseNotFound):
        reconcile(
            session,
            course_id=course.id,
            user_id=student.id,
            purchase_id=12345,
            final_amount=100000,
        )

    assert session.exec(select(UserEnrollment)).all() == []


def test_metadata_for_another_user_is_rejected(session, purchase, creator):
    with pytest.raises(ReconciliationError):
        reconcile(
            session,
            course_id=purchase.course_id,
            user_id=creator.id,
            purchase_id=purchase.id,
            final_amount=100000,
        )

    session.refresh(purchase)
    assert purchase.status == "pending"


def test_missing_user_aborts_after_purchase_update(session, purchase, student):
    session.delete(student)
    session.commit()

    with pytest.raises(ReconciliationError):
        _reconcile(session, purchase)

    # earlier steps stay committed
    session.refresh(purchase)
    assert purchase.status == "completed"
    assert session.exec(select(UserEnrollment)).all() == []
    assert session.exec(select(CourseProgress)).all() == []


def test_enrollment_keeps_other_courses(session, purchase, student, creator):
    from app.models.course import Course

    other = Course(title="SQL Basics", price=50000, creator_id=creator.id)
    session.add(other)
    session.commit()
    session.add(UserEnrollment(user_id=student.id, course_id=other.id))
    session.commit()

    result = _reconcile(session, purchase)

    assert sorted(result.enrolled_course_ids) == sorted([other.id, purchase.course_id])


def test_failed_purchase_can_still_complete(session, purchase):
    purchase.status = "failed"
    session.add(purchase)
    session.commit()

    result = _reconcile(session, purchase)

    assert result.purchase.status == "completed"


def test_unknown_status_is_rejected(session, purchase):
    purchase.status = "refunded"
    session.add(purchase)
    session.commit()

    with pytest.raises(InvalidStatusTransition):
        _reconcile(session, purchase)


def test_progress_creation_race_yields_one_record(session, student, course, monkeypatch):
    # another request creates the record between our lookup and our insert
    existing = CourseProgress(user_id=student.id, course_id=course.id, lecture_progress=[])
    session.add(existing)
    session.commit()
    session.refresh(existing)

    real_get_progress = enrollment_service.get_progress
    calls = []

    def racing_get_progress(session, user_id, course_id):
        calls.append(1)
        if len(calls) == 1:
            return None
        return real_get_progress(session, user_id, course_id)

    monkeypatch.setattr(enrollment_service, "get_progress", racing_get_progress)

    progress = enrollment_service.init_progress(session, student.id, course.id)

    assert progress.id == existing.id
    assert len(session.exec(select(CourseProgress)).all()) == 1


def test_duplicate_membership_insert_is_absorbed(session, student, course, monkeypatch):
    user_id, course_id = student.id, course.id
    session.add(UserEnrollment(user_id=user_id, course_id=course_id))
    session.commit()
    session.expunge_all()

    real_get = session.get

    def stale_get(model, key, *args, **kwargs):
        if model is UserEnrollment:
            return None
        return real_get(model, key, *args, **kwargs)

    monkeypatch.setattr(session, "get", stale_get)

    assert enrollment_service.add_enrollment(session, user_id, course_id) == [course_id]


def test_missing_amount_changes_nothing(session, purchase):
    with pytest.raises(PaymentProviderError):
        _reconcile(session, purchase, amount=None)

    session.refresh(purchase)
    assert purchase.status == "pending"
    assert session.exec(select(PurchaseEvent)).all() == []


def test_losing_the_completion_race_logs_no_second_completion(session, purchase, student, course):
    # the other trigger flipped the row after we loaded it
    session.execute(
        update(CoursePurchase)
        .where(CoursePurchase.id == purchase.id)
        .values(status="completed")
        .execution_options(synchronize_session=False)
    )
    assert purchase.status == "pending"

    result = _reconcile(session, purchase)

    assert result.already_completed is True
    assert result.purchase.status == "completed"
    assert result.enrolled_course_ids == [course.id]
    events = [e.event_type for e in session.exec(select(PurchaseEvent)).all()]
    assert events == ["reconciliation_repeated"]

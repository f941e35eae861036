"""
Course purchase orchestration.

start_checkout creates the pending purchase and the provider checkout;
reconcile turns a confirmed payment into enrollment state and is reached
either from the provider webhook (handle_webhook) or from the client's
redirect-back confirmation (confirm_payment). Steps are committed one by one;
every step is idempotent so a repeated or racing reconciliation converges on
the same state.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy import update
from sqlmodel import Session, select

from app.config import Settings
from app.constants.purchase_status import PurchaseStatus, can_transition
from app.exceptions import (
    InvalidStatusTransition,
    NotFound,
    PaymentIncomplete,
    PaymentProviderError,
    PurchaseNotFound,
    ReconciliationError,
)
from app.models.course import Course
from app.models.course_progress import CourseProgress
from app.models.course_purchase import CoursePurchase
from app.models.user import User
from app.services.enrollment_service import add_enrollment, add_roster_entry, init_progress
from app.services.payment_gateway import CHECKOUT_COMPLETED_EVENT, PAID, RazorpayGateway
from app.services.purchase_event_service import log_purchase_event

logger = logging.getLogger(__name__)

COMPLETABLE_STATUSES = [
    status.value for status in PurchaseStatus
    if can_transition(status.value, PurchaseStatus.COMPLETED.value)
]


@dataclass
class CheckoutResult:
    url: str
    cancel_url: str
    purchase_id: int
    session_id: str


@dataclass
class ReconciliationResult:
    purchase: CoursePurchase
    enrolled_course_ids: List[int]
    roster_user_ids: List[int]
    progress: CourseProgress
    already_completed: bool = False


@dataclass
class ConfirmationResult:
    status: str  # processed | already_processed
    purchase_id: int
    message: str


def start_checkout(
    session: Session,
    gateway: RazorpayGateway,
    settings: Settings,
    *,
    user_id: int,
    course_id: int,
) -> CheckoutResult:
    course = session.get(Course, course_id)
    if not course:
        raise NotFound("Course not found!")

    purchase = CoursePurchase(
        user_id=user_id,
        course_id=course_id,
        amount=course.price,
        status=PurchaseStatus.PENDING.value,
    )
    session.add(purchase)
    session.commit()
    session.refresh(purchase)

    # on failure the pending purchase stays behind without a payment id
    checkout = gateway.create_checkout_session(
        purchase=purchase,
        course=course,
        success_url=settings.success_url(course_id),
        currency=settings.payment_currency,
    )

    purchase.payment_id = checkout.id
    purchase.updated_at = datetime.utcnow()
    session.add(purchase)
    log_purchase_event(
        session,
        purchase.id,
        "checkout_created",
        "Checkout session created",
        created_by="checkout",
        meta={"payment_id": checkout.id, "amount": purchase.amount},
    )
    session.commit()

    logger.info(f"Created purchase {purchase.id} ({checkout.id}) for user {user_id} / course {course_id}")

    return CheckoutResult(
        url=checkout.url,
        cancel_url=settings.cancel_url(course_id),
        purchase_id=purchase.id,
        session_id=checkout.id,
    )


def reconcile(
    session: Session,
    *,
    course_id: int,
    user_id: int,
    purchase_id: int,
    final_amount: Optional[int],
    source: str = "system",
) -> ReconciliationResult:
    # 1. purchase
    purchase = session.get(CoursePurchase, purchase_id)
    if not purchase:
        raise PurchaseNotFound(f"Purchase not found: {purchase_id}")

    if purchase.user_id != user_id or purchase.course_id != course_id:
        raise ReconciliationError(
            f"Purchase {purchase_id} belongs to user {purchase.user_id} / course {purchase.course_id}"
        )

    if final_amount is None:
        raise PaymentProviderError("Payment provider returned no amount")

    # 2. mark completed
    already_completed = purchase.status == PurchaseStatus.COMPLETED.value
    if not already_completed and not can_transition(purchase.status, PurchaseStatus.COMPLETED.value):
        raise InvalidStatusTransition(f"Purchase {purchase_id} cannot move from {purchase.status} to completed")

    if not already_completed:
        # only the writer that flips the row logs the completion
        result = session.execute(
            update(CoursePurchase)
            .where(CoursePurchase.id == purchase_id)
            .where(CoursePurchase.status.in_(COMPLETABLE_STATUSES))
            .values(
                status=PurchaseStatus.COMPLETED.value,
                amount=final_amount,
                updated_at=datetime.utcnow(),
            )
        )
        if result.rowcount == 1:
            log_purchase_event(
                session,
                purchase.id,
                "payment_completed",
                "Payment completed",
                created_by=source,
                meta={"amount": final_amount},
            )
        else:
            already_completed = True
        session.commit()
        session.refresh(purchase)

    if already_completed:
        logger.info(f"Purchase {purchase_id} already completed, re-applying enrollment ({source})")
    else:
        logger.info(f"Updated purchase {purchase_id}: completed, amount {purchase.amount}")

    # 3. user's enrolled courses
    if session.get(User, user_id) is None:
        raise ReconciliationError(f"User not found: {user_id}")
    enrolled = add_enrollment(session, user_id, course_id)

    # 4. course's enrolled students
    if session.get(Course, course_id) is None:
        raise ReconciliationError(f"Course not found: {course_id}")
    roster = add_roster_entry(session, course_id, user_id)

    # 5. course progress
    progress = init_progress(session, user_id, course_id)

    if already_completed:
        log_purchase_event(
            session,
            purchase.id,
            "reconciliation_repeated",
            "Payment confirmation received again",
            created_by=source,
        )
        session.commit()

    return ReconciliationResult(
        purchase=purchase,
        enrolled_course_ids=enrolled,
        roster_user_ids=roster,
        progress=progress,
        already_completed=already_completed,
    )


def handle_webhook(
    session: Session,
    gateway: RazorpayGateway,
    *,
    body: bytes,
    signature: Optional[str],
    secret: str,
) -> Optional[ReconciliationResult]:
    event = gateway.construct_event(body, signature, secret)
    event_type = event.get("event")
    logger.info(f"Webhook event constructed: {event_type}")

    if event_type != CHECKOUT_COMPLETED_EVENT:
        logger.info(f"Ignoring webhook event {event_type}")
        return None

    checkout = gateway.session_from_event(event)
    metadata = checkout.metadata
    logger.info(f"Processing completed checkout session {checkout.id}")

    try:
        course_id = int(metadata["course_id"])
        user_id = int(metadata["user_id"])
        purchase_id = int(metadata["purchase_id"])
    except (KeyError, TypeError, ValueError):
        raise ReconciliationError(f"Checkout session {checkout.id} carries no purchase metadata")

    return reconcile(
        session,
        course_id=course_id,
        user_id=user_id,
        purchase_id=purchase_id,
        final_amount=checkout.amount_total,
        source="webhook",
    )


def latest_purchase(session: Session, user_id: int, course_id: int, status: Optional[str] = None):
    query = (
        select(CoursePurchase)
        .where(CoursePurchase.user_id == user_id)
        .where(CoursePurchase.course_id == course_id)
    )
    if status:
        query = query.where(CoursePurchase.status == status)
    return session.exec(
        query.order_by(CoursePurchase.created_at.desc(), CoursePurchase.id.desc())
    ).first()


def confirm_payment(
    session: Session,
    gateway: RazorpayGateway,
    *,
    user_id: int,
    course_id: int,
) -> ConfirmationResult:
    purchase = latest_purchase(session, user_id, course_id, PurchaseStatus.PENDING.value)

    if not purchase:
        completed = latest_purchase(session, user_id, course_id, PurchaseStatus.COMPLETED.value)
        if completed:
            return ConfirmationResult(
                status="already_processed",
                purchase_id=completed.id,
                message="Payment already processed",
            )
        raise PurchaseNotFound()

    if not purchase.payment_id:
        # checkout never reached the provider
        raise PaymentIncomplete()

    checkout = gateway.retrieve_session(purchase.payment_id)
    if checkout.payment_status != PAID:
        logger.info(f"Purchase {purchase.id} not paid yet ({checkout.payment_status})")
        raise PaymentIncomplete()

    reconcile(
        session,
        course_id=course_id,
        user_id=user_id,
        purchase_id=purchase.id,
        final_amount=checkout.amount_total,
        source="confirmation",
    )

    return ConfirmationResult(
        status="processed",
        purchase_id=purchase.id,
        message="Payment processed successfully",
    )

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import HTMLResponse
from sqlmodel import Session

from app.config import Settings, get_settings
from app.database import get_session
from app.exceptions import PurchaseNotFound
from app.models.course_purchase import CoursePurchase
from app.models.user import User
from app.schemas.purchase_schemas import (
    CheckoutRequest,
    CheckoutResponse,
    PaymentConfirmationResponse,
    PurchasedCoursesResponse,
    PurchaseEventRead,
)
from app.services.library_service import get_purchase_status, list_purchased_courses
from app.services.payment_gateway import SIGNATURE_HEADER, RazorpayGateway, get_payment_gateway
from app.services.purchase_event_service import purchase_timeline
from app.services import purchase_service
from app.utils.template import render_template
from app.utils.token import get_current_user

router = APIRouter()


@router.post("/webhook")
async def payment_webhook(
    request: Request,
    session: Session = Depends(get_session),
    gateway: RazorpayGateway = Depends(get_payment_gateway),
    settings: Settings = Depends(get_settings),
):
    body = await request.body()

    await run_in_threadpool(
        purchase_service.handle_webhook,
        session,
        gateway,
        body=body,
        signature=request.headers.get(SIGNATURE_HEADER),
        secret=settings.razorpay_webhook_secret,
    )

    # ignored event types are acknowledged too, or the provider keeps retrying
    return {"received": True}


@router.post("/checkout/create-checkout-session", response_model=CheckoutResponse)
def create_checkout_session(
    payload: CheckoutRequest,
    session: Session = Depends(get_session),
    gateway: RazorpayGateway = Depends(get_payment_gateway),
    settings: Settings = Depends(get_settings),
    current_user: User = Depends(get_current_user),
):
    checkout = purchase_service.start_checkout(
        session,
        gateway,
        settings,
        user_id=current_user.id,
        course_id=payload.course_id,
    )

    return CheckoutResponse(
        url=checkout.url,
        cancel_url=checkout.cancel_url,
        purchase_id=checkout.purchase_id,
    )


@router.get("/course/{course_id}/detail-with-status")
def course_detail_with_purchase_status(
    course_id: int,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
    current_user: User = Depends(get_current_user),
):
    return get_purchase_status(
        session,
        user_id=current_user.id,
        course_id=course_id,
        count_pending=settings.count_pending_as_purchased,
    )


@router.post("/course/{course_id}/payment-success", response_model=PaymentConfirmationResponse)
def payment_success(
    course_id: int,
    session: Session = Depends(get_session),
    gateway: RazorpayGateway = Depends(get_payment_gateway),
    current_user: User = Depends(get_current_user),
):
    result = purchase_service.confirm_payment(
        session,
        gateway,
        user_id=current_user.id,
        course_id=course_id,
    )

    return PaymentConfirmationResponse(
        status=result.status,
        purchase_id=result.purchase_id,
        message=result.message,
    )


@router.get("/my-learning", response_class=HTMLResponse)
def my_learning(
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
    current_user: User = Depends(get_current_user),
):
    courses = list_purchased_courses(session, user_id=current_user.id)
    return render_template(
        "my_learning.html",
        courses=courses,
        client_url=settings.client_url,
    )


@router.get("/{purchase_id}/events", response_model=list[PurchaseEventRead])
def purchase_events(
    purchase_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    purchase = session.get(CoursePurchase, purchase_id)
    if not purchase or purchase.user_id != current_user.id:
        raise PurchaseNotFound()

    return [
        PurchaseEventRead(
            event_type=e.event_type,
            label=e.label,
            created_by=e.created_by,
            created_at=e.created_at,
            meta=e.meta,
        )
        for e in purchase_timeline(session, purchase_id)
    ]


@router.get("/", response_model=PurchasedCoursesResponse)
def purchased_courses(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return PurchasedCoursesResponse(
        purchased_courses=list_purchased_courses(session, user_id=current_user.id)
    )

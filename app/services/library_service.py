from typing import List

from sqlmodel import Session, select

from app.constants.purchase_status import PurchaseStatus
from app.exceptions import NotFound
from app.models.course import Course, Lecture
from app.models.course_purchase import CoursePurchase
from app.models.user import User


def serialize_course(session: Session, course: Course) -> dict:
    creator = session.get(User, course.creator_id)
    lectures = session.exec(
        select(Lecture)
        .where(Lecture.course_id == course.id)
        .order_by(Lecture.position, Lecture.id)
    ).all()

    return {
        "id": course.id,
        "title": course.title,
        "subtitle": course.subtitle,
        "description": course.description,
        "category": course.category,
        "level": course.level,
        "price": course.price,
        "thumbnail": course.thumbnail,
        "creator": {
            "id": creator.id,
            "name": creator.full_name,
            "photo_url": creator.photo_url,
        } if creator else None,
        "lectures": [
            {
                "id": l.id,
                "title": l.title,
                "is_preview_free": l.is_preview_free,
                "position": l.position,
            }
            for l in lectures
        ],
    }


def get_purchase_status(
    session: Session,
    *,
    user_id: int,
    course_id: int,
    count_pending: bool = True,
) -> dict:
    """
    Course detail plus a ``purchased`` flag.

    With ``count_pending`` any purchase record for the pair counts, so the
    flag flips as soon as checkout starts; otherwise only completed ones do.
    """
    course = session.get(Course, course_id)
    if not course:
        raise NotFound("course not found!")

    query = (
        select(CoursePurchase)
        .where(CoursePurchase.user_id == user_id)
        .where(CoursePurchase.course_id == course_id)
    )
    if not count_pending:
        query = query.where(CoursePurchase.status == PurchaseStatus.COMPLETED.value)

    purchased = session.exec(query).first()

    return {
        "course": serialize_course(session, course),
        "purchased": purchased is not None,
    }


def list_purchased_courses(session: Session, *, user_id: int) -> List[dict]:
    purchases = session.exec(
        select(CoursePurchase)
        .where(CoursePurchase.user_id == user_id)
        .where(CoursePurchase.status == PurchaseStatus.COMPLETED.value)
        .order_by(CoursePurchase.created_at, CoursePurchase.id)
    ).all()

    result = []
    seen = set()
    for p in purchases:
        if p.course_id in seen:
            continue
        course = session.get(Course, p.course_id)
        if not course:
            continue
        seen.add(p.course_id)
        result.append(serialize_course(session, course))

    return result

"""
Enrollment ledger and progress initialisation.

Every write here is idempotent: adding an existing membership returns the
existing row, and progress creation is an upsert on (user, course). A
concurrent writer that wins the insert race shows up as an IntegrityError,
which is rolled back and resolved by re-reading the row it created.
"""
import logging
from datetime import datetime
from typing import List

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from app.models.course_progress import CourseProgress
from app.models.enrollment import CourseRoster, UserEnrollment

logger = logging.getLogger(__name__)


def add_enrollment(session: Session, user_id: int, course_id: int) -> List[int]:
    """Add the course to the user's enrollment set; returns the updated set."""
    if session.get(UserEnrollment, (user_id, course_id)) is None:
        session.add(UserEnrollment(user_id=user_id, course_id=course_id))
        try:
            session.commit()
            logger.info(f"Enrolled user {user_id} in course {course_id}")
        except IntegrityError:
            session.rollback()
            logger.info(f"User {user_id} already enrolled in course {course_id}")
    return enrolled_course_ids(session, user_id)


def add_roster_entry(session: Session, course_id: int, user_id: int) -> List[int]:
    """Add the user to the course's roster; returns the updated roster."""
    if session.get(CourseRoster, (course_id, user_id)) is None:
        session.add(CourseRoster(course_id=course_id, user_id=user_id))
        try:
            session.commit()
            logger.info(f"Added user {user_id} to roster of course {course_id}")
        except IntegrityError:
            session.rollback()
            logger.info(f"User {user_id} already on roster of course {course_id}")
    return roster_user_ids(session, course_id)


def get_progress(session: Session, user_id: int, course_id: int):
    return session.exec(
        select(CourseProgress)
        .where(CourseProgress.user_id == user_id)
        .where(CourseProgress.course_id == course_id)
    ).first()


def init_progress(session: Session, user_id: int, course_id: int) -> CourseProgress:
    """Create the empty progress record for (user, course) unless one exists."""
    progress = get_progress(session, user_id, course_id)
    if progress:
        logger.info(f"Progress for user {user_id} / course {course_id} already exists ({progress.id})")
        return progress

    progress = CourseProgress(
        user_id=user_id,
        course_id=course_id,
        completed=False,
        lecture_progress=[],
        created_at=datetime.utcnow(),
        updated_at=datetime.utcnow(),
    )
    session.add(progress)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        progress = get_progress(session, user_id, course_id)
        logger.info(f"Progress for user {user_id} / course {course_id} created concurrently ({progress.id})")
        return progress

    session.refresh(progress)
    logger.info(f"Created progress {progress.id} for user {user_id} / course {course_id}")
    return progress


def enrolled_course_ids(session: Session, user_id: int) -> List[int]:
    return list(session.exec(
        select(UserEnrollment.course_id)
        .where(UserEnrollment.user_id == user_id)
        .order_by(UserEnrollment.created_at)
    ).all())


def roster_user_ids(session: Session, course_id: int) -> List[int]:
    return list(session.exec(
        select(CourseRoster.user_id)
        .where(CourseRoster.course_id == course_id)
        .order_by(CourseRoster.created_at)
    ).all())

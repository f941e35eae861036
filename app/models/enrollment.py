from sqlmodel import SQLModel, Field
from datetime import datetime


class UserEnrollment(SQLModel, table=True):
    """Courses a user is enrolled in."""

    user_id: int = Field(foreign_key="user.id", primary_key=True)
    course_id: int = Field(foreign_key="course.id", primary_key=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class CourseRoster(SQLModel, table=True):
    """Students enrolled in a course."""

    course_id: int = Field(foreign_key="course.id", primary_key=True)
    user_id: int = Field(foreign_key="user.id", primary_key=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)

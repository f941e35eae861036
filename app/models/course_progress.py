from datetime import datetime
from typing import List, Optional

from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON, UniqueConstraint


class CourseProgress(SQLModel, table=True):
    __table_args__ = (
        UniqueConstraint("user_id", "course_id", name="uq_courseprogress_user_course"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    course_id: int = Field(foreign_key="course.id", index=True)

    completed: bool = False
    # [{"lecture_id": 3, "viewed": true}, ...] in lecture order
    lecture_progress: List[dict] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

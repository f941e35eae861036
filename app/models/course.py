from sqlmodel import SQLModel, Field, Relationship
from typing import Optional, TYPE_CHECKING, List
from datetime import datetime

if TYPE_CHECKING:
    from .user import User


class Course(SQLModel, table=True):
    #main info
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    subtitle: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    level: Optional[str] = Field(default=None, description="Beginner | Medium | Advance")

    #Image
    thumbnail: Optional[str] = None

    #Shop Details
    price: int = Field(default=0, description="Smallest currency unit")
    is_published: bool = False

    #creator
    creator_id: int = Field(foreign_key="user.id")
    creator: Optional["User"] = Relationship()

    #timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    lectures: List["Lecture"] = Relationship(back_populates="course")


class Lecture(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    course_id: int = Field(foreign_key="course.id", index=True)
    title: str
    video_url: Optional[str] = None
    is_preview_free: bool = False
    position: int = 0

    course: Optional[Course] = Relationship(back_populates="lectures")

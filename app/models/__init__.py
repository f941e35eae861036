from app.models.user import User
from app.models.course import Course, Lecture
from app.models.course_purchase import CoursePurchase
from app.models.enrollment import UserEnrollment, CourseRoster
from app.models.course_progress import CourseProgress
from app.models.purchase_event import PurchaseEvent

# add ALL models here

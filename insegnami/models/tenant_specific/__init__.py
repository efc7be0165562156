from .teacher import Teacher
from .student import Student
from .class_model import ClassModel
from .enrollment import StudentClass
from .lesson import Lesson
from .attendance import Attendance
from .payment import Payment
from .notice import Notice, NoticeAudience
from .notification import Notification

__all__ = [
    "Teacher",
    "Student",
    "ClassModel",
    "StudentClass",
    "Lesson",
    "Attendance",
    "Payment",
    "Notice",
    "NoticeAudience",
    "Notification",
]

from .user_profile import UserProfile
from .course import Course, Enrollment
from .lesson import Lesson, LessonProgress, LessonView
from .tutor_call import TutorCall
from .quiz import Quiz, QuizQuestion
from .attempt import QuizAttempt
from .audit import AuditLog

__all__ = [
    'UserProfile', 'Course', 'Enrollment',
    'Lesson', 'LessonProgress', 'LessonView', 'TutorCall',
    'Quiz', 'QuizQuestion', 'QuizAttempt', 'AuditLog',
]

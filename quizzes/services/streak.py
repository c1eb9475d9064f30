"""
Study streaks: consecutive calendar days with any learning activity.

A day counts when the student completed or viewed a lesson, worked on a quiz
attempt, had a tutor call, or enrolled in a course.
Days are taken in QUIZ_SETTINGS["STREAK_TIMEZONE"], UTC by default.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone as dt_timezone
from zoneinfo import ZoneInfo
from typing import Iterable, List, Optional

from django.conf import settings
from django.db import DatabaseError
from django.utils import timezone

from quizzes.models import Enrollment, LessonProgress, LessonView, QuizAttempt, TutorCall

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)


@dataclass
class StreakData:
    current_streak: int = 0
    longest_streak: int = 0
    last_activity_date: Optional[date] = None
    activity_dates: List[date] = field(default_factory=list)


def calculate_streak(activity_dates: Iterable[date], today: date) -> StreakData:
    dates = sorted(set(activity_dates), reverse=True)
    if not dates:
        return StreakData()

    present = set(dates)

    # The streak survives until the end of today, so a gap today is not yet a break.
    cursor = today if today in present else today - ONE_DAY
    current = 0
    while cursor in present:
        current += 1
        cursor -= ONE_DAY

    longest = run = 1
    for newer, older in zip(dates, dates[1:]):
        if newer - older == ONE_DAY:
            run += 1
        else:
            run = 1
        longest = max(longest, run)

    return StreakData(
        current_streak=current,
        longest_streak=longest,
        last_activity_date=dates[0],
        activity_dates=dates,
    )


def _streak_tz():
    return ZoneInfo(settings.QUIZ_SETTINGS.get('STREAK_TIMEZONE', 'UTC'))


def _activity_date(value: datetime) -> date:
    if timezone.is_naive(value):
        value = timezone.make_aware(value, dt_timezone.utc)
    return value.astimezone(_streak_tz()).date()


class StreakService:

    @staticmethod
    def activity_dates(user) -> set:
        timestamps = []
        timestamps += LessonProgress.objects.filter(
            student=user, completed_at__isnull=False
        ).values_list('completed_at', flat=True)
        for started_at, submitted_at in QuizAttempt.objects.filter(
            student=user
        ).values_list('started_at', 'submitted_at'):
            timestamps.append(submitted_at or started_at)
        timestamps += LessonView.objects.filter(student=user).values_list('viewed_at', flat=True)
        timestamps += TutorCall.objects.filter(student=user).values_list('call_started_at', flat=True)
        timestamps += Enrollment.objects.filter(student=user).values_list('enrolled_at', flat=True)

        return {_activity_date(ts) for ts in timestamps if ts}

    @classmethod
    def calculate(cls, user, today: Optional[date] = None) -> StreakData:
        today = today or _activity_date(timezone.now())
        try:
            dates = cls.activity_dates(user)
        except DatabaseError:
            logger.exception("Error calculating study streak for user %s", user.pk)
            return StreakData()
        return calculate_streak(dates, today)

    @classmethod
    def current_streak(cls, user) -> int:
        return cls.calculate(user).current_streak

    @staticmethod
    def has_activity_today(user, today: Optional[date] = None) -> bool:
        today = today or _activity_date(timezone.now())
        day_start = datetime.combine(today, datetime.min.time(), tzinfo=_streak_tz())
        day_range = (day_start, day_start + ONE_DAY - timedelta(microseconds=1))

        if LessonProgress.objects.filter(student=user, completed_at__range=day_range).exists():
            return True
        if QuizAttempt.objects.filter(student=user, started_at__range=day_range).exists():
            return True
        return LessonView.objects.filter(student=user, viewed_at__range=day_range).exists()

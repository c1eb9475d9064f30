from django.db import models
from django.contrib.auth.models import User
from django.utils import timezone


class TutorCall(models.Model):
    """History row for an AI tutoring call. Only counted towards study streaks."""
    student = models.ForeignKey(User, on_delete=models.CASCADE, related_name='tutor_calls')
    lesson = models.ForeignKey('Lesson', on_delete=models.SET_NULL, null=True, blank=True)
    call_started_at = models.DateTimeField(default=timezone.now, db_index=True)
    duration_seconds = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ['-call_started_at']

from django.db import models
from django.contrib.auth.models import User
from django.utils import timezone


class Lesson(models.Model):
    course = models.ForeignKey('Course', on_delete=models.CASCADE, related_name='lessons')
    title = models.CharField(max_length=300)
    content = models.TextField(blank=True)
    order_index = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['order_index', 'id']

    def __str__(self):
        return self.title


class LessonProgress(models.Model):
    lesson = models.ForeignKey(Lesson, on_delete=models.CASCADE, related_name='progress')
    student = models.ForeignKey(User, on_delete=models.CASCADE, related_name='lesson_progress')
    completed_at = models.DateTimeField(null=True, blank=True, db_index=True)

    class Meta:
        unique_together = ['lesson', 'student']

    def __str__(self):
        state = 'done' if self.completed_at else 'open'
        return f"{self.student.username} - {self.lesson.title} ({state})"


class LessonView(models.Model):
    lesson = models.ForeignKey(Lesson, on_delete=models.CASCADE, related_name='views')
    student = models.ForeignKey(User, on_delete=models.CASCADE, related_name='lesson_views')
    viewed_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ['-viewed_at']
        indexes = [
            models.Index(fields=['student', 'viewed_at']),
        ]

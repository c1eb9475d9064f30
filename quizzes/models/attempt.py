from django.db import models
from django.contrib.auth.models import User
from django.utils import timezone

from quizzes.grading import normalize_answers


class QuizAttempt(models.Model):
    quiz = models.ForeignKey(
        'Quiz',
        on_delete=models.CASCADE,
        related_name='attempts',
        db_index=True
    )
    student = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='quiz_attempts',
        db_index=True
    )
    # Legacy {id: text} or current {id: {answer, isCorrect}}, possibly as a JSON string.
    answers = models.JSONField(default=dict, blank=True, null=True)
    score = models.DecimalField(max_digits=7, decimal_places=2, null=True, blank=True)
    max_score = models.DecimalField(max_digits=7, decimal_places=2, null=True, blank=True)

    started_at = models.DateTimeField(default=timezone.now, db_index=True)
    submitted_at = models.DateTimeField(null=True, blank=True, db_index=True)
    graded_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-started_at']
        indexes = [
            models.Index(fields=['student', 'quiz']),
            models.Index(fields=['quiz', 'submitted_at']),
        ]

    def __str__(self):
        return f"{self.student.username} - {self.quiz.title}"

    @property
    def is_submitted(self):
        return self.submitted_at is not None

    @property
    def normalized_answers(self):
        return normalize_answers(self.answers)

from django.db import models
from django.contrib.auth.models import User
from django.core.validators import MinValueValidator


class Quiz(models.Model):
    course = models.ForeignKey(
        'Course',
        on_delete=models.CASCADE,
        related_name='quizzes',
        db_index=True
    )
    title = models.CharField(max_length=300)
    description = models.TextField(blank=True)
    time_limit = models.PositiveIntegerField(null=True, blank=True, help_text="Minutes; blank for untimed")
    is_published = models.BooleanField(default=False, db_index=True)
    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        related_name='created_quizzes'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        verbose_name_plural = 'quizzes'

    def __str__(self):
        return self.title


class QuizQuestion(models.Model):
    class QuestionType(models.TextChoices):
        MULTIPLE_CHOICE = 'mcq', 'Multiple Choice'
        WRITTEN = 'written', 'Written'

    quiz = models.ForeignKey(
        Quiz,
        on_delete=models.CASCADE,
        related_name='questions',
        db_index=True
    )
    question_type = models.CharField(
        max_length=10,
        choices=QuestionType.choices,
        default=QuestionType.MULTIPLE_CHOICE
    )
    question_text = models.TextField()
    question_image = models.URLField(blank=True)
    options = models.JSONField(null=True, blank=True)
    # Compared verbatim against the submitted option text for MCQs.
    correct_answer = models.TextField(null=True, blank=True)
    points = models.DecimalField(
        max_digits=6,
        decimal_places=2,
        default=1,
        validators=[MinValueValidator(0)]
    )
    order_index = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ['order_index', 'id']
        indexes = [
            models.Index(fields=['quiz', 'order_index']),
        ]

    def __str__(self):
        return f"Q{self.order_index}: {self.question_text[:50]}"

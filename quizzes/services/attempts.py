"""
Quiz attempt lifecycle: start, answer, submit, and teacher grading.
All answer reads go through the normalization layer so attempts stored in
the legacy shape keep working.
"""
import logging

from django.db import transaction
from django.utils import timezone
from rest_framework import serializers

from quizzes.grading import (
    create_answer_entry, normalize_answers, set_correctness,
    calculate_score, calculate_max_score, grade_breakdown,
)
from quizzes.models import QuizAttempt, AuditLog

logger = logging.getLogger(__name__)


class AttemptService:

    @staticmethod
    def _lock(attempt):
        return QuizAttempt.objects.select_for_update().select_related('quiz').get(pk=attempt.pk)

    @classmethod
    def _lock_open(cls, attempt):
        locked = cls._lock(attempt)
        if locked.is_submitted:
            raise serializers.ValidationError("This attempt has already been submitted.")
        return locked

    @staticmethod
    def _questions(attempt):
        return list(attempt.quiz.questions.all())

    @classmethod
    def start_attempt(cls, quiz, student, request=None):
        attempt = QuizAttempt.objects.create(quiz=quiz, student=student, answers={})

        AuditLog.log(
            event_type=AuditLog.EventType.ATTEMPT_START,
            description=f"Started: {quiz.title}",
            request=request,
            user=student,
            metadata={'quiz_id': quiz.id, 'attempt_id': attempt.id}
        )
        logger.info("Attempt %s started on quiz %s by %s", attempt.id, quiz.id, student.username)
        return attempt

    @classmethod
    def record_answer(cls, attempt, question_id, answer_text):
        """Store one answer. A changed answer is ungraded again."""
        with transaction.atomic():
            attempt = cls._lock_open(attempt)
            answers = dict(normalize_answers(attempt.answers))
            answers[str(question_id)] = create_answer_entry(answer_text)
            attempt.answers = answers
            attempt.save(update_fields=['answers'])
        return attempt

    @classmethod
    def submit_attempt(cls, attempt, answers=None, request=None):
        """
        Close an attempt and compute its score.

        ``answers`` is an optional {question_id: answer_text} batch merged in
        before scoring, for clients that only send answers on submit.
        """
        with transaction.atomic():
            attempt = cls._lock_open(attempt)

            if answers:
                merged = dict(normalize_answers(attempt.answers))
                for question_id, answer_text in answers.items():
                    merged[str(question_id)] = create_answer_entry(answer_text)
                attempt.answers = merged

            questions = cls._questions(attempt)
            attempt.score = calculate_score(attempt.answers, questions)
            attempt.max_score = calculate_max_score(questions)
            attempt.submitted_at = timezone.now()
            attempt.save()

        AuditLog.log(
            event_type=AuditLog.EventType.ATTEMPT_SUBMIT,
            description=f"Submitted: {attempt.quiz.title}",
            request=request,
            user=attempt.student,
            metadata={
                'quiz_id': attempt.quiz_id,
                'attempt_id': attempt.id,
                'score': float(attempt.score),
                'max_score': float(attempt.max_score),
            }
        )
        logger.info("Attempt %s submitted: %s/%s", attempt.id, attempt.score, attempt.max_score)
        return attempt

    @classmethod
    def grade_answer(cls, attempt, question_id, is_correct, grader=None, request=None):
        """Record a teacher verdict for one question and rescore the attempt."""
        with transaction.atomic():
            attempt = cls._lock(attempt)
            old_score = attempt.score

            attempt.answers = set_correctness(attempt.answers, question_id, is_correct)
            questions = cls._questions(attempt)
            attempt.score = calculate_score(attempt.answers, questions)
            if attempt.max_score is None:
                attempt.max_score = calculate_max_score(questions)
            attempt.graded_at = timezone.now()
            attempt.save(update_fields=['answers', 'score', 'max_score', 'graded_at'])

        AuditLog.log(
            event_type=AuditLog.EventType.GRADE_OVERRIDE,
            description=f"Question {question_id} marked {is_correct}: {old_score} -> {attempt.score}",
            request=request,
            user=grader,
            metadata={
                'attempt_id': attempt.id,
                'question_id': str(question_id),
                'is_correct': is_correct,
                'old_score': float(old_score) if old_score is not None else None,
                'new_score': float(attempt.score),
            }
        )
        return attempt

    @classmethod
    def review(cls, attempt, include_answer_key=False):
        """Per-question breakdown for the grading screen."""
        questions = cls._questions(attempt)
        by_id = {str(q.id): q for q in questions}
        rows = []

        for grade in grade_breakdown(attempt.answers, questions):
            question = by_id[grade.question_id]
            row = {
                'question_id': question.id,
                'question_text': question.question_text,
                'question_type': grade.question_type,
                'answer': grade.answer,
                'is_correct': grade.is_correct,
                'max_points': float(grade.max_points),
                'points_earned': float(grade.points_earned),
            }
            if include_answer_key:
                row['correct_answer'] = question.correct_answer
            rows.append(row)

        return rows

"""
Test cases for the quiz engine.
Covers answer normalization, scoring, streaks, the attempt lifecycle and the API.
"""
import copy
import json
from datetime import date, datetime, timedelta, timezone as dt_timezone
from io import StringIO

from django.contrib.auth.models import AnonymousUser, User
from django.core.cache import cache
from django.core.management import call_command
from django.test import SimpleTestCase, TestCase, override_settings
from django.utils import timezone
from rest_framework import status
from rest_framework.exceptions import ValidationError
from rest_framework.test import APITestCase

from .grading import (
    create_answer_entry, convert_legacy_to_current, convert_current_to_legacy,
    is_current_format, normalize_answers, get_answer_text, get_correctness,
    set_correctness, calculate_score, calculate_max_score, grade_breakdown,
)
from .models import (
    AuditLog, Course, Enrollment, Lesson, LessonProgress, LessonView,
    Quiz, QuizAttempt, QuizQuestion, TutorCall, UserProfile,
)
from .permissions import is_teacher
from .services import AttemptService, ExportService, StreakService, StreakData, calculate_streak


LEGACY_ANSWERS = {
    'q1': 'Paris',
    'q2': 'London',
    'q3': 'Berlin',
}

CURRENT_ANSWERS = {
    'q1': {'answer': 'Paris', 'isCorrect': True},
    'q2': {'answer': 'London', 'isCorrect': False},
    'q3': {'answer': 'Berlin', 'isCorrect': None},
}

QUESTIONS = [
    {'id': 'q1', 'points': 10, 'correct_answer': 'Paris', 'question_type': 'mcq'},
    {'id': 'q2', 'points': 10, 'correct_answer': 'London', 'question_type': 'mcq'},
    {'id': 'q3', 'points': 10, 'correct_answer': 'Berlin', 'question_type': 'written'},
]


class AnswerFormatTests(SimpleTestCase):
    """Conversion and detection between the legacy and current answer shapes."""

    def test_convert_legacy_to_current(self):
        result = convert_legacy_to_current(LEGACY_ANSWERS)
        self.assertEqual(result['q1'], {'answer': 'Paris', 'isCorrect': None})
        self.assertEqual(result['q2'], {'answer': 'London', 'isCorrect': None})
        self.assertEqual(result['q3'], {'answer': 'Berlin', 'isCorrect': None})
        self.assertEqual(set(result), set(LEGACY_ANSWERS))

    def test_convert_legacy_coerces_falsy_values(self):
        result = convert_legacy_to_current({'q1': None, 'q2': ''})
        self.assertEqual(result, {
            'q1': {'answer': '', 'isCorrect': None},
            'q2': {'answer': '', 'isCorrect': None},
        })

    def test_convert_current_to_legacy(self):
        self.assertEqual(convert_current_to_legacy(CURRENT_ANSWERS), LEGACY_ANSWERS)

    def test_legacy_round_trip(self):
        self.assertEqual(convert_current_to_legacy(convert_legacy_to_current(LEGACY_ANSWERS)), LEGACY_ANSWERS)

    def test_is_current_format(self):
        self.assertTrue(is_current_format(CURRENT_ANSWERS))
        self.assertTrue(is_current_format({'q1': {'answer': 'Paris', 'isCorrect': None}}))
        self.assertFalse(is_current_format(LEGACY_ANSWERS))
        self.assertFalse(is_current_format({'q1': 'Paris'}))
        self.assertFalse(is_current_format({}))
        self.assertFalse(is_current_format(None))
        self.assertFalse(is_current_format('{"q1": "Paris"}'))

    def test_entry_needs_both_keys(self):
        self.assertFalse(is_current_format({'q1': {'answer': 'Paris'}}))
        self.assertFalse(is_current_format({'q1': {'isCorrect': True}}))

    def test_mixed_set_counts_as_current(self):
        mixed = {'q1': 'Paris', 'q2': {'answer': 'London', 'isCorrect': None}}
        self.assertTrue(is_current_format(mixed))
        self.assertIs(normalize_answers(mixed), mixed)

    def test_create_answer_entry(self):
        self.assertEqual(create_answer_entry('Test'), {'answer': 'Test', 'isCorrect': None})
        self.assertEqual(create_answer_entry('Test', True), {'answer': 'Test', 'isCorrect': True})
        self.assertEqual(create_answer_entry(None), {'answer': '', 'isCorrect': None})


class NormalizeAnswersTests(SimpleTestCase):

    def test_current_format_returned_unchanged(self):
        self.assertEqual(normalize_answers(CURRENT_ANSWERS), CURRENT_ANSWERS)

    def test_legacy_format_converted(self):
        self.assertEqual(normalize_answers(LEGACY_ANSWERS), convert_legacy_to_current(LEGACY_ANSWERS))

    def test_empty_inputs(self):
        self.assertEqual(normalize_answers(None), {})
        self.assertEqual(normalize_answers(''), {})
        self.assertEqual(normalize_answers({}), {})

    def test_invalid_json_string(self):
        self.assertEqual(normalize_answers('invalid'), {})
        self.assertEqual(normalize_answers('{"q1": '), {})

    def test_deeply_nested_json_string(self):
        self.assertEqual(normalize_answers('[' * 100000 + ']' * 100000), {})
        self.assertEqual(get_answer_text('{"q1": ' * 100000, 'q1'), '')

    def test_json_strings(self):
        self.assertEqual(normalize_answers(json.dumps(LEGACY_ANSWERS)), convert_legacy_to_current(LEGACY_ANSWERS))
        self.assertEqual(normalize_answers(json.dumps(CURRENT_ANSWERS)), CURRENT_ANSWERS)

    def test_unsupported_types(self):
        self.assertEqual(normalize_answers(42), {})
        self.assertEqual(normalize_answers(['Paris', 'London']), {})
        self.assertEqual(normalize_answers('[1, 2]'), {})
        self.assertEqual(normalize_answers('"just text"'), {})

    def test_idempotent(self):
        for raw in (LEGACY_ANSWERS, CURRENT_ANSWERS, json.dumps(LEGACY_ANSWERS), None, 'invalid'):
            once = normalize_answers(raw)
            self.assertEqual(normalize_answers(once), once)


class AnswerAccessTests(SimpleTestCase):

    def test_get_answer_text(self):
        self.assertEqual(get_answer_text(CURRENT_ANSWERS, 'q1'), 'Paris')
        self.assertEqual(get_answer_text(LEGACY_ANSWERS, 'q1'), 'Paris')
        self.assertEqual(get_answer_text(json.dumps(LEGACY_ANSWERS), 'q2'), 'London')

    def test_missing_question(self):
        for answers in (CURRENT_ANSWERS, LEGACY_ANSWERS, None, 'invalid'):
            self.assertEqual(get_answer_text(answers, 'nonexistent'), '')
            self.assertIsNone(get_correctness(answers, 'nonexistent'))

    def test_integer_question_ids(self):
        self.assertEqual(get_answer_text({'7': 'Paris'}, 7), 'Paris')

    def test_get_correctness(self):
        self.assertIs(get_correctness(CURRENT_ANSWERS, 'q1'), True)
        self.assertIs(get_correctness(CURRENT_ANSWERS, 'q2'), False)
        self.assertIsNone(get_correctness(CURRENT_ANSWERS, 'q3'))
        self.assertIsNone(get_correctness(LEGACY_ANSWERS, 'q1'))

    def test_raw_string_in_mixed_set(self):
        mixed = {'q1': 'Paris', 'q2': {'answer': 'London', 'isCorrect': True}}
        self.assertEqual(get_answer_text(mixed, 'q1'), '')
        self.assertIsNone(get_correctness(mixed, 'q1'))

    def test_set_correctness_preserves_answer(self):
        updated = set_correctness(CURRENT_ANSWERS, 'q3', True)
        self.assertEqual(updated['q3'], {'answer': 'Berlin', 'isCorrect': True})
        self.assertEqual(get_answer_text(updated, 'q3'), get_answer_text(CURRENT_ANSWERS, 'q3'))

    def test_set_correctness_does_not_mutate(self):
        original = copy.deepcopy(CURRENT_ANSWERS)
        set_correctness(CURRENT_ANSWERS, 'q1', False)
        self.assertEqual(CURRENT_ANSWERS, original)

    def test_set_correctness_on_legacy(self):
        updated = set_correctness(LEGACY_ANSWERS, 'q1', False)
        self.assertEqual(updated['q1'], {'answer': 'Paris', 'isCorrect': False})
        self.assertEqual(updated['q2'], {'answer': 'London', 'isCorrect': None})
        self.assertEqual(LEGACY_ANSWERS['q1'], 'Paris')

    def test_set_correctness_creates_missing_entry(self):
        updated = set_correctness({}, 'q9', True)
        self.assertEqual(updated, {'q9': {'answer': '', 'isCorrect': True}})


class ScoringTests(SimpleTestCase):

    def test_current_format_score(self):
        # q1 marked correct, q2 marked wrong, q3 written and ungraded
        self.assertEqual(calculate_score(CURRENT_ANSWERS, QUESTIONS), 10)

    def test_legacy_format_score(self):
        # MCQs match by text; the legacy written answer is ungraded and scores nothing
        self.assertEqual(calculate_score(LEGACY_ANSWERS, QUESTIONS), 20)

    def test_written_answer_scores_once_marked(self):
        graded = set_correctness(LEGACY_ANSWERS, 'q3', True)
        self.assertEqual(calculate_score(graded, QUESTIONS), 30)

    def test_mcq_explicit_false_overrides_text_match(self):
        answers = {'q1': {'answer': 'Paris', 'isCorrect': False}}
        self.assertEqual(calculate_score(answers, QUESTIONS), 0)

    def test_mcq_explicit_true_overrides_text_mismatch(self):
        answers = {'q1': {'answer': 'Lyon', 'isCorrect': True}}
        self.assertEqual(calculate_score(answers, QUESTIONS), 10)

    def test_mcq_match_is_exact(self):
        self.assertEqual(calculate_score({'q1': 'paris'}, QUESTIONS), 0)
        self.assertEqual(calculate_score({'q1': 'Paris '}, QUESTIONS), 0)

    def test_unknown_question_type_scores_zero(self):
        questions = [{'id': 'q1', 'points': 5, 'correct_answer': 'Paris', 'question_type': 'essay'}]
        self.assertEqual(calculate_score({'q1': {'answer': 'Paris', 'isCorrect': True}}, questions), 0)

    def test_missing_points_default_to_zero(self):
        questions = [{'id': 'q1', 'correct_answer': 'Paris', 'question_type': 'mcq'}]
        self.assertEqual(calculate_score(LEGACY_ANSWERS, questions), 0)
        self.assertEqual(calculate_max_score(questions + [{'id': 'q2', 'points': None}]), 0)

    def test_empty_inputs(self):
        self.assertEqual(calculate_score(None, QUESTIONS), 0)
        self.assertEqual(calculate_score(LEGACY_ANSWERS, []), 0)
        self.assertEqual(calculate_score('invalid', QUESTIONS), 0)

    def test_score_does_not_mutate_answers(self):
        answers = copy.deepcopy(CURRENT_ANSWERS)
        calculate_score(answers, QUESTIONS)
        self.assertEqual(answers, CURRENT_ANSWERS)

    def test_max_score(self):
        self.assertEqual(calculate_max_score(QUESTIONS), 30)

    def test_breakdown_matches_score(self):
        grades = grade_breakdown(LEGACY_ANSWERS, QUESTIONS)
        self.assertEqual([g.points_earned for g in grades], [10, 10, 0])
        self.assertEqual(sum(g.points_earned for g in grades), calculate_score(LEGACY_ANSWERS, QUESTIONS))
        self.assertEqual(grades[2].answer, 'Berlin')
        self.assertIsNone(grades[2].is_correct)

    def test_breakdown_unanswered(self):
        grades = grade_breakdown({}, QUESTIONS)
        self.assertFalse(any(g.answered for g in grades))
        self.assertEqual(grades[0].max_points, 10)


class StreakCalculationTests(SimpleTestCase):
    today = date(2024, 3, 15)

    def days_ago(self, *offsets):
        return [self.today - timedelta(days=n) for n in offsets]

    def test_no_activity(self):
        self.assertEqual(calculate_streak([], self.today), StreakData())

    def test_streak_including_today(self):
        streak = calculate_streak(self.days_ago(0, 1, 2), self.today)
        self.assertEqual(streak.current_streak, 3)
        self.assertEqual(streak.longest_streak, 3)
        self.assertEqual(streak.last_activity_date, self.today)

    def test_streak_from_yesterday(self):
        streak = calculate_streak(self.days_ago(1, 2), self.today)
        self.assertEqual(streak.current_streak, 2)

    def test_broken_streak(self):
        streak = calculate_streak(self.days_ago(3, 4), self.today)
        self.assertEqual(streak.current_streak, 0)
        self.assertEqual(streak.longest_streak, 2)

    def test_longest_streak_in_history(self):
        streak = calculate_streak(self.days_ago(0, 5, 6, 7, 10), self.today)
        self.assertEqual(streak.current_streak, 1)
        self.assertEqual(streak.longest_streak, 3)

    def test_duplicates_and_ordering(self):
        streak = calculate_streak(self.days_ago(2, 0, 1, 0, 2), self.today)
        self.assertEqual(streak.activity_dates, self.days_ago(0, 1, 2))
        self.assertEqual(streak.current_streak, 3)


class StreakServiceTests(TestCase):

    def setUp(self):
        self.student = User.objects.create_user('student', 'student@test.com', 'pass123')
        self.course = Course.objects.create(title='Chemistry', code='CHEM101')
        self.lesson = Lesson.objects.create(course=self.course, title='Atoms')
        self.quiz = Quiz.objects.create(course=self.course, title='Atoms Quiz', is_published=True)
        self.now = timezone.now()
        self.today = self.now.date()

    def test_combines_activity_sources(self):
        LessonProgress.objects.create(lesson=self.lesson, student=self.student, completed_at=self.now)
        QuizAttempt.objects.create(quiz=self.quiz, student=self.student, started_at=self.now - timedelta(days=1))
        LessonView.objects.create(lesson=self.lesson, student=self.student, viewed_at=self.now - timedelta(days=2))
        TutorCall.objects.create(student=self.student, call_started_at=self.now - timedelta(days=3))

        streak = StreakService.calculate(self.student, today=self.today)
        self.assertEqual(streak.current_streak, 4)
        self.assertEqual(streak.longest_streak, 4)
        self.assertTrue(StreakService.has_activity_today(self.student, today=self.today))

    def test_submitted_at_takes_precedence(self):
        QuizAttempt.objects.create(
            quiz=self.quiz, student=self.student,
            started_at=self.now - timedelta(days=10),
            submitted_at=self.now - timedelta(days=1),
        )
        streak = StreakService.calculate(self.student, today=self.today)
        self.assertEqual(streak.activity_dates, [self.today - timedelta(days=1)])
        self.assertEqual(streak.current_streak, 1)
        self.assertFalse(StreakService.has_activity_today(self.student, today=self.today))

    def test_enrollment_counts(self):
        Enrollment.objects.create(course=self.course, student=self.student)
        self.assertEqual(StreakService.calculate(self.student).current_streak, 1)
        self.assertEqual(StreakService.current_streak(self.student), 1)

    def test_other_students_ignored(self):
        other = User.objects.create_user('other', 'other@test.com', 'pass123')
        LessonView.objects.create(lesson=self.lesson, student=other)
        self.assertEqual(StreakService.calculate(self.student, today=self.today), StreakData())

    def test_incomplete_lessons_ignored(self):
        LessonProgress.objects.create(lesson=self.lesson, student=self.student, completed_at=None)
        self.assertEqual(StreakService.calculate(self.student, today=self.today).current_streak, 0)

    @override_settings(QUIZ_SETTINGS={'STREAK_TIMEZONE': 'Asia/Tokyo', 'EXPORT_DATE_FORMAT': '%Y-%m-%d'})
    def test_days_follow_streak_timezone(self):
        viewed_at = datetime(2024, 3, 1, 20, 0, tzinfo=dt_timezone.utc)
        LessonView.objects.create(lesson=self.lesson, student=self.student, viewed_at=viewed_at)
        self.assertEqual(StreakService.activity_dates(self.student), {date(2024, 3, 2)})
        self.assertTrue(StreakService.has_activity_today(self.student, today=date(2024, 3, 2)))
        self.assertFalse(StreakService.has_activity_today(self.student, today=date(2024, 3, 1)))

    def test_days_default_to_utc(self):
        viewed_at = datetime(2024, 3, 1, 20, 0, tzinfo=dt_timezone.utc)
        LessonView.objects.create(lesson=self.lesson, student=self.student, viewed_at=viewed_at)
        self.assertEqual(StreakService.activity_dates(self.student), {date(2024, 3, 1)})


class QuizFixtureMixin:

    def create_quiz(self, published=True):
        self.course = Course.objects.create(title='Geography', code='GEO101')
        self.quiz = Quiz.objects.create(course=self.course, title='Capitals', is_published=published)
        self.q1 = QuizQuestion.objects.create(
            quiz=self.quiz, question_type='mcq', question_text='Capital of France?',
            options=['Paris', 'Lyon'], correct_answer='Paris', points=10, order_index=0
        )
        self.q2 = QuizQuestion.objects.create(
            quiz=self.quiz, question_type='mcq', question_text='Capital of the UK?',
            options=['London', 'York'], correct_answer='London', points=10, order_index=1
        )
        self.q3 = QuizQuestion.objects.create(
            quiz=self.quiz, question_type='written', question_text='Capital of Germany?',
            correct_answer='Berlin', points=10, order_index=2
        )


class AttemptServiceTests(QuizFixtureMixin, TestCase):

    def setUp(self):
        self.student = User.objects.create_user('student', 'student@test.com', 'pass123')
        self.teacher = User.objects.create_user('teacher', 'teacher@test.com', 'pass123')
        self.create_quiz()

    def test_start_attempt(self):
        attempt = AttemptService.start_attempt(self.quiz, self.student)
        self.assertEqual(attempt.answers, {})
        self.assertFalse(attempt.is_submitted)
        self.assertTrue(AuditLog.objects.filter(event_type=AuditLog.EventType.ATTEMPT_START).exists())

    def test_record_answer_overwrites_and_ungrades(self):
        attempt = QuizAttempt.objects.create(
            quiz=self.quiz, student=self.student,
            answers={str(self.q1.id): {'answer': 'Lyon', 'isCorrect': False}}
        )
        attempt = AttemptService.record_answer(attempt, self.q1.id, 'Paris')
        attempt.refresh_from_db()
        self.assertEqual(attempt.answers[str(self.q1.id)], {'answer': 'Paris', 'isCorrect': None})

    def test_record_answer_upgrades_legacy_storage(self):
        attempt = QuizAttempt.objects.create(
            quiz=self.quiz, student=self.student, answers={str(self.q1.id): 'Paris'}
        )
        AttemptService.record_answer(attempt, self.q2.id, 'London')
        attempt.refresh_from_db()
        self.assertTrue(is_current_format(attempt.answers))
        self.assertEqual(get_answer_text(attempt.answers, self.q1.id), 'Paris')

    def test_submit_scores_legacy_attempt(self):
        attempt = QuizAttempt.objects.create(
            quiz=self.quiz, student=self.student,
            answers={str(self.q1.id): 'Paris', str(self.q2.id): 'London', str(self.q3.id): 'Berlin'}
        )
        attempt = AttemptService.submit_attempt(attempt)
        self.assertEqual(attempt.score, 20)
        self.assertEqual(attempt.max_score, 30)
        self.assertIsNotNone(attempt.submitted_at)
        attempt.refresh_from_db()
        # stored answers are left in their original shape
        self.assertEqual(attempt.answers[str(self.q1.id)], 'Paris')

    def test_submit_json_string_attempt(self):
        attempt = QuizAttempt.objects.create(
            quiz=self.quiz, student=self.student,
            answers=json.dumps({str(self.q1.id): {'answer': 'Paris', 'isCorrect': None}})
        )
        attempt = AttemptService.submit_attempt(attempt)
        self.assertEqual(attempt.score, 10)

    def test_submit_merges_answer_batch(self):
        attempt = AttemptService.start_attempt(self.quiz, self.student)
        attempt = AttemptService.submit_attempt(attempt, answers={str(self.q1.id): 'Paris', str(self.q2.id): 'York'})
        self.assertEqual(attempt.score, 10)
        self.assertEqual(get_correctness(attempt.answers, self.q2.id), None)

    def test_grade_answer_rescores(self):
        attempt = QuizAttempt.objects.create(
            quiz=self.quiz, student=self.student,
            answers={str(self.q1.id): 'Paris', str(self.q3.id): 'Berlin'}
        )
        attempt = AttemptService.submit_attempt(attempt)
        self.assertEqual(attempt.score, 10)

        attempt = AttemptService.grade_answer(attempt, self.q3.id, True, grader=self.teacher)
        self.assertEqual(attempt.score, 20)
        self.assertIsNotNone(attempt.graded_at)

        attempt = AttemptService.grade_answer(attempt, self.q1.id, False, grader=self.teacher)
        self.assertEqual(attempt.score, 10)
        self.assertEqual(get_answer_text(attempt.answers, self.q1.id), 'Paris')

        log = AuditLog.objects.filter(event_type=AuditLog.EventType.GRADE_OVERRIDE).order_by('id').last()
        self.assertEqual(log.user, self.teacher)
        self.assertEqual(log.metadata['new_score'], 10.0)

    def test_stale_writes_rejected_after_submit(self):
        attempt = AttemptService.start_attempt(self.quiz, self.student)
        stale = QuizAttempt.objects.get(pk=attempt.pk)

        attempt = AttemptService.submit_attempt(attempt, answers={str(self.q3.id): 'Berlin'})
        attempt = AttemptService.grade_answer(attempt, self.q3.id, True, grader=self.teacher)
        submitted_at = attempt.submitted_at

        with self.assertRaises(ValidationError):
            AttemptService.submit_attempt(stale, answers={str(self.q3.id): 'Berlin'})
        with self.assertRaises(ValidationError):
            AttemptService.record_answer(stale, self.q1.id, 'Paris')

        attempt.refresh_from_db()
        self.assertEqual(attempt.score, 10)
        self.assertEqual(attempt.submitted_at, submitted_at)
        self.assertEqual(attempt.answers, {str(self.q3.id): {'answer': 'Berlin', 'isCorrect': True}})
        self.assertEqual(AuditLog.objects.filter(event_type=AuditLog.EventType.ATTEMPT_SUBMIT).count(), 1)

    def test_review(self):
        attempt = QuizAttempt.objects.create(
            quiz=self.quiz, student=self.student, answers={str(self.q1.id): 'Paris'}
        )
        rows = AttemptService.review(attempt)
        self.assertEqual([r['question_id'] for r in rows], [self.q1.id, self.q2.id, self.q3.id])
        self.assertEqual(rows[0]['points_earned'], 10.0)
        self.assertEqual(rows[1]['answer'], '')
        self.assertNotIn('correct_answer', rows[0])
        self.assertEqual(AttemptService.review(attempt, include_answer_key=True)[0]['correct_answer'], 'Paris')


class ExportServiceTests(QuizFixtureMixin, TestCase):

    def test_export_uses_answer_text(self):
        student = User.objects.create_user('student', 'student@test.com', 'pass123')
        self.create_quiz()
        legacy = QuizAttempt.objects.create(
            quiz=self.quiz, student=student, answers={str(self.q1.id): 'Paris'}
        )
        AttemptService.submit_attempt(legacy)
        current = QuizAttempt.objects.create(
            quiz=self.quiz, student=student,
            answers={str(self.q3.id): {'answer': 'Berlin', 'isCorrect': True}}
        )
        AttemptService.submit_attempt(current)

        csv_text = ExportService.export_quiz_results(self.quiz, QuizAttempt.objects.order_by('id'))
        lines = csv_text.strip().splitlines()
        self.assertEqual(len(lines), 3)
        self.assertTrue(lines[0].startswith('Student,Email,Score,Max Score'))
        self.assertTrue(lines[1].endswith('Paris,,'))
        self.assertTrue(lines[2].endswith(',,Berlin'))


class TeacherRoleTests(TestCase):

    def test_is_teacher(self):
        student = User.objects.create_user('student', 'student@test.com', 'pass123')
        staff = User.objects.create_user('staff', 'staff@test.com', 'pass123', is_staff=True)
        self.assertFalse(is_teacher(student))
        self.assertFalse(is_teacher(AnonymousUser()))
        self.assertTrue(is_teacher(staff))

        for role in (UserProfile.Role.TEACHER, UserProfile.Role.ADMIN):
            student.profile.role = role
            student.profile.save()
            self.assertTrue(student.profile.can_teach)
            self.assertTrue(is_teacher(User.objects.get(pk=student.pk)))


class QuizApiTests(QuizFixtureMixin, APITestCase):

    def setUp(self):
        cache.clear()
        self.student = User.objects.create_user('student', 'student@test.com', 'pass123')
        self.other = User.objects.create_user('other', 'other@test.com', 'pass123')
        self.teacher = User.objects.create_user('teacher', 'teacher@test.com', 'pass123')
        self.teacher.profile.role = UserProfile.Role.TEACHER
        self.teacher.profile.save()
        self.create_quiz()

    def start(self):
        self.client.force_authenticate(user=self.student)
        response = self.client.post('/api/attempts/', {'quiz': self.quiz.id})
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        return response.data['id']

    def test_requires_authentication(self):
        response = self.client.get('/api/attempts/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_full_attempt_flow(self):
        attempt_id = self.start()

        response = self.client.post(f'/api/attempts/{attempt_id}/answer/', {
            'question_id': self.q1.id, 'answer': 'Paris'
        })
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['answers'][str(self.q1.id)], {'answer': 'Paris', 'isCorrect': None})

        response = self.client.post(f'/api/attempts/{attempt_id}/submit/', {
            'answers': {str(self.q2.id): 'York', str(self.q3.id): 'Berlin'}
        })
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(float(response.data['score']), 10.0)
        self.assertEqual(float(response.data['max_score']), 30.0)
        self.assertTrue(response.data['is_submitted'])

        response = self.client.post(f'/api/attempts/{attempt_id}/answer/', {
            'question_id': self.q2.id, 'answer': 'London'
        })
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(user=self.teacher)
        response = self.client.post(f'/api/attempts/{attempt_id}/grade/', {
            'question_id': self.q3.id, 'is_correct': True
        })
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['score'], 20.0)
        self.assertEqual(response.data['answer'], 'Berlin')
        self.assertIs(response.data['is_correct'], True)

    def test_cannot_start_unpublished_quiz(self):
        self.quiz.is_published = False
        self.quiz.save()
        self.client.force_authenticate(user=self.student)
        response = self.client.post('/api/attempts/', {'quiz': self.quiz.id})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_single_open_attempt(self):
        self.start()
        response = self.client.post('/api/attempts/', {'quiz': self.quiz.id})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_answer_rejects_foreign_question(self):
        attempt_id = self.start()
        other_quiz = Quiz.objects.create(course=self.course, title='Other', is_published=True)
        foreign = QuizQuestion.objects.create(
            quiz=other_quiz, question_type='written', question_text='?', points=1
        )
        response = self.client.post(f'/api/attempts/{attempt_id}/answer/', {
            'question_id': foreign.id, 'answer': 'x'
        })
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_students_cannot_grade(self):
        attempt_id = self.start()
        self.client.post(f'/api/attempts/{attempt_id}/submit/', {})
        response = self.client.post(f'/api/attempts/{attempt_id}/grade/', {
            'question_id': self.q3.id, 'is_correct': True
        })
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_grading_requires_submission(self):
        attempt_id = self.start()
        self.client.force_authenticate(user=self.teacher)
        response = self.client.post(f'/api/attempts/{attempt_id}/grade/', {
            'question_id': self.q3.id, 'is_correct': True
        })
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_grade_can_reset_to_ungraded(self):
        attempt = QuizAttempt.objects.create(
            quiz=self.quiz, student=self.student, submitted_at=timezone.now(),
            answers={str(self.q1.id): {'answer': 'Paris', 'isCorrect': False}}
        )
        self.client.force_authenticate(user=self.teacher)
        response = self.client.post(f'/api/attempts/{attempt.id}/grade/', {
            'question_id': self.q1.id, 'is_correct': None
        })
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNone(response.data['is_correct'])
        self.assertEqual(response.data['score'], 10.0)

    def test_attempts_are_private(self):
        attempt_id = self.start()
        self.client.force_authenticate(user=self.other)
        response = self.client.get(f'/api/attempts/{attempt_id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        response = self.client.get('/api/attempts/')
        self.assertEqual(response.data['count'], 0)

    def test_legacy_attempt_is_normalized(self):
        attempt = QuizAttempt.objects.create(
            quiz=self.quiz, student=self.student, answers={str(self.q1.id): 'Paris'}
        )
        string_attempt = QuizAttempt.objects.create(
            quiz=self.quiz, student=self.student, answers=json.dumps({str(self.q2.id): 'London'})
        )
        self.client.force_authenticate(user=self.student)

        response = self.client.get(f'/api/attempts/{attempt.id}/')
        self.assertEqual(response.data['answers'], {str(self.q1.id): {'answer': 'Paris', 'isCorrect': None}})

        response = self.client.get(f'/api/attempts/{string_attempt.id}/')
        self.assertEqual(response.data['answers'], {str(self.q2.id): {'answer': 'London', 'isCorrect': None}})

    def test_review_hides_key_until_submitted(self):
        attempt_id = self.start()
        response = self.client.get(f'/api/attempts/{attempt_id}/review/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertNotIn('correct_answer', response.data['questions'][0])

        self.client.post(f'/api/attempts/{attempt_id}/submit/', {'answers': {str(self.q1.id): 'Paris'}})
        response = self.client.get(f'/api/attempts/{attempt_id}/review/')
        self.assertEqual(response.data['questions'][0]['correct_answer'], 'Paris')
        self.assertEqual(response.data['score'], 10.0)

    def test_question_answer_key_visibility(self):
        self.client.force_authenticate(user=self.student)
        response = self.client.get(f'/api/questions/{self.q1.id}/')
        self.assertNotIn('correct_answer', response.data)

        self.client.force_authenticate(user=self.teacher)
        response = self.client.get(f'/api/questions/{self.q1.id}/')
        self.assertEqual(response.data['correct_answer'], 'Paris')

    def test_mcq_question_needs_answer_key(self):
        self.client.force_authenticate(user=self.teacher)
        response = self.client.post('/api/questions/', {
            'quiz': self.quiz.id, 'question_type': 'mcq', 'question_text': 'Capital of Spain?',
            'options': ['Madrid', 'Seville'], 'points': 5
        })
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('correct_answer', response.data)

    def test_students_cannot_create_quizzes(self):
        self.client.force_authenticate(user=self.student)
        response = self.client.post('/api/quizzes/', {'course': self.course.id, 'title': 'New'})
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_teacher_creates_quiz(self):
        self.client.force_authenticate(user=self.teacher)
        response = self.client.post('/api/quizzes/', {'course': self.course.id, 'title': 'New'})
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['created_by'], 'teacher')

    def test_students_see_published_quizzes_only(self):
        Quiz.objects.create(course=self.course, title='Draft', is_published=False)
        self.client.force_authenticate(user=self.student)
        response = self.client.get('/api/quizzes/')
        self.assertEqual([q['title'] for q in response.data['results']], ['Capitals'])

    def test_export(self):
        QuizAttempt.objects.create(
            quiz=self.quiz, student=self.student, submitted_at=timezone.now(),
            score=10, max_score=30, answers={str(self.q1.id): 'Paris'}
        )
        self.client.force_authenticate(user=self.student)
        response = self.client.get(f'/api/quizzes/{self.quiz.id}/export/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(user=self.teacher)
        response = self.client.get(f'/api/quizzes/{self.quiz.id}/export/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'text/csv')
        self.assertIn('Paris', response.content.decode())

    def test_my_streak(self):
        self.start()
        response = self.client.get('/api/my-streak/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['current_streak'], 1)
        self.assertTrue(response.data['has_activity_today'])


class SetupDemoCommandTests(TestCase):

    def test_creates_legacy_attempt(self):
        call_command('setup_demo', stdout=StringIO())
        attempt = QuizAttempt.objects.get(student__username='student')
        self.assertFalse(is_current_format(attempt.answers))
        self.assertEqual(attempt.score, 20)
        self.assertEqual(attempt.max_score, 30)

        call_command('setup_demo', stdout=StringIO())
        self.assertEqual(QuizAttempt.objects.count(), 1)

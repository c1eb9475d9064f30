"""
Management command to set up demo data for the quiz engine.
Creates demo users, a course, a quiz, and one attempt stored in the legacy
answer format so both formats can be exercised against the API.
"""
from django.core.management.base import BaseCommand
from django.contrib.auth.models import User
from rest_framework.authtoken.models import Token

from quizzes.models import Course, Enrollment, Quiz, QuizQuestion, QuizAttempt, UserProfile
from quizzes.services import AttemptService


class Command(BaseCommand):
    help = 'Set up demo data for testing'

    def _user(self, username, password, role, **extra):
        user, created = User.objects.get_or_create(
            username=username,
            defaults={'email': f'{username}@example.com', 'is_active': True, **extra}
        )
        if created:
            user.set_password(password)
            user.save()
            user.profile.role = role
            user.profile.save()
            self.stdout.write(self.style.SUCCESS(f'Created {role}: {username} / {password}'))
        else:
            self.stdout.write(f'  {username} already exists')
        token, _ = Token.objects.get_or_create(user=user)
        return user, token

    def handle(self, *args, **options):
        self.stdout.write(self.style.NOTICE('\nSetting up quiz engine demo data...\n'))

        student, student_token = self._user('student', 'student123', UserProfile.Role.STUDENT)
        teacher, teacher_token = self._user('teacher', 'teacher123', UserProfile.Role.TEACHER)

        course, _ = Course.objects.get_or_create(
            code='GEO101',
            defaults={'title': 'World Geography', 'teacher': teacher}
        )
        Enrollment.objects.get_or_create(course=course, student=student)

        quiz, created = Quiz.objects.get_or_create(
            course=course,
            title='European Capitals',
            defaults={'is_published': True, 'created_by': teacher, 'time_limit': 15}
        )
        if created:
            questions = [
                ('mcq', 'What is the capital of France?', ['Paris', 'Lyon', 'Nice'], 'Paris'),
                ('mcq', 'What is the capital of the United Kingdom?', ['Leeds', 'London', 'York'], 'London'),
                ('written', 'Name the capital of Germany and one landmark there.', None, 'Berlin'),
            ]
            for index, (question_type, text, options, correct) in enumerate(questions):
                QuizQuestion.objects.create(
                    quiz=quiz, question_type=question_type, question_text=text,
                    options=options, correct_answer=correct, points=10, order_index=index
                )
            self.stdout.write(self.style.SUCCESS(f'Created quiz: {quiz.title}'))

        if not QuizAttempt.objects.filter(quiz=quiz, student=student).exists():
            ids = [str(q.id) for q in quiz.questions.all()]
            legacy = QuizAttempt.objects.create(
                quiz=quiz, student=student,
                answers=dict(zip(ids, ['Paris', 'London', 'Berlin, Brandenburg Gate']))
            )
            AttemptService.submit_attempt(legacy)
            legacy.refresh_from_db()
            self.stdout.write(self.style.SUCCESS(
                f'Created legacy-format attempt #{legacy.id} scoring {legacy.score}/{legacy.max_score}'
            ))

        self.stdout.write('\nAPI tokens:')
        self.stdout.write(f'  student: {student_token.key}')
        self.stdout.write(f'  teacher: {teacher_token.key}')

"""
API Views for the quiz engine.
Provides endpoints for quizzes, questions, attempts, grading and study streaks.
"""
from django.db.models import Count
from django.http import HttpResponse
from rest_framework import mixins, viewsets, status
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView
from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiExample

from quizzes.grading import get_answer_text, get_correctness
from quizzes.models import Quiz, QuizQuestion, QuizAttempt
from quizzes.permissions import (
    IsOwnerOrTeacher, IsTeacher, IsTeacherOrReadOnly, CanAnswerAttempt, is_teacher,
)
from quizzes.services import AttemptService, ExportService, StreakService
from quizzes.throttling import SubmissionRateThrottle
from .serializers import (
    QuizSerializer, QuizQuestionSerializer, QuizAttemptSerializer,
    AttemptCreateSerializer, AnswerRecordSerializer, AttemptSubmitSerializer,
    GradeAnswerSerializer, StreakSerializer,
)


# =============================================================================
# QUIZZES
# =============================================================================

@extend_schema_view(
    list=extend_schema(
        summary="List quizzes",
        description="Students see published quizzes only; teachers see drafts too."
    ),
    create=extend_schema(summary="Create quiz", description="**Requires Teacher or Admin role.**"),
)
@extend_schema(tags=['Quizzes'])
class QuizViewSet(viewsets.ModelViewSet):
    serializer_class = QuizSerializer
    permission_classes = [IsAuthenticated, IsTeacherOrReadOnly]
    filterset_fields = ['course', 'is_published']
    search_fields = ['title', 'description']
    ordering_fields = ['title', 'created_at']

    def get_queryset(self):
        queryset = Quiz.objects.select_related('created_by').annotate(question_count=Count('questions'))
        if not is_teacher(self.request.user):
            queryset = queryset.filter(is_published=True)
        return queryset

    def perform_create(self, serializer):
        serializer.save(created_by=self.request.user)

    @extend_schema(summary="Export quiz results as CSV", responses={(200, 'text/csv'): str})
    @action(detail=True, methods=['get'], permission_classes=[IsAuthenticated, IsTeacher])
    def export(self, request, pk=None):
        quiz = self.get_object()
        attempts = quiz.attempts.filter(submitted_at__isnull=False).select_related('student').order_by('submitted_at')

        response = HttpResponse(ExportService.export_quiz_results(quiz, attempts), content_type='text/csv')
        response['Content-Disposition'] = f'attachment; filename="quiz_{quiz.id}_results.csv"'
        return response


# =============================================================================
# QUESTIONS
# =============================================================================

@extend_schema(tags=['Questions'])
class QuizQuestionViewSet(viewsets.ModelViewSet):
    """Questions are readable by everyone; the answer key is only shown to teachers."""
    serializer_class = QuizQuestionSerializer
    permission_classes = [IsAuthenticated, IsTeacherOrReadOnly]
    filterset_fields = ['quiz', 'question_type']
    ordering = ['quiz', 'order_index', 'id']

    def get_queryset(self):
        queryset = QuizQuestion.objects.select_related('quiz')
        if not is_teacher(self.request.user):
            queryset = queryset.filter(quiz__is_published=True)
        return queryset


# =============================================================================
# ATTEMPTS
# =============================================================================

@extend_schema_view(
    list=extend_schema(summary="List attempts", description="Students see their own attempts only."),
    retrieve=extend_schema(summary="Get attempt", description="Answers are always returned in the current format."),
)
@extend_schema(tags=['Attempts'])
class QuizAttemptViewSet(mixins.ListModelMixin,
                         mixins.RetrieveModelMixin,
                         mixins.CreateModelMixin,
                         viewsets.GenericViewSet):
    serializer_class = QuizAttemptSerializer
    permission_classes = [IsAuthenticated, IsOwnerOrTeacher]
    filterset_fields = ['quiz']
    ordering_fields = ['started_at', 'submitted_at', 'score']

    def get_queryset(self):
        if getattr(self, 'swagger_fake_view', False):
            return QuizAttempt.objects.none()

        queryset = QuizAttempt.objects.select_related('quiz', 'student')
        if not is_teacher(self.request.user):
            queryset = queryset.filter(student=self.request.user)
        return queryset

    def _detail(self, attempt):
        return Response(QuizAttemptSerializer(attempt, context={'request': self.request}).data)

    @extend_schema(
        summary="Start quiz attempt",
        request=AttemptCreateSerializer,
        responses={201: QuizAttemptSerializer},
        examples=[OpenApiExample('Request Example', value={"quiz": 1}, request_only=True)]
    )
    def create(self, request, *args, **kwargs):
        serializer = AttemptCreateSerializer(data=request.data, context={'request': request})
        serializer.is_valid(raise_exception=True)

        attempt = AttemptService.start_attempt(serializer.validated_data['quiz'], request.user, request=request)
        return Response(
            QuizAttemptSerializer(attempt, context={'request': request}).data,
            status=status.HTTP_201_CREATED
        )

    @extend_schema(
        summary="Answer a question",
        description="Saves or overwrites one answer. The answer goes back to ungraded.",
        request=AnswerRecordSerializer,
        responses={200: QuizAttemptSerializer},
        examples=[OpenApiExample('Request Example', value={"question_id": 3, "answer": "Paris"}, request_only=True)]
    )
    @action(detail=True, methods=['post'], permission_classes=[IsAuthenticated, CanAnswerAttempt])
    def answer(self, request, pk=None):
        attempt = self.get_object()
        serializer = AnswerRecordSerializer(data=request.data, context={'attempt': attempt})
        serializer.is_valid(raise_exception=True)

        attempt = AttemptService.record_answer(
            attempt,
            serializer.validated_data['question_id'],
            serializer.validated_data['answer']
        )
        return self._detail(attempt)

    @extend_schema(
        summary="Submit attempt",
        description="Scores the attempt. MCQ answers are auto-graded; written answers wait for a teacher.",
        request=AttemptSubmitSerializer,
        responses={200: QuizAttemptSerializer}
    )
    @action(detail=True, methods=['post'], permission_classes=[IsAuthenticated, CanAnswerAttempt],
            throttle_classes=[SubmissionRateThrottle])
    def submit(self, request, pk=None):
        attempt = self.get_object()
        serializer = AttemptSubmitSerializer(data=request.data, context={'attempt': attempt})
        serializer.is_valid(raise_exception=True)

        attempt = AttemptService.submit_attempt(
            attempt,
            answers=serializer.validated_data.get('answers'),
            request=request
        )
        return self._detail(attempt)

    @extend_schema(
        summary="Grade an answer",
        description="Teacher verdict for one question (true, false, or null to reset). Rescores the attempt.",
        request=GradeAnswerSerializer,
        responses={200: dict},
        tags=['Grading']
    )
    @action(detail=True, methods=['post'], permission_classes=[IsAuthenticated, IsTeacher])
    def grade(self, request, pk=None):
        attempt = self.get_object()
        serializer = GradeAnswerSerializer(data=request.data, context={'attempt': attempt})
        serializer.is_valid(raise_exception=True)

        question_id = serializer.validated_data['question_id']
        attempt = AttemptService.grade_answer(
            attempt,
            question_id,
            serializer.validated_data['is_correct'],
            grader=request.user,
            request=request
        )
        return Response({
            'attempt_id': attempt.id,
            'question_id': question_id,
            'answer': get_answer_text(attempt.answers, question_id),
            'is_correct': get_correctness(attempt.answers, question_id),
            'score': float(attempt.score),
            'max_score': float(attempt.max_score),
        })

    @extend_schema(summary="Review attempt", responses={200: dict}, tags=['Grading'])
    @action(detail=True, methods=['get'])
    def review(self, request, pk=None):
        attempt = self.get_object()
        show_key = is_teacher(request.user) or attempt.is_submitted
        return Response({
            'attempt_id': attempt.id,
            'score': float(attempt.score) if attempt.score is not None else None,
            'max_score': float(attempt.max_score) if attempt.max_score is not None else None,
            'questions': AttemptService.review(attempt, include_answer_key=show_key),
        })


# =============================================================================
# STUDY STREAK
# =============================================================================

@extend_schema(tags=['Progress'])
class StudyStreakView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(summary="Get my study streak", responses={200: StreakSerializer})
    def get(self, request):
        streak = StreakService.calculate(request.user)
        data = {
            'current_streak': streak.current_streak,
            'longest_streak': streak.longest_streak,
            'last_activity_date': streak.last_activity_date,
            'activity_dates': streak.activity_dates,
            'has_activity_today': StreakService.has_activity_today(request.user),
        }
        return Response(StreakSerializer(data).data)

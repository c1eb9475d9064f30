from rest_framework import serializers
from drf_spectacular.utils import extend_schema_field

from quizzes.models import Quiz, QuizQuestion, QuizAttempt
from quizzes.permissions import is_teacher


class QuizSerializer(serializers.ModelSerializer):
    question_count = serializers.IntegerField(read_only=True)
    created_by = serializers.CharField(source='created_by.username', read_only=True, default=None)

    class Meta:
        model = Quiz
        fields = [
            'id', 'course', 'title', 'description', 'time_limit', 'is_published',
            'question_count', 'created_by', 'created_at', 'updated_at'
        ]
        read_only_fields = ['created_at', 'updated_at']


class QuizQuestionSerializer(serializers.ModelSerializer):
    class Meta:
        model = QuizQuestion
        fields = [
            'id', 'quiz', 'question_type', 'question_text', 'question_image',
            'options', 'correct_answer', 'points', 'order_index'
        ]
        read_only_fields = ['id']

    def validate(self, data):
        question_type = data.get('question_type', getattr(self.instance, 'question_type', None))
        correct_answer = data.get('correct_answer', getattr(self.instance, 'correct_answer', None))
        if question_type == QuizQuestion.QuestionType.MULTIPLE_CHOICE and not correct_answer:
            raise serializers.ValidationError({'correct_answer': "Multiple choice questions need a correct answer."})
        return data

    def to_representation(self, instance):
        data = super().to_representation(instance)
        request = self.context.get('request')
        if not (request and is_teacher(request.user)):
            data.pop('correct_answer', None)
        return data


class QuizAttemptSerializer(serializers.ModelSerializer):
    quiz_title = serializers.CharField(source='quiz.title', read_only=True)
    student = serializers.CharField(source='student.username', read_only=True)
    answers = serializers.SerializerMethodField()
    is_submitted = serializers.BooleanField(read_only=True)

    class Meta:
        model = QuizAttempt
        fields = [
            'id', 'quiz', 'quiz_title', 'student', 'answers',
            'score', 'max_score', 'is_submitted',
            'started_at', 'submitted_at', 'graded_at'
        ]
        read_only_fields = fields

    @extend_schema_field(serializers.DictField(child=serializers.DictField()))
    def get_answers(self, obj) -> dict:
        return obj.normalized_answers


class AttemptCreateSerializer(serializers.ModelSerializer):
    class Meta:
        model = QuizAttempt
        fields = ['quiz']

    def validate_quiz(self, quiz):
        user = self.context['request'].user

        if not quiz.is_published:
            raise serializers.ValidationError("This quiz is not available.")

        if QuizAttempt.objects.filter(student=user, quiz=quiz, submitted_at__isnull=True).exists():
            raise serializers.ValidationError("You have an in-progress attempt for this quiz.")

        return quiz


class _AttemptQuestionMixin:
    """Checks that question ids belong to the attempt's quiz (attempt passed in context)."""

    def _check_question(self, question_id):
        attempt = self.context.get('attempt')
        if attempt is None:
            return question_id
        if not attempt.quiz.questions.filter(id=question_id).exists():
            raise serializers.ValidationError(f"Question {question_id} does not belong to this quiz.")
        return question_id


class AnswerRecordSerializer(_AttemptQuestionMixin, serializers.Serializer):
    question_id = serializers.IntegerField()
    answer = serializers.CharField(allow_blank=True, trim_whitespace=False)

    def validate_question_id(self, value):
        return self._check_question(value)


class AttemptSubmitSerializer(_AttemptQuestionMixin, serializers.Serializer):
    answers = serializers.DictField(
        child=serializers.CharField(allow_blank=True, trim_whitespace=False),
        required=False,
        help_text="Optional {question_id: answer} batch saved before scoring"
    )

    def validate_answers(self, answers):
        for key in answers:
            try:
                question_id = int(key)
            except (TypeError, ValueError):
                raise serializers.ValidationError(f"Invalid question id: {key}")
            self._check_question(question_id)
        return answers


class GradeAnswerSerializer(_AttemptQuestionMixin, serializers.Serializer):
    question_id = serializers.IntegerField()
    is_correct = serializers.BooleanField(allow_null=True)

    def validate_question_id(self, value):
        return self._check_question(value)

    def validate(self, data):
        attempt = self.context.get('attempt')
        if attempt is not None and not attempt.is_submitted:
            raise serializers.ValidationError("This attempt has not been submitted yet.")
        return data


class StreakSerializer(serializers.Serializer):
    current_streak = serializers.IntegerField()
    longest_streak = serializers.IntegerField()
    last_activity_date = serializers.DateField(allow_null=True)
    activity_dates = serializers.ListField(child=serializers.DateField())
    has_activity_today = serializers.BooleanField()

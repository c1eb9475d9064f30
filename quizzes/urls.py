from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .api.views import QuizViewSet, QuizQuestionViewSet, QuizAttemptViewSet, StudyStreakView

router = DefaultRouter()
router.register(r'quizzes', QuizViewSet, basename='quiz')
router.register(r'questions', QuizQuestionViewSet, basename='question')
router.register(r'attempts', QuizAttemptViewSet, basename='attempt')

urlpatterns = [
    path('my-streak/', StudyStreakView.as_view(), name='my-streak'),
    path('', include(router.urls)),
]

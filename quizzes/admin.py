from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.contrib.auth.models import User

from .grading import normalize_answers
from .models import (
    Course, Enrollment, Lesson, Quiz, QuizQuestion, QuizAttempt, AuditLog, UserProfile,
)


class UserProfileInline(admin.StackedInline):
    model = UserProfile
    can_delete = False
    verbose_name_plural = 'Profile'


class UserAdmin(BaseUserAdmin):
    inlines = [UserProfileInline]
    list_display = ['username', 'email', 'first_name', 'last_name', 'get_role', 'is_staff']
    list_filter = ['is_staff', 'is_superuser', 'is_active', 'profile__role']

    def get_role(self, obj):
        return obj.profile.get_role_display() if hasattr(obj, 'profile') else '-'
    get_role.short_description = 'Role'


admin.site.unregister(User)
admin.site.register(User, UserAdmin)


class QuizQuestionInline(admin.TabularInline):
    model = QuizQuestion
    extra = 1
    fields = ['order_index', 'question_type', 'question_text', 'points', 'correct_answer']


@admin.register(Course)
class CourseAdmin(admin.ModelAdmin):
    list_display = ['code', 'title', 'teacher', 'created_at']
    search_fields = ['code', 'title']
    ordering = ['code']


@admin.register(Enrollment)
class EnrollmentAdmin(admin.ModelAdmin):
    list_display = ['student', 'course', 'enrolled_at']
    list_filter = ['course']


@admin.register(Lesson)
class LessonAdmin(admin.ModelAdmin):
    list_display = ['title', 'course', 'order_index']
    list_filter = ['course']


@admin.register(Quiz)
class QuizAdmin(admin.ModelAdmin):
    list_display = ['title', 'course', 'is_published', 'time_limit', 'created_at']
    list_filter = ['is_published', 'course']
    search_fields = ['title', 'description']
    inlines = [QuizQuestionInline]


@admin.register(QuizAttempt)
class QuizAttemptAdmin(admin.ModelAdmin):
    list_display = ['student', 'quiz', 'score', 'max_score', 'started_at', 'submitted_at']
    list_filter = ['quiz']
    readonly_fields = ['answers', 'normalized_answers_display', 'started_at', 'submitted_at', 'graded_at']

    def normalized_answers_display(self, obj):
        return normalize_answers(obj.answers)
    normalized_answers_display.short_description = 'Answers (normalized)'


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ['event_type', 'user', 'ip_address', 'created_at']
    list_filter = ['event_type']
    readonly_fields = ['user', 'event_type', 'description', 'ip_address', 'metadata', 'created_at']

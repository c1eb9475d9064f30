from rest_framework import permissions


class IsOwnerOrTeacher(permissions.BasePermission):
    def has_object_permission(self, request, view, obj):
        if is_teacher(request.user):
            return True
        return getattr(obj, 'student', None) == request.user


class IsTeacher(permissions.BasePermission):
    message = "Only teachers and admins can perform this action."

    def has_permission(self, request, view):
        return is_teacher(request.user)


class IsTeacherOrReadOnly(permissions.BasePermission):
    message = "Only teachers and admins can perform this action."

    def has_permission(self, request, view):
        if request.method in permissions.SAFE_METHODS:
            return True
        return is_teacher(request.user)


class CanAnswerAttempt(permissions.BasePermission):
    message = "You cannot answer this attempt."

    def has_object_permission(self, request, view, obj):
        if obj.student != request.user:
            return False
        if obj.is_submitted:
            self.message = "This attempt has already been submitted."
            return False
        return True


def is_teacher(user):
    if not user or not user.is_authenticated:
        return False
    if user.is_staff:
        return True
    return hasattr(user, 'profile') and user.profile.can_teach

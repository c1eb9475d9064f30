from rest_framework.throttling import UserRateThrottle


class SubmissionRateThrottle(UserRateThrottle):
    """Strict rate limit for quiz submissions to prevent abuse."""
    scope = 'submission'

"""
Error taxonomy for the review engine.

Every error carries a stable ``code`` and an HTTP-style ``status`` so that
whatever transport sits in front of the engine can map it without
inspecting messages.
"""


class ReviewEngineError(Exception):
    """Base class for expected, caller-visible failures"""
    code = "REVIEW_ENGINE_ERROR"
    status = 500

    def __init__(self, message: str = None):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__


class InvalidQuality(ReviewEngineError):
    """Quality rating must be an integer between 0 and 5"""
    code = "INVALID_QUALITY"
    status = 400


class InvalidSignal(ReviewEngineError):
    """Unknown learning model signal"""
    code = "INVALID_SIGNAL"
    status = 400


class TopicNotFound(ReviewEngineError):
    """Topic not found"""
    code = "TOPIC_NOT_FOUND"
    status = 404


class SessionNotFound(ReviewEngineError):
    """Session not found"""
    code = "SESSION_NOT_FOUND"
    status = 404


class ConcurrentUpdateError(ReviewEngineError):
    """Row kept changing underneath the update"""
    code = "CONCURRENT_UPDATE"
    status = 409


class RateLimited(ReviewEngineError):
    """AI rate limit exceeded"""
    code = "RATE_LIMITED"
    status = 429

    def __init__(self, result, message: str = None):
        super().__init__(message)
        self.result = result


class AIResponseError(ReviewEngineError):
    """Failed to parse AI response"""
    code = "AI_PARSE_ERROR"
    status = 500

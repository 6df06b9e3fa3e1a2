from typing import List, Optional, Sequence

class AppError(Exception):
    def __init__(self, message: str, status_code: int = 500, user_message: Optional[str] = None):
        self.message = message
        self.status_code = status_code
        self.user_message = user_message or "An error occurred. Please try again later."
        super().__init__(self.message)

class ValidationError(AppError):
    """Raised locally before any network call. Never retried."""

    def __init__(self, message: str, user_message: Optional[str] = None):
        super().__init__(message, status_code=400, user_message=user_message or message)

class UpstreamError(AppError):
    """An external capability rejected a call. `status` is the upstream HTTP status, if any."""

    def __init__(self, message: str, status: Optional[int] = None, service: str = "upstream"):
        self.status = status
        self.service = service
        super().__init__(message, status_code=502)

class RateLimitedError(UpstreamError):
    """The only retryable upstream failure."""

    def __init__(self, message: str, retry_after_ms: Optional[float] = None, service: str = "upstream"):
        self.retry_after_ms = retry_after_ms
        super().__init__(message, status=429, service=service)
        self.status_code = 429

class FatalUpstreamError(UpstreamError):
    pass

class RetriesExhaustedError(AppError):
    def __init__(self, attempts: int, last_error: RateLimitedError):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Upstream still rate limited after {attempts} attempts: {last_error.message}",
            status_code=429,
            user_message="The service is busy right now. Please try again in a few minutes."
        )

class TranscriptionError(AppError):
    def __init__(self, message: str, cause: Optional[Exception] = None):
        self.cause = cause
        super().__init__(
            f"Transcription failed: {message}",
            status_code=502,
            user_message=ErrorHandler.handle_transcription_error(self)
        )

class PublishError(AppError):
    """
    A thread stopped at `failed_index`. Posts before that index stay published;
    `published` holds them in order.
    """

    def __init__(
        self,
        failed_index: int,
        reason: str,
        published: Sequence = (),
        cause: Optional[Exception] = None
    ):
        self.failed_index = failed_index
        self.reason = reason
        self.published = list(published)
        self.cause = cause
        status_code = cause.status_code if isinstance(cause, AppError) else 502
        super().__init__(
            f"Failed to publish post #{failed_index + 1}: {reason}",
            status_code=status_code,
            user_message=ErrorHandler.handle_publish_error(self)
        )

    @property
    def published_ids(self) -> List[str]:
        return [post.remote_id for post in self.published]

class ErrorHandler:
    @staticmethod
    def handle_transcription_error(error: "TranscriptionError") -> str:
        return "Sorry, I couldn't transcribe your audio. Please try recording it again."

    @staticmethod
    def describe_upstream_status(status: Optional[int]) -> str:
        if status == 401:
            return "Authentication failed. Your API credentials may be invalid or expired."
        if status == 403:
            return "Permission denied. Your app may not have write permissions."
        if status == 429:
            return "Rate limit exceeded. Please try again in a few minutes."
        return "The service rejected the request."

    @staticmethod
    def handle_publish_error(error: "PublishError") -> str:
        cause = error.cause
        if isinstance(cause, ValidationError):
            return f"Post #{error.failed_index + 1} is invalid: {cause.message}"

        if isinstance(cause, UpstreamError):
            detail = ErrorHandler.describe_upstream_status(cause.status)
        else:
            detail = "Post couldn't be published. Please try again later."

        if error.published:
            return f"{len(error.published)} post(s) were published before post #{error.failed_index + 1} failed. {detail}"
        return detail

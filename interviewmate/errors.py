"""Error taxonomy for InterviewMate.

Each error carries a short ``user_message`` that is safe to show in the UI.
The underlying provider detail stays in the exception chain and the log.
"""

from typing import Optional


class InterviewMateError(Exception):
    """Base class for all application errors."""

    user_message = "Something went wrong. Please try again."

    def __init__(self, detail: str = "", user_message: Optional[str] = None):
        super().__init__(detail or self.user_message)
        self.detail = detail
        if user_message is not None:
            self.user_message = user_message


class ConfigurationError(InterviewMateError):
    """Provider credentials are missing or invalid."""

    user_message = "Chat API key or transcription credentials not configured. Please check settings."


class CaptureError(InterviewMateError):
    """The audio stream could not be acquired."""

    user_message = "Failed to start recording. Please check permissions or try again."


class TranscriptionChannelError(InterviewMateError):
    """The transcription channel failed to open or to accept audio."""

    user_message = "Transcription service failed. Recording has been stopped."


class ChatRequestError(InterviewMateError):
    """The chat endpoint call failed or returned an error."""

    user_message = "Failed to get response from GPT. Please try again."


class UploadLimitError(InterviewMateError):
    """Too many files staged for one chat message."""

    user_message = "You can only upload up to 3 files."


class DocumentParseError(InterviewMateError):
    """A single uploaded document could not be parsed."""

    user_message = "Failed to read document."


class StorageError(InterviewMateError):
    """Persisted state could not be written."""

    user_message = "Failed to save conversation data. Please check the data directory."

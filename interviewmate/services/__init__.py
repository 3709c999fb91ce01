"""Services layer for InterviewMate application logic."""

from .error_reporter import ErrorReporter
from .uploads import UploadStaging, extract_document_text, read_file_content
from .interview_service import InterviewService
from .knowledge_chat_service import KnowledgeChatService

__all__ = [
    "ErrorReporter",
    "UploadStaging",
    "extract_document_text",
    "read_file_content",
    "InterviewService",
    "KnowledgeChatService",
]

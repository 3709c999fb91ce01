"""InterviewMate - live transcript and knowledge-base assistant for interviews."""

__version__ = "0.1.0"

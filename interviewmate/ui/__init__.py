"""Console user interface and response rendering."""

from .display import DisplayState, AppendRenderer, RevealRenderer

__all__ = [
    "DisplayState",
    "AppendRenderer",
    "RevealRenderer",
]

"""FocusGuard — focus-session tracking with drift detection and regulation pauses."""

__version__ = "0.1.0"

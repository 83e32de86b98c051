"""Services module."""
from . import case_lifecycle
from . import case_service
from . import error_handling
from . import export
from . import metrics
from . import sanitizer
from . import web_search

__all__ = ["case_lifecycle", "case_service", "error_handling", "export", "metrics", "sanitizer", "web_search"]

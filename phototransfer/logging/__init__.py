"""Terminal output."""
from .rich_logger import RichProgressReporter, QuietProgressReporter

__all__ = ["RichProgressReporter", "QuietProgressReporter"]

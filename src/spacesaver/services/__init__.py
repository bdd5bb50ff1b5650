from .duplicate_service import DuplicateService
from .file_service import FileService
from .compress_service import CompressService, CompressibilityReport
from .progress import ProgressTracker, Started, Progress, Completed, Failed, Cancelled
from .scheduler import Scheduler
from .stats_service import StatsService

__all__ = [
    "DuplicateService",
    "FileService",
    "CompressService",
    "CompressibilityReport",
    "ProgressTracker",
    "Started",
    "Progress",
    "Completed",
    "Failed",
    "Cancelled",
    "Scheduler",
    "StatsService",
]

"""Domain models and pure rules for the wiki mirror."""

from src.grabber.domain.errors import GrabberError, InvalidOptionError
from src.grabber.domain.log_params import LogParamsTranscoder, TranscodeContext
from src.grabber.domain.models import Identity, LocalRevision, LogEntry, PageRecord, RemoteRevision
from src.grabber.domain.rules import sanitise_title, sha1_base36

__all__ = [
    "GrabberError",
    "Identity",
    "InvalidOptionError",
    "LocalRevision",
    "LogEntry",
    "LogParamsTranscoder",
    "PageRecord",
    "RemoteRevision",
    "sanitise_title",
    "sha1_base36",
    "TranscodeContext",
]

"""Mirror engine: pagination, reconciliation and integrity checks."""

from src.grabber.application.cursor import ContinuationCursor, list_extractor
from src.grabber.application.identity import IdentityReconciler
from src.grabber.application.integrity import RevisionIntegrityVerifier
from src.grabber.application.pages import PageIdentityResolver, PageWriter
from src.grabber.application.revisions import RevisionImporter

__all__ = [
    "ContinuationCursor",
    "IdentityReconciler",
    "list_extractor",
    "PageIdentityResolver",
    "PageWriter",
    "RevisionImporter",
    "RevisionIntegrityVerifier",
]

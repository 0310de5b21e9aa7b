"""Submission digests: in-memory key and line number indices."""

from .builder import DigestBuilder
from .file_digest import FileDigest
from .keys import KeyIndex, extract_key
from .submission import SubmissionDigest, SubmissionFile

__all__ = [
    "DigestBuilder",
    "FileDigest",
    "KeyIndex",
    "SubmissionDigest",
    "SubmissionFile",
    "extract_key",
]

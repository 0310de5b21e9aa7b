"""Dictionary model: file types, primary keys, relations and surjections."""

from .model import ComplexSurjection, FileType, KeyDictionary, KeySpec, Relation
from .loader import build_dictionary, load_dictionary

__all__ = [
    "ComplexSurjection",
    "FileType",
    "KeyDictionary",
    "KeySpec",
    "Relation",
    "build_dictionary",
    "load_dictionary",
]

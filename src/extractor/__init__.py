from .builder import DocumentExtractor
from .loader import DocumentLoader, LoadedDocument
from .model import DocumentModel, DocumentSource, equivalent_sequences
from .structure import StructuralView

__all__ = [
    "DocumentExtractor",
    "DocumentLoader",
    "DocumentModel",
    "DocumentSource",
    "LoadedDocument",
    "StructuralView",
    "equivalent_sequences",
]

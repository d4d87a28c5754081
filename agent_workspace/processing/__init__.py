"""
Document Processing Package
════════════════════════════

Everything that turns an uploaded file into context units, plus the
extractors that read structured facts back out of them:

  Content Extraction → Chunking → Embedding → (persist via vectorstore)

Modules
───────
  extractor.py  PDF (PyMuPDF) and CSV content extraction, kind detection
  chunking.py   Context-preserving chunker (row groups, table pages, paragraphs)
  embeddings.py Windowed embedding pipeline over the generation gateway
  details.py    Pattern-based candidate attribute detectors
  contacts.py   Candidate name/email extraction (model call + regex fallback)
"""

from agent_workspace.processing.chunking import Chunker
from agent_workspace.processing.contacts import ContactDetails, ContactExtractor
from agent_workspace.processing.details import CandidateDetails, extract_candidate_details
from agent_workspace.processing.embeddings import EmbeddingPipeline, EmbeddingResult
from agent_workspace.processing.extractor import ContentExtractor, DocumentKind, ExtractionResult

__all__ = [
    "CandidateDetails",
    "Chunker",
    "ContactDetails",
    "ContactExtractor",
    "ContentExtractor",
    "DocumentKind",
    "EmbeddingPipeline",
    "EmbeddingResult",
    "ExtractionResult",
    "extract_candidate_details",
]

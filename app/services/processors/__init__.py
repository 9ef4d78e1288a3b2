"""
Content Processors Package

Text processing applied to transcripts before summarization.

Modules:
--------
- chunker: Sentence-aware transcript chunking
"""

from app.services.processors.chunker import TranscriptChunker

__all__ = ["TranscriptChunker"]

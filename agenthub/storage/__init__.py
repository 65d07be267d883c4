"""Corpus sources for the session search index."""

from agenthub.storage.local import ClaudeDataDirectory
from agenthub.storage.protocol import CorpusSource

__all__ = ['ClaudeDataDirectory', 'CorpusSource']

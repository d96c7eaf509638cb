"""Corpus tagging, cataloguing and indexing."""

from pagecite.corpus.models import CorpusEntry, Page, Source
from pagecite.corpus.tagger import tag_document, tag_pages

__all__ = ["CorpusEntry", "Page", "Source", "tag_document", "tag_pages"]

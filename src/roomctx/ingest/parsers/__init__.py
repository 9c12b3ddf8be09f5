"""Document parsers for uploadable file formats."""

from .markdown import MarkdownParser
from .text import TextParser
from .pdf import PdfParser

PARSERS = {
    ".md": MarkdownParser,
    ".markdown": MarkdownParser,
    ".txt": TextParser,
    ".pdf": PdfParser,
}

__all__ = ["PARSERS", "MarkdownParser", "TextParser", "PdfParser"]

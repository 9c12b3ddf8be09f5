"""PDF file parser."""

from pathlib import Path
from typing import Any


class PdfParser:
    """Extract page text from PDFs with pypdf."""

    file_type = "pdf"

    def parse(self, file_path: Path) -> dict[str, Any]:
        from pypdf import PdfReader

        reader = PdfReader(str(file_path))
        pages = [text.strip() for text in (page.extract_text() for page in reader.pages) if text]
        # Blank line between pages so page ends are cut points
        return {
            "content": "\n\n".join(pages),
            "metadata": {"page_count": len(reader.pages)},
        }

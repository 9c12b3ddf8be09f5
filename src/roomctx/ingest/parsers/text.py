"""Plain text file parser."""

from pathlib import Path
from typing import Any


class TextParser:
    """Read a .txt upload as UTF-8."""

    file_type = "txt"

    def parse(self, file_path: Path) -> dict[str, Any]:
        text = file_path.read_text(encoding="utf-8", errors="replace")
        # Normalize Windows line endings so chunk cuts see "\n"
        return {"content": text.replace("\r\n", "\n"), "metadata": {}}

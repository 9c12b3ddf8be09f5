"""Markdown file parser."""

import re
from pathlib import Path
from typing import Any

import yaml


class MarkdownParser:
    """Parse markdown uploads, moving YAML frontmatter into metadata."""

    file_type = "md"

    def parse(self, file_path: Path) -> dict[str, Any]:
        text = file_path.read_text(encoding="utf-8", errors="replace").replace("\r\n", "\n")
        metadata: dict[str, Any] = {}

        fm_match = re.match(r"^---\s*\n(.*?)\n---\s*\n", text, re.DOTALL)
        if fm_match:
            try:
                fm = yaml.safe_load(fm_match.group(1))
            except yaml.YAMLError:
                fm = None
            if isinstance(fm, dict):
                metadata["frontmatter"] = fm
            text = text[fm_match.end():]

        return {"content": text, "metadata": metadata}

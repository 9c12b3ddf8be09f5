"""Overlapping text chunking that prefers sentence boundaries."""

from ..errors import ChunkingPrecondition


def chunk_text(text: str, chunk_size: int = 1000, overlap: int = 200) -> list[str]:
    """Split text into overlapping chunks, cutting at sentence ends where possible.

    Each window holds at most ``chunk_size`` characters. A window that does not
    reach the end of the text is cut after its last period or newline when that
    point lies past the middle of the window; otherwise it is cut at the window
    edge. The next window starts ``overlap`` characters before the cut.

    Args:
        text: The text to chunk.
        chunk_size: Maximum characters per chunk.
        overlap: Characters shared between consecutive chunks.

    Returns:
        Trimmed, non-empty chunks in source order.

    Raises:
        ChunkingPrecondition: If ``overlap`` is negative or not smaller than
            ``chunk_size``.
    """
    if chunk_size <= 0:
        raise ChunkingPrecondition(f"chunk_size must be positive, got {chunk_size}")
    if not 0 <= overlap < chunk_size:
        raise ChunkingPrecondition(
            f"overlap must be in [0, chunk_size), got overlap={overlap} chunk_size={chunk_size}"
        )

    chunks: list[str] = []
    start = 0
    length = len(text)

    while start < length:
        end = min(start + chunk_size, length)
        window = text[start:end]

        if end < length:
            break_point = max(window.rfind("."), window.rfind("\n"))
            next_start = start + break_point + 1 - overlap
            if break_point > chunk_size * 0.5 and next_start > start:
                window = text[start:start + break_point + 1]
                start = next_start
            else:
                start = end - overlap
        else:
            start = end

        chunks.append(window.strip())

    return [c for c in chunks if c]

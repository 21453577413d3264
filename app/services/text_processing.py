"""
Text processing for RAG: cleaning and chunking.

Cleaning reduces noise and encoding inconsistencies so embeddings and retrieval
focus on content. Chunking is a recursive character splitter: try paragraph
breaks first, then line breaks, then spaces, then single characters, and merge
the pieces back into chunks of at most chunk_size characters with chunk_overlap
characters carried over between neighbours.
"""

import re
import unicodedata

DEFAULT_SEPARATORS: tuple[str, ...] = ("\n\n", "\n", " ", "")

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def clean_text(text: str) -> str:
    """
    Normalize raw extracted text: NFKC, control characters (PDF bullets such as
    \\x7f) to spaces, stripped lines, consecutive duplicate lines dropped, and
    runs of blank lines collapsed to one.
    """
    if not text or not text.strip():
        return ""
    text = unicodedata.normalize("NFKC", text)
    text = _CONTROL_CHARS.sub(" ", text)
    result: list[str] = []
    for line in (raw.strip() for raw in text.splitlines()):
        if result and line and result[-1] == line:
            continue
        if line == "" and (not result or result[-1] == ""):
            continue
        result.append(line)
    return "\n".join(result).strip()


def chunk_text(
    text: str,
    chunk_size: int = 1000,
    overlap: int = 200,
    separators: tuple[str, ...] = DEFAULT_SEPARATORS,
) -> list[str]:
    """Split text into overlapping chunks of at most chunk_size characters."""
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if overlap < 0 or overlap >= chunk_size:
        raise ValueError(f"overlap ({overlap}) must be >= 0 and smaller than chunk_size ({chunk_size})")
    if not text or not text.strip():
        return []
    return _split(text.strip(), list(separators), chunk_size, overlap)


def _split(text: str, separators: list[str], chunk_size: int, overlap: int) -> list[str]:
    separator = separators[-1]
    remaining: list[str] = []
    for i, sep in enumerate(separators):
        if sep == "":
            separator = sep
            break
        if sep in text:
            separator = sep
            remaining = separators[i + 1 :]
            break

    pieces = text.split(separator) if separator else list(text)
    chunks: list[str] = []
    small: list[str] = []
    for piece in pieces:
        if not piece:
            continue
        if len(piece) < chunk_size:
            small.append(piece)
            continue
        if small:
            chunks.extend(_merge(small, separator, chunk_size, overlap))
            small = []
        if remaining:
            chunks.extend(_split(piece, remaining, chunk_size, overlap))
        else:
            chunks.append(piece)
    if small:
        chunks.extend(_merge(small, separator, chunk_size, overlap))
    return chunks


def _merge(pieces: list[str], separator: str, chunk_size: int, overlap: int) -> list[str]:
    """Greedily join pieces up to chunk_size, keeping up to `overlap` trailing characters for the next chunk."""
    sep_len = len(separator)
    chunks: list[str] = []
    window: list[str] = []
    total = 0
    for piece in pieces:
        added = len(piece) + (sep_len if window else 0)
        if window and total + added > chunk_size:
            chunk = separator.join(window).strip()
            if chunk:
                chunks.append(chunk)
            # Drop from the front until the carried-over tail fits the overlap and the next piece fits
            while window and (total > overlap or total + len(piece) + (sep_len if window else 0) > chunk_size):
                total -= len(window[0]) + (sep_len if len(window) > 1 else 0)
                window.pop(0)
        window.append(piece)
        total += len(piece) + (sep_len if len(window) > 1 else 0)
    chunk = separator.join(window).strip()
    if chunk:
        chunks.append(chunk)
    return chunks

"""Format search snippets for LLM context injection.

Always truncates from the lowest-ranked snippet first.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tutor.core.retrieval import SearchSnippet

SEGMENT_SEPARATOR = "\n\n---\n\n"
BLOCK_RULE = "-" * 44


def format_snippets(snippets: list[SearchSnippet], max_chars: int = 6000) -> str:
    """Join snippets into titled, numbered segments with source attribution.

    Args:
        snippets: Ranked search snippets
        max_chars: Approximate max output size

    Returns:
        Formatted text, or "" when there is nothing to show
    """
    segments: list[str] = []
    chars_used = 0

    for i, item in enumerate(snippets):
        segment = f"### Documento {i + 1}: {item.title}\n{item.snippet}"
        if item.link:
            segment += f"\nFuente: {item.link}"

        if segments and chars_used + len(segment) > max_chars:
            break
        segments.append(segment)
        chars_used += len(segment) + len(SEGMENT_SEPARATOR)

    return SEGMENT_SEPARATOR.join(segments)


def build_context_block(text: str) -> str:
    """Wrap retrieved text as an authoritative instruction block.

    Returns "" for empty text so callers can skip the system entry.
    """
    if not text.strip():
        return ""
    return (
        "DOCUMENTACIÓN AUTORIZADA (búsqueda documental):\n"
        f"{BLOCK_RULE}\n"
        f"{text}\n"
        f"{BLOCK_RULE}\n"
        "Usa ESTA información como fuente prioritaria. "
        "Si mencionas artículos legales o normas, ponlos en negrita."
    )

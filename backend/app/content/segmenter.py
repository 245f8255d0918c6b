"""Text segmenter - deterministic heading-based splitting and classification."""

import re

from backend.app.models.document import ChunkDraft, SectionType

DEFAULT_HEADING = "Introduction"

# Checked in this order; first match wins
SECTION_KEYWORDS: tuple[tuple[SectionType, tuple[str, ...]], ...] = (
    (
        SectionType.planned_releases,
        ("planned release", "upcoming release", "planned feature", "roadmap"),
    ),
    (
        SectionType.tech_releases,
        ("tech release", "new feature", "technical release", "released"),
    ),
    (
        SectionType.bugs_fixes,
        ("bug fix", "bugfix", "fixed", "resolved", "patch"),
    ),
)

_CAPS_HEADING = re.compile(r"^[A-Z0-9\s:]+$")
_MARKDOWN_MARKER = re.compile(r"^#+\s*")


def classify_section(heading: str, content: str) -> SectionType:
    """Classify a section by keyword match on lower-cased heading + content.

    Pure function: identical input always yields the same section type.
    """
    combined = f"{heading} {content}".lower()

    for section_type, keywords in SECTION_KEYWORDS:
        if any(keyword in combined for keyword in keywords):
            return section_type

    return SectionType.other


def is_heading(line: str) -> bool:
    """A heading is a markdown ``#`` line or an all-caps line longer than 5 chars."""
    stripped = line.strip()
    if stripped.startswith("#"):
        return True
    return (
        len(stripped) > 5
        and stripped == stripped.upper()
        and _CAPS_HEADING.match(stripped) is not None
    )


def split_by_headings(text: str) -> list[tuple[str, str]]:
    """Split text into (heading, content) sections.

    Heading lines are consumed as headings; blank lines are dropped; all other
    lines are kept verbatim. Content before the first heading falls under
    ``Introduction``. Sections without content are not emitted.
    """
    normalized = text.replace("\r\n", "\n").replace("\r", "\n")

    sections: list[tuple[str, str]] = []
    current_heading = DEFAULT_HEADING
    current_lines: list[str] = []

    def flush() -> None:
        if current_lines:
            sections.append((current_heading, "\n".join(current_lines).strip()))
            current_lines.clear()

    for line in normalized.split("\n"):
        if is_heading(line):
            flush()
            current_heading = _MARKDOWN_MARKER.sub("", line.strip())
        elif line.strip():
            current_lines.append(line)

    flush()
    return sections


def segment_by_headings(text: str) -> list[ChunkDraft]:
    """Split text by headings and classify each section.

    Returns:
        Chunks with chunk_order 0..n-1 in emission order
    """
    return [
        ChunkDraft(
            section_type=classify_section(heading, content),
            heading=heading,
            content=content,
            chunk_order=order,
        )
        for order, (heading, content) in enumerate(split_by_headings(text))
    ]


def segment_by_paragraphs(text: str, max_chunk_size: int = 2000) -> list[ChunkDraft]:
    """Fallback: pack blank-line-delimited paragraphs up to ``max_chunk_size``.

    A single paragraph larger than the limit becomes its own chunk.
    """
    normalized = text.replace("\r\n", "\n").replace("\r", "\n")
    paragraphs = [p.strip() for p in normalized.split("\n\n") if p.strip()]

    chunks: list[ChunkDraft] = []
    current = ""

    def flush() -> None:
        nonlocal current
        if current:
            order = len(chunks)
            chunks.append(
                ChunkDraft(
                    section_type=classify_section("", current),
                    heading=f"Section {order + 1}",
                    content=current,
                    chunk_order=order,
                )
            )
            current = ""

    for paragraph in paragraphs:
        if current and len(current) + len(paragraph) > max_chunk_size:
            flush()
        current = f"{current}\n\n{paragraph}" if current else paragraph

    flush()
    return chunks


def segment_document(text: str, *, paragraph_max_chars: int = 2000) -> list[ChunkDraft]:
    """Segment a document, falling back to paragraphs when there are no headings.

    Heading segmentation does not apply when it found no heading at all and
    the single implicit ``Introduction`` section exceeds the paragraph limit.
    """
    chunks = segment_by_headings(text)
    if (
        len(chunks) == 1
        and chunks[0].heading == DEFAULT_HEADING
        and len(chunks[0].content) > paragraph_max_chars
    ):
        return segment_by_paragraphs(text, max_chunk_size=paragraph_max_chars)
    return chunks

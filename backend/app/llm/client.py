"""Script request builder and text-generation client.

Security: Reads API key from settings only, never hardcoded.
Provides a deterministic stub when no key is configured for local runs.
"""

import logging
from typing import Protocol

import openai
from openai import AsyncOpenAI

from backend.app.config import Settings
from backend.app.models.document import Chunk, SectionType
from backend.app.orchestration.errors import CollaboratorError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are an expert product storyteller and professional narrator. You convert
internal product update content into a clear, engaging, well-structured spoken narrative that
will be read aloud by a text-to-speech engine.

Transform the provided content into a single cohesive script of roughly 5 to 7 minutes when
spoken, sounding like a confident, polished product update shared company-wide.

The input may be well organized with headings, poorly structured, or a mix of paragraphs,
bullets and raw notes. Interpret and organize it while staying faithful to the information.

STRUCTURE
- Refine existing headings for spoken delivery, or infer logical sections from topic shifts.
- Open each section with a short, natural spoken header.
- Explain what changed, why it matters and how it helps users or teams.
- Group related updates instead of narrating line by line.
- Give major features deeper explanation and minor fixes shorter mentions.

TONE
- Speak directly to the listener: friendly, professional, confident and calm.
- Use smooth transitions between sections. Clarity beats excitement.

STRICT RULES
- Do NOT invent features, data or timelines.
- Do NOT use bullet points, numbering, markdown or symbols.
- Do NOT reference the source format, its headings or its structure.
- Do NOT add meta-commentary such as "in this newsletter" or "let me read this out".

OUTPUT
Write only the final spoken narrative as plain prose."""

# Fixed band order for the prompt payload
SECTION_BANDS: tuple[tuple[SectionType, str], ...] = (
    (SectionType.planned_releases, "PLANNED RELEASES"),
    (SectionType.tech_releases, "TECH RELEASES"),
    (SectionType.bugs_fixes, "BUGS & FIXES"),
    (SectionType.other, "OTHER UPDATES"),
)


def build_script_prompt(chunks: list[Chunk]) -> str:
    """Group chunks into ordered bands and render one prompt payload.

    Chunks keep their relative order inside a band. Empty bands are omitted.
    """
    ordered = sorted(chunks, key=lambda c: c.chunk_order)
    parts: list[str] = []

    for section_type, title in SECTION_BANDS:
        band = [c for c in ordered if c.section_type == section_type]
        if not band:
            continue
        parts.append(f"## {title}\n\n")
        for chunk in band:
            parts.append(f"### {chunk.heading}\n{chunk.content}\n\n")

    return "SOURCE CONTENT:\n" + "".join(parts)


class ScriptGenerator(Protocol):
    """Protocol for text-generation collaborators."""

    async def generate_script(self, chunks: list[Chunk]) -> str:
        """Generate a spoken narrative from ordered chunks.

        Raises:
            CollaboratorError: On service failure or empty output
        """
        ...


class DeterministicStubClient:
    """Deterministic stub generator for local runs (no API key required)."""

    async def generate_script(self, chunks: list[Chunk]) -> str:
        """Read headings and content back as plain sentences."""
        if not chunks:
            raise CollaboratorError("llm", "No content to narrate")

        sentences: list[str] = []
        for chunk in sorted(chunks, key=lambda c: c.chunk_order):
            body = " ".join(chunk.content.split())
            if body and body[-1] not in ".!?":
                body += "."
            sentences.append(f"{chunk.heading}. {body}")
        return " ".join(sentences)


class OpenAIScriptClient:
    """OpenAI-backed script generator."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        max_tokens: int = 4000,
        client: AsyncOpenAI | None = None,
    ):
        """Initialize OpenAI client.

        Args:
            api_key: OpenAI API key
            model: Model name to use (default: gpt-4o-mini for cost efficiency)
            max_tokens: Completion token ceiling
            client: Optional preconstructed client (for testing with mocks)
        """
        self.client = client or AsyncOpenAI(api_key=api_key)
        self.model = model
        self.max_tokens = max_tokens

    async def generate_script(self, chunks: list[Chunk]) -> str:
        """Generate a script using the chat completions API.

        No partial script is ever accepted: an API error or empty
        completion raises.
        """
        prompt = build_script_prompt(chunks)

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=0.7,
                max_tokens=self.max_tokens,
            )
        except openai.APIStatusError as e:
            raise CollaboratorError(
                "llm", f"Script generation failed: {e.message}", status_code=e.status_code
            ) from e
        except openai.APIConnectionError as e:
            raise CollaboratorError(
                "llm", f"Script generation failed: {e}", transient=True
            ) from e

        script = response.choices[0].message.content if response.choices else None
        if not script or not script.strip():
            raise CollaboratorError("llm", "Failed to generate script: empty response")

        logger.info(f"Generated script ({len(script)} characters) with {self.model}")
        return script.strip()


def get_script_generator(settings: Settings) -> ScriptGenerator:
    """Factory function to get the script generator for the configuration.

    Returns:
        OpenAIScriptClient if API key is configured, DeterministicStubClient otherwise
    """
    api_key = settings.openai_api_key

    if api_key and api_key.get_secret_value():
        logger.info("Using OpenAI client for script generation")
        return OpenAIScriptClient(
            api_key=api_key.get_secret_value(),
            model=settings.openai_model,
            max_tokens=settings.script_max_tokens,
        )

    logger.warning("No OpenAI API key configured, using deterministic stub client")
    return DeterministicStubClient()

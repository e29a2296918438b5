"""Display cleanup for variant content.

These are presentation transforms applied when content is read for
rendering. Stored content is never rewritten by them.
"""

import re

_APPROACH_BOLD = re.compile(r"^[ \t]*\*\*Approach:\*\*[ \t]*(.+)$", re.IGNORECASE | re.MULTILINE)
_APPROACH_PLAIN = re.compile(r"^[ \t]*Approach:[ \t]*(.+)$", re.IGNORECASE | re.MULTILINE)
_FENCE_LINE = re.compile(r"^[ \t]*```[\w+-]*[ \t]*$")


def _legacy_note(first_line: str) -> str | None:
    """Older prompts put the approach as an untagged first line."""
    if not first_line:
        return None
    if (
        first_line.startswith("---")
        or first_line.upper().startswith("SUBJECT")
        or first_line.startswith("```")
        or first_line.startswith("[")
        or first_line.startswith("**SUBJECT")
    ):
        return None
    if not 10 < len(first_line) < 300:
        return None
    return first_line.strip("*").strip()


def extract_approach(content: str, legacy: bool = True) -> str | None:
    """Extract the approach note from a variant body.

    Looks for ``**Approach:** text`` first, then ``Approach: text``, then
    (when ``legacy`` is set) treats a plausible first line as the note.

    Args:
        content: Variant content
        legacy: Whether to fall back to the first-line heuristic

    Returns:
        The approach text, or None if none was found
    """
    trimmed = content.strip()
    if not trimmed:
        return None

    match = _APPROACH_BOLD.search(trimmed) or _APPROACH_PLAIN.search(trimmed)
    if match:
        return match.group(1).strip()

    if legacy:
        return _legacy_note(trimmed.split("\n", 1)[0].strip())
    return None


def clean_content(
    content: str | None,
    strip_code_fences: bool = True,
    strip_approach: bool = False,
) -> str:
    """Prepare variant content for display.

    Args:
        content: Raw variant content (None renders as empty)
        strip_code_fences: Drop lines that are bare ``` fence markers
        strip_approach: Drop the explicit approach line, for UIs that show
            it in a separate header

    Returns:
        Cleaned, trimmed text
    """
    if not content:
        return ""

    lines = content.split("\n")
    if strip_code_fences:
        lines = [line for line in lines if not _FENCE_LINE.match(line)]

    text = "\n".join(lines)
    if strip_approach:
        text, removed = _APPROACH_BOLD.subn("", text, count=1)
        if not removed:
            text = _APPROACH_PLAIN.sub("", text, count=1)

    return text.strip()

from __future__ import annotations

from pathlib import Path

BOM = "\ufeff"


def load_prompt(prompt_path: Path) -> str:
    """Purpose: Read one bundled prompt template from ``prompts/``.
    Inputs/Outputs: Input is the template Path; output is its text without a
        leading byte-order mark.
    Side Effects / State: Reads the file on every call; templates are not cached.
    Dependencies: Called by GeminiLanguageService for the system instruction and
        through render_prompt for each extraction or phrasing call.
    Failure Modes: A template missing from the install raises FileNotFoundError,
        which surfaces at service startup for system.txt and as a SystemError
        result for the per-query templates. Bytes that are not UTF-8 are
        dropped rather than failing the query.
    If Removed: The language service has no instructions to send to Gemini.
    Testing Notes: Save a template with utf-8-sig and check the BOM is gone.
    """
    # Templates are edited by hand, so tolerate stray encodings.
    raw = prompt_path.read_bytes()
    return raw.decode("utf-8", errors="ignore").lstrip(BOM)


def render_prompt(prompt_path: Path, **values: object) -> str:
    """Load a template and fill its ``{placeholder}`` fields.

    Templates must not contain literal braces; a missing value raises KeyError.
    """
    return load_prompt(prompt_path).format(**values).strip()

import re
from typing import Optional


def normalize_identifier(text: str) -> str:
    """Purpose: Produce the compact comparison form of a product identifier.
    Inputs/Outputs: Input is a raw identifier; output is lowercased with spaces and
        hyphens removed.
    Side Effects / State: None; pure function.
    Dependencies: Used by the similarity scoring helpers.
    Failure Modes: Returns empty string for falsy input.
    If Removed: "6205-2RS1" and "6205 2rs1" no longer compare equal.
    Testing Notes: Ensure spaces and hyphens are both stripped.
    """
    # Only spaces and hyphens are formatting noise in designations.
    if not text:
        return ""
    return text.lower().replace(" ", "").replace("-", "")


def normalize_attribute_key(text: str) -> str:
    """Purpose: Convert a free-form attribute label into a snake_case key.
    Inputs/Outputs: Input is a label like "Inner Diameter"; output is "inner_diameter".
    Side Effects / State: None; pure function.
    Dependencies: Used by the language service and Product attribute lookup.
    Failure Modes: Returns empty string when nothing alphanumeric remains.
    If Removed: Model replies and catalog keys with different spacing never match.
    Testing Notes: Check spaces, hyphens and surrounding punctuation.
    """
    # Replace every run of non-alphanumerics with a single underscore.
    if not text:
        return ""
    return re.sub(r"[^a-z0-9]+", "_", text.lower()).strip("_")


def clean_model_output(text: Optional[str]) -> str:
    """Purpose: Strip quotes, code fences and trailing punctuation from a model reply.
    Inputs/Outputs: Input is raw model text; output is the first meaningful line.
    Side Effects / State: None; pure function.
    Dependencies: Used by the language service extraction calls.
    Failure Modes: Returns empty string when the reply is empty.
    If Removed: Replies like "`6205`." fail identifier resolution.
    Testing Notes: Feed fenced and quoted replies and verify the bare value.
    """
    # Keep the first non-empty line and drop decoration around it.
    if not text:
        return ""
    lines = [line.strip() for line in text.replace("```", "\n").splitlines()]
    first = next((line for line in lines if line), "")
    return first.strip("`'\" ").rstrip(".")

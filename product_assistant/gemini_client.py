from __future__ import annotations

import logging
from typing import Dict, Optional, Tuple

import google.generativeai as genai

from .config import Settings

logger = logging.getLogger("product_assistant.gemini")

DEFAULT_SAFETY_SETTINGS = [
    {"category": "HARM_CATEGORY_HARASSMENT", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_HATE_SPEECH", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_SEXUALLY_EXPLICIT", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_DANGEROUS_CONTENT", "threshold": "BLOCK_NONE"},
]


class GeminiClient:
    """Thin wrapper around the Gemini SDK with per-instruction model caching."""

    def __init__(self, settings: Settings) -> None:
        """Purpose: Configure the Gemini SDK for the assistant's text calls.
        Inputs/Outputs: Input is Settings; no return value.
        Side Effects / State: Configures the SDK global API key.
        Dependencies: Uses google.generativeai and Settings from config.
        Failure Modes: Raises ValueError if the API key or model name is missing.
        If Removed: Extraction and answer phrasing cannot reach the model.
        Testing Notes: Validate that a missing key raises ValueError.
        """
        # Fail at startup rather than on the first query.
        if not settings.gemini_api_key:
            raise ValueError("GEMINI_API_KEY is required")
        self._model_name = _normalize_model_name(settings.gemini_model)
        if not self._model_name:
            raise ValueError("Gemini model name is required")
        genai.configure(api_key=settings.gemini_api_key)
        self._models: Dict[Tuple[str, str], genai.GenerativeModel] = {}

    @property
    def model_name(self) -> str:
        return self._model_name

    def generate_text(
        self,
        prompt: str,
        temperature: float = 0.2,
        max_output_tokens: int = 200,
        system_instruction: Optional[str] = None,
    ) -> str:
        """Purpose: Generate a single text response from a string prompt.
        Inputs/Outputs: Input is the prompt plus generation settings; returns text.
        Side Effects / State: May add a model to the internal cache.
        Dependencies: Uses genai.GenerativeModel.generate_content.
        Failure Modes: SDK errors propagate to the caller.
        If Removed: The language service has no backend.
        Testing Notes: Ensure blank or blocked responses come back as "".
        """
        # One model instance per system instruction.
        model = self._get_model(system_instruction or "")
        response = model.generate_content(
            prompt,
            generation_config={
                "temperature": temperature,
                "max_output_tokens": max_output_tokens,
            },
            safety_settings=DEFAULT_SAFETY_SETTINGS,
        )
        try:
            text: Optional[str] = response.text
        except ValueError:
            # Raised by the SDK when the candidate has no text parts.
            logger.warning("Gemini returned no text model=%s", self._model_name)
            text = None
        return (text or "").strip()

    def _get_model(self, system_instruction: str) -> genai.GenerativeModel:
        key = (self._model_name, system_instruction)
        if key not in self._models:
            if system_instruction:
                self._models[key] = genai.GenerativeModel(
                    self._model_name, system_instruction=system_instruction
                )
            else:
                self._models[key] = genai.GenerativeModel(self._model_name)
        return self._models[key]


def _normalize_model_name(name: Optional[str]) -> str:
    """Strip whitespace and an optional ``models/`` prefix."""
    if not name:
        return ""
    cleaned = name.strip()
    if cleaned.startswith("models/"):
        return cleaned.split("/", 1)[1]
    return cleaned

"""Natural-language extraction and phrasing backed by Gemini."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional, Protocol

from .conversation import ConversationSession
from .gemini_client import GeminiClient
from .prompt_loader import load_prompt, render_prompt
from .utils import clean_model_output, normalize_attribute_key

logger = logging.getLogger("product_assistant.language")

NONE_REPLY = "NONE"
EXTRACTION_TEMPERATURE = 0.1
ANSWER_TEMPERATURE = 0.3
CONVERSATION_TEMPERATURE = 0.4
MAX_OUTPUT_TOKENS = 200

ATTRIBUTE_VOCABULARY = (
    "inner_diameter",
    "outer_diameter",
    "width",
    "dynamic_load_rating",
    "static_load_rating",
    "limiting_speed",
    "mass",
)

ATTRIBUTE_SYNONYMS: Dict[str, str] = {
    "bore": "inner_diameter",
    "bore_diameter": "inner_diameter",
    "inner_dia": "inner_diameter",
    "id": "inner_diameter",
    "outside_diameter": "outer_diameter",
    "outer_dia": "outer_diameter",
    "od": "outer_diameter",
    "thickness": "width",
    "weight": "mass",
    "load_capacity": "dynamic_load_rating",
    "dynamic_load": "dynamic_load_rating",
    "static_load": "static_load_rating",
    "speed_limit": "limiting_speed",
    "max_speed": "limiting_speed",
}


class LanguageService(Protocol):
    """Extraction and phrasing collaborator consumed by the orchestrator."""

    def extract_product(self, query: str, session: Optional[ConversationSession]) -> Optional[str]:
        ...

    def extract_attribute(self, query: str, session: Optional[ConversationSession]) -> Optional[str]:
        ...

    def generate_answer(
        self,
        product: str,
        attribute: str,
        value: str,
        unit: str,
        session: Optional[ConversationSession],
    ) -> str:
        ...

    def generate_conversational_reply(self, query: str, session: ConversationSession) -> str:
        ...


def canonical_attribute(raw: Optional[str]) -> Optional[str]:
    """Purpose: Map a model or user attribute label onto the catalog vocabulary.
    Inputs/Outputs: Input is a raw label; output is a snake_case key or None.
    Side Effects / State: None; pure function.
    Dependencies: Uses normalize_attribute_key and ATTRIBUTE_SYNONYMS.
    Failure Modes: Returns None for blank input or the NONE sentinel.
    If Removed: "bore" and "Inner Diameter" stop matching inner_diameter.
    Testing Notes: Check synonyms, casing and the NONE sentinel.
    """
    # Unknown labels pass through as snake_case so AttributeNotFound can report them.
    cleaned = clean_model_output(raw)
    if not cleaned or cleaned.upper() == NONE_REPLY:
        return None
    key = normalize_attribute_key(cleaned)
    if not key:
        return None
    return ATTRIBUTE_SYNONYMS.get(key, key)


def build_context(session: Optional[ConversationSession]) -> str:
    if session is None:
        return ""
    recent = ", ".join(session.recent_queries()) or "None"
    return (
        "Conversation context:\n"
        f"- Last product discussed: {session.last_product or 'None'}\n"
        f"- Recent questions: {recent}"
    )


class GeminiLanguageService:
    """LanguageService implementation over GeminiClient.generate_text."""

    def __init__(self, client: GeminiClient, prompts_dir: Path) -> None:
        """Purpose: Bind the service to a Gemini client and prompt directory.
        Inputs/Outputs: Inputs are the client and templates directory; no return value.
        Side Effects / State: Reads the system prompt once.
        Dependencies: GeminiClient and prompt_loader.
        Failure Modes: A missing system.txt raises FileNotFoundError at startup.
        If Removed: The orchestrator cannot understand free-text questions.
        Testing Notes: Pass a stub client exposing generate_text.
        """
        # The system instruction is shared by every call.
        self._client = client
        self._prompts_dir = prompts_dir
        self._system_instruction = load_prompt(prompts_dir / "system.txt").strip()

    def extract_product(self, query: str, session: Optional[ConversationSession]) -> Optional[str]:
        reply = self._complete(
            "product_extraction.txt",
            EXTRACTION_TEMPERATURE,
            context=build_context(session),
            query=query,
        )
        product = clean_model_output(reply)
        if not product or product.upper() == NONE_REPLY:
            return None
        logger.debug("extracted product=%s", product)
        return product

    def extract_attribute(self, query: str, session: Optional[ConversationSession]) -> Optional[str]:
        reply = self._complete(
            "attribute_extraction.txt",
            EXTRACTION_TEMPERATURE,
            context=build_context(session),
            query=query,
        )
        attribute = canonical_attribute(reply)
        logger.debug("extracted attribute=%s raw=%s", attribute, reply)
        return attribute

    def generate_answer(
        self,
        product: str,
        attribute: str,
        value: str,
        unit: str,
        session: Optional[ConversationSession],
    ) -> str:
        return self._complete(
            "answer_generation.txt",
            ANSWER_TEMPERATURE,
            context=build_context(session),
            product=product,
            attribute=attribute.replace("_", " "),
            value=value,
            unit=unit or "none",
        )

    def generate_conversational_reply(self, query: str, session: ConversationSession) -> str:
        recent = "\n".join(f"- {item}" for item in session.recent_queries()) or "- None"
        return self._complete(
            "conversational_reply.txt",
            CONVERSATION_TEMPERATURE,
            query=query,
            last_product=session.last_product or "None",
            recent_queries=recent,
        )

    def _complete(self, template: str, temperature: float, **values: object) -> str:
        prompt = render_prompt(self._prompts_dir / template, **values)
        return self._client.generate_text(
            prompt,
            temperature=temperature,
            max_output_tokens=MAX_OUTPUT_TOKENS,
            system_instruction=self._system_instruction,
        )

"""
Thin async wrapper over the google-generativeai SDK (LlmChat, UserMessage, DocumentContent).
"""

import asyncio
from typing import List, Optional, Union

import google.generativeai as genai

from examgrader.config import logger, DEFAULT_GEMINI_MODEL


class EmptyResponseError(RuntimeError):
    """The model answered without any usable text (blocked or no candidates)."""


class DocumentContent:
    """Wraps a base64-encoded PDF or image for inclusion in a message."""

    def __init__(self, data_base64: str, mime_type: str = "image/png", name: str = ""):
        self.data_base64 = data_base64
        self.mime_type = mime_type
        self.name = name

    def to_genai_part(self) -> dict:
        """Convert to google-generativeai inline_data format."""
        # Strip data URI prefix if present
        b64 = self.data_base64
        if b64.startswith("data:"):
            b64 = b64.split(",", 1)[1]
        return {
            "inline_data": {
                "mime_type": self.mime_type,
                "data": b64,
            }
        }


MessagePart = Union[str, DocumentContent]


class UserMessage:
    """An ordered sequence of text and document parts sent as one request."""

    def __init__(self, parts: Optional[List[MessagePart]] = None):
        self.parts = list(parts or [])

    @property
    def documents(self) -> List[DocumentContent]:
        return [p for p in self.parts if isinstance(p, DocumentContent)]

    def to_genai_parts(self) -> list:
        """Convert to a list of parts for the google-generativeai SDK."""
        return [p.to_genai_part() if isinstance(p, DocumentContent) else p for p in self.parts]


class LlmChat:
    """
    Single-shot Gemini client.

    Supports the chaining API:
        chat = LlmChat(api_key=..., system_message=...)
            .with_model("gemini-2.5-flash")
            .with_params(temperature=0.1, response_mime_type="application/json")

    send_message() is async and returns a plain string.
    """

    def __init__(self, api_key: str = "", system_message: str = ""):
        self._api_key = api_key
        self._system_message = system_message
        self._model_name = DEFAULT_GEMINI_MODEL
        self._generation_config = {}
        self._model = None  # lazily created

    @property
    def model_name(self) -> str:
        return self._model_name

    def with_model(self, model_name: str) -> "LlmChat":
        self._model_name = model_name
        self._model = None
        return self

    def with_params(self, **generation_config) -> "LlmChat":
        """Set generation parameters (temperature, top_p, top_k, max_output_tokens, response_mime_type)."""
        self._generation_config.update({k: v for k, v in generation_config.items() if v is not None})
        self._model = None
        return self

    def _ensure_model(self):
        if self._model is None:
            if self._api_key:
                genai.configure(api_key=self._api_key)
            self._model = genai.GenerativeModel(
                model_name=self._model_name,
                system_instruction=self._system_message if self._system_message else None,
                generation_config=self._generation_config if self._generation_config else None,
            )
        return self._model

    async def send_message(self, message: UserMessage) -> str:
        """
        Send a message and return the response text as a plain string.

        The SDK call is synchronous, so it runs in the default executor.
        """
        model = self._ensure_model()
        parts = message.to_genai_parts()

        loop = asyncio.get_running_loop()
        response = await loop.run_in_executor(None, lambda: model.generate_content(parts))

        feedback = getattr(response, "prompt_feedback", None)
        block_reason = getattr(feedback, "block_reason", None) if feedback else None
        if block_reason:
            raise EmptyResponseError(f"Request blocked: {block_reason}")
        if not getattr(response, "candidates", None):
            raise EmptyResponseError("No content in Gemini response")

        text = response.text
        if not text or not text.strip():
            raise EmptyResponseError("No content in Gemini response")
        logger.info(f"Gemini response received ({len(text)} chars)")
        return text

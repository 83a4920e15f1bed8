"""Base text generator implementing the Template Method pattern.

All providers share the same call contract:
    generate(prompt) → _call_api(prompt)   ← only this differs per provider
                     → non-empty text, or AIServiceError

Subclasses implement two things only:
  - __init__: validate and store the SDK client
  - _call_api: make one raw API call and return the text response

There is exactly one attempt per generate() call. Any exception raised by
the SDK, and any empty response, surfaces as AIServiceError so callers
have a single failure type to handle.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from prrelay_core.errors import AIServiceError

logger = logging.getLogger(__name__)

_MAX_TOKENS = 4096


class BaseGenerator(ABC):
    NAME: str = "base"
    MAX_TOKENS: int = _MAX_TOKENS

    def generate(self, prompt: str) -> str:
        """Submit ``prompt`` and return the generated text verbatim."""
        try:
            text = self._call_api(prompt)
        except AIServiceError:
            raise
        except Exception as e:
            logger.warning("%s API call failed: %s", self.__class__.__name__, e)
            raise AIServiceError(f"AI analysis failed: {e}", provider=self.NAME) from e

        if not text or not text.strip():
            raise AIServiceError("AI analysis failed: the model returned an empty response", provider=self.NAME)
        return text

    @abstractmethod
    def _call_api(self, prompt: str) -> str:
        """Make a single API call and return the raw text response.

        This is the only method subclasses must implement. It should raise
        on failure; generate() turns the exception into AIServiceError.
        """

from __future__ import annotations
from typing import List, Optional, Protocol
import time

from pydantic import BaseModel, Field

MIN_PROMPT_LENGTH = 10


class SuggestionRequest(BaseModel):
    prompt: str = Field(min_length=MIN_PROMPT_LENGTH)


class SceneSuggestion(BaseModel):
    scene_description: str
    suggested_objects: List[str]
    additional_details: Optional[str] = None


class SuggestionResult(BaseModel):
    success: bool
    data: Optional[SceneSuggestion] = None
    error: Optional[str] = None


class SuggestionService(Protocol):
    def suggest(self, prompt: str) -> SuggestionResult: ...


class PlaceholderSuggestionService:
    """Canned suggestions; a prompt mentioning "error" simulates a model failure."""

    def __init__(self, delay_s: float = 0.0):
        self.delay_s = delay_s

    def suggest(self, prompt: str) -> SuggestionResult:
        if self.delay_s > 0:
            time.sleep(self.delay_s)
        if "error" in prompt.lower():
            return SuggestionResult(
                success=False,
                error="The AI model failed to generate suggestions. Please try again.",
            )
        return SuggestionResult(
            success=True,
            data=SceneSuggestion(
                scene_description=(
                    f'A dynamic scene based on your prompt: "{prompt}". It features a variety of shapes '
                    "and colors, arranged to create a visually interesting composition."
                ),
                suggested_objects=["futuristic car", "glowing orb", "floating island", "crystal tower"],
                additional_details="Consider adding a skybox with a nebula texture to enhance the atmosphere.",
            ),
        )


def request_suggestions(service: SuggestionService, prompt: str) -> SuggestionResult:
    """Validate the prompt (pydantic ValidationError if too short) and ask the service.

    Exceptions raised by the service come back as a failed result so callers
    only ever show a message; they never touch the scene.
    """
    req = SuggestionRequest(prompt=prompt)
    try:
        return service.suggest(req.prompt)
    except Exception as e:
        return SuggestionResult(success=False, error=f"Suggestion service failed: {e}")

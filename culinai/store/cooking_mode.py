"""Step-by-step cooking mode."""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional

from culinai.models.recipe import Recipe

logger = logging.getLogger(__name__)

DEFAULT_TIMER_SECONDS = 300

Narrator = Callable[[str], None]


class CookingSession:
    """Walks through a recipe's instructions one step at a time.

    ``narrator`` is an optional text-to-speech callback; when narration is on,
    every step change reads the new step aloud.
    """

    def __init__(self, recipe: Recipe, narrator: Optional[Narrator] = None, narrate: bool = False) -> None:
        self.recipe = recipe
        self.steps: List[str] = list(recipe.instructions)
        self.current_step = 0
        self.timers: Dict[int, int] = {}
        self.narrator = narrator
        self.narration_enabled = narrate and narrator is not None
        if self.narration_enabled:
            self._narrate()

    @property
    def total_steps(self) -> int:
        return len(self.steps)

    @property
    def step_text(self) -> Optional[str]:
        if not self.steps:
            return None
        return self.steps[self.current_step]

    @property
    def is_last_step(self) -> bool:
        return not self.steps or self.current_step == len(self.steps) - 1

    @property
    def progress(self) -> float:
        """Fraction of steps reached, 0.0-1.0."""
        if not self.steps:
            return 0.0
        return (self.current_step + 1) / len(self.steps)

    def next_step(self) -> Optional[str]:
        return self.go_to(self.current_step + 1)

    def previous_step(self) -> Optional[str]:
        return self.go_to(self.current_step - 1)

    def go_to(self, index: int) -> Optional[str]:
        """Move to a step (clamped to the valid range) and return its text."""
        if not self.steps:
            return None
        index = max(0, min(index, len(self.steps) - 1))
        if index != self.current_step:
            self.current_step = index
            if self.narration_enabled:
                self._narrate()
        return self.step_text

    def toggle_timer(self, index: Optional[int] = None, seconds: int = DEFAULT_TIMER_SECONDS) -> bool:
        """Start or clear the timer of a step. Returns True when a timer is now set."""
        index = self.current_step if index is None else index
        if index in self.timers:
            del self.timers[index]
            return False
        self.timers[index] = seconds
        return True

    def set_narration(self, enabled: bool) -> None:
        self.narration_enabled = enabled and self.narrator is not None
        if self.narration_enabled:
            self._narrate()

    def _narrate(self) -> None:
        text = self.step_text
        if text is None or self.narrator is None:
            return
        try:
            self.narrator(f"Step {self.current_step + 1}. {text}")
        except Exception as e:
            logger.warning(f"Narration failed: {e}")

"""Session modes a planner can choose between."""

from __future__ import annotations

from enum import Enum


class SessionMode(str, Enum):
    """Pedagogical character of the next practice session."""

    REMEDIATION = "remediation"  # Shore up skills the learner is struggling with
    PROGRESSION = "progression"  # Move on past a solid skill
    MAINTENANCE = "maintenance"  # Mixed practice, nothing urgent

    @property
    def display_name(self) -> str:
        return self.value.title()

# SQLAlchemy models
from .base import Base
from .skill_state import ProgressionDeferralRow, SkillBeliefStateRow, TutorialSkipRow

__all__ = [
    "Base",
    "ProgressionDeferralRow",
    "SkillBeliefStateRow",
    "TutorialSkipRow",
]

"""
Skill Catalog.

Immutable registry of the abacus skills a learner can practice. Lookups of
ids that are not in the catalog raise UnknownSkill; nothing downstream is
allowed to invent a belief state for a skill the catalog does not know.

Skill ids follow the ``<category>.<rule>`` convention, e.g.
``fiveComplements.4=5-1`` ("add 4 by adding 5 and removing 1").
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from loguru import logger

from mastery_engine.core.errors import UnknownSkill
from mastery_engine.core.models import Skill

CATEGORIES = (
    "basic",
    "fiveComplements",
    "tenComplements",
    "fiveComplementsSub",
    "tenComplementsSub",
    "advanced",
)


class SkillCatalog:
    """Read-only mapping of skill id to Skill, preserving curriculum order."""

    def __init__(self, skills: Iterable[Skill]):
        self._skills: dict[str, Skill] = {}
        for skill in skills:
            if skill.skill_id in self._skills:
                raise ValueError(f"Duplicate skill id in catalog: {skill.skill_id}")
            self._skills[skill.skill_id] = skill

        for skill in self._skills.values():
            missing = [p for p in skill.prerequisites if p not in self._skills]
            if missing:
                raise ValueError(
                    f"Skill {skill.skill_id} lists unknown prerequisites: {', '.join(missing)}"
                )

        logger.debug(f"SkillCatalog loaded with {len(self._skills)} skills")

    def get(self, skill_id: str) -> Skill:
        """Return the skill or raise UnknownSkill."""
        try:
            return self._skills[skill_id]
        except KeyError:
            raise UnknownSkill(skill_id) from None

    def require(self, skill_ids: Iterable[str]) -> None:
        """Raise UnknownSkill for the first id the catalog does not contain."""
        for skill_id in skill_ids:
            self.get(skill_id)

    def by_category(self, category: str) -> list[Skill]:
        return [s for s in self._skills.values() if s.category == category]

    def __contains__(self, skill_id: object) -> bool:
        return skill_id in self._skills

    def __iter__(self) -> Iterator[Skill]:
        return iter(self._skills.values())

    def __len__(self) -> int:
        return len(self._skills)


def _abacus_skills() -> list[Skill]:
    skills = [
        Skill("basic.directAddition", "Add 1-4 directly", "basic"),
        Skill("basic.heavenBead", "Add 5 (heaven bead)", "basic", ("basic.directAddition",)),
        Skill(
            "basic.simpleCombinations",
            "Add 6-9 directly",
            "basic",
            ("basic.directAddition", "basic.heavenBead"),
        ),
        Skill("basic.directSubtraction", "Subtract 1-4 directly", "basic", ("basic.directAddition",)),
        Skill(
            "basic.heavenBeadSubtraction",
            "Subtract 5 (heaven bead)",
            "basic",
            ("basic.directSubtraction", "basic.heavenBead"),
        ),
        Skill(
            "basic.simpleCombinationsSub",
            "Subtract 6-9 directly",
            "basic",
            ("basic.directSubtraction", "basic.heavenBeadSubtraction"),
        ),
    ]

    for n in (4, 3, 2, 1):
        skills.append(
            Skill(
                f"fiveComplements.{n}={5}-{5 - n}",
                f"Add {n} (5-{5 - n})",
                "fiveComplements",
                ("basic.heavenBead",),
            )
        )

    for n in range(9, 0, -1):
        skills.append(
            Skill(
                f"tenComplements.{n}=10-{10 - n}",
                f"Add {n} (10-{10 - n})",
                "tenComplements",
                ("basic.simpleCombinations",),
            )
        )

    for n in (4, 3, 2, 1):
        skills.append(
            Skill(
                f"fiveComplementsSub.-{n}=-5+{5 - n}",
                f"Subtract {n} (-5+{5 - n})",
                "fiveComplementsSub",
                ("basic.heavenBeadSubtraction",),
            )
        )

    for n in range(9, 0, -1):
        skills.append(
            Skill(
                f"tenComplementsSub.-{n}=+{10 - n}-10",
                f"Subtract {n} (+{10 - n}-10)",
                "tenComplementsSub",
                ("basic.simpleCombinationsSub",),
            )
        )

    skills.append(
        Skill(
            "advanced.cascadingCarry",
            "Carry across several rods",
            "advanced",
            ("tenComplements.9=10-1",),
        )
    )
    skills.append(
        Skill(
            "advanced.cascadingBorrow",
            "Borrow across several rods",
            "advanced",
            ("tenComplementsSub.-9=+1-10",),
        )
    )
    return skills


def default_catalog() -> SkillCatalog:
    """The standard abacus curriculum skill set."""
    return SkillCatalog(_abacus_skills())

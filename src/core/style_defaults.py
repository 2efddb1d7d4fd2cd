"""Default style text per subject category.

The table is built once at import time and exposed read-only. Building it
fails if any category is missing, so every consumer can index it with a
parsed ``Category`` without a fallback of its own.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional

from src.core.models import Category, EffectiveGender


MASTERS_STYLE = (
    "A breathtaking Renaissance oil painting portrait in the style of the old masters, "
    "Rembrandt van Rijn, Anthony van Dyck and Johannes Vermeer."
)

PAINTERLY_FINISH = (
    "Dramatic chiaroscuro lighting with warm golden candlelight casting rich shadows. "
    "Deep jewel-toned background in burgundy and forest green with subtle texture. "
    "Painted with masterful brushwork, rich impasto texture, aged museum-quality canvas. "
    "Highly detailed 17th century Flemish painting style."
)


@dataclass(frozen=True)
class CategoryStyle:
    """Default style body for one category.

    Attributes:
        body: Gender-neutral body text
        male_body: Variant used when the subject is known to be male
        female_body: Variant used when the subject is known to be female
        group_body: Gender-neutral variant for several sitters; categories
            whose body already depicts a group leave it unset
        implies_group: Whether the body itself already asks for several
            subjects side by side
    """

    body: str
    male_body: Optional[str] = None
    female_body: Optional[str] = None
    group_body: Optional[str] = None
    implies_group: bool = False

    def body_for(self, gender: EffectiveGender, is_multi_subject: bool = False) -> str:
        # Gendered variants describe one sitter, so groups never get them
        if is_multi_subject:
            return self.group_body or self.body
        if gender == EffectiveGender.MALE and self.male_body:
            return self.male_body
        if gender == EffectiveGender.FEMALE and self.female_body:
            return self.female_body
        return self.body


def _compose(modifier: str) -> str:
    return f"{MASTERS_STYLE} {modifier} {PAINTERLY_FINISH}"


_STYLES = {
    Category.PETS: CategoryStyle(
        body=_compose(
            "This is a beloved pet. Dress them in miniature royal regalia with a velvet "
            "cushion. The animal should look regal, dignified and noble."
        ),
        group_body=_compose(
            "These are beloved pets. Dress each one in miniature royal regalia, gathered "
            "together on velvet cushions. Every animal should look regal, dignified and noble."
        ),
    ),
    Category.FAMILY: CategoryStyle(
        body=_compose(
            "This is a family group portrait. Pose them together in aristocratic fashion "
            "with warm familial closeness, every family member side by side in one scene."
        ),
        implies_group=True,
    ),
    Category.CHILDREN: CategoryStyle(
        body=_compose(
            "This is a child. Crown them with a small gold coronet and dress them in royal "
            "robes. Cherubic, innocent, regal."
        ),
        group_body=_compose(
            "These are children. Crown each with a small gold coronet and dress them all in "
            "royal robes, gathered together in one scene. Cherubic, innocent, regal."
        ),
    ),
    Category.COUPLES: CategoryStyle(
        body=_compose(
            "This is a couple. Pose them together with a tender, aristocratic intimacy, "
            "two nobles deeply bonded and standing side by side."
        ),
        implies_group=True,
    ),
    Category.SELF: CategoryStyle(
        body=_compose(
            "This is a solo self-portrait. Dramatic three-quarter view, piercing gaze, "
            "self-assured noble bearing, elaborate period regalia with a gold chain of office."
        ),
        male_body=_compose(
            "This is a solo self-portrait of a nobleman. Dramatic three-quarter view, "
            "piercing gaze, commanding lordly bearing, velvet doublet, gold chain of office "
            "and lace ruff collar."
        ),
        female_body=_compose(
            "This is a solo self-portrait of a noblewoman. Dramatic three-quarter view, "
            "serene gaze, graceful courtly bearing, silk brocade bodice, pearl necklace "
            "and lace collar."
        ),
        group_body=_compose(
            "This is a group portrait of noble sitters painted together. Dramatic three-quarter "
            "views, self-assured noble bearing, elaborate period regalia and gold chains of office."
        ),
    ),
}


def _build_table() -> Mapping[Category, CategoryStyle]:
    missing = set(Category) - set(_STYLES)
    if missing:
        raise RuntimeError(
            f"No default style for categories: {sorted(c.value for c in missing)}"
        )
    return MappingProxyType(dict(_STYLES))


STYLE_DEFAULTS: Mapping[Category, CategoryStyle] = _build_table()


def default_style(category: Category) -> CategoryStyle:
    """Look up the default style for a parsed category."""
    return STYLE_DEFAULTS[category]

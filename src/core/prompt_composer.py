"""Deterministic prompt composition from subject attributes.

Clause order is fixed: framing, style body, multi-subject tail, gender tail.
Backends weight earlier text more heavily, so the order is part of the
contract.
"""

from typing import List, Optional

from src.core.models import Category, EffectiveGender, PromptPair, SubjectAttributes
from src.core.style_defaults import default_style


MALE_FRAMING = "Portrait of a single man."
FEMALE_FRAMING = "Portrait of a single woman."
NEUTRAL_FRAMING = "Portrait of a single person."

MULTI_SUBJECT_TAIL = (
    "All subjects must be fully visible in the same composition, standing or seated "
    "side by side, each given equal prominence; do not merge or omit anyone."
)

MASCULINE_ATTIRE_CLAUSE = (
    "Dress the subject only in masculine period attire; no gowns, dresses, bodices "
    "or feminine styling."
)
FEMININE_ATTIRE_CLAUSE = (
    "Dress the subject only in feminine period attire; no doublets, beards, "
    "armour or masculine styling."
)

BASE_NEGATIVE_TERMS = (
    "photograph",
    "photorealistic",
    "modern clothing",
    "modern background",
    "smartphone",
    "text",
    "watermark",
    "signature",
    "blurry",
    "low quality",
    "jpeg artifacts",
    "deformed",
    "distorted face",
    "extra limbs",
    "bad anatomy",
    "picture frame",
    "border",
    "cropped",
)

MULTI_SUBJECT_NEGATIVE_TERMS = ("single person only", "solo portrait")

MALE_NEGATIVE_TERMS = ("feminine attire on male", "dress", "gown", "makeup")
FEMALE_NEGATIVE_TERMS = ("masculine attire on female", "beard", "mustache", "doublet")

_NO_FRAMING_CATEGORIES = (Category.PETS, Category.CHILDREN)


def group_clause(count: int) -> str:
    """Numeric group-portrait instruction for ``count`` subjects."""
    return (
        f"Group portrait of exactly {count} subjects together in one painting; "
        f"paint every one of the {count} with equal prominence."
    )


def _framing(attrs: SubjectAttributes) -> Optional[str]:
    if attrs.is_multi_subject:
        return group_clause(attrs.group_size)
    if attrs.category in _NO_FRAMING_CATEGORIES:
        return None
    if attrs.effective_gender == EffectiveGender.MALE:
        return MALE_FRAMING
    if attrs.effective_gender == EffectiveGender.FEMALE:
        return FEMALE_FRAMING
    return NEUTRAL_FRAMING


def compose_prompts(attrs: SubjectAttributes, style_override: Optional[str] = None) -> PromptPair:
    """Compose the positive and negative prompt for a set of attributes.

    Pure and deterministic: the same inputs always give an identical PromptPair.

    Args:
        attrs: Resolved subject attributes
        style_override: Optional caller style text; replaces the default body
            when it is non-blank

    Returns:
        PromptPair with ordered positive clauses and negative terms
    """
    style = default_style(attrs.category)
    override = style_override.strip() if style_override else ""

    positive: List[str] = []
    framing = _framing(attrs)
    if framing:
        positive.append(framing)

    if override:
        positive.append(override)
        body_implies_group = False
    else:
        positive.append(style.body_for(attrs.effective_gender, attrs.is_multi_subject))
        body_implies_group = style.implies_group

    single_known_gender = not attrs.is_multi_subject and attrs.effective_gender.is_known

    if attrs.is_multi_subject and not body_implies_group:
        positive.append(MULTI_SUBJECT_TAIL)

    if single_known_gender:
        if attrs.effective_gender == EffectiveGender.MALE:
            positive.append(MASCULINE_ATTIRE_CLAUSE)
        else:
            positive.append(FEMININE_ATTIRE_CLAUSE)

    negative = list(BASE_NEGATIVE_TERMS)
    if attrs.is_multi_subject:
        negative.extend(MULTI_SUBJECT_NEGATIVE_TERMS)
    elif single_known_gender:
        if attrs.effective_gender == EffectiveGender.MALE:
            negative.extend(MALE_NEGATIVE_TERMS)
        else:
            negative.extend(FEMALE_NEGATIVE_TERMS)

    return PromptPair(positive_clauses=tuple(positive), negative_terms=tuple(negative))

"""Resolution of raw request fields into canonical subject attributes."""

import logging
from typing import Optional, Union

from src.core.models import Category, EffectiveGender, GenderHint, SubjectAttributes

logger = logging.getLogger(__name__)


def resolve_attributes(
    category: Union[Category, str, None],
    gender_hint: Union[GenderHint, str, None] = None,
    subject_count: Optional[int] = None,
    multi_photo: Optional[bool] = None,
) -> SubjectAttributes:
    """Resolve possibly partial request fields into a consistent attribute set.

    Precedence, highest first:

    1. ``family`` and ``couples`` are always mixed-gender group portraits,
       whatever gender hint was given.
    2. Several photos or a count above one make the portrait multi-subject.
       The gender hint still resolves, but only the style body may use it.
    3. A ``male``/``female`` hint sets the gender; ``auto`` or no hint leaves
       it unspecified.

    Args:
        category: Subject category; unknown values resolve to ``self``
        gender_hint: Optional gender hint; unknown values resolve to ``auto``
        subject_count: Optional number of subjects; non-positive means unknown
        multi_photo: Whether several photos were supplied

    Returns:
        The resolved SubjectAttributes
    """
    resolved_category = Category.parse(category)
    count = subject_count if subject_count is not None and subject_count >= 1 else 1

    if resolved_category.is_group:
        attrs = SubjectAttributes(
            category=resolved_category,
            effective_gender=EffectiveGender.MIXED,
            is_multi_subject=True,
            subject_count=count,
        )
    else:
        hint = GenderHint.parse(gender_hint) if gender_hint is not None else GenderHint.AUTO
        if hint == GenderHint.MALE:
            gender = EffectiveGender.MALE
        elif hint == GenderHint.FEMALE:
            gender = EffectiveGender.FEMALE
        else:
            gender = EffectiveGender.UNSPECIFIED

        attrs = SubjectAttributes(
            category=resolved_category,
            effective_gender=gender,
            is_multi_subject=bool(multi_photo) or count > 1,
            subject_count=count,
        )

    logger.debug(
        f"Resolved attributes: category={attrs.category.value}, "
        f"gender={attrs.effective_gender.value}, multi={attrs.is_multi_subject}, "
        f"count={attrs.subject_count}"
    )
    return attrs

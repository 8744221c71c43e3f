"""
Language priority resolution.

Picks one display label out of a multi-valued, multi-language property and
keeps each endpoint's language priority list in step with what the language
census finds.

Every function here is pure: inputs are never mutated, and a changed
priority list is returned as a new ``LanguagePriorityList``. Persisting it is
the caller's decision.

Example:
    >>> from skos_explorer.languages import resolve_label
    >>> from skos_explorer.models import LabelValue, LanguagePriorityList
    >>> resolve_label([LabelValue("Cat", "en"), LabelValue("Chat", "fr")],
    ...               LanguagePriorityList(("fr", "en")))
    LabelValue(text='Chat', lang='fr', datatype=None)
"""
from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from .models import DetectedLanguage, LabelValue, LanguagePriorityList, TypedLabel

# Label predicates in the order they are tried for a display label
LABEL_PRIORITY: tuple[str, ...] = ("prefLabel", "xlPrefLabel", "dctTitle", "dcTitle", "rdfsLabel")

DEFAULT_FIRST_LANGUAGE = "en"


def _tags(census: Iterable[DetectedLanguage | str]) -> list[str]:
    tags = []
    for item in census:
        tag = item if isinstance(item, str) else item.lang
        if tag and tag not in tags:
            tags.append(tag)
    return tags


def default_priorities(detected: Iterable[DetectedLanguage | str]) -> LanguagePriorityList:
    """Initial priority list: alphabetical, with English first."""
    return merge_detected_languages(LanguagePriorityList(), detected)


def merge_detected_languages(
    priorities: LanguagePriorityList, census: Iterable[DetectedLanguage | str]
) -> LanguagePriorityList:
    """Append newly detected languages to a priority list.

    Existing entries keep their order. Newcomers are appended alphabetically;
    when the list was empty, "en" goes first. Merging the same census twice
    returns an equal list.

    Args:
        priorities: Current list (may contain tags no longer detected).
        census: Detected languages or bare tags.

    Returns:
        The merged list; ``priorities`` itself when nothing is new.
    """
    newcomers = sorted(tag for tag in _tags(census) if tag not in priorities)
    if not newcomers:
        return priorities
    if not priorities.languages and DEFAULT_FIRST_LANGUAGE in newcomers:
        newcomers.remove(DEFAULT_FIRST_LANGUAGE)
        newcomers.insert(0, DEFAULT_FIRST_LANGUAGE)
    return priorities.with_languages(priorities.languages + tuple(newcomers))


def reorder(priorities: LanguagePriorityList, languages: Sequence[str]) -> LanguagePriorityList:
    """Apply a user reordering, dropping repeated tags."""
    return priorities.with_languages(languages)


def resolve_label(
    values: Sequence[LabelValue],
    priorities: LanguagePriorityList,
    override: str | None = None,
) -> LabelValue | None:
    """Select the value to display for one property.

    Order of preference:
    1. the override language (argument, else the list's current override)
    2. the priority list, in order
    3. a value without language tag
    4. the first value

    Returns None only for an empty ``values``.
    """
    if not values:
        return None

    override = override or priorities.current_override
    if override:
        for value in values:
            if value.lang == override:
                return value

    for lang in priorities.languages:
        for value in values:
            if value.lang == lang:
                return value

    for value in values:
        if not value.lang:
            return value

    return values[0]


def select_label_by_type(
    labels: Sequence[TypedLabel],
    priorities: LanguagePriorityList,
    override: str | None = None,
    order: Sequence[str] = LABEL_PRIORITY,
) -> LabelValue | None:
    """Select a display label across label predicates.

    The first predicate in ``order`` that has any value wins; language
    resolution happens within that predicate.
    """
    if not labels:
        return None
    for label_type in order:
        candidates = [label.value for label in labels if label.type == label_type]
        if candidates:
            return resolve_label(candidates, priorities, override)
    return labels[0].value


def sort_labels(
    values: Iterable[LabelValue],
    priorities: LanguagePriorityList,
    override: str | None = None,
) -> list[LabelValue]:
    """Deduplicate and order all values of a property for a detail view.

    Untagged values first, then the override language, then the priority
    order, then remaining languages alphabetically.
    """
    unique = list(dict.fromkeys(values))
    override = override or priorities.current_override
    rank = {lang: i for i, lang in enumerate(priorities.languages)}

    def key(value: LabelValue):
        lang = value.lang or ""
        if not lang:
            return (0, 0, "")
        if lang == override:
            return (1, 0, lang)
        if lang in rank:
            return (2, rank[lang], lang)
        return (3, 0, lang)

    return sorted(unique, key=key)


@dataclass(frozen=True)
class LabelSettings:
    show_language_tags: bool = True
    show_preferred_language_tag: bool = False


class LabelResolver:
    """Label resolution bound to the user's display settings."""

    def __init__(self, settings: LabelSettings | None = None):
        self.settings = settings or LabelSettings()

    def resolve(
        self, values: Sequence[LabelValue], priorities: LanguagePriorityList, override: str | None = None
    ) -> LabelValue | None:
        return resolve_label(values, priorities, override)

    def should_show_lang_tag(self, lang: str | None, priorities: LanguagePriorityList) -> bool:
        """Return whether a resolved value's language tag should be displayed.

        The tag is hidden when it is the highest-priority language (the
        override when one is set), unless the user asked to always see it.
        """
        if not self.settings.show_language_tags or not lang:
            return False
        if self.settings.show_preferred_language_tag:
            return True
        return lang != priorities.top

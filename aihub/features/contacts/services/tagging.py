"""
Tag helpers for the tag input and the bulk tag editor.
"""

from collections.abc import Iterable, Sequence

from aihub.features.contacts.domain.models import Contact, TagSuggestions


def suggest_tags(
    user_tags: Sequence[str], text: str, selected: Iterable[str] = (), limit: int = 10
) -> TagSuggestions:
    """
    Case-insensitive substring suggestions from the user's existing tags,
    skipping tags already selected. `can_create` is True when the typed text
    is not an existing or selected tag.
    """
    needle = (text or "").strip()
    chosen = {tag.lower() for tag in selected}
    lowered = needle.lower()

    suggestions = [
        tag for tag in user_tags if tag.lower() not in chosen and lowered in tag.lower()
    ][:limit]
    known = {tag.lower() for tag in user_tags} | chosen
    return TagSuggestions(suggestions=suggestions, can_create=bool(needle) and lowered not in known)


def common_tags(contacts: Sequence[Contact]) -> list[str]:
    """Tags carried by every contact, in the order of the first one."""
    if not contacts:
        return []
    shared = set(contacts[0].tags or [])
    for contact in contacts[1:]:
        shared &= set(contact.tags or [])
    return [tag for tag in dict.fromkeys(contacts[0].tags or []) if tag in shared]

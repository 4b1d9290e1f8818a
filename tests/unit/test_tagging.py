from aihub.features.contacts.domain.models import Contact
from aihub.features.contacts.services.tagging import common_tags, suggest_tags


def _contact(tags):
    return Contact(
        id="c",
        user_id="u",
        name=None,
        email=None,
        phone_number=None,
        company_name=None,
        contact_position=None,
        address=None,
        status="new",
        tags=tags,
        added_at_date=None,
    )


def test_suggestions_are_case_insensitive_and_skip_selected():
    result = suggest_tags(["VIP", "vip-lead", "conference"], "vi", selected=["vip-lead"])

    assert result.suggestions == ["VIP"]
    assert result.can_create is True


def test_existing_or_selected_text_cannot_be_created():
    assert suggest_tags(["conference"], "Conference").can_create is False
    assert suggest_tags([], "new", selected=["new"]).can_create is False
    assert suggest_tags(["a"], "   ").can_create is False


def test_common_tags_are_shared_by_every_contact():
    contacts = [_contact(["vip", "urgent", "b2b"]), _contact(["b2b", "vip"]), _contact(["vip", "b2b", "x"])]

    assert common_tags(contacts) == ["vip", "b2b"]


def test_common_tags_empty_when_any_contact_has_none():
    assert common_tags([_contact(["vip"]), _contact(None)]) == []
    assert common_tags([]) == []

"""Inbound update parsing: chat/sender extraction, commands, content kinds."""
import pytest

from apps.backend.services.content import Content, ContentKind
from apps.backend.services.errors import MalformedEvent
from apps.backend.services.inbound import parse_update

from conftest import callback_update, message_update


@pytest.mark.timeout(10)
def test_message_with_command_argument():
    ev = parse_update(message_update(42, "/start ref_7", username="alice"))
    assert ev.chat_id == 42
    assert ev.sender_id == "42"
    assert ev.display_name == "@alice"
    assert ev.command == "start"
    assert ev.argument == "ref_7"
    assert ev.is_callback is False
    assert ev.content == Content(ContentKind.TEXT, text="/start ref_7")


@pytest.mark.timeout(10)
def test_command_with_bot_suffix_and_display_name_fallback():
    ev = parse_update(message_update(5, "/Panel@my_bot", first_name="Bob"))
    assert ev.command == "panel"
    assert ev.argument is None
    assert ev.display_name == "Bob"


@pytest.mark.timeout(10)
def test_plain_text_is_not_a_command():
    ev = parse_update(message_update(5, "hello /start"))
    assert ev.command is None


@pytest.mark.timeout(10)
def test_callback_query():
    ev = parse_update(callback_update(9, "joined", callback_id="abc"))
    assert ev.is_callback is True
    assert ev.callback_id == "abc"
    assert ev.callback_data == "joined"
    assert ev.chat_id == 9
    assert ev.content is None


@pytest.mark.timeout(10)
@pytest.mark.parametrize(
    "update",
    [
        {"update_id": 1},
        {"update_id": 1, "message": {"chat": {"id": 1}}},
        {"update_id": 1, "message": {"from": {"id": 1}}},
        {"update_id": 1, "callback_query": {"id": "x", "from": {"id": 1}}},
        [],
    ],
)
def test_missing_ids_are_malformed(update):
    with pytest.raises(MalformedEvent):
        parse_update(update)


@pytest.mark.timeout(10)
def test_photo_uses_largest_size_and_caption():
    ev = parse_update(message_update(
        1, photo=[{"file_id": "small"}, {"file_id": "large"}], caption="look",
    ))
    assert ev.text is None
    assert ev.content == Content(ContentKind.PHOTO, file_id="large", caption="look")


@pytest.mark.timeout(10)
@pytest.mark.parametrize("kind", ["document", "video", "audio", "voice", "sticker"])
def test_file_kinds(kind):
    ev = parse_update(message_update(1, **{kind: {"file_id": f"{kind}-id"}}))
    assert ev.content.kind == ContentKind(kind)
    assert ev.content.file_id == f"{kind}-id"
    assert ev.content.caption == ""


@pytest.mark.timeout(10)
def test_unknown_content_is_unsupported():
    ev = parse_update(message_update(1, location={"latitude": 1, "longitude": 2}))
    assert ev.content.kind == ContentKind.UNSUPPORTED


@pytest.mark.timeout(10)
def test_content_survives_queue_serialization():
    c = Content(ContentKind.VIDEO, file_id="v1", caption="clip")
    assert Content.from_dict(c.to_dict()) == c

"""
Unit tests for message normalization.
"""
import logging

import pytest

from database.models import MessageType, Reaction
from utils.message_parser import (
    classify_type,
    display_name,
    extract_media,
    is_group_chat,
    normalize_reactions,
    normalize_url,
    parse_message,
    parse_timestamp,
    preview_text,
    sender_name,
)


@pytest.mark.unit
class TestClassifyType:
    """Test cases for type classification."""

    def test_text_is_default(self):
        assert classify_type({"message_id": 1, "text": "hi"}) == MessageType.TEXT

    def test_photo_wins_over_document(self):
        """Test the fixed priority order decides between payload fields."""
        raw = {"photo": [{"file_id": "p"}], "document": {"file_id": "d"}}
        assert classify_type(raw) == MessageType.PHOTO

    def test_voice_wins_over_audio(self):
        raw = {"audio": {"file_id": "a"}, "voice": {"file_id": "v"}}
        assert classify_type(raw) == MessageType.VOICE

    def test_animation_wins_over_document(self):
        """Test GIFs, which Telegram also sends as documents, are animations."""
        raw = {"animation": {"file_id": "a"}, "document": {"file_id": "d"}}
        assert classify_type(raw) == MessageType.ANIMATION

    def test_location_only(self):
        raw = {"location": {"latitude": 1.0, "longitude": 2.0}}
        assert classify_type(raw) == MessageType.LOCATION

    def test_venue_wins_over_location(self):
        raw = {"venue": {"title": "x"}, "location": {"latitude": 1.0, "longitude": 2.0}}
        assert classify_type(raw) == MessageType.VENUE


@pytest.mark.unit
class TestExtractMedia:
    """Test cases for per-type media extraction."""

    def test_photo_takes_largest_size(self):
        # Arrange
        raw = {"photo": [{"file_id": "small"}, {"file_id": "medium"}, {"file_id": "large"}]}

        # Act
        media = extract_media(raw, MessageType.PHOTO)

        # Assert
        assert media.file_id == "large"
        assert media.needs_review is False

    def test_url_field_as_object(self):
        """Test a URL stored as an object with a url field is flattened."""
        raw = {"video": {"file_id": "vid"}, "url_video": {"url": "https://cdn/v.mp4"}}

        media = extract_media(raw, MessageType.VIDEO)

        assert media.file_id == "vid"
        assert media.url == "https://cdn/v.mp4"

    def test_sticker_plain_string(self):
        media = extract_media({"sticker": "CAACAgIAAx"}, MessageType.STICKER)
        assert media.file_id == "CAACAgIAAx"

    def test_text_has_no_media(self):
        assert extract_media({"text": "hello"}, MessageType.TEXT) is None

    def test_unknown_shape_flagged_for_review(self, caplog):
        """Test a file_id in an unknown field is found and flagged."""
        # Arrange
        raw = {"message_id": 7, "paid_media": {"items": [{"file_id": "hidden"}]}}

        # Act
        with caplog.at_level(logging.WARNING):
            media = extract_media(raw, MessageType.TEXT)

        # Assert
        assert media.file_id == "hidden"
        assert media.needs_review is True
        assert "flagged for review" in caplog.text

    def test_reply_media_is_not_own_media(self):
        """Test media inside a replied-to message is ignored."""
        raw = {"text": "see above", "reply_to_message": {"photo": [{"file_id": "other"}]}}
        assert extract_media(raw, MessageType.TEXT) is None


@pytest.mark.unit
class TestNormalizeReactions:
    """Test cases for reaction normalization."""

    def test_absent_reactions_stay_none(self):
        assert normalize_reactions(None) is None

    def test_canonical_list(self):
        result = normalize_reactions([{"emoji": "👍", "count": 2, "is_own": True}])
        assert result == [Reaction("👍", 2, True)]

    def test_telegram_reaction_count_objects(self):
        """Test Bot API ReactionCount objects."""
        raw = [
            {"type": {"type": "emoji", "emoji": "❤"}, "total_count": 3},
            {"type": {"type": "emoji", "emoji": "🔥"}, "total_count": 1, "chosen": True},
        ]

        result = normalize_reactions(raw)

        assert result == [Reaction("❤", 3, False), Reaction("🔥", 1, True)]

    def test_results_wrapper(self):
        raw = {"results": [{"type": {"emoji": "👍"}, "count": 4}]}
        assert normalize_reactions(raw) == [Reaction("👍", 4, False)]

    def test_emoji_count_dict(self):
        result = normalize_reactions({"👍": 5, "❤": {"count": 2, "is_own": True}})
        assert Reaction("👍", 5, False) in result
        assert Reaction("❤", 2, True) in result

    def test_malformed_entries_skipped(self):
        result = normalize_reactions([{"count": 2}, "junk", {"emoji": "👍", "count": "x"}])
        assert result == [Reaction("👍", 1, False)]


@pytest.mark.unit
class TestParseMessage:
    """Test cases for parse_message."""

    def test_missing_message_id_returns_none(self):
        assert parse_message({"chat": {"id": 1}, "text": "x"}) is None

    def test_non_dict_returns_none(self):
        assert parse_message(["not", "a", "message"]) is None

    def test_private_text_message(self):
        # Arrange
        raw = {
            "message_id": 100,
            "date": 1768824000,
            "chat": {"id": 4242, "type": "private", "first_name": "Ann", "last_name": "Lee"},
            "from": {"id": 4242, "is_bot": False, "first_name": "Ann", "last_name": "Lee", "username": "ann"},
            "text": "Hello",
        }

        # Act
        parsed = parse_message(raw)

        # Assert
        assert (parsed.message.chat_id, parsed.message.message_id) == (4242, 100)
        assert parsed.message.timestamp == 1768824000
        assert parsed.message.type == "text"
        assert parsed.message.reactions is None
        assert parsed.chat.title == "Ann Lee"
        assert is_group_chat(parsed.chat.id, parsed.chat.type) is False
        assert parsed.user.username == "ann"
        assert parsed.user.last_seen == 1768824000
        assert parsed.needs_review is False

    def test_date_is_authoritative_over_time_string(self):
        raw = {"message_id": 1, "chat": {"id": 1}, "date": 1000, "time": "2030-01-01T00:00:00Z"}
        assert parse_message(raw).message.timestamp == 1000

    def test_iso_time_used_when_date_missing(self):
        raw = {"message_id": 1, "chat": {"id": 1}, "time": "1970-01-01T00:16:40+00:00"}
        assert parse_message(raw).message.timestamp == 1000

    def test_locale_time_string_ignored(self):
        assert parse_timestamp({"time": "19.01.2026, 12:00:00"}) == 0

    def test_chat_id_fallback_field(self):
        parsed = parse_message({"message_id": 5, "chat_id": -100500, "date": 1})
        assert parsed.message.chat_id == -100500
        assert parsed.chat is None

    def test_reply_to_message_id(self):
        raw = {"message_id": 2, "chat": {"id": 1}, "date": 1, "reply_to_message": {"message_id": 1}}
        assert parse_message(raw).message.reply_to_message_id == 1

    def test_channel_post_without_sender(self):
        raw = {"message_id": 3, "chat": {"id": -1001, "type": "channel", "title": "News"}, "date": 1, "text": "x"}

        parsed = parse_message(raw)

        assert parsed.message.from_id is None
        assert parsed.user is None
        assert is_group_chat(parsed.chat.id, parsed.chat.type) is True


@pytest.mark.unit
class TestDisplayHelpers:
    """Test cases for naming helpers."""

    def test_display_name_prefers_title(self):
        assert display_name({"id": -1, "title": "Team", "first_name": "X"}) == "Team"

    def test_display_name_falls_back_to_id(self):
        assert display_name({"id": 77}) == "77"

    def test_sender_name(self):
        assert sender_name({"id": 1, "first_name": "Bo"}) == "Bo"
        assert sender_name({"id": 1, "username": "bo"}) == "bo"
        assert sender_name(None) == ""

    def test_preview_text_for_media(self):
        assert preview_text({"photo": [{"file_id": "p"}], "caption": "sunset"}) == "📷 Photo: sunset"

    def test_preview_text_truncates(self):
        assert preview_text({"text": "a" * 80}, max_length=10) == "a" * 10 + "..."

    def test_normalize_url(self):
        assert normalize_url("https://x") == "https://x"
        assert normalize_url({"url": "https://y"}) == "https://y"
        assert normalize_url({"href": "https://z"}) is None

    def test_group_kind_prefers_chat_type(self):
        """Test chat type wins over the id sign convention."""
        assert is_group_chat(-5, "private") is False
        assert is_group_chat(5, "supergroup") is True
        assert is_group_chat(-5, None) is True
        assert is_group_chat(5, None) is False

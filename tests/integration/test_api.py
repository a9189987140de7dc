"""
Integration tests for the HTTP API.
"""
import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from aiogram.exceptions import TelegramBadRequest
from fastapi.testclient import TestClient

from api.app import create_app
from api.application import ViewerApplication
from bot.telegram_client import TelegramClient
from config.settings import Config
from tests.helpers import make_payload, ts, write_payload


@pytest.fixture
def config(tmp_path):
    """Configuration with every path inside a temp directory."""
    return Config(
        bot_token=None,
        debug_mode=False,
        messages_path=str(tmp_path / "messages"),
        timezone=None,
        max_lookback_days=31,
        chats_cache_path=str(tmp_path / "chats_cache.json"),
        db_path=str(tmp_path / "data" / "viewer.db"),
        archive_after_days=30,
        api_host="127.0.0.1",
        api_port=3005,
        config_file_path=str(tmp_path / "config.json"),
        sync_on_startup=False,
        sync_batch_size=50,
        sync_recent_interval_minutes=5,
        sync_recent_window_hours=10,
        avatar_service_enabled=False,
        avatars_dir=str(tmp_path / "public" / "avatars"),
        uploads_dir=str(tmp_path / "public" / "uploads"),
    )


@pytest.fixture
def sent_payload():
    return make_payload(501, -1009999, ts(2026, 1, 19), text="Hi all", chat_type="supergroup", from_id=777)


@pytest.fixture
def telegram(sent_payload):
    """Bot API client mock."""
    mock = AsyncMock(spec=TelegramClient)
    mock.set_reaction.return_value = True
    mock.send_message.return_value = sent_payload
    mock.send_media.return_value = sent_payload
    mock.resolve_file_url.return_value = "https://api.telegram.org/file/botTOKEN/photos/file_1.jpg"
    return mock


@pytest.fixture
def client(config, telegram):
    """Test client with a configured bot."""
    app = create_app(config, ViewerApplication(config, telegram=telegram), run_background=False)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def botless_client(config):
    """Test client without a bot token."""
    app = create_app(config, run_background=False)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def corpus_root(config):
    return config.messages_path


@pytest.mark.integration
class TestMessagesRoutes:
    """Integration tests for timeline and chat list routes."""

    def test_messages_for_date(self, client, corpus_root):
        # Arrange
        write_payload(corpus_root, "19.01.2026", make_payload(100, 4242, ts(2026, 1, 19), text="Hello"))

        # Act
        response = client.get("/messages", params={"date": "19.01.2026"})

        # Assert
        assert response.status_code == 200
        records = response.json()
        assert len(records) == 1
        assert records[0]["text"] == "Hello"
        assert records[0]["chat_id"] == 4242

    def test_invalid_date_is_bad_request(self, client):
        response = client.get("/messages", params={"date": "2026-01-19"})

        assert response.status_code == 400

    def test_non_positive_limit_is_bad_request(self, client):
        assert client.get("/messages", params={"limit": 0}).status_code == 400

    def test_get_all_chats(self, client, corpus_root):
        write_payload(corpus_root, "19.01.2026", make_payload(100, 4242, ts(2026, 1, 19), text="Hello"))

        response = client.get("/api/get-all-chats", params={"include_archive": "true"})

        assert response.status_code == 200
        chats = response.json()
        assert chats[0]["id"] == 4242
        assert chats[0]["name"] == "User4242"
        assert chats[0]["photo"] is None

    def test_old_chats_hidden_without_archive(self, client, corpus_root):
        write_payload(corpus_root, "19.01.2020", make_payload(1, 4242, ts(2020, 1, 19), text="old"))

        assert client.get("/api/get-all-chats").json() == []

    def test_get_file_url(self, client, telegram):
        response = client.get("/api/get-file-url", params={"file_id": "AgACAgIAAx"})

        assert response.status_code == 200
        assert response.json()["url"].endswith("photos/file_1.jpg")
        telegram.resolve_file_url.assert_awaited_once_with("AgACAgIAAx")

    def test_get_file_url_unknown_file(self, client, telegram):
        telegram.resolve_file_url.return_value = None

        assert client.get("/api/get-file-url", params={"file_id": "x"}).status_code == 404


@pytest.mark.integration
class TestActionRoutes:
    """Integration tests for reactions and sending."""

    def test_set_reaction(self, client, telegram):
        response = client.post(
            "/api/set-reaction",
            json={"chat_id": -100, "message_id": 7, "emoji": "👍", "action": "add"}
        )

        assert response.status_code == 200
        assert response.json()["success"] is True
        telegram.set_reaction.assert_awaited_once_with(-100, 7, "👍")

    def test_set_reaction_invalid_action(self, client):
        response = client.post(
            "/api/set-reaction",
            json={"chat_id": -100, "message_id": 7, "emoji": "👍", "action": "toggle"}
        )

        assert response.status_code == 400

    def test_set_reaction_rejected_by_telegram(self, client, telegram):
        telegram.set_reaction.side_effect = TelegramBadRequest(method=MagicMock(), message="REACTION_INVALID")

        response = client.post("/api/set-reaction", json={"chat_id": -100, "message_id": 7, "emoji": "🦄"})

        assert response.status_code == 502

    def test_send_message_writes_corpus(self, client, telegram, config, sent_payload):
        # Act
        response = client.post("/api/send-message", json={"chat_id": -1009999, "text": "Hi all"})

        # Assert
        assert response.status_code == 200
        assert response.json() == {"success": True, "result": sent_payload}
        written = f"{config.messages_path}/19.01.2026/-1009999/501.json"
        with open(written, encoding="utf-8") as f:
            assert json.load(f) == sent_payload

    def test_send_message_missing_text(self, client):
        assert client.post("/api/send-message", json={"chat_id": 1}).status_code == 400

    def test_send_photo(self, client, telegram):
        response = client.post("/api/send-photo", json={"chat_id": 1, "photo": "AgACAgIAAx", "caption": "look"})

        assert response.status_code == 200
        telegram.send_media.assert_awaited_once_with("photo", 1, "AgACAgIAAx", caption="look")

    def test_send_video_note_route(self, client, telegram):
        response = client.post("/api/send-video-note", json={"chat_id": 1, "video_note": "/uploads/a.mp4"})

        assert response.status_code == 200
        assert telegram.send_media.await_args.args[0] == "video_note"

    def test_actions_without_bot(self, botless_client):
        assert botless_client.post(
            "/api/set-reaction", json={"chat_id": 1, "message_id": 1, "emoji": "👍"}
        ).status_code == 503
        assert botless_client.post("/api/send-message", json={"chat_id": 1, "text": "x"}).status_code == 503
        assert botless_client.get("/api/get-file-url", params={"file_id": "x"}).status_code == 503


@pytest.mark.integration
class TestAdminRoutes:
    """Integration tests for operator and maintenance routes."""

    def test_sync_then_stats(self, client, corpus_root):
        # Arrange
        write_payload(corpus_root, "19.01.2026", make_payload(100, 4242, ts(2026, 1, 19), text="Hello", from_id=4242))

        # Act
        report = client.post("/api/sync").json()
        stats = client.get("/api/stats", params={"days": 3650}).json()

        # Assert
        assert report["processed"] == 1
        assert report["changed"] == 1
        assert stats["totalMessages"] == 1
        assert stats["topUsers"][0]["id"] == 4242

    def test_recent_sync_window_validated(self, client):
        assert client.post("/api/sync", params={"recent": "true", "window_hours": 0}).status_code == 400

    def test_stats_days_validated(self, client):
        assert client.get("/api/stats", params={"days": 0}).status_code == 400

    def test_manual_mode(self, client):
        # Act
        set_response = client.post("/api/set-manual-mode", json={"chat_id": -100, "enabled": True})
        get_response = client.get("/api/get-manual-mode", params={"chat_id": -100})
        all_response = client.get("/api/get-all-manual-modes")

        # Assert
        assert set_response.json()["success"] is True
        assert get_response.json() == {"chat_id": -100, "enabled": True}
        assert all_response.json() == {"-100": True}

    def test_settings(self, client):
        updated = client.post("/api/v1/setSettings", json={"Listening Port": 3100})

        assert updated.status_code == 200
        assert client.get("/api/v1/getSettings").json()["Listening Port"] == 3100

    def test_nested_settings_rejected(self, client):
        assert client.post("/api/v1/setSettings", json={"Theme": {"dark": True}}).status_code == 400

    def test_upload(self, client, config):
        # Act
        response = client.post("/api/upload", files={"file": ("pic.png", b"\x89PNG", "image/png")})

        # Assert
        assert response.status_code == 200
        body = response.json()
        assert body["url"].startswith("/uploads/")
        assert client.get(body["url"]).content == b"\x89PNG"

    def test_upload_wrong_type(self, client):
        response = client.post("/api/upload", files={"file": ("run.sh", b"#!/bin/sh", "text/x-shellscript")})

        assert response.status_code == 400

    def test_oversized_upload_rejected_before_full_read(self, client, config):
        # Arrange
        client.app.state.viewer.upload_service.max_bytes = 8

        # Act
        response = client.post("/api/upload", files={"file": ("big.png", b"\x89PNG" * 4, "image/png")})

        # Assert
        assert response.status_code == 413
        assert list(Path(config.uploads_dir).glob("*")) == []

    def test_health(self, client):
        body = client.get("/health").json()

        assert body == {"status": "ok", "store_available": True, "bot_configured": True, "sync_running": False}

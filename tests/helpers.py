"""
Helpers for building message corpora in tests.
"""
import json
from datetime import datetime, timezone
from pathlib import Path


def ts(year, month, day, hour=12, minute=0):
    """Unix timestamp of a UTC wall-clock time."""
    return int(datetime(year, month, day, hour, minute, tzinfo=timezone.utc).timestamp())


def make_payload(message_id, chat_id, date, text=None, chat_type=None, from_id=None, **extra):
    """Raw Telegram-shaped message payload."""
    chat = {"id": chat_id}
    if chat_type:
        chat["type"] = chat_type
    if chat_id < 0 or chat_type in ("group", "supergroup", "channel"):
        chat["title"] = f"Group {chat_id}"
    else:
        chat["first_name"] = f"User{chat_id}"
    payload = {"message_id": message_id, "chat": chat, "date": date}
    if text is not None:
        payload["text"] = text
    if from_id is not None:
        payload["from"] = {"id": from_id, "is_bot": False, "first_name": f"Sender{from_id}"}
    payload.update(extra)
    return payload


def write_payload(root, folder, payload, subdir=None, raw=None):
    """Write a payload (or raw text) as ``<root>/<folder>[/<subdir>]/<message_id>.json``."""
    directory = Path(root) / folder
    if subdir is not None:
        directory = directory / str(subdir)
    directory.mkdir(parents=True, exist_ok=True)
    name = f"{payload['message_id']}.json" if payload is not None else "broken.json"
    path = directory / name
    path.write_text(raw if raw is not None else json.dumps(payload), encoding="utf-8")
    return path

"""
On-disk layout of the message corpus.

Private chats: ``<root>/<DD.MM.YYYY>/<message_id>.json``
Group chats:   ``<root>/<DD.MM.YYYY>/<chat_id>/<message_id>.json``
"""
import logging
import re
from datetime import date, datetime
from pathlib import Path
from typing import Iterator, List, Optional, Union

from utils.timezone_helper import local_date


logger = logging.getLogger(__name__)


DATE_FOLDER_FORMAT = "%d.%m.%Y"
DATE_FOLDER_RE = re.compile(r"^\d{2}\.\d{2}\.\d{4}$")

PathLike = Union[str, Path]


def format_date_folder(day: date) -> str:
    """Folder name for a calendar date."""
    return day.strftime(DATE_FOLDER_FORMAT)


def parse_date_folder(name: str) -> Optional[date]:
    """
    Parse a date folder name.

    Args:
        name: Folder name, e.g. ``19.01.2026``

    Returns:
        Calendar date, or None if the name is not a valid date folder
    """
    if not DATE_FOLDER_RE.match(name):
        return None
    try:
        return datetime.strptime(name, DATE_FOLDER_FORMAT).date()
    except ValueError:
        return None


def date_folder_for_timestamp(timestamp: int, timezone_str: Optional[str]) -> str:
    """Date folder name of a Unix timestamp in the local timezone."""
    return format_date_folder(local_date(timestamp, timezone_str))


def list_date_folders(root: PathLike, newest_first: bool = True) -> List[Path]:
    """
    List date folders under the corpus root sorted by calendar date.

    Args:
        root: Corpus root directory
        newest_first: Sort order

    Returns:
        Paths of valid date folders; empty if the root does not exist
    """
    root_path = Path(root)
    if not root_path.is_dir():
        logger.debug(f"Corpus root {root_path} does not exist")
        return []

    folders = []
    for entry in root_path.iterdir():
        if not entry.is_dir():
            continue
        day = parse_date_folder(entry.name)
        if day is not None:
            folders.append((day, entry))

    folders.sort(key=lambda item: item[0], reverse=newest_first)
    return [path for _, path in folders]


def _json_files(directory: Path) -> List[Path]:
    return sorted(
        (p for p in directory.iterdir() if p.is_file() and p.suffix == ".json"),
        key=lambda p: p.name
    )


def iter_message_files(date_dir: PathLike, chat_id: Optional[int] = None) -> Iterator[Path]:
    """
    Iterate message files of one date folder.

    Args:
        date_dir: Date folder
        chat_id: When set, only that chat's subdirectory is walked after the
            flat files

    Yields:
        Paths of ``.json`` files (flat files first, then chat subdirectories)
    """
    directory = Path(date_dir)
    if not directory.is_dir():
        return

    yield from _json_files(directory)

    if chat_id is not None:
        subdir = directory / str(chat_id)
        if subdir.is_dir():
            yield from _json_files(subdir)
        return

    for subdir in sorted(p for p in directory.iterdir() if p.is_dir()):
        yield from _json_files(subdir)


def chat_dir_name(path: Path) -> Optional[int]:
    """Chat id of the subdirectory a message file lives in, if any."""
    parent = path.parent
    if parse_date_folder(parent.name) is not None:
        return None
    try:
        return int(parent.name)
    except ValueError:
        return None


def message_file_path(
    root: PathLike,
    folder_name: str,
    chat_id: int,
    message_id: int,
    is_group: bool
) -> Path:
    """
    Canonical path of a message file.

    Args:
        root: Corpus root directory
        folder_name: Date folder name
        chat_id: Chat id
        message_id: Message id
        is_group: Group-kind chats get their own subdirectory

    Returns:
        File path
    """
    base = Path(root) / folder_name
    if is_group:
        base = base / str(chat_id)
    return base / f"{message_id}.json"

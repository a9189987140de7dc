"""
Uploads of operator media and their conversion with ffmpeg.
"""
import asyncio
import logging
import time
import uuid
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional


logger = logging.getLogger(__name__)


MAX_UPLOAD_BYTES = 50 * 1024 * 1024
UPLOAD_CHUNK_BYTES = 1024 * 1024

ALLOWED_MIME_TYPES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "video/mp4": ".mp4",
    "video/webm": ".webm",
    "audio/mpeg": ".mp3",
    "audio/ogg": ".ogg",
    "audio/wav": ".wav",
}

CONVERSIONS = {
    "video_note": (".mp4", "video/mp4"),
    "voice": (".ogg", "audio/ogg"),
}


class UploadRejectedError(ValueError):
    """Upload failed validation."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


class MediaConversionError(RuntimeError):
    """ffmpeg exited with an error."""


def video_note_args(source: Path, destination: Path) -> List[str]:
    """ffmpeg arguments producing a square H.264/AAC clip of at most 640x640 and 60 s."""
    return [
        "-y", "-i", str(source),
        "-vf", "crop='min(iw,ih)':'min(iw,ih)',scale='min(640,iw)':'min(640,ih)'",
        "-c:v", "libx264", "-preset", "fast", "-crf", "28",
        "-c:a", "aac", "-b:a", "128k",
        "-movflags", "+faststart",
        "-pix_fmt", "yuv420p",
        "-t", "60",
        str(destination),
    ]


def voice_args(source: Path, destination: Path) -> List[str]:
    """ffmpeg arguments producing an OGG/Opus voice message."""
    return [
        "-y", "-i", str(source),
        "-vn",
        "-c:a", "libopus", "-b:a", "32k",
        "-vbr", "on",
        "-application", "voip",
        str(destination),
    ]


class MediaConverter:
    """Runs ffmpeg as an external process."""

    def __init__(self, ffmpeg_binary: str = "ffmpeg"):
        self.ffmpeg_binary = ffmpeg_binary

    async def convert(self, kind: str, source: Path, destination: Path) -> Path:
        """
        Convert a media file.

        Args:
            kind: ``video_note`` or ``voice``
            source: Input file
            destination: Output file

        Returns:
            Destination path

        Raises:
            ValueError: If the kind is unknown
            MediaConversionError: If ffmpeg fails or is missing
        """
        if kind == "video_note":
            args = video_note_args(source, destination)
        elif kind == "voice":
            args = voice_args(source, destination)
        else:
            raise ValueError(f"Unknown conversion: {kind}")

        try:
            process = await asyncio.create_subprocess_exec(
                self.ffmpeg_binary, *args,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE
            )
        except FileNotFoundError as e:
            raise MediaConversionError(f"ffmpeg not found: {e}")

        _, stderr = await process.communicate()
        if process.returncode != 0:
            destination.unlink(missing_ok=True)
            message = stderr.decode("utf-8", errors="replace").strip().splitlines()
            raise MediaConversionError(message[-1] if message else f"ffmpeg exited with {process.returncode}")

        logger.info(f"Converted {source.name} to {kind}", extra={"destination": str(destination)})
        return destination


class UploadService:
    """Stores uploaded files under a unique name, optionally converting them."""

    def __init__(self, uploads_dir: str, converter: MediaConverter, max_bytes: int = MAX_UPLOAD_BYTES):
        self.uploads_dir = Path(uploads_dir)
        self.converter = converter
        self.max_bytes = max_bytes

    def check_size(self, size: Optional[int]) -> None:
        """Reject a declared or partially read size above the limit."""
        if size is not None and size > self.max_bytes:
            raise UploadRejectedError(f"File exceeds {self.max_bytes // (1024 * 1024)} MB limit", status_code=413)

    async def read_limited(self, read: Callable[[int], Awaitable[bytes]]) -> bytes:
        """
        Read an upload stream in chunks, stopping as soon as it passes the limit.

        Args:
            read: Async reader taking a chunk size, such as ``UploadFile.read``

        Raises:
            UploadRejectedError: With status 413 once the limit is exceeded
        """
        chunks = []
        total = 0
        while True:
            chunk = await read(UPLOAD_CHUNK_BYTES)
            if not chunk:
                break
            total += len(chunk)
            self.check_size(total)
            chunks.append(chunk)
        return b"".join(chunks)

    @staticmethod
    def unique_name(extension: str) -> str:
        return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}{extension}"

    async def save_upload(
        self,
        data: bytes,
        content_type: Optional[str],
        original_name: Optional[str] = None,
        convert: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Validate and store an uploaded file.

        Args:
            data: File content
            content_type: Declared MIME type
            original_name: Client-side file name, used for its extension
            convert: Optional ``video_note`` or ``voice`` conversion

        Returns:
            ``{success, url, filename, size, mimetype}``

        Raises:
            UploadRejectedError: If the type, size or conversion is not accepted
            MediaConversionError: If conversion fails
        """
        if content_type not in ALLOWED_MIME_TYPES:
            raise UploadRejectedError(f"File type not allowed: {content_type}")
        self.check_size(len(data))
        if not data:
            raise UploadRejectedError("Empty file")
        if convert and convert not in CONVERSIONS:
            raise UploadRejectedError(f"Unknown conversion: {convert}")

        extension = Path(original_name).suffix.lower() if original_name and Path(original_name).suffix else ALLOWED_MIME_TYPES[content_type]
        self.uploads_dir.mkdir(parents=True, exist_ok=True)
        stored = self.uploads_dir / self.unique_name(extension)
        await asyncio.to_thread(stored.write_bytes, data)
        mimetype = content_type

        if convert:
            out_extension, mimetype = CONVERSIONS[convert]
            converted = stored.with_name(f"{stored.stem}-{convert}{out_extension}")
            try:
                await self.converter.convert(convert, stored, converted)
            except Exception:
                converted.unlink(missing_ok=True)
                raise
            finally:
                stored.unlink(missing_ok=True)
            stored = converted

        size = stored.stat().st_size
        logger.info(f"Upload stored: {stored.name}", extra={"size": size, "mimetype": mimetype})
        return {
            "success": True,
            "url": f"/uploads/{stored.name}",
            "filename": stored.name,
            "size": size,
            "mimetype": mimetype,
        }

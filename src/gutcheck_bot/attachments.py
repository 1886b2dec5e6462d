"""
Attachment handling for screenshots and documents.

Bytes are sniffed by magic number rather than trusted from the caller, then
turned into Anthropic content blocks for the current user turn.
"""
from __future__ import annotations

import base64
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

PDF_MEDIA_TYPE = "application/pdf"

_SIGNATURES = (
    (b"%PDF", PDF_MEDIA_TYPE),
    (b"\x89PNG", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF8", "image/gif"),
)


class AttachmentError(ValueError):
    """Attachment bytes that cannot be sent to the model."""


@dataclass(frozen=True)
class Attachment:
    data: bytes
    media_type: Optional[str] = None
    ref: Optional[str] = None


def detect_media_type(data: bytes) -> Optional[str]:
    if not data:
        return None
    for magic, media_type in _SIGNATURES:
        if data.startswith(magic):
            return media_type
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return None


def load_attachment(path: Union[str, Path]) -> Attachment:
    p = Path(path)
    try:
        data = p.read_bytes()
    except OSError as e:
        raise AttachmentError(f"Cannot read attachment {p}: {e}") from e
    return Attachment(data=data, media_type=detect_media_type(data), ref=p.name)


def to_content_blocks(attachment: Attachment, text: str) -> List[Dict[str, Any]]:
    """
    One image/document block followed by the user's text.

    Raises AttachmentError for empty bytes or an unrecognised signature.
    """
    if not attachment.data:
        raise AttachmentError("Attachment is empty")

    media_type = detect_media_type(attachment.data)
    if media_type is None:
        raise AttachmentError(f"Unsupported attachment type (declared {attachment.media_type!r})")

    block_type = "document" if media_type == PDF_MEDIA_TYPE else "image"
    blocks: List[Dict[str, Any]] = [
        {
            "type": block_type,
            "source": {
                "type": "base64",
                "media_type": media_type,
                "data": base64.b64encode(attachment.data).decode("ascii"),
            },
        }
    ]
    if text.strip():
        blocks.append({"type": "text", "text": text.strip()})
    return blocks

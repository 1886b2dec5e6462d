from __future__ import annotations

import base64

import pytest

from gutcheck_bot.attachments import (
    Attachment,
    AttachmentError,
    detect_media_type,
    load_attachment,
    to_content_blocks,
)


@pytest.mark.parametrize(
    "data, expected",
    [
        (b"%PDF-1.4", "application/pdf"),
        (b"\x89PNG\r\n\x1a\n", "image/png"),
        (b"\xff\xd8\xff\xe0", "image/jpeg"),
        (b"RIFF\x00\x00\x00\x00WEBPVP8 ", "image/webp"),
        (b"GIF89a", "image/gif"),
        (b"hello", None),
        (b"", None),
    ],
)
def test_detect_media_type(data, expected):
    assert detect_media_type(data) == expected


def test_blocks_for_jpeg():
    data = b"\xff\xd8\xff\xe0rest"
    blocks = to_content_blocks(Attachment(data=data), "  what is this?  ")
    assert blocks[0] == {
        "type": "image",
        "source": {"type": "base64", "media_type": "image/jpeg", "data": base64.b64encode(data).decode("ascii")},
    }
    assert blocks[1] == {"type": "text", "text": "what is this?"}


def test_declared_type_is_not_trusted():
    with pytest.raises(AttachmentError):
        to_content_blocks(Attachment(data=b"plain text", media_type="image/png"), "x")


def test_empty_attachment_raises():
    with pytest.raises(AttachmentError):
        to_content_blocks(Attachment(data=b""), "x")


def test_load_attachment(tmp_path):
    path = tmp_path / "chat.pdf"
    path.write_bytes(b"%PDF-1.7 body")
    att = load_attachment(path)
    assert att.media_type == "application/pdf"
    assert att.ref == "chat.pdf"

    with pytest.raises(AttachmentError):
        load_attachment(tmp_path / "missing.png")

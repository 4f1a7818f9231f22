"""Transport-safe encoding of file contents (UTF-8 text <-> base64)."""
import base64
import binascii

from utils.errors import ValidationError


def encode(text: str) -> str:
    """Encodes text as base64 over its UTF-8 bytes."""
    return base64.b64encode(utf8_bytes(text)).decode("ascii")


def decode(encoded: str) -> str:
    """Decodes base64 back to text. Embedded newlines (as GitHub returns them) are ignored."""
    return to_text(decode_bytes(encoded))


def decode_bytes(encoded: str) -> bytes:
    try:
        return base64.b64decode("".join(encoded.split()), validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError(f"Content is not valid base64: {e}", reason="invalid_encoding") from e


def utf8_bytes(text: str) -> bytes:
    """
    Raises:
        ValidationError: If the text cannot be UTF-8 encoded (lone surrogates).
    """
    try:
        return text.encode("utf-8")
    except UnicodeEncodeError as e:
        raise ValidationError(f"Content is not valid Unicode text: {e.reason}", reason="invalid_encoding") from e


def to_text(data: bytes) -> str:
    """Decodes repository bytes as UTF-8; undecodable sequences become U+FFFD."""
    return data.decode("utf-8", errors="replace")


def byte_length(text: str) -> int:
    """Returns the UTF-8 byte length of the text."""
    return len(utf8_bytes(text))

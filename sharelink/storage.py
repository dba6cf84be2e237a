import base64

from fastapi import UploadFile

CHUNK_SIZE = 1024 * 1024


def read_upload_as_base64(source: UploadFile, *, max_size_bytes: int) -> tuple[str, int]:
    """Read an upload into a base64 text blob, returning ``(content, size)``."""
    chunks = []
    total = 0
    while True:
        chunk = source.file.read(CHUNK_SIZE)
        if not chunk:
            break
        total += len(chunk)
        if total > max_size_bytes:
            raise ValueError("File exceeds max upload size")
        chunks.append(chunk)
    return base64.b64encode(b"".join(chunks)).decode("ascii"), total


def decode_content(content: str) -> bytes:
    return base64.b64decode(content.encode("ascii"))

"""Upload file-name handling.

sanitize_file_name:   display name safe to store and echo back
safe_extension:       lower-case alphanumeric extension
generate_object_name: collision-resistant object name, original name never used in paths
"""
import re
import secrets
import time

MAX_FILE_NAME_LENGTH = 255

_FORBIDDEN_CHARS = re.compile(r'[<>:"|?*\x00-\x1f]')


def sanitize_file_name(file_name: str | None) -> str:
    """Strip path separators, parent references and reserved characters."""
    sanitized = (file_name or "").replace("/", "").replace("\\", "")
    sanitized = sanitized.replace("..", "")
    sanitized = _FORBIDDEN_CHARS.sub("", sanitized).strip()

    if not sanitized or set(sanitized) == {"."}:
        sanitized = "file"

    if len(sanitized) > MAX_FILE_NAME_LENGTH:
        stem, dot, ext = sanitized.rpartition(".")
        if dot and stem and len(ext) < 16:
            sanitized = stem[: MAX_FILE_NAME_LENGTH - len(ext) - 1] + "." + ext
        else:
            sanitized = sanitized[:MAX_FILE_NAME_LENGTH]
    return sanitized


def safe_extension(file_name: str | None) -> str:
    if not file_name or "." not in file_name:
        return ""
    ext = file_name.rsplit(".", 1)[1].lower()
    return re.sub(r"[^a-z0-9]", "", ext)


def generate_object_name(original_name: str | None) -> str:
    """``<epoch-ms>-<random>.<ext>``"""
    ext = safe_extension(original_name)
    stem = f"{int(time.time() * 1000)}-{secrets.token_hex(4)}"
    return f"{stem}.{ext}" if ext else stem

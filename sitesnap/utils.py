# sitesnap/utils.py
import os
from pathlib import Path


def write_artifact(blob: bytes, out_path: Path) -> int:
    """
    Atomically write `blob` to out_path and return the size on disk.

    The data goes to a hidden sibling first and is renamed into place, so
    readers never observe a half-written image.
    """
    if not isinstance(blob, (bytes, bytearray)):
        raise TypeError("Unsupported blob type for screenshot")

    out_path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = out_path.with_name(f".{out_path.name}.part")
    try:
        with open(tmp_path, "wb") as f:
            f.write(blob)
        os.replace(tmp_path, out_path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()
    return out_path.stat().st_size


def remove_quietly(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass


def format_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.2f} MB"

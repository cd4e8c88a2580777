from pathlib import Path
from datetime import datetime, timedelta
from typing import Optional, Tuple
import os
import logging

from app.config import get_settings

logger = logging.getLogger(__name__)


def storage_root() -> Path:
    return Path(get_settings().STORAGE_ROOT_PATH)


def _ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def get_storage_path(brand: str, order_id: str, rma_id: str, subfolder: str, now: Optional[datetime] = None) -> Path:
    """<root>/rma/<brand>/<order>/<rma>/<subfolder>; evidence is further split by year/month."""
    base = storage_root() / "rma" / _safe_segment(brand) / _safe_segment(order_id) / _safe_segment(rma_id) / subfolder
    if subfolder == "evidence":
        now = now or datetime.utcnow()
        return base / f"{now.year:04d}" / f"{now.month:02d}"
    return base


def _safe_segment(value: str) -> str:
    cleaned = "".join(c if c.isalnum() or c in "-_." else "_" for c in str(value))
    if cleaned in ("", ".", ".."):
        return "_"
    return cleaned


def validate_file_name(file_name: Optional[str]) -> bool:
    if not file_name:
        return False
    # Prevent directory traversal
    return ".." not in file_name and "/" not in file_name and "\\" not in file_name


def validate_file_extension(file_name: str, allowed_extensions) -> bool:
    ext = os.path.splitext(file_name)[1].lower().lstrip(".")
    return ext in allowed_extensions


def validate_file_size(size_bytes: int, max_size_mb: int) -> bool:
    return size_bytes <= max_size_mb * 1024 * 1024


def save_evidence_file(brand: str, order_id: str, rma_id: str, file_name: str, data: bytes) -> str:
    """Write an evidence upload and return its absolute path."""
    dst_dir = get_storage_path(brand, order_id, rma_id, "evidence")
    _ensure_dir(dst_dir)
    stamp = datetime.utcnow().strftime("%Y-%m-%dT%H-%M-%S-%f")
    base, ext = os.path.splitext(file_name)
    file_path = dst_dir / f"evidence_{stamp}_{base}{ext.lower()}"
    with file_path.open("wb") as buffer:
        buffer.write(data)
    return str(file_path)


def save_label_file(brand: str, order_id: str, rma_id: str, carrier: str, tracking_number: str, data: bytes) -> str:
    dst_dir = get_storage_path(brand, order_id, rma_id, "labels")
    _ensure_dir(dst_dir)
    file_path = dst_dir / f"label_{_safe_segment(carrier)}_{_safe_segment(tracking_number)}.pdf"
    with file_path.open("wb") as buffer:
        buffer.write(data)
    return str(file_path)


def is_inside_storage(path: Optional[str]) -> bool:
    """Only files under the storage root are ever served or deleted."""
    if not path:
        return False
    try:
        Path(path).resolve().relative_to(storage_root().resolve())
        return True
    except ValueError:
        return False


def delete_expired_files(root: Path, retention_days: int, now: Optional[datetime] = None) -> Tuple[int, int]:
    """Delete files older than the retention window and prune empty directories.

    Returns (deleted_files, deleted_dirs). A missing root is not an error.
    """
    cutoff = (now or datetime.now()) - timedelta(days=retention_days)
    cutoff_ts = cutoff.timestamp()
    deleted_files = 0
    deleted_dirs = 0
    if not root.exists():
        return deleted_files, deleted_dirs

    # Deepest paths first so emptied directories can be removed in the same pass
    for dirpath, dirnames, filenames in os.walk(root, topdown=False):
        current = Path(dirpath)
        for name in filenames:
            file_path = current / name
            try:
                if file_path.stat().st_mtime < cutoff_ts:
                    file_path.unlink()
                    deleted_files += 1
            except OSError as e:
                logger.error("Could not remove %s: %s", file_path, e)
        if current != root:
            try:
                if not any(current.iterdir()):
                    current.rmdir()
                    deleted_dirs += 1
            except OSError as e:
                logger.error("Could not prune %s: %s", current, e)
    return deleted_files, deleted_dirs

# Overview: Bundles generated documents into a single zip archive.

from __future__ import annotations

import os
import zipfile
from typing import Iterable


class ArchiveError(Exception):
    """Raised when an archive cannot be built."""
    pass


def bundle(file_paths: Iterable[str], output_dir: str, archive_name: str) -> str:
    """
    Zip file_paths into output_dir/archive_name at the highest compression level.

    Entries are stored by base name (directories are flattened). Every input
    must exist; this is checked before the archive is opened so a failure
    never leaves a partial archive behind.
    """
    paths = list(file_paths)
    missing = [p for p in paths if not os.path.isfile(p)]
    if missing:
        raise ArchiveError(f"Cannot archive missing files: {', '.join(missing)}")

    os.makedirs(output_dir, exist_ok=True)
    archive_path = os.path.join(output_dir, archive_name)

    try:
        with zipfile.ZipFile(
            archive_path, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9
        ) as zf:
            for path in paths:
                zf.write(path, arcname=os.path.basename(path))
    except OSError as exc:
        raise ArchiveError(f"Cannot write archive {archive_path}: {exc}") from exc

    return archive_path

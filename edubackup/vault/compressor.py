# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
edubackup Compressor - gzip companion files for snapshot artifacts.

Every backup-<ts>.json gets a backup-<ts>.json.gz sibling. The gzip header
carries no file name and a zero mtime, so compressing the same snapshot
twice yields the same bytes.
"""

import asyncio
import gzip
import os
import shutil
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import structlog

from edubackup.exceptions import BackupError

logger = structlog.get_logger()

# Thread pool for blocking file compression
_executor = ThreadPoolExecutor(max_workers=2)

DEFAULT_GZIP_LEVEL = 9
CHUNK_SIZE = 1024 * 1024


async def compress_file(
    source_path: Path,
    dest_path: Path,
    level: int = DEFAULT_GZIP_LEVEL,
) -> int:
    """
    Compress a snapshot file into its .gz sibling.

    The compressed stream is written to a temp file and renamed into
    place, so dest_path either holds a complete stream or does not exist.

    Args:
        source_path: Snapshot artifact to compress
        dest_path: Destination path (usually source_path + ".gz")
        level: gzip compression level (1-9)

    Returns:
        Size of the compressed file in bytes

    Raises:
        BackupError: If reading, compressing, or writing fails
    """
    temp_path = dest_path.with_name(dest_path.name + ".tmp")
    loop = asyncio.get_running_loop()

    try:
        await loop.run_in_executor(
            _executor, _compress_file_sync, source_path, temp_path, level
        )
        temp_path.replace(dest_path)
    except Exception as e:
        temp_path.unlink(missing_ok=True)
        raise BackupError(
            f"Compression failed for {source_path.name}: {e}",
            details={"source": str(source_path), "dest": str(dest_path)},
        )

    compressed_size = dest_path.stat().st_size
    original_size = source_path.stat().st_size
    logger.debug(
        "backup_compressed",
        file=source_path.name,
        original_size=original_size,
        compressed_size=compressed_size,
        compression_ratio=f"{get_compression_ratio(original_size, compressed_size):.2f}x",
    )
    return compressed_size


def _compress_file_sync(source_path: Path, dest_path: Path, level: int) -> None:
    """Synchronous streaming gzip compression."""
    with open(source_path, "rb") as src, open(dest_path, "wb") as raw:
        with gzip.GzipFile(
            filename="", mode="wb", compresslevel=level, fileobj=raw, mtime=0
        ) as gz:
            shutil.copyfileobj(src, gz, CHUNK_SIZE)
        raw.flush()
        os.fsync(raw.fileno())


async def decompress_file(compressed_path: Path) -> bytes:
    """
    Read a .gz artifact and return the original snapshot bytes.

    Raises:
        BackupError: If the file is missing or not a valid gzip stream
    """
    loop = asyncio.get_running_loop()
    try:
        return await loop.run_in_executor(
            _executor, _decompress_file_sync, compressed_path
        )
    except Exception as e:
        raise BackupError(
            f"Decompression failed: {e}",
            details={"path": str(compressed_path)},
        )


def _decompress_file_sync(compressed_path: Path) -> bytes:
    """Synchronous gzip decompression."""
    with gzip.open(compressed_path, "rb") as gz:
        return gz.read()


def get_compression_ratio(original_size: int, compressed_size: int) -> float:
    """Original size divided by compressed size, 0 when nothing was compressed."""
    if compressed_size == 0:
        return 0.0
    return original_size / compressed_size

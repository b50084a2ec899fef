"""Walk the component catalog and read matching files into manifest entries."""
from __future__ import annotations

import base64
import hashlib
import logging
import os
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .catalog import DEFAULT_COMPONENTS, ComponentDef, PathRule
from .types import FileEntry

LOGGER = logging.getLogger("aries.backup.collect")

MAX_FILE_BYTES = 50 * 1024 * 1024

TEXT_EXTENSIONS = frozenset(
    {
        ".json",
        ".js",
        ".md",
        ".txt",
        ".log",
        ".csv",
        ".html",
        ".xml",
        ".yaml",
        ".yml",
        ".ini",
        ".cfg",
        ".env",
        ".bak",
    }
)


def sniff_encoding(data: bytes, rel_path: str) -> str:
    """Return ``utf8`` or ``base64`` for the content stored at *rel_path*.

    Allow-listed text extensions are stored as text whatever their content,
    provided the bytes decode as UTF-8. Anything else, including files with
    no extension at all, is stored as base64.
    """

    ext = os.path.splitext(rel_path)[1].lower()
    if ext not in TEXT_EXTENSIONS:
        return "base64"
    try:
        data.decode("utf-8")
    except UnicodeDecodeError:
        return "base64"
    return "utf8"


def encode_content(data: bytes, encoding: str) -> str:
    if encoding == "base64":
        return base64.b64encode(data).decode("ascii")
    return data.decode("utf-8")


def decode_content(entry: FileEntry) -> bytes:
    if entry.encoding == "base64":
        return base64.b64decode(entry.data.encode("ascii"), validate=True)
    return entry.data.encode("utf-8")


def content_hash(data: bytes) -> str:
    return hashlib.md5(data, usedforsecurity=False).hexdigest()


@dataclass(slots=True)
class CollectionResult:
    files: Dict[str, FileEntry] = field(default_factory=dict)
    skipped: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def file_count(self) -> int:
        return len(self.files)


class Collector:
    """Read the files selected by catalog rules below *working_dir*."""

    def __init__(
        self,
        working_dir: Path,
        *,
        catalog: Optional[Dict[str, ComponentDef]] = None,
        exclude_dir: Optional[Path] = None,
        max_file_bytes: int = MAX_FILE_BYTES,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._working_dir = Path(working_dir)
        self._catalog = catalog if catalog is not None else DEFAULT_COMPONENTS
        self._exclude_dir = Path(exclude_dir).resolve() if exclude_dir is not None else None
        self._max_file_bytes = int(max_file_bytes)
        self._clock = clock

    # ------------------------------------------------------------------
    def collect(self, components: Iterable[str]) -> CollectionResult:
        result = CollectionResult()
        for name in components:
            definition = self._catalog.get(name)
            if definition is None:
                LOGGER.debug("unknown component %s ignored", name)
                continue
            for rule in definition.paths:
                if rule.kind == "file":
                    self._collect_file(result, rule.rel)
                elif rule.kind == "dir":
                    self._collect_dir(result, rule.rel, rule)
        LOGGER.debug("collected %d files, skipped %d", result.file_count, len(result.skipped))
        return result

    # ------------------------------------------------------------------
    def _collect_file(self, result: CollectionResult, rel_path: str) -> None:
        if rel_path in result.files:
            return
        full_path = self._working_dir / rel_path
        try:
            if not full_path.is_file():
                return
            stat = full_path.stat()
            if stat.st_size > self._max_file_bytes:
                result.skipped.append((rel_path, "too_large"))
                return
            data = full_path.read_bytes()
        except OSError as exc:
            result.skipped.append((rel_path, type(exc).__name__))
            return
        encoding = sniff_encoding(data, rel_path)
        result.files[rel_path] = FileEntry(
            size=len(data),
            modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc).isoformat(),
            encoding=encoding,
            data=encode_content(data, encoding),
            hash=content_hash(data),
        )

    def _collect_dir(self, result: CollectionResult, rel_dir: str, rule: PathRule) -> None:
        full_dir = self._working_dir / rel_dir
        try:
            if not full_dir.is_dir():
                return
            children = sorted(os.scandir(full_dir), key=lambda item: item.name)
        except OSError as exc:
            result.skipped.append((rel_dir, type(exc).__name__))
            return
        now = self._clock()
        extensions = tuple(ext.lower() for ext in rule.extensions)
        for child in children:
            rel_path = f"{rel_dir}/{child.name}"
            try:
                rel_path.encode("utf-8")
            except UnicodeEncodeError:
                # undecodable file names cannot be stored in a manifest key
                result.skipped.append((os.fsencode(rel_path).decode("utf-8", "replace"), "undecodable_name"))
                continue
            try:
                is_dir = child.is_dir()
                is_file = child.is_file()
            except OSError:
                continue
            if is_dir:
                if self._exclude_dir is not None and Path(child.path).resolve() == self._exclude_dir:
                    continue
                if rule.recursive:
                    self._collect_dir(result, rel_path, rule)
                continue
            if not is_file:
                continue
            if extensions and os.path.splitext(child.name)[1].lower() not in extensions:
                continue
            if rule.max_age_s:
                try:
                    mtime = child.stat().st_mtime
                except OSError:
                    continue
                if now - mtime > rule.max_age_s:
                    continue
            self._collect_file(result, rel_path)


__all__ = [
    "CollectionResult",
    "Collector",
    "MAX_FILE_BYTES",
    "TEXT_EXTENSIONS",
    "content_hash",
    "decode_content",
    "encode_content",
    "sniff_encoding",
]

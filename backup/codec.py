"""Serialize manifests into compressed ``.aries-backup`` archives and back."""
from __future__ import annotations

import gzip
import json
import zlib
from typing import Any, Dict, Mapping

from .errors import BackupDecodeError
from .types import FileEntry, Manifest, ManifestStats

COMPRESSION_LEVEL = 6


def manifest_to_dict(manifest: Manifest) -> Dict[str, Any]:
    return {
        "version": manifest.version,
        "id": manifest.id,
        "timestamp": manifest.timestamp,
        "label": manifest.label,
        "trigger": manifest.trigger,
        "components": list(manifest.components),
        "files": {
            path: {
                "size": entry.size,
                "modified": entry.modified,
                "encoding": entry.encoding,
                "data": entry.data,
                "hash": entry.hash,
            }
            for path, entry in manifest.files.items()
        },
        "live_state": manifest.live_state,
        "stats": {
            "file_count": manifest.stats.file_count,
            "total_size": manifest.stats.total_size,
            "compressed_size": manifest.stats.compressed_size,
        },
        "integrity": manifest.integrity,
    }


def manifest_from_dict(payload: Mapping[str, Any]) -> Manifest:
    raw_files = payload.get("files") or {}
    if not isinstance(raw_files, Mapping):
        raise BackupDecodeError("archive files section is not a mapping")
    files: Dict[str, FileEntry] = {}
    for path, entry in raw_files.items():
        if not isinstance(entry, Mapping):
            raise BackupDecodeError(f"invalid file entry for {path}")
        encoding = str(entry.get("encoding") or "utf8")
        if encoding not in ("utf8", "base64"):
            raise BackupDecodeError(f"unknown encoding {encoding!r} for {path}")
        files[str(path)] = FileEntry(
            size=int(entry.get("size") or 0),
            modified=str(entry.get("modified") or ""),
            encoding=encoding,
            data=str(entry.get("data") or ""),
            hash=str(entry.get("hash") or ""),
        )
    stats = payload.get("stats") or {}
    live_state = payload.get("live_state")
    if live_state is not None and not isinstance(live_state, dict):
        raise BackupDecodeError("live state is not an object")
    return Manifest(
        version=str(payload["version"]),
        id=str(payload["id"]),
        timestamp=str(payload["timestamp"]),
        label=payload.get("label"),
        trigger=str(payload.get("trigger") or "manual"),
        components=list(payload.get("components") or []),
        files=files,
        live_state=live_state,
        stats=ManifestStats(
            file_count=int(stats.get("file_count") or len(files)),
            total_size=int(stats.get("total_size") or 0),
            compressed_size=int(stats.get("compressed_size") or 0),
        ),
        integrity=str(payload.get("integrity") or ""),
    )


def serialize_manifest(manifest: Manifest) -> bytes:
    return json.dumps(manifest_to_dict(manifest), sort_keys=True, ensure_ascii=False).encode("utf-8")


def encode(manifest: Manifest) -> bytes:
    # mtime=0 keeps the gzip header, and so the archive bytes, reproducible
    return gzip.compress(serialize_manifest(manifest), compresslevel=COMPRESSION_LEVEL, mtime=0)


def decode(blob: bytes) -> Manifest:
    try:
        raw = gzip.decompress(blob)
        payload = json.loads(raw.decode("utf-8"))
    except (OSError, EOFError, zlib.error, UnicodeDecodeError, ValueError) as exc:
        raise BackupDecodeError(f"archive unreadable/corrupt: {exc}") from exc
    if not isinstance(payload, dict):
        raise BackupDecodeError("archive unreadable/corrupt: manifest is not an object")
    try:
        return manifest_from_dict(payload)
    except (KeyError, TypeError, ValueError) as exc:
        raise BackupDecodeError(f"archive unreadable/corrupt: {exc}") from exc


__all__ = [
    "COMPRESSION_LEVEL",
    "decode",
    "encode",
    "manifest_from_dict",
    "manifest_to_dict",
    "serialize_manifest",
]

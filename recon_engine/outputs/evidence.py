# Docstring for recon_engine/outputs/evidence module
"""
evidence.py

Evidence bundle writer and verifier.

Writes the JSON Lines artifacts, hashes them into a manifest and checks a
manifest against the files on disk later.

Design goals
------------
- Byte stability: compact JSON, UTF-8 without ASCII escaping, '\\n' line
  endings, key order fixed by the model's to_dict().
- Durability: every artifact is flushed and fsync'd before its handle is
  closed, and the manifest is only built from files that are complete.
- Portability: manifest paths are relative POSIX paths, sorted.

Public API
----------
- write_jsonl(path, items) -> Path
- write_json_document(path, payload) -> Path
- sha256_file(path) -> str
- build_manifest(output_dir, relative_paths) -> EvidenceManifest
- write_manifest(output_dir, manifest) -> Path
- verify_manifest(output_dir) -> VerificationResult
"""

from __future__ import annotations

import hashlib
import json
import os
from pathlib import Path, PurePosixPath
from typing import Any, Iterable

from ..config import MANIFEST_GENERATED_AT, MANIFEST_PATH, SCHEMA_VERSION, TOOL_VERSION
from ..core.models import EvidenceManifest, ManifestFile, VerificationResult

_HASH_CHUNK_SIZE = 8192


def _ensure_parent_dir(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def _write_durable(path: Path, text: str) -> Path:
    _ensure_parent_dir(path)
    with path.open("w", encoding="utf-8", newline="\n") as handle:
        handle.write(text)
        handle.flush()
        os.fsync(handle.fileno())
    return path


def _to_payload(item: Any) -> Any:
    return item.to_dict() if hasattr(item, "to_dict") else item


def write_jsonl(path: str | Path, items: Iterable[Any]) -> Path:
    """Write one compact JSON object per line, in the order given."""
    lines = [
        json.dumps(_to_payload(item), ensure_ascii=False, separators=(",", ":")) + "\n"
        for item in items
    ]
    return _write_durable(Path(path), "".join(lines))


def write_json_document(path: str | Path, payload: Any) -> Path:
    """Write an indented JSON document terminated by a newline."""
    text = json.dumps(_to_payload(payload), ensure_ascii=False, indent=2) + "\n"
    return _write_durable(Path(path), text)


def sha256_file(path: str | Path) -> str:
    """Compute SHA-256 of an entire file (binary)."""
    h = hashlib.sha256()
    with Path(path).open("rb") as f:
        for chunk in iter(lambda: f.read(_HASH_CHUNK_SIZE), b""):
            h.update(chunk)
    return h.hexdigest()


def build_manifest(output_dir: str | Path, relative_paths: Iterable[PurePosixPath | str]) -> EvidenceManifest:
    """
    Hash and size every listed artifact; entries are sorted by path.

    Raises OSError if an artifact does not exist.
    """
    root = Path(output_dir)
    entries = []
    for rel in relative_paths:
        rel_path = PurePosixPath(rel)
        absolute = root.joinpath(*rel_path.parts)
        entries.append(
            ManifestFile(
                path=rel_path.as_posix(),
                sha256=sha256_file(absolute),
                bytes=absolute.stat().st_size,
            )
        )
    entries.sort(key=lambda entry: entry.path)
    return EvidenceManifest(
        generated_at=MANIFEST_GENERATED_AT,
        tool_version=TOOL_VERSION,
        schema_version=SCHEMA_VERSION,
        files=tuple(entries),
    )


def write_manifest(output_dir: str | Path, manifest: EvidenceManifest) -> Path:
    return write_json_document(Path(output_dir).joinpath(*MANIFEST_PATH.parts), manifest)


def verify_manifest(output_dir: str | Path) -> VerificationResult:
    """
    Re-hash every file listed in evidence/manifest.json under output_dir.

    Tampering is reported, never raised: the result carries one error string
    per problem found.
    """
    root = Path(output_dir).resolve()
    manifest_file = root.joinpath(*MANIFEST_PATH.parts)
    errors: list[str] = []

    try:
        manifest = json.loads(manifest_file.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return VerificationResult(ok=False, errors=[f"missing manifest: {MANIFEST_PATH.as_posix()}"])
    except (OSError, ValueError) as exc:
        return VerificationResult(ok=False, errors=[f"manifest json invalid: {exc}"])

    if not isinstance(manifest, dict):
        return VerificationResult(ok=False, errors=["manifest json invalid: expected an object"])

    for field_name in ("tool_version", "schema_version"):
        if not manifest.get(field_name):
            errors.append(f"{field_name} must be present")

    files = manifest.get("files")
    if not isinstance(files, list):
        errors.append("files must be a list")
        files = []

    paths = [str(entry.get("path", "")) for entry in files if isinstance(entry, dict)]
    if paths != sorted(paths):
        errors.append("manifest entries are not sorted by path")

    for entry in files:
        if not isinstance(entry, dict):
            errors.append(f"invalid manifest entry: {entry!r}")
            continue
        errors.extend(_verify_entry(root, entry))

    return VerificationResult(ok=not errors, errors=errors)


def _verify_entry(root: Path, entry: dict[str, Any]) -> list[str]:
    rel = str(entry.get("path", ""))
    rel_path = PurePosixPath(rel)
    if not rel or rel_path.is_absolute() or ".." in rel_path.parts:
        return [f"invalid path in manifest: {rel!r}"]

    target = root.joinpath(*rel_path.parts)
    if not target.is_file():
        return [f"missing file: {rel}"]

    problems = []
    actual_size = target.stat().st_size
    if actual_size != entry.get("bytes"):
        problems.append(f"size mismatch for {rel}: expected {entry.get('bytes')}, got {actual_size}")
    actual_hash = sha256_file(target)
    if actual_hash != entry.get("sha256"):
        problems.append(f"hash mismatch for {rel}: expected {entry.get('sha256')}, got {actual_hash}")
    return problems

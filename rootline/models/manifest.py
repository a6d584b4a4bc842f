"""Manifest models — the path→object map published on every push.

A published manifest is an immutable content object.  Its ``previous_root``
field links it to the manifest it replaced, so every root is the head of an
append-only, tamper-evident history.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from pathlib import PurePosixPath
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from rootline.core.cid import ContentId
from rootline.core.hasher import canonical_json_bytes

MANIFEST_FORMAT_VERSION = 1


def normalize_path(path: str) -> str:
    """Return the canonical relative POSIX form of a manifest path.

    Rejects absolute paths, empty paths and anything that escapes the
    working directory.
    """
    candidate = PurePosixPath(path.replace("\\", "/"))
    if candidate.is_absolute():
        raise ValueError(f"manifest paths must be relative: {path!r}")
    parts = [p for p in candidate.parts if p != "."]
    if not parts:
        raise ValueError("manifest path is empty")
    if ".." in parts:
        raise ValueError(f"manifest path escapes the working directory: {path!r}")
    return "/".join(parts)


class ManifestObject(BaseModel):
    """A single manifest entry: where the content lives locally and its CID."""

    model_config = ConfigDict(frozen=True)

    path: str
    cid: ContentId
    size_bytes: int = 0
    metadata: dict[str, Any] = {}

    @field_validator("path")
    @classmethod
    def _check_path(cls, value: str) -> str:
        return normalize_path(value)


class Manifest(BaseModel):
    """Ordered mapping of relative path to object, plus the history link.

    Instances are frozen; the ``with_*`` methods return modified copies.
    """

    model_config = ConfigDict(frozen=True)

    format_version: int = MANIFEST_FORMAT_VERSION
    objects: dict[str, ManifestObject] = {}
    previous_root: ContentId | None = None

    @model_validator(mode="after")
    def _check_keys(self) -> Manifest:
        for key, obj in self.objects.items():
            if key != obj.path:
                raise ValueError(
                    f"manifest key {key!r} does not match object path {obj.path!r}"
                )
        return self

    # ------------------------------------------------------------------
    # Iteration
    # ------------------------------------------------------------------

    def entries(self) -> Iterator[tuple[str, ManifestObject]]:
        """Yield ``(path, object)`` pairs in path order."""
        for path in sorted(self.objects):
            yield path, self.objects[path]

    def get(self, path: str) -> ManifestObject | None:
        return self.objects.get(normalize_path(path))

    # ------------------------------------------------------------------
    # Copy-on-write updates
    # ------------------------------------------------------------------

    def with_previous_root(self, root: ContentId | None) -> Manifest:
        """Chain this manifest onto *root*."""
        return self.model_copy(update={"previous_root": root})

    def with_object(self, obj: ManifestObject) -> Manifest:
        objects = dict(self.objects)
        objects[obj.path] = obj
        return self.model_copy(update={"objects": dict(sorted(objects.items()))})

    def without_path(self, path: str) -> Manifest:
        key = normalize_path(path)
        if key not in self.objects:
            raise KeyError(key)
        objects = {k: v for k, v in self.objects.items() if k != key}
        return self.model_copy(update={"objects": objects})

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_bytes(self) -> bytes:
        """Deterministic serialization; equal manifests give equal bytes."""
        return canonical_json_bytes(self.model_dump(mode="json"))

    @classmethod
    def from_bytes(cls, data: bytes) -> Manifest:
        return cls.model_validate(json.loads(data))

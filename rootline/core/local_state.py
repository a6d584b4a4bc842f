"""Local durable state of a working directory.

Layout: ``{working_dir}/{state_dir}/root`` (CID text, absent before the first
push) and ``{working_dir}/{state_dir}/manifest.json``.

Both files are replaced atomically (write to a temp file in the same
directory, fsync, ``os.replace``).  Single writer per working directory.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from rootline.core.cid import CidError, ContentId
from rootline.errors import LocalStateError
from rootline.models.manifest import Manifest, normalize_path

logger = logging.getLogger(__name__)

DEFAULT_STATE_DIR = ".rootline"
ROOT_FILE = "root"
MANIFEST_FILE = "manifest.json"


def _atomic_write(path: Path, data: bytes) -> None:
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


class LocalState:
    """Root pointer cache and manifest of one working directory.

    Parameters
    ----------
    working_dir:
        Directory whose files the manifest paths are relative to.
    state_dir:
        Name of the state directory inside *working_dir*.
    """

    def __init__(self, working_dir: Path, state_dir: str = DEFAULT_STATE_DIR) -> None:
        self._working_dir = Path(working_dir)
        self._state_dir = self._working_dir / state_dir

    @property
    def working_dir(self) -> Path:
        return self._working_dir

    @property
    def state_dir(self) -> Path:
        return self._state_dir

    @property
    def root_path(self) -> Path:
        return self._state_dir / ROOT_FILE

    @property
    def manifest_path(self) -> Path:
        return self._state_dir / MANIFEST_FILE

    def is_initialized(self) -> bool:
        return self.manifest_path.exists()

    def init(self) -> bool:
        """Create the state directory with an empty manifest.

        Returns ``False`` if it was already initialized.
        """
        if self.is_initialized():
            return False
        self._state_dir.mkdir(parents=True, exist_ok=True)
        self.save_manifest(Manifest())
        logger.info("Initialized rootline state in %s", self._state_dir)
        return True

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------

    def load_root(self) -> ContentId | None:
        """Return the last root this writer saw committed, or None."""
        try:
            text = self.root_path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise LocalStateError(f"cannot read {self.root_path}: {exc}") from exc
        if not text:
            return None
        try:
            return ContentId.parse(text)
        except CidError as exc:
            raise LocalStateError(f"corrupt root pointer in {self.root_path}: {exc}") from exc

    def load_manifest(self) -> Manifest:
        try:
            data = self.manifest_path.read_bytes()
        except FileNotFoundError:
            raise LocalStateError(
                f"{self._working_dir} is not initialized (no {self.manifest_path})"
            ) from None
        except OSError as exc:
            raise LocalStateError(f"cannot read {self.manifest_path}: {exc}") from exc
        try:
            return Manifest.from_bytes(data)
        except (ValueError, ValidationError) as exc:
            raise LocalStateError(f"corrupt manifest {self.manifest_path}: {exc}") from exc

    # ------------------------------------------------------------------
    # Save
    # ------------------------------------------------------------------

    def save_root(self, root: ContentId) -> None:
        self._write(self.root_path, f"{root}\n".encode("ascii"))

    def save_manifest(self, manifest: Manifest) -> None:
        # Pretty-printed locally; the published form is canonical JSON.
        self._write(self.manifest_path, manifest.model_dump_json(indent=2).encode("utf-8"))

    def commit(self, root: ContentId, manifest: Manifest) -> None:
        """Persist a root the registry has already confirmed.

        The manifest goes first: a crash in between leaves the old root with
        a manifest whose ``previous_root`` is overwritten on the next push.
        """
        self.save_manifest(manifest)
        self.save_root(root)
        logger.debug("Committed local root %s", root)

    def _write(self, path: Path, data: bytes) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            _atomic_write(path, data)
        except OSError as exc:
            raise LocalStateError(f"cannot write {path}: {exc}") from exc

    # ------------------------------------------------------------------
    # Working-directory files
    # ------------------------------------------------------------------

    def relative_path(self, path: Path) -> str:
        """Manifest path of *path* (absolute or relative to the cwd)."""
        resolved = Path(path).resolve()
        try:
            rel = resolved.relative_to(self._working_dir.resolve())
        except ValueError:
            raise LocalStateError(f"{path} is outside {self._working_dir}") from None
        return normalize_path(rel.as_posix())

    def read_object(self, path: str) -> bytes:
        """Read the bytes of a manifest entry from the working directory."""
        target = self._working_dir / normalize_path(path)
        try:
            return target.read_bytes()
        except OSError as exc:
            raise LocalStateError(f"cannot read {target}: {exc}") from exc

    def __repr__(self) -> str:
        return f"LocalState(working_dir={str(self._working_dir)!r})"

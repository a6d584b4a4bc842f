"""Unit tests for the manifest model and its canonical serialization."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from rootline.core.cid import compute_cid
from rootline.models.manifest import Manifest, ManifestObject, normalize_path


def _obj(path: str, data: bytes) -> ManifestObject:
    return ManifestObject(path=path, cid=compute_cid(data), size_bytes=len(data))


class TestNormalizePath:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("a.txt", "a.txt"),
            ("./docs/b.md", "docs/b.md"),
            ("docs\\b.md", "docs/b.md"),
            ("docs//b.md", "docs/b.md"),
        ],
    )
    def test_normalizes(self, raw, expected):
        assert normalize_path(raw) == expected

    @pytest.mark.parametrize("raw", ["/etc/passwd", "../outside", "a/../../b", "", "."])
    def test_rejects(self, raw):
        with pytest.raises(ValueError):
            normalize_path(raw)


class TestManifestObject:
    def test_path_normalized_on_construction(self):
        assert _obj("./x/y", b"1").path == "x/y"

    def test_escaping_path_is_validation_error(self):
        with pytest.raises(ValidationError):
            _obj("../x", b"1")


class TestManifest:
    """Manifests are frozen, ordered and deterministic."""

    def test_empty_manifest(self):
        manifest = Manifest()
        assert manifest.objects == {}
        assert manifest.previous_root is None
        assert list(manifest.entries()) == []

    def test_entries_sorted_by_path(self):
        manifest = Manifest().with_object(_obj("z", b"z")).with_object(_obj("a", b"a"))
        assert [path for path, _ in manifest.entries()] == ["a", "z"]

    def test_insertion_order_does_not_change_bytes(self):
        one = Manifest().with_object(_obj("z", b"z")).with_object(_obj("a", b"a"))
        two = Manifest().with_object(_obj("a", b"a")).with_object(_obj("z", b"z"))
        assert one.to_bytes() == two.to_bytes()
        assert compute_cid(one.to_bytes()) == compute_cid(two.to_bytes())

    def test_to_bytes_is_compact_sorted_json(self):
        data = Manifest().with_object(_obj("a", b"a")).to_bytes()
        assert b" " not in data
        assert data.startswith(b'{"format_version":1,"objects":{"a":')

    def test_from_bytes_restores_equal_manifest(self):
        manifest = Manifest().with_object(_obj("a", b"a"))
        manifest = manifest.with_previous_root(compute_cid(b"prev"))
        assert Manifest.from_bytes(manifest.to_bytes()) == manifest

    def test_with_object_replaces_existing_path(self):
        manifest = Manifest().with_object(_obj("a", b"1")).with_object(_obj("a", b"2"))
        assert manifest.get("a").cid == compute_cid(b"2")
        assert len(manifest.objects) == 1

    def test_with_object_leaves_original_untouched(self):
        original = Manifest()
        original.with_object(_obj("a", b"a"))
        assert original.objects == {}

    def test_with_previous_root_changes_bytes(self):
        manifest = Manifest().with_object(_obj("a", b"a"))
        chained = manifest.with_previous_root(compute_cid(b"prev"))
        assert chained.to_bytes() != manifest.to_bytes()

    def test_without_path(self):
        manifest = Manifest().with_object(_obj("a", b"a")).with_object(_obj("b", b"b"))
        assert list(manifest.without_path("a").objects) == ["b"]

    def test_without_unknown_path_raises_keyerror(self):
        with pytest.raises(KeyError):
            Manifest().without_path("missing")

    def test_get_normalizes(self):
        manifest = Manifest().with_object(_obj("docs/b", b"b"))
        assert manifest.get("./docs/b") is not None
        assert manifest.get("nope") is None

    def test_key_must_match_object_path(self):
        with pytest.raises(ValidationError, match="does not match"):
            Manifest(objects={"a": _obj("b", b"b")})

    def test_frozen(self):
        with pytest.raises(ValidationError):
            Manifest().previous_root = compute_cid(b"x")

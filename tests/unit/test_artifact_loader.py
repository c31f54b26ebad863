"""Tests for load_artifact_set — build directory to ArtifactSet."""

from __future__ import annotations

import pytest

from sitedeploy.core.artifact_loader import DEFAULT_EXCLUDES, is_excluded, load_artifact_set
from sitedeploy.core.hasher import content_address
from sitedeploy.models.artifacts import PlanConflictError


@pytest.fixture
def build_dir(tmp_dir):
    root = tmp_dir / "dist"
    (root / "assets").mkdir(parents=True)
    (root / "index.html").write_text("<h1>home</h1>")
    (root / "assets" / "app.js").write_text("run()")
    (root / "assets" / ".DS_Store").write_bytes(b"\x00")
    return root


class TestLoadArtifactSet:
    def test_loads_sorted_relative_paths(self, build_dir):
        artifacts = load_artifact_set(build_dir, build_id="b1")
        assert artifacts.paths == ["assets/app.js", "index.html"]
        assert artifacts.build_id == "b1"

    def test_hashes_are_content_addresses(self, build_dir):
        artifact = load_artifact_set(build_dir).get("index.html")
        assert artifact.content_hash == content_address(b"<h1>home</h1>")
        assert artifact.content_hash.startswith("sha256:")

    def test_content_types_guessed(self, build_dir):
        artifacts = load_artifact_set(build_dir)
        assert artifacts.get("index.html").content_type == "text/html"

    def test_default_excludes(self, build_dir):
        assert "assets/.DS_Store" not in load_artifact_set(build_dir)

    def test_custom_excludes(self, build_dir):
        artifacts = load_artifact_set(build_dir, exclude=("*.js",))
        assert artifacts.paths == ["assets/.DS_Store", "index.html"]

    def test_missing_directory(self, tmp_dir):
        with pytest.raises(PlanConflictError, match="not found"):
            load_artifact_set(tmp_dir / "nope")


class TestIsExcluded:
    @pytest.mark.parametrize("path", [".git/config", "sub/.git/HEAD", ".DS_Store", "a/b.pyc"])
    def test_excluded(self, path):
        assert is_excluded(path, DEFAULT_EXCLUDES)

    def test_regular_file_kept(self):
        assert not is_excluded("assets/app.js", DEFAULT_EXCLUDES)

"""Tests for release discovery and release-level diffing."""

from __future__ import annotations

from pathlib import Path

import pytest

from appupgen.core.release import (
    ReleaseError,
    app_ebin_dir,
    current_release,
    current_version,
    deduce_previous_version,
    diff_releases,
    existing_appups,
    load_release,
    release_versions,
    source_ebin_dir,
    version_key,
)
from appupgen.models.release import AppChange, AppChangeKind, ReleaseInfo


def write_rel(rel_path: Path, name: str, version: str, apps: dict[str, str]) -> Path:
    path = rel_path / "releases" / version / f"{name}.rel"
    path.parent.mkdir(parents=True, exist_ok=True)
    app_terms = ",\n  ".join(f'{{{app}, "{vsn}"}}' for app, vsn in apps.items())
    path.write_text(
        f'{{release, {{"{name}", "{version}"}}, {{erts, "14.2"}},\n [{app_terms}]}}.\n',
        encoding="utf-8",
    )
    return path


class TestVersions:
    def test_version_key_orders_numerically(self):
        assert sorted(["1.0.10", "1.0.9", "1.0.9-rc1"], key=version_key) == [
            "1.0.9",
            "1.0.9-rc1",
            "1.0.10",
        ]

    def test_release_versions(self, tmp_path):
        write_rel(tmp_path, "relapp", "1.0.10", {})
        write_rel(tmp_path, "relapp", "1.0.9", {})
        (tmp_path / "releases" / "1.0.11").mkdir()
        assert release_versions("relapp", tmp_path) == ["1.0.9", "1.0.10"]
        assert release_versions("relapp", tmp_path / "nowhere") == []

    def test_current_version_prefers_start_erl(self, tmp_path):
        write_rel(tmp_path, "relapp", "1.0.1", {})
        write_rel(tmp_path, "relapp", "1.0.2", {})
        assert current_version("relapp", tmp_path) == "1.0.2"
        (tmp_path / "releases" / "start_erl.data").write_text("14.2 1.0.1\n")
        assert current_version("relapp", tmp_path) == "1.0.1"

    def test_current_version_missing(self, tmp_path):
        with pytest.raises(ReleaseError, match="No release"):
            current_version("relapp", tmp_path)


class TestLoadRelease:
    def test_parses_rel_file(self, tmp_path):
        path = write_rel(tmp_path, "relapp", "1.0.34", {"kernel": "9.2", "relapp": "1.0.34"})
        info = load_release("relapp", "1.0.34", tmp_path)
        assert info == ReleaseInfo(
            name="relapp",
            version="1.0.34",
            erts_version="14.2",
            applications={"kernel": "9.2", "relapp": "1.0.34"},
            path=path,
        )

    def test_current_release(self, tmp_path):
        write_rel(tmp_path, "relapp", "1.0.0", {"relapp": "1.0.0"})
        assert current_release("relapp", tmp_path).version == "1.0.0"

    def test_start_type_entries(self, tmp_path):
        path = tmp_path / "releases" / "1.0" / "r.rel"
        path.parent.mkdir(parents=True)
        path.write_text('{release, {"r", "1.0"}, {erts, "14"}, [{mnesia, "4.0", load}]}.')
        assert load_release("r", "1.0", tmp_path).applications == {"mnesia": "4.0"}

    @pytest.mark.parametrize(
        "text",
        ["{release, oops}.", '{release, {"r", "1.0"}, {erts, "14"}, [{mnesia}]}.', "{release"],
    )
    def test_malformed(self, tmp_path, text):
        path = tmp_path / "releases" / "1.0" / "r.rel"
        path.parent.mkdir(parents=True)
        path.write_text(text)
        with pytest.raises(ReleaseError):
            load_release("r", "1.0", tmp_path)

    def test_missing(self, tmp_path):
        with pytest.raises(ReleaseError, match="Cannot read"):
            load_release("r", "1.0", tmp_path)


class TestDeducePreviousVersion:
    def test_separate_path_single_version(self, tmp_path):
        current, previous = tmp_path / "cur", tmp_path / "prev"
        write_rel(current, "r", "1.1", {})
        write_rel(previous, "r", "1.0", {})
        assert deduce_previous_version("r", "1.1", current, previous) == "1.0"

    def test_separate_path_empty(self, tmp_path):
        with pytest.raises(ReleaseError, match="No release"):
            deduce_previous_version("r", "1.1", tmp_path / "cur", tmp_path / "prev")

    def test_separate_path_ambiguous(self, tmp_path):
        previous = tmp_path / "prev"
        write_rel(previous, "r", "1.0", {})
        write_rel(previous, "r", "0.9", {})
        with pytest.raises(ReleaseError, match="--previous-version"):
            deduce_previous_version("r", "1.1", tmp_path / "cur", previous)

    def test_shared_path_two_versions(self, tmp_path):
        write_rel(tmp_path, "r", "1.0", {})
        write_rel(tmp_path, "r", "1.1", {})
        assert deduce_previous_version("r", "1.1", tmp_path, tmp_path) == "1.0"

    def test_shared_path_one_version(self, tmp_path):
        write_rel(tmp_path, "r", "1.1", {})
        with pytest.raises(ReleaseError, match="expecting at least 2"):
            deduce_previous_version("r", "1.1", tmp_path, tmp_path)

    def test_shared_path_three_versions(self, tmp_path):
        for version in ("1.0", "1.1", "1.2"):
            write_rel(tmp_path, "r", version, {})
        with pytest.raises(ReleaseError, match="More than one candidate"):
            deduce_previous_version("r", "1.2", tmp_path, tmp_path)


class TestDiffReleases:
    def test_added_upgraded_removed(self):
        old = ReleaseInfo(
            name="r", version="1", applications={"kernel": "9.1", "a": "1.0", "b": "1.0", "c": "1.0"}
        )
        new = ReleaseInfo(
            name="r", version="2", applications={"kernel": "9.2", "a": "1.1", "b": "1.0", "d": "0.1"}
        )
        diff = diff_releases(old, new, platform_apps={"kernel"})
        assert diff.added == [AppChange(kind=AppChangeKind.ADDED, application="d", new_version="0.1")]
        assert diff.upgraded == [
            AppChange(kind=AppChangeKind.UPGRADED, application="a", old_version="1.0", new_version="1.1")
        ]
        assert diff.removed == [
            AppChange(kind=AppChangeKind.REMOVED, application="c", old_version="1.0")
        ]
        assert [c.application for c in diff.changes] == ["d", "a", "c"]

    def test_without_keeps_removed(self):
        old = ReleaseInfo(name="r", version="1", applications={"a": "1", "c": "1"})
        new = ReleaseInfo(name="r", version="2", applications={"a": "2", "d": "1"})
        diff = diff_releases(old, new).without({"a", "d", "c"})
        assert [c.application for c in diff.changes] == ["c"]


class TestLayout:
    def test_app_ebin_dir(self, tmp_path):
        assert app_ebin_dir(tmp_path, "relapp", "1.0") == tmp_path / "lib" / "relapp-1.0" / "ebin"

    def test_existing_appups(self, tmp_path):
        ebin = tmp_path / "lib" / "relapp-1.0" / "ebin"
        ebin.mkdir(parents=True)
        (ebin / "relapp.appup").write_text("")
        (ebin / "relapp.app").write_text("")
        assert existing_appups(tmp_path) == {"relapp"}
        assert existing_appups(tmp_path / "none") == set()

    def test_source_ebin_dir_search_order(self, tmp_path):
        build, checkouts = tmp_path / "_build", tmp_path / "_checkouts"
        assert source_ebin_dir("a", build, checkouts) is None
        (checkouts / "a" / "ebin").mkdir(parents=True)
        assert source_ebin_dir("a", build, checkouts) == checkouts / "a" / "ebin"
        (build / "lib" / "a" / "ebin").mkdir(parents=True)
        assert source_ebin_dir("a", build, checkouts) == build / "lib" / "a" / "ebin"
        (build / "deps" / "a" / "ebin").mkdir(parents=True)
        assert source_ebin_dir("a", build, checkouts) == build / "deps" / "a" / "ebin"

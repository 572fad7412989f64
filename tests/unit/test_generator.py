"""Tests for InstructionGenerator."""

from __future__ import annotations

import pytest

from appupgen.core.directory_differ import diff_directories
from appupgen.core.generator import InstructionGenerator
from appupgen.core.roles import UnresolvedRoleError
from appupgen.models.instructions import (
    AddApplication,
    AddModule,
    DeleteModule,
    LoadModule,
    RemoveApplication,
    UpdateStateHolder,
    UpdateSupervisor,
)
from appupgen.models.purge import PurgeMethod, PurgePolicy, PurgeTable


@pytest.fixture
def app_diff(ebin_dirs, write_module):
    old, new = ebin_dirs
    # unchanged
    write_module(old, "same")
    write_module(new, "same")
    # changed: plain, state holder, supervisor
    write_module(old, "util", code=b"v1")
    write_module(new, "util", code=b"v2", imports=[("fresh", "go", 0), ("lists", "map", 2)])
    write_module(old, "srv", code=b"v1", attributes={"behaviour": ["gen_server"]})
    write_module(
        new,
        "srv",
        code=b"v2",
        attributes={"behaviour": ["gen_server"]},
        exports=[("init", 1), ("code_change", 3)],
        imports=[("util", "f", 0)],
    )
    write_module(old, "top_sup", code=b"v1", attributes={"behaviour": ["supervisor"]})
    write_module(new, "top_sup", code=b"v2", attributes={"behaviour": ["supervisor"]})
    # added and deleted
    write_module(new, "fresh", imports=[("util", "f", 0)])
    write_module(old, "gone")
    write_module(old, "also_gone")
    return diff_directories(old, new)


class TestGenerate:
    def test_order_added_changed_deleted(self, app_diff):
        steps = InstructionGenerator().generate(app_diff)
        assert [type(s) for s in steps] == [
            AddModule,
            UpdateStateHolder,
            UpdateSupervisor,
            LoadModule,
            DeleteModule,
            DeleteModule,
        ]
        assert [s.module for s in steps[-2:]] == ["also_gone", "gone"]

    def test_dependencies_limited_to_touched_modules(self, app_diff):
        steps = {s.module: s for s in InstructionGenerator().generate(app_diff)}
        assert steps["fresh"].deps == ["util"]
        assert steps["util"].deps == ["fresh"]
        assert steps["srv"].deps == ["util"]

    def test_unchanged_modules_emit_nothing(self, app_diff):
        modules = [s.module for s in InstructionGenerator().generate(app_diff)]
        assert "same" not in modules

    def test_purge_policy_applied(self, app_diff):
        table = PurgeTable(
            default=PurgePolicy(pre=PurgeMethod.SOFT, post=PurgeMethod.SOFT),
            modules={"srv": PurgePolicy(pre=PurgeMethod.BRUTAL, post=PurgeMethod.SOFT)},
        )
        steps = {s.module: s for s in InstructionGenerator(table).generate(app_diff)}
        assert (steps["util"].pre_purge, steps["util"].post_purge) == (
            PurgeMethod.SOFT,
            PurgeMethod.SOFT,
        )
        assert (steps["srv"].pre_purge, steps["srv"].post_purge) == (
            PurgeMethod.BRUTAL,
            PurgeMethod.SOFT,
        )

    def test_empty_diff(self, ebin_dirs):
        assert InstructionGenerator().generate(diff_directories(*ebin_dirs)) == []


class TestChanged:
    def test_unresolved_roles_strict(self, ebin_dirs, write_module):
        old, new = ebin_dirs
        write_module(old, "odd", code=b"v1")
        write_module(new, "odd", code=b"v2", attributes={"behaviour": ["gen_server", "gen_event"]})
        diff = diff_directories(old, new)
        with pytest.raises(UnresolvedRoleError):
            InstructionGenerator().generate(diff)
        [step] = InstructionGenerator(strict_roles=False).generate(diff)
        assert isinstance(step, LoadModule)

    def test_application_supervisor_module(self, ebin_dirs, write_module):
        old, new = ebin_dirs
        write_module(old, "app_sup", code=b"v1")
        write_module(
            new, "app_sup", code=b"v2", attributes={"behaviour": ["application", "supervisor"]}
        )
        [step] = InstructionGenerator().generate(diff_directories(old, new))
        assert step == UpdateSupervisor(module="app_sup")


def test_application_level_instructions():
    assert InstructionGenerator.application_added("web") == [AddApplication(application="web")]
    assert InstructionGenerator.application_removed("web") == [
        RemoveApplication(application="web")
    ]

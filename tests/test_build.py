"""Tests for the libpacker build orchestration.

These tests drive the Builder end to end against a fake build engine that
records every invocation and writes stub artifacts.
"""

from __future__ import annotations

import json
import pathlib
from unittest import mock

import pytest

from libpacker.build.builder import (
    Builder,
    BuildReport,
    derive_target_config,
    get_base_config,
)
from libpacker.build.config import ProjectConfig
from libpacker.build.essentials import EssentialsCopier
from libpacker.build.targets import ES5_FLATTENED, ESNEXT_FLATTENED, FLAT, FLAT_MINIFIED
from libpacker.utils.exceptions import BuildError, CopyError

ALL_TARGETS = {"compiler": {"build": {"bundleMin": True, "es5": True, "esnext": True}}}


def make_builder(project_dir, package, engine, data=None) -> Builder:
    return Builder(ProjectConfig.from_dict(data or {}), package, engine, project_dir=project_dir)


def read_files(root: pathlib.Path):
    return {
        path.relative_to(root).as_posix(): path.read_bytes()
        for path in sorted(root.rglob("*"))
        if path.is_file()
    }


class TestBundle:
    """Tests for building the enabled targets."""

    @pytest.mark.asyncio
    async def test_flat_only(self, project_dir, package, engine):
        """Only the flat bundle is built when every flag is off."""
        data = {"compiler": {"build": {"bundleMin": False, "es5": False, "esnext": False}}}
        builder = make_builder(project_dir, package, engine, data)

        report = await builder.bundle()

        assert [outcome.label for outcome in report.outcomes] == ["FLAT"]
        assert report.succeeded
        assert engine.labels == ["FLAT"]
        assert report.artifacts == [project_dir / "dist" / "bundle" / "sample-lib.js"]

    @pytest.mark.asyncio
    async def test_default_targets(self, project_dir, package, engine):
        """Defaults build the flat, minified and ESNext targets."""
        builder = make_builder(project_dir, package, engine)

        report = await builder.bundle()

        assert engine.labels == ["FLAT", "FLAT MIN", "ESNEXT"]
        assert report.succeeded
        assert (project_dir / "dist" / "bundle" / "sample-lib.min.js").is_file()
        assert (project_dir / "dist" / "fesmnext" / "sample-lib.js").is_file()
        assert not (project_dir / "dist" / "fesm5").exists()

    @pytest.mark.asyncio
    async def test_all_targets_in_order(self, project_dir, package, engine):
        """Every target is attempted in build order."""
        builder = make_builder(project_dir, package, engine, ALL_TARGETS)

        report = await builder.bundle()

        assert engine.labels == ["FLAT", "FLAT MIN", "ES5", "ESNEXT"]
        assert [outcome.target for outcome in report.outcomes] == [
            FLAT.kind, FLAT_MINIFIED.kind, ES5_FLATTENED.kind, ESNEXT_FLATTENED.kind
        ]
        assert not report.aborted

    @pytest.mark.asyncio
    async def test_failure_stops_remaining_targets(self, project_dir, package, engine_factory):
        """A failed target ends the run; earlier artifacts are kept."""
        engine = engine_factory(fail_on={"ES5"})
        builder = make_builder(project_dir, package, engine, ALL_TARGETS)

        report = await builder.bundle()

        assert engine.labels == ["FLAT", "FLAT MIN", "ES5"]
        assert [outcome.success for outcome in report.outcomes] == [True, True, False]
        assert report.aborted
        assert not report.succeeded
        assert report.failed_outcomes[0].error.target == "ES5"
        assert (project_dir / "dist" / "bundle" / "sample-lib.js").is_file()
        assert not (project_dir / "dist" / "fesmnext").exists()

    @pytest.mark.asyncio
    async def test_failure_on_last_target_is_not_aborted(self, project_dir, package, engine_factory):
        """Failing the last target leaves nothing to abort."""
        engine = engine_factory(fail_on={"ESNEXT"})
        builder = make_builder(project_dir, package, engine, ALL_TARGETS)

        report = await builder.bundle()

        assert len(report.outcomes) == 4
        assert not report.aborted
        assert not report.succeeded

    @pytest.mark.asyncio
    async def test_continue_on_error(self, project_dir, package, engine_factory):
        """With continue_on_error every target is attempted."""
        engine = engine_factory(fail_on={"FLAT MIN"})
        data = {"compiler": {"build": {"es5": True}, "continueOnError": True}}
        builder = make_builder(project_dir, package, engine, data)

        report = await builder.bundle()

        assert engine.labels == ["FLAT", "FLAT MIN", "ES5", "ESNEXT"]
        assert [outcome.label for outcome in report.failed_outcomes] == ["FLAT MIN"]
        assert not report.aborted

    @pytest.mark.asyncio
    async def test_concurrent_build(self, project_dir, package, engine_factory):
        """Concurrent builds attempt every target and report in build order."""
        engine = engine_factory(fail_on={"FLAT"})
        data = {"compiler": {"build": {"es5": True}, "concurrentBuild": True}}
        builder = make_builder(project_dir, package, engine, data)

        report = await builder.bundle()

        assert sorted(engine.labels) == sorted(["FLAT", "FLAT MIN", "ES5", "ESNEXT"])
        assert [outcome.label for outcome in report.outcomes] == ["FLAT", "FLAT MIN", "ES5", "ESNEXT"]
        assert [outcome.success for outcome in report.outcomes] == [False, True, True, True]
        assert not report.aborted

    @pytest.mark.asyncio
    async def test_unexpected_engine_error_is_wrapped(self, project_dir, package):
        """Any engine exception becomes a failed outcome for its target."""
        engine = mock.MagicMock()
        engine.invoke = mock.AsyncMock(side_effect=RuntimeError("crashed"))
        data = {"compiler": {"build": {"bundleMin": False, "esnext": False}}}
        builder = make_builder(project_dir, package, engine, data)

        report = await builder.bundle()

        outcome = report.outcomes[0]
        assert not outcome.success
        assert outcome.error.target == "FLAT"
        assert isinstance(outcome.error.__cause__, RuntimeError)

    @pytest.mark.asyncio
    async def test_externals_shared_by_every_target(self, project_dir, package, engine):
        """All targets receive the same extracted externals."""
        data = dict(ALL_TARGETS, bundle={"externals": ["a"], "globals": {"b": "B"}})
        builder = make_builder(project_dir, package, engine, data)

        await builder.bundle()

        assert [config["external"] for config in engine.configs] == [["a", "b"]] * 4

    @pytest.mark.asyncio
    async def test_target_output_formats(self, project_dir, package, engine):
        """Flat bundles use the bundle format, flattened targets ES modules."""
        data = dict(ALL_TARGETS, bundle={"format": "amd", "amd": {"id": "sample"}})
        builder = make_builder(project_dir, package, engine, data)

        await builder.bundle()

        outputs = [config["output"] for config in engine.configs]
        assert [output["format"] for output in outputs] == ["amd", "amd", "es", "es"]
        assert outputs[0]["amd"] == {"define": "", "id": "sample"}
        assert outputs[0]["name"] == "com.lib"
        assert "name" not in outputs[2]
        assert all("sample-lib" in output["banner"] for output in outputs)


class TestTargetConfig:
    """Tests for base and derived target configurations."""

    def test_base_config(self, project_dir, package, config):
        """The base configuration holds the shared settings only."""
        base = get_base_config(config, package, project_dir, banner="/* banner */")

        assert base["input"] == str(project_dir / "src" / "index.js")
        assert base["output"] == {"banner": "/* banner */", "sourcemap": True}
        assert base["external"] == []
        assert base["plugins"] == []

    def test_base_config_without_banner(self, project_dir, package):
        config = ProjectConfig.from_dict({"license": {"banner": False}})
        base = get_base_config(config, package, project_dir)
        assert base["output"]["banner"] == ""

    def test_derive_does_not_modify_base(self, project_dir, package, config, engine):
        """Deriving target configurations leaves the base untouched."""
        builder = Builder(config, package, engine, project_dir=project_dir)
        base = get_base_config(config, package, project_dir)
        snapshot = json.dumps(base, sort_keys=True)

        flat = builder.derive(FLAT, base, ("a",))
        esnext = builder.derive(ESNEXT_FLATTENED, base, ("a",))

        assert json.dumps(base, sort_keys=True) == snapshot
        assert flat["output"]["file"].endswith("bundle/sample-lib.js")
        assert esnext["output"]["file"].endswith("fesmnext/sample-lib.js")
        assert flat["output"]["banner"] == base["output"]["banner"]
        assert flat["plugins"] != esnext["plugins"]

    def test_derive_target_config_replaces_lists(self):
        merged = derive_target_config({"external": ["x"], "output": {"a": 1}}, {"external": ["y"]})
        assert merged == {"external": ["y"], "output": {"a": 1}}


class TestBuildReport:
    """Tests for the BuildReport class."""

    @pytest.mark.asyncio
    async def test_raise_for_failure(self, project_dir, package, engine_factory):
        engine = engine_factory(fail_on={"FLAT"})
        report = await make_builder(project_dir, package, engine).bundle()

        with pytest.raises(BuildError) as excinfo:
            report.raise_for_failure()

        assert "FLAT" in str(excinfo.value)
        assert excinfo.value.details["errors"] == ["[FLAT] Simulated failure"]

    def test_empty_report_succeeds(self):
        report = BuildReport()
        assert report.succeeded
        report.raise_for_failure()


class TestBuild:
    """Tests for the full build."""

    @pytest.mark.asyncio
    async def test_build_writes_package_and_artifacts(self, project_dir, package, engine):
        """A build produces the artifacts and the package essentials."""
        builder = make_builder(project_dir, package, engine)

        report = await builder.build()

        dist = project_dir / "dist"
        assert report.succeeded
        descriptor = json.loads((dist / "package.json").read_text(encoding="utf-8"))
        assert descriptor["main"] == "bundle/sample-lib.js"
        assert descriptor["peerDependencies"] == {"lodash": "^4.17.0"}
        assert "dependencies" not in descriptor
        assert "scripts" not in descriptor
        assert (dist / "README.md").read_text(encoding="utf-8") == "# sample-lib\n"
        assert (dist / "LICENSE").is_file()
        assert (dist / "bundle" / "sample-lib.js").is_file()

    @pytest.mark.asyncio
    async def test_build_cleans_previous_output(self, project_dir, package, engine):
        stale = project_dir / "dist" / "stale.js"
        stale.parent.mkdir()
        stale.write_text("old", encoding="utf-8")

        await make_builder(project_dir, package, engine).build()

        assert not stale.exists()

    @pytest.mark.asyncio
    async def test_build_is_idempotent(self, project_dir, package, engine_factory):
        """Two builds of the same project produce identical output."""
        await make_builder(project_dir, package, engine_factory(), ALL_TARGETS).build()
        first = read_files(project_dir / "dist")

        await make_builder(project_dir, package, engine_factory(), ALL_TARGETS).build()
        second = read_files(project_dir / "dist")

        assert first == second
        assert "package.json" in first

    @pytest.mark.asyncio
    async def test_build_same_configs_each_run(self, project_dir, package, engine_factory):
        first_engine = engine_factory()
        second_engine = engine_factory()

        await make_builder(project_dir, package, first_engine, ALL_TARGETS).build()
        await make_builder(project_dir, package, second_engine, ALL_TARGETS).build()

        assert first_engine.configs == second_engine.configs

    @pytest.mark.asyncio
    async def test_build_raises_copy_error(self, project_dir, package, engine):
        """Copy failures surface after bundling has finished."""
        builder = make_builder(project_dir, package, engine)

        with mock.patch.object(EssentialsCopier, "copy", side_effect=CopyError("boom")):
            with pytest.raises(CopyError):
                await builder.build()

        assert engine.labels == ["FLAT", "FLAT MIN", "ESNEXT"]

    def test_clean_without_output(self, project_dir, package, engine):
        make_builder(project_dir, package, engine).clean()
        assert not (project_dir / "dist").exists()

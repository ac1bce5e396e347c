"""
Tests for the Flow pipeline.

Every run goes collect -> preprocess -> concatenate -> postprocess -> save.
These tests pin down ordering, bundle layout, failure handling and the
idle state a flow returns to after each run.
"""
import asyncio
import gc
import weakref

import pytest
import rjsmin

from kiln.core.records import Artifact
from kiln.core.store import Store
from kiln.utility.exceptions import (
    FlowExecutionError,
    MissingPathWarning,
    StoreWriteError,
    TransformError,
)


def suffix(tag):
    def transform(file, config):
        return file.contents + tag

    transform.__name__ = f"suffix_{tag}"
    return transform


class BrokenStore(Store, store_type="broken_for_tests"):
    async def _save(self, artifact):
        raise OSError("disk full")


class TestFlowRun:
    """Happy-path runs."""

    @pytest.mark.asyncio
    async def test_bundle_is_files_joined_with_terminator(
        self, factory, memory_store, write_tree
    ):
        write_tree({"scripts/a.js": "var a = 1;", "scripts/b.js": "var b = 2;"})
        flow = factory.create(
            {
                "route": "/app.js",
                "type": "js",
                "paths": ["scripts/a.js", "scripts/b.js"],
            }
        )

        artifact = await flow.run()

        assert artifact.data == b"var a = 1;\r\nvar b = 2;\r\n"
        assert memory_store.get(flow.id) is artifact
        assert artifact.route == "/app.js"
        assert artifact.mime_type == "application/javascript"

    @pytest.mark.asyncio
    async def test_empty_collection_saves_empty_bundle(self, factory, temp_dir):
        (temp_dir / "scripts").mkdir()
        flow = factory.create({"route": "/app.js", "type": "js", "paths": "scripts"})

        artifact = await flow.run()

        assert artifact.data == b""
        assert flow.file_count == 0

    @pytest.mark.asyncio
    async def test_preprocessors_run_in_order(self, factory, write_tree):
        write_tree({"scripts/a.js": "x"})
        flow = factory.create(
            {
                "route": "/app.js",
                "type": "js",
                "paths": "scripts",
                "preprocessors": [suffix("A"), suffix("B")],
            }
        )

        artifact = await flow.run()

        assert artifact.data == b"xAB\r\n"

    @pytest.mark.asyncio
    async def test_postprocessors_run_on_whole_bundle(self, factory, write_tree):
        write_tree({"scripts/a.js": "a", "scripts/b.js": "b"})
        calls = []

        async def wrap(data, config):
            calls.append(data)
            return f"({data})"

        flow = factory.create(
            {
                "route": "/app.js",
                "type": "js",
                "paths": "scripts",
                "postprocessors": [wrap],
            }
        )

        artifact = await flow.run()

        assert calls == ["a\r\nb\r\n"]
        assert artifact.data == b"(a\r\nb\r\n)"

    @pytest.mark.asyncio
    async def test_minify_is_applied_to_concatenation(self, factory, write_tree):
        write_tree(
            {
                "scripts/a.js": "var answer = 40 + 2;\n",
                "scripts/b.js": "function add(a, b) {\n  return a + b;\n}\n",
            }
        )
        flow = factory.create(
            {"route": "/app.js", "type": "js", "paths": "scripts", "minify": True}
        )

        artifact = await flow.run()

        expected = rjsmin.jsmin(
            "var answer = 40 + 2;\n\r\nfunction add(a, b) {\n  return a + b;\n}\n\r\n"
        )
        assert artifact.data == expected.encode("utf-8")

    @pytest.mark.asyncio
    async def test_sass_compiles_before_configured_preprocessors(
        self, factory, write_tree
    ):
        write_tree({"styles/app.scss": "$c: red;\na { color: $c; }\n"})
        seen = []

        def record(file, config):
            seen.append(file.contents)
            return file.contents

        flow = factory.create(
            {
                "route": "/app.css",
                "type": "css",
                "paths": "styles",
                "preprocessors": [record],
            }
        )

        await flow.run()

        assert len(seen) == 1
        assert "$c" not in seen[0]
        assert "color: red" in seen[0]

    @pytest.mark.asyncio
    async def test_runs_are_repeatable(self, factory, write_tree):
        write_tree({"scripts/a.js": "a", "scripts/b.js": "b"})
        flow = factory.create({"route": "/app.js", "type": "js", "paths": "scripts"})

        first = await flow.run()
        second = await flow.run()

        assert first.data == second.data
        assert flow.runs == 2

    @pytest.mark.asyncio
    async def test_flow_is_idle_after_run(self, factory, write_tree):
        write_tree({"scripts/a.js": "a"})
        flow = factory.create({"route": "/app.js", "type": "js", "paths": "scripts"})

        await flow.run()

        assert flow.files == {}
        assert flow.data is None
        assert flow.is_idle
        assert flow.file_count == 1
        assert flow.byte_count == 3

    @pytest.mark.asyncio
    async def test_file_records_are_released_after_run(self, factory, write_tree):
        write_tree({"scripts/a.js": "a" * 1000, "scripts/b.js": "b" * 1000})
        seen = []

        def track(file, config):
            seen.append(weakref.ref(file))
            return file.contents

        flow = factory.create(
            {
                "route": "/app.js",
                "type": "js",
                "paths": "scripts",
                "preprocessors": [track],
            }
        )

        await flow.run()
        gc.collect()

        assert len(seen) == 2
        assert all(ref() is None for ref in seen)
        assert not hasattr(flow.home, "files")

    def test_home_collects_into_a_new_mapping(self, factory, write_tree):
        write_tree({"scripts/a.js": "a"})
        flow = factory.create({"route": "/app.js", "type": "js", "paths": "scripts"})

        first = flow.home.collect()
        second = flow.home.collect()

        assert first is not second
        assert list(first) == list(second)

    @pytest.mark.asyncio
    async def test_missing_path_warns_and_continues(self, factory, write_tree):
        write_tree({"scripts/a.js": "a"})
        flow = factory.create(
            {"route": "/app.js", "type": "js", "paths": ["scripts", "nowhere"]}
        )

        with pytest.warns(MissingPathWarning, match="does not exist"):
            artifact = await flow.run()

        assert artifact.data == b"a\r\n"

    @pytest.mark.asyncio
    async def test_bundle_is_encoded_with_flow_encoding(self, factory, write_tree):
        write_tree({"scripts/a.js": "café".encode("latin-1")})
        flow = factory.create(
            {
                "route": "/app.js",
                "type": "js",
                "paths": "scripts",
                "encoding": "latin-1",
            }
        )

        artifact = await flow.run()

        assert artifact.data == "café\r\n".encode("latin-1")

    @pytest.mark.asyncio
    async def test_runs_do_not_overlap(self, factory, write_tree):
        write_tree({"scripts/a.js": "a"})
        active = 0
        peak = 0

        async def slow(file, config):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return file.contents

        flow = factory.create(
            {
                "route": "/app.js",
                "type": "js",
                "paths": "scripts",
                "preprocessors": [slow],
            }
        )

        await asyncio.gather(flow.run(), flow.run(), flow.run())

        assert peak == 1
        assert flow.runs == 3

    @pytest.mark.asyncio
    async def test_start_runs_once_without_watching(self, factory, write_tree):
        write_tree({"scripts/a.js": "a"})
        flow = factory.create({"route": "/app.js", "type": "js", "paths": "scripts"})

        artifact = await flow.start()

        assert artifact.data == b"a\r\n"
        assert flow.watcher is None


class TestFlowFailures:
    """A failed run raises, resets and leaves the flow runnable."""

    @pytest.mark.asyncio
    async def test_transform_failure_fails_run(
        self, factory, memory_store, write_tree
    ):
        write_tree({"scripts/a.js": "a", "scripts/b.js": "b"})
        broken = {"on": True}

        def explode(file, config):
            if broken["on"] and file.name == "b.js":
                raise ValueError("bad syntax")
            return file.contents

        flow = factory.create(
            {
                "route": "/app.js",
                "type": "js",
                "paths": "scripts",
                "preprocessors": [explode],
            }
        )

        with pytest.raises(TransformError, match="bad syntax") as exc_info:
            await flow.run()

        assert exc_info.value.transform == "explode"
        assert exc_info.value.path.endswith("b.js")
        assert flow.is_idle
        assert memory_store.get(flow.id) is None

        broken["on"] = False
        artifact = await flow.run()
        assert artifact.data == b"a\r\nb\r\n"

    @pytest.mark.asyncio
    async def test_all_files_settle_before_failure(self, factory, write_tree):
        write_tree({"scripts/a.js": "a", "scripts/b.js": "b"})
        finished = []

        async def uneven(file, config):
            if file.name == "a.js":
                raise ValueError("fails fast")
            await asyncio.sleep(0.02)
            finished.append(file.name)
            return file.contents

        flow = factory.create(
            {
                "route": "/app.js",
                "type": "js",
                "paths": "scripts",
                "preprocessors": [uneven],
            }
        )

        with pytest.raises(TransformError):
            await flow.run()

        assert finished == ["b.js"]

    @pytest.mark.asyncio
    async def test_non_string_result_fails(self, factory, write_tree):
        write_tree({"scripts/a.js": "a"})
        flow = factory.create(
            {
                "route": "/app.js",
                "type": "js",
                "paths": "scripts",
                "postprocessors": [lambda data, config: None],
            }
        )

        with pytest.raises(TransformError, match="expected str output"):
            await flow.run()
        assert flow.is_idle

    @pytest.mark.asyncio
    async def test_undecodable_file_fails(self, factory, write_tree):
        write_tree({"scripts/a.js": b"\xff\xfe\xfa"})
        flow = factory.create({"route": "/app.js", "type": "js", "paths": "scripts"})

        with pytest.raises(FlowExecutionError, match="Could not decode"):
            await flow.run()

    @pytest.mark.asyncio
    async def test_store_failure_fails_run(self, settings, write_tree):
        from kiln.core.flow import FlowFactory
        write_tree({"scripts/a.js": "a"})
        store = BrokenStore("broken", {})
        factory = FlowFactory(settings=settings, store=store)
        flow = factory.create({"route": "/app.js", "type": "js", "paths": "scripts"})

        with pytest.raises(StoreWriteError, match="disk full"):
            await flow.run()

        assert flow.is_idle
        assert isinstance(flow.last_error, StoreWriteError)


class TestFlowRoutes:
    def test_string_route_matches_exactly(self, factory):
        flow = factory.create({"route": "/app.js", "type": "js", "paths": "scripts"})
        assert flow.matches("/app.js")
        assert not flow.matches("/app.js.map")

    def test_regex_route_searches(self, factory):
        import re

        flow = factory.create(
            {"route": re.compile(r"app-\w+\.js$"), "type": "js", "paths": "scripts"}
        )
        assert flow.matches("/assets/app-1a2b.js")
        assert not flow.matches("/assets/vendor.js")

    def test_artifact_length(self):
        assert len(Artifact(id=1, data=b"abc")) == 3

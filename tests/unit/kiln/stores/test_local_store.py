"""
Tests for LocalStore: artifacts written to files.
"""
import re

import pytest
from pydantic import ValidationError

from kiln.core.records import Artifact
from kiln.core.store import Store, StoreConfig
from kiln.stores import LocalStore, LocalStoreConfig
from kiln.utility.exceptions import StoreError, StoreWriteError


@pytest.fixture
def store(temp_dir):
    return LocalStore("test", LocalStoreConfig(path=str(temp_dir / "public")))


class TestLocalStoreConfig:
    def test_bare_string_is_local_path(self, temp_dir):
        config = StoreConfig.create(str(temp_dir))
        assert isinstance(config, LocalStoreConfig)
        assert config.path == str(temp_dir)
        assert config.file_pattern == "{name}.{ext}"

    def test_path_is_required(self):
        with pytest.raises(ValidationError):
            LocalStoreConfig()

    def test_invalid_file_pattern(self, temp_dir):
        with pytest.raises(ValidationError, match="Invalid file_pattern"):
            LocalStoreConfig(path=str(temp_dir), file_pattern="{flow}.{ext}")


class TestLocalStore:
    def test_directories_are_created(self, store, temp_dir):
        assert (temp_dir / "public").is_dir()
        assert (temp_dir / "public" / ".tmp").is_dir()

    def test_filename_from_route(self, store):
        artifact = Artifact(
            id=3, data=b"", route="/assets/app.css", mime_type="text/css"
        )
        assert store.get_filename(artifact) == "app.css"

    def test_filename_adds_extension(self, store):
        artifact = Artifact(
            id=3,
            data=b"",
            route="/assets/templates",
            mime_type="application/javascript",
        )
        assert store.get_filename(artifact) == "templates.js"

    def test_filename_for_regex_route(self, store):
        artifact = Artifact(
            id=3,
            data=b"",
            route=re.compile(r"^/app-.*\.js$"),
            mime_type="application/javascript",
        )
        assert store.get_filename(artifact) == "flow-3.js"

    def test_filename_pattern(self, temp_dir):
        store = LocalStore(
            "test",
            LocalStoreConfig(path=str(temp_dir), file_pattern="{id}-{name}.{ext}"),
        )
        artifact = Artifact(id=7, data=b"", route="/app.css", mime_type="text/css")
        assert store.get_filename(artifact) == "7-app.css"

    @pytest.mark.asyncio
    async def test_save_writes_file(self, store, temp_dir):
        artifact = Artifact(id=0, data=b"a{}", route="/app.css", mime_type="text/css")

        await store.save(artifact)

        written = temp_dir / "public" / "app.css"
        assert written.read_bytes() == b"a{}"
        assert store.path_for(0) == written
        assert not (temp_dir / "public" / ".tmp" / "app.css").exists()

    @pytest.mark.asyncio
    async def test_save_replaces_previous_bundle(self, store, temp_dir):
        js = "application/javascript"
        await store.save(Artifact(id=0, data=b"one", route="/app.js", mime_type=js))
        await store.save(Artifact(id=0, data=b"two", route="/app.js", mime_type=js))

        assert (temp_dir / "public" / "app.js").read_bytes() == b"two"

    @pytest.mark.asyncio
    async def test_same_basename_falls_back_to_flow_id(self, store, temp_dir):
        js = "application/javascript"
        one = Artifact(id=0, data=b"one", route="/one/app.js", mime_type=js)
        two = Artifact(id=1, data=b"two", route="/two/app.js", mime_type=js)
        again = Artifact(id=1, data=b"two!", route="/two/app.js", mime_type=js)

        await store.save(one)
        await store.save(two)
        await store.save(again)

        assert store.path_for(0) == temp_dir / "public" / "app.js"
        assert store.path_for(1) == temp_dir / "public" / "flow-1.js"
        assert (temp_dir / "public" / "app.js").read_bytes() == b"one"
        assert (temp_dir / "public" / "flow-1.js").read_bytes() == b"two!"

    @pytest.mark.asyncio
    async def test_fixed_pattern_cannot_hold_two_flows(self, temp_dir):
        store = LocalStore(
            "test", LocalStoreConfig(path=str(temp_dir), file_pattern="bundle.{ext}")
        )
        css = "text/css"
        await store.save(Artifact(id=0, data=b"a{}", route="/a.css", mime_type=css))

        with pytest.raises(StoreError, match="No free file name for flow 1"):
            await store.save(
                Artifact(id=1, data=b"b{}", route="/b.css", mime_type=css)
            )

        assert (temp_dir / "bundle.css").read_bytes() == b"a{}"

    @pytest.mark.asyncio
    async def test_write_failure(self, store, temp_dir):
        (temp_dir / "public" / "app.css").mkdir()
        artifact = Artifact(id=0, data=b"a{}", route="/app.css", mime_type="text/css")

        with pytest.raises(StoreWriteError):
            await store.save(artifact)

    @pytest.mark.asyncio
    async def test_close_removes_staging(self, store, temp_dir):
        await store.close()
        assert not (temp_dir / "public" / ".tmp").exists()

    def test_created_from_config(self, temp_dir):
        store = Store.create(
            "kiln", StoreConfig.create({"type": "local", "path": str(temp_dir)})
        )
        assert isinstance(store, LocalStore)

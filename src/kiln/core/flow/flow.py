"""
Core Flow class: one configured asset pipeline.

A Flow turns a group of source files into a single bundle. Every run goes
through the same fixed stages:

    collect -> preprocess -> concatenate -> postprocess -> save

Collection asks the Home for a fresh set of FileRecords. Preprocessing runs
each file through its transform chain; files are processed concurrently but
the chain of a single file always runs in order. Concatenation folds the
files into the bundle buffer and drops them. Postprocessing runs the
per-bundle chain in order, and saving hands the encoded bundle to the Store.

A run either completes or fails as a whole. A failed run resets the flow's
buffers and raises; the flow can simply be run again.
"""
import asyncio
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from kiln.messages import get_logger
from kiln.utility.exceptions import FlowError, FlowExecutionError, StoreError

from ..home import Home
from ..records import Artifact, FileRecord
from ..store import Store
from ..transform import Transform, TransformRegistry
from ..transform import registry as default_registry
from ..watch import WatchController
from .config import FlowConfig

LINE_TERMINATOR = "\r\n"


class Flow:
    """
    Orchestrates one asset pipeline from source files to a stored artifact.

    Flows are normally built by FlowFactory, which assigns the id and wires
    the Home and Store. `run()` builds the bundle once; `start()` also arms
    the watcher when the flow is configured to watch.

    Args:
        flow_id: Unique id of this flow, used as the store key
        config: Normalized flow configuration
        home: Source of the flow's files
        store: Destination of the flow's artifacts
        registry: Transform registry for content-type compilers
        watch_backend: Optional watch backend (default: watchdog)
    """

    def __init__(
        self,
        flow_id: int,
        config: FlowConfig,
        home: Home,
        store: Store,
        registry: Optional[TransformRegistry] = None,
        watch_backend=None,
    ):
        self.id = flow_id
        self.config = config
        self.route = config.route
        self.name = config.display_name
        self.home = home
        self.store = store
        self.registry = registry or default_registry
        self.watch_backend = watch_backend

        self.files: Dict[Path, FileRecord] = {}
        self.data: Optional[str] = None
        self.modified: Optional[datetime] = None
        self.watcher: Optional[WatchController] = None

        # Serializes runs: a reflow waits for the one in progress
        self._run_lock = asyncio.Lock()

        # State tracking
        self.runs = 0
        self.file_count = 0
        self.byte_count = 0
        self.duration: float = 0.0
        self.last_error: Optional[Exception] = None

        self.logger = get_logger(f"kiln.flow.{self.name}")
        self.home.logger = get_logger(f"kiln.flow.{self.name}.home")

    @property
    def mime_type(self) -> str:
        return self.config.mime_type

    @property
    def is_idle(self) -> bool:
        return self.data is None and not self.files

    async def start(self) -> Optional[Artifact]:
        """Arm the watcher if the flow watches, then build the flow once."""
        if self.config.watch:
            self.watch()
        return await self.run()

    async def run(self) -> Artifact:
        """
        Build the flow: collect, preprocess, concatenate, postprocess, save.

        Returns:
            The artifact handed to the store

        Raises:
            FlowError: If collection or a transform fails
            StoreError: If the store could not persist the artifact
        """
        async with self._run_lock:
            return await self._execute_flow()

    async def _execute_flow(self) -> Artifact:
        loop = asyncio.get_running_loop()
        start_time = loop.time()
        self.modified = datetime.now(timezone.utc)

        try:
            self.collect()
            file_count = len(self.files)
            await self.preprocess()
            self.concatenate()
            await self.postprocess()
            artifact = await self.save()
        except (FlowError, StoreError) as e:
            self._reset()
            self.last_error = e
            self.logger.error(f"Flow failed: {self.name}, error: {str(e)}")
            raise
        except Exception as e:
            self._reset()
            self.last_error = e
            self.logger.error(f"Flow failed: {self.name}, error: {str(e)}")
            raise FlowExecutionError(
                f"Flow failed: {self.name}, error: {str(e)}"
            ) from e

        self.runs += 1
        self.file_count = file_count
        self.byte_count = len(artifact)
        self.duration = loop.time() - start_time
        self.last_error = None
        self.logger.debug(
            self.logger.BUILD_TEMPLATE.format(
                self.name, file_count, self.byte_count, self.duration
            )
        )
        return artifact

    def collect(self) -> Dict[Path, FileRecord]:
        """Replace the file set with a fresh collection from the Home."""
        self.files = {}
        self.data = ""
        self.files = self.home.collect()
        return self.files

    def chain_for(self, file: FileRecord) -> List[Transform]:
        """Build a file's transform chain: its compiler first, then configured."""
        chain = list(self.config.preprocessors)
        leading = self.registry.leading_for(file.content_type)
        if leading is not None:
            chain.insert(0, leading)
        return chain

    async def preprocess(self) -> None:
        """
        Run every file through its transform chain.

        Files are processed concurrently; the stage only finishes once every
        file has settled, and then raises the first failure, if any.
        """
        results = await asyncio.gather(
            *(self._preprocess_file(file) for file in self.files.values()),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result

    async def _preprocess_file(self, file: FileRecord) -> None:
        for transform in self.chain_for(file):
            file.contents = await transform.apply(file, self.config)

    def concatenate(self) -> str:
        """Fold every file into the bundle, in collection order."""
        parts = [self.data or ""]
        for file in self.files.values():
            parts.append(file.contents + LINE_TERMINATOR)
        self.data = "".join(parts)
        self.files = {}
        return self.data

    async def postprocess(self) -> str:
        """Run the bundle through the per-bundle chain, in order."""
        for transform in self.config.postprocessors:
            self.data = await transform.apply(self.data, self.config)
        return self.data

    async def save(self) -> Artifact:
        """Encode the bundle and hand it to the store, then go idle."""
        artifact = Artifact(
            id=self.id,
            data=(self.data or "").encode(self.config.encoding),
            route=self.route,
            mime_type=self.mime_type,
            modified=self.modified,
        )
        await self.store.save(artifact)
        self.data = None
        return artifact

    def _reset(self) -> None:
        self.files = {}
        self.data = None

    def watch(self) -> WatchController:
        """Start watching the flow's paths and reflow on changes."""
        if self.watcher is None:
            self.watcher = WatchController(self, self.watch_backend)
        self.watcher.arm()
        return self.watcher

    def unwatch(self) -> None:
        if self.watcher is not None:
            self.watcher.stop()

    def matches(self, url: str) -> bool:
        """Check whether a URL is served by this flow's route."""
        if isinstance(self.route, str):
            return self.route == url
        return self.route.search(url) is not None

    def __repr__(self) -> str:
        return f"<Flow {self.id} {self.name} ({self.config.type})>"

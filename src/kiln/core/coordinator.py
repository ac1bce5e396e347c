"""
Coordinator builds every flow of a workspace and runs them.

The coordinator's single responsibility is to:
1. Load the workspace configuration
2. Build flows through one FlowFactory (so ids are unique per build)
3. Run flows concurrently and report a summary
4. Keep watching flows reflowing until it is cancelled

Collection, transforms and saving are delegated to each Flow.
"""
import asyncio
from pathlib import Path
from typing import Any, Dict, List, Optional

from kiln.messages import Summary, get_logger
from kiln.utility.exceptions import ConfigError

from .flow import Flow, FlowFactory
from .store import Store, StoreConfig
from .workspace import WORKSPACE_FILE, Workspace, WorkspaceConfig

DEFAULT_CONCURRENCY = 8


class Coordinator:
    """
    Orchestrates all flows of a kiln workspace.

    Args:
        config_path: Optional path to kiln.yml (default: search upwards from cwd)
        config: Optional WorkspaceConfig instance (takes precedence)
        flow_filter: Optional list of flow names or routes to build
        settings_overrides: Optional settings applied over the workspace's
        watch_backend: Optional watch backend passed to every flow
    """

    def __init__(
        self,
        config_path: Optional[str] = None,
        config: Optional[WorkspaceConfig] = None,
        flow_filter: Optional[List[str]] = None,
        settings_overrides: Optional[Dict[str, Any]] = None,
        watch_backend=None,
    ):
        self.flows: List[Flow] = []
        self.options: Dict[str, Any] = {}
        self.flow_filter = flow_filter or []
        self.settings_overrides = settings_overrides or {}
        self.watch_backend = watch_backend
        self.logger = get_logger("kiln.coordinator")
        self.summary = Summary(logger=self.logger)
        self.flow_results: List[Dict[str, Any]] = []
        self.run_start_time: Optional[float] = None
        self.store: Optional[Store] = None
        self.factory: Optional[FlowFactory] = None
        self._workspace: Optional[Workspace] = None

        if config is not None:
            self.config = config
        elif config_path is None:
            self._workspace = Workspace.find()
            self.config = None
        else:
            config_file = Path(config_path)
            if config_file.name != WORKSPACE_FILE:
                raise ConfigError(
                    f"Expected {WORKSPACE_FILE}, got {config_file.name}. "
                    "Only kiln.yml workspace configuration is supported."
                )
            self._workspace = Workspace.from_path(config_file)
            self.config = None

    def load(self) -> WorkspaceConfig:
        """Load the workspace configuration and build every flow."""
        if self.config is None:
            if not self._workspace:
                raise ConfigError("No workspace available.")
            self.config = self._workspace.prepare()

        self.options = {**self.config.options, **self.options}
        if not self.flows:
            self._create_flows()
        return self.config

    def _create_flows(self) -> None:
        settings = self.config.settings
        if self.settings_overrides:
            settings = settings.model_copy(update=self.settings_overrides)

        try:
            self.store = Store.create("kiln", StoreConfig.create(self.config.store))
        except ValueError as e:
            raise ConfigError(f"Invalid store configuration: {e}") from e

        self.factory = FlowFactory(
            settings=settings, store=self.store, watch_backend=self.watch_backend
        )

        for index, spec in enumerate(self.config.flows):
            try:
                flow = self.factory.create(spec)
            except ConfigError as e:
                raise ConfigError(f"Flow #{index + 1}: {e}") from e
            if self._should_include(flow):
                self.flows.append(flow)

        if self.flow_filter and not self.flows:
            raise ConfigError(
                f"No flows matched filter: {', '.join(self.flow_filter)}"
            )

    def _should_include(self, flow: Flow) -> bool:
        if not self.flow_filter:
            return True
        return flow.name in self.flow_filter or flow.route in self.flow_filter

    async def run(self) -> None:
        """Build every flow once."""
        self.load()
        await self._run_flows()

    async def _run_flows(self) -> None:
        """Run all flows concurrently, limited by the concurrency option."""
        if not self.flows:
            self.logger.warning("No flows to run")
            return

        self.flow_results = []
        self.run_start_time = asyncio.get_running_loop().time()

        max_concurrent = int(self.options.get("concurrency") or DEFAULT_CONCURRENCY)
        semaphore = asyncio.Semaphore(max_concurrent)
        total_flows = len(self.flows)

        tasks = [
            asyncio.create_task(
                self._run_flow_with_semaphore(flow, i, total_flows, semaphore),
                name=f"flow_{flow.id}",
            )
            for i, flow in enumerate(self.flows, 1)
        ]
        await asyncio.gather(*tasks, return_exceptions=True)

        self.summary.generate_summary(self.flow_results, self.run_start_time)

        failed_flows = [r for r in self.flow_results if r["status"] == "fail"]
        if failed_flows and not self.options.get("continue_on_error", False):
            raise failed_flows[0]["_exception"]

    async def _run_flow_with_semaphore(
        self,
        flow: Flow,
        flow_num: int,
        total_flows: int,
        semaphore: asyncio.Semaphore,
    ) -> None:
        async with semaphore:
            await self._run_flow(flow, flow_num, total_flows)

    async def _run_flow(self, flow: Flow, flow_num: int, total_flows: int) -> None:
        """Run a single flow, recording its result for the summary."""
        flow_result = {
            "name": flow.name,
            "status": None,
            "files": 0,
            "bytes": 0,
            "duration": 0.0,
            "error": None,
        }
        self.logger.start(f"[{flow_num} of {total_flows}] flow {flow.name}")

        try:
            await flow.run()
            flow_result["status"] = "pass"
            flow_result["files"] = flow.file_count
            flow_result["bytes"] = flow.byte_count
            flow_result["duration"] = flow.duration
            self.logger.success(
                f"[{flow_num} of {total_flows}] flow {flow.name} built in "
                f"{flow.duration:.2f}s ({flow.file_count} files, "
                f"{flow.byte_count:,} bytes)"
            )
        except Exception as e:
            flow_result["status"] = "fail"
            flow_result["error"] = str(e)
            flow_result["_exception"] = e
            self.logger.error(f"[{flow_num} of {total_flows}] FAILED flow {flow.name}")

        self.flow_results.append(flow_result)

    async def watch(self, stop: Optional[asyncio.Event] = None) -> None:
        """
        Build every flow, then keep watching flows reflowing until stopped.

        Args:
            stop: Optional event that ends watching when set; without it the
                coordinator watches until its task is cancelled
        """
        self.load()
        # failed builds are reported, the session keeps watching
        self.options["continue_on_error"] = True

        watching = []
        try:
            for flow in self.flows:
                if flow.config.watch:
                    flow.watch()
                    watching.append(flow)

            await self._run_flows()

            if not watching:
                self.logger.warning("No flows are configured to watch")
                return

            self.logger.info(f"Watching {len(watching)} flows for changes")
            stop = stop or asyncio.Event()
            await stop.wait()
        finally:
            for flow in watching:
                flow.unwatch()
                if flow.watcher is not None:
                    await flow.watcher.drain()

    def find_flow(self, url: str) -> Optional[Flow]:
        """Find the flow whose route serves a URL."""
        for flow in self.flows:
            if flow.matches(url):
                return flow
        return None

    async def close(self) -> None:
        for flow in self.flows:
            flow.unwatch()
        if self.store is not None:
            await self.store.close()

"""
Build summaries - what happened across all flows, at a glance.
"""
from typing import Any, Dict, List, Optional

from kiln.messages.logger import KilnLogger, _get_event_loop_time


class Summary:
    """
    Generates the end-of-build summary for a coordinator run.

    Summary shows how many flows passed or failed, how many bytes were
    written and how long the whole build took, followed by the error message
    of every failed flow.
    """

    def __init__(self, logger: Optional[KilnLogger] = None):
        """
        Initialize summary generator.

        Args:
            logger: Optional logger instance (default: creates new logger)
        """
        self.logger = logger or KilnLogger("kiln.summary")

    def generate_summary(
        self,
        flow_results: List[Dict[str, Any]],
        start_time: Optional[float] = None,
    ) -> None:
        """
        Generate and log build summary.

        Args:
            flow_results: List of flow result dictionaries with keys:
                - name: Flow name
                - status: "pass" or "fail"
                - files: Number of source files collected
                - bytes: Size of the saved artifact
                - duration: Duration in seconds
                - error: Optional error message (for failures)
            start_time: Optional start time for calculating elapsed time
        """
        if not flow_results:
            return

        elapsed_time = (
            _get_event_loop_time() - start_time if start_time is not None else 0.0
        )

        total_bytes = sum(r.get("bytes", 0) for r in flow_results)
        total_files = sum(r.get("files", 0) for r in flow_results)
        passed = sum(1 for r in flow_results if r["status"] == "pass")
        failed = sum(1 for r in flow_results if r["status"] == "fail")

        self.logger.info("")

        flow_word = "flow" if len(flow_results) == 1 else "flows"
        self.logger.info(
            f"Finished building {len(flow_results)} {flow_word} "
            f"in {elapsed_time:.2f}s."
        )

        if failed == 0:
            self.logger.info("Completed successfully", color_prefix="OK")
            self.logger.info(f"{passed} {'flow' if passed == 1 else 'flows'} passed.")
        else:
            self.logger.error("Completed with errors")
            parts = []
            if passed > 0:
                parts.append(f"{passed} passed")
            parts.append(f"{failed} failed")
            self.logger.info(f"{', '.join(parts)} ({len(flow_results)} total).")

        if total_bytes > 0:
            self.logger.info(
                f"Wrote {total_bytes:,} bytes from {total_files:,} source files"
            )

        self.logger.info("")

        if failed > 0:
            self.logger.error("Failed flows:")
            for flow_result in flow_results:
                if flow_result["status"] == "fail":
                    error_msg = flow_result.get("error", "Unknown error")
                    self.logger.error(f"  {flow_result['name']}: {error_msg}")

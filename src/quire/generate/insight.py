"""External deep-analysis tool integration.

The tool is invoked as ``<command> -o <report_file> <summary>`` with an argv
list (no shell), so the summary needs no quoting. The report file is read
back and always removed afterwards.
"""

from __future__ import annotations

import subprocess
import time
from pathlib import Path
from typing import Protocol

from quire.errors import InsightError
from quire.log import get_logger

log = get_logger(__name__)


class InsightRunner(Protocol):
    def run(self, summary: str) -> str:
        """Return the analysis report for *summary*."""
        ...


class DeepInsightCommand:
    """Run the DeepInsight binary as a subprocess.

    Args:
        command: Path to the executable.
        output_dir: Directory for the temporary report file.
        timeout: Wall-clock limit for one run, in seconds.
    """

    def __init__(
        self,
        command: str = "./DeepInsight",
        output_dir: str | Path = "tmp",
        timeout: float = 600.0,
    ) -> None:
        self.command = command
        self.output_dir = Path(output_dir)
        self.timeout = timeout

    def run(self, summary: str) -> str:
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise InsightError(f"cannot create report directory {self.output_dir}: {exc}") from exc
        report_path = self.output_dir / f"deepinsight_report_{time.time_ns()}.md"

        try:
            log.info("running %s (report: %s)", self.command, report_path)
            try:
                result = subprocess.run(
                    [self.command, "-o", str(report_path), summary],
                    shell=False,
                    check=True,
                    capture_output=True,
                    text=True,
                    timeout=self.timeout,
                )
            except subprocess.CalledProcessError as exc:
                output = (exc.stdout or "") + (exc.stderr or "")
                log.error("%s failed (exit %d): %s", self.command, exc.returncode, output)
                raise InsightError(
                    f"DeepInsight command failed with exit code {exc.returncode}", output
                ) from exc
            except subprocess.TimeoutExpired as exc:
                raise InsightError(
                    f"DeepInsight command timed out after {self.timeout:.0f}s"
                ) from exc
            except OSError as exc:
                raise InsightError(f"DeepInsight command could not be started: {exc}") from exc

            try:
                return report_path.read_text(encoding="utf-8")
            except OSError as exc:
                raise InsightError(
                    f"failed to read DeepInsight report: {exc}", result.stdout or ""
                ) from exc
        finally:
            report_path.unlink(missing_ok=True)

"""Tagged progress stream for operators watching a run."""

from typing import Callable, List, Optional

import click


class ProgressStream:
    """Writes `[TAG] message` lines.

    The sink defaults to click.echo; tests pass a list-appending callable.
    """

    def __init__(self, sink: Optional[Callable[[str], None]] = None):
        self._sink = sink

    def _write(self, line: str) -> None:
        if self._sink is not None:
            self._sink(line)
        else:
            click.echo(line)

    def emit(self, tag: str, message: str) -> None:
        self._write(f"[{tag}] {message}")

    def section(self, title: str) -> None:
        self._write("")
        self._write("=" * 60)
        self._write(title)
        self._write("=" * 60)

    def line(self, text: str = "") -> None:
        self._write(text)


class RecordingProgress(ProgressStream):
    """Keeps every line in memory (proof scripts, tests)."""

    def __init__(self, echo: bool = False):
        super().__init__(sink=self._record)
        self.lines: List[str] = []
        self.echo = echo

    def _record(self, line: str) -> None:
        self.lines.append(line)
        if self.echo:
            click.echo(line)

    def tagged(self, tag: str) -> List[str]:
        prefix = f"[{tag}] "
        return [line[len(prefix):] for line in self.lines if line.startswith(prefix)]

from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markup import escape

console = Console()

LEVELS = ('INFO', 'WARNING', 'ERROR')


def info(msg: str):
    console.print(msg)


def success(msg: str):
    console.print(f'[green]✓[/green] {msg}')


def warning(msg: str):
    console.print(f'[yellow]![/yellow] {msg}')


def error(msg: str):
    console.print(f'[red]✗[/red] {msg}')


def added(msg: str):
    console.print(f'[green]  + {msg}[/green]')


def removed(msg: str):
    console.print(f'[red]  - {msg}[/red]')


def header(msg: str):
    console.print(f'\n[bold]{msg}[/bold]')


def format_line(level: str, msg: str, when: datetime | None = None) -> str:
    """Format a log file line: ``[timestamp] [LEVEL] message``."""
    when = when or datetime.now()
    return f'[{when:%Y-%m-%d %H:%M:%S}] [{level}] {msg}'


def log_file_name(started: datetime) -> str:
    return f'winstrap_{started:%Y%m%d_%H%M%S}.log'


class RunLog:
    """Per-run logger: appends to one log file and mirrors to the console.

    Open it once with ``with RunLog(...) as log:`` and pass ``log`` to every
    component. Each line is flushed as it is written; the file is closed when
    the block exits, including on exceptions.
    """

    def __init__(self, log_dir: Path | None, verbose: bool = False, started: datetime | None = None):
        self.started = started or datetime.now()
        self.verbose = verbose
        self.path = log_dir / log_file_name(self.started) if log_dir else None
        self.counts = {level: 0 for level in LEVELS}
        self._file = None

    def open(self) -> 'RunLog':
        """Create the log directory and open the file. Raises OSError."""
        if self.path is not None and self._file is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._file = open(self.path, 'a', encoding='utf-8')
        return self

    def __enter__(self) -> 'RunLog':
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def close(self):
        if self._file is not None:
            self._file.flush()
            self._file.close()
            self._file = None

    def _write(self, level: str, msg: str):
        self.counts[level] += 1
        if self._file is not None:
            self._file.write(format_line(level, msg) + '\n')
            self._file.flush()

    def info(self, msg: str):
        self._write('INFO', msg)
        info(escape(msg))

    def success(self, msg: str):
        self._write('INFO', msg)
        success(escape(msg))

    def warning(self, msg: str):
        self._write('WARNING', msg)
        warning(escape(msg))

    def error(self, msg: str):
        self._write('ERROR', msg)
        error(escape(msg))

    def added(self, msg: str):
        self._write('INFO', f'+ {msg}')
        added(escape(msg))

    def removed(self, msg: str):
        self._write('INFO', f'- {msg}')
        removed(escape(msg))

    def header(self, msg: str):
        self._write('INFO', msg)
        header(escape(msg))

    def detail(self, msg: str):
        """Log only when running with --verbose."""
        if self.verbose:
            self._write('INFO', msg)
            console.print(f'[dim]{escape(msg)}[/dim]')

import shutil
import subprocess

from winstrap.config import PackageEntry
from winstrap.constants import WINGET_OK_CODES
from winstrap.output import RunLog

WINGET_FLAGS = [
    '--exact',
    '--silent',
    '--accept-package-agreements',
    '--accept-source-agreements',
]


def has_winget() -> bool:
    return shutil.which('winget') is not None


def is_success(returncode: int) -> bool:
    """Exit codes winget uses for 'nothing to do' count as success."""
    return (returncode & 0xFFFFFFFF) in WINGET_OK_CODES


def _capture(cmd: list[str]) -> str | None:
    """Run a listing command. Returns stdout, or None if it could not run."""
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            encoding='utf-8',
            errors='replace',
        )
    except OSError:
        return None
    if result.returncode != 0:
        return None
    return result.stdout


def list_installed() -> str | None:
    """Raw ``winget list`` table."""
    if not has_winget():
        return None
    return _capture(['winget', 'list', '--accept-source-agreements', '--disable-interactivity'])


def list_upgradable() -> str | None:
    """Raw ``winget upgrade`` table (packages with a newer version available)."""
    if not has_winget():
        return None
    return _capture(['winget', 'upgrade', '--accept-source-agreements', '--disable-interactivity'])


def install_package(entry: PackageEntry, log: RunLog, upgrade: bool = False) -> bool:
    """Install or upgrade one winget package. Returns True if successful."""
    verb = 'upgrade' if upgrade else 'install'
    cmd = ['winget', verb, '--id', entry.id] + WINGET_FLAGS
    log.detail(' '.join(cmd))

    try:
        result = subprocess.run(cmd)
    except OSError as e:
        log.error(f'Failed to {verb} {entry.name}: {e}')
        return False

    if not is_success(result.returncode):
        log.error(f'Failed to {verb} {entry.name} ({entry.id}): winget exit code {result.returncode & 0xFFFFFFFF:#x}')
        return False

    log.success(f'{"Upgraded" if upgrade else "Installed"} {entry.name}')
    return True


def install_npm_tool(entry: PackageEntry, log: RunLog, update: bool = False) -> bool:
    """Install a global npm package. Returns True if successful."""
    npm = shutil.which('npm')
    if npm is None:
        log.error(f'npm not found, cannot install {entry.name}. Open a new shell after Node.js is installed and re-run.')
        return False

    target = f'{entry.id}@latest' if update else entry.id
    cmd = [npm, 'install', '--global', target]
    log.detail(' '.join(cmd))

    try:
        result = subprocess.run(cmd)
    except OSError as e:
        log.error(f'Failed to install {entry.name}: {e}')
        return False

    if result.returncode != 0:
        log.error(f'Failed to install {entry.name}: npm exit code {result.returncode}')
        return False

    log.success(f'{"Updated" if update else "Installed"} {entry.name}')
    return True

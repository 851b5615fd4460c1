import ctypes
import os
import shutil
import subprocess
import tempfile
from pathlib import Path

import requests

from winstrap.constants import WINGET_BOOTSTRAP_URL
from winstrap.downloads import download
from winstrap.output import RunLog
from winstrap.packages import has_winget


class EnvironmentCheckError(RuntimeError):
    """The machine is not in a state winstrap can safely change."""


def is_elevated() -> bool:
    """Check if running as Administrator (root elsewhere)."""
    if os.name == 'nt':
        try:
            return bool(ctypes.windll.shell32.IsUserAnAdmin())
        except (AttributeError, OSError):
            return False
    return os.geteuid() == 0


def bootstrap_winget(log: RunLog) -> bool:
    """Install winget (App Installer) from Microsoft. Returns True if successful."""
    log.info('Bootstrapping winget...')

    with tempfile.TemporaryDirectory() as tmpdir:
        bundle = Path(tmpdir) / 'AppInstaller.msixbundle'

        log.info(f'Downloading {WINGET_BOOTSTRAP_URL}...')
        try:
            download(WINGET_BOOTSTRAP_URL, bundle)
        except (requests.RequestException, OSError) as e:
            log.error(f'Failed to download App Installer: {e}')
            return False

        log.info('Registering App Installer...')
        try:
            result = subprocess.run(
                ['powershell', '-NoProfile', '-NonInteractive', '-Command',
                 f"Add-AppxPackage -Path '{bundle}'"],
            )
        except OSError as e:
            log.error(f'Failed to run PowerShell: {e}')
            return False
        if result.returncode != 0:
            log.error('Failed to register App Installer')
            return False

    if shutil.which('winget'):
        log.success('winget installed successfully')
        return True
    else:
        log.error('winget installation verification failed')
        return False


def check_environment(log: RunLog, dry_run: bool = False) -> bool:
    """Verify elevation and winget before touching anything.

    Dry runs only warn, since they change nothing. Returns whether the
    process is elevated.
    """
    elevated = is_elevated()
    if not elevated:
        if dry_run:
            log.warning('Not running as Administrator (fine for a dry run)')
        else:
            raise EnvironmentCheckError('winstrap must be run from an elevated (Administrator) shell')

    if has_winget():
        return elevated

    if dry_run:
        log.warning('winget not found, would bootstrap it')
        return elevated

    log.warning('winget not found.')
    if not bootstrap_winget(log):
        raise EnvironmentCheckError('winget is not available and could not be installed')
    return elevated

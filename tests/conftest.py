import pytest

from winstrap.config import parse_catalog
from winstrap.output import RunLog


@pytest.fixture
def log(tmp_path):
    with RunLog(tmp_path / 'logs') as run_log:
        yield run_log


@pytest.fixture
def verbose_log(tmp_path):
    with RunLog(tmp_path / 'logs', verbose=True) as run_log:
        yield run_log


@pytest.fixture
def catalog():
    return parse_catalog({
        'packages': [
            {'name': 'Git for Windows', 'id': 'Git.Git'},
            {'name': 'Fork', 'id': 'Fork.Fork'},
            {'name': 'Neovim', 'id': 'Neovim.Neovim'},
        ],
        'npm': [
            {'name': 'TypeScript', 'id': 'typescript', 'command': 'tsc'},
        ],
        'downloads': [
            {
                'name': 'Docker Desktop',
                'id': 'docker-desktop',
                'url': 'https://example.com/Docker%20Desktop%20Installer.exe',
                'path': '%WINSTRAP_TEST_PROGRAMS%/Docker/Docker Desktop.exe',
            },
        ],
        'aliases': {'ARP\\User\\X64\\Fork': 'Fork.Fork'},
        'command_checks': {'nvim': 'Neovim.Neovim'},
        'path_checks': {},
        'bloatware': {'names': ['Microsoft.BingWeather'], 'patterns': ['*Xbox*']},
    })


@pytest.fixture
def state_file(tmp_path, monkeypatch):
    path = tmp_path / 'state.yaml'
    monkeypatch.setattr('winstrap.state.STATE_FILE', path)
    return path

import yaml

from winstrap.constants import STATE_FILE


class StateError(RuntimeError):
    """Raised when state.yaml exists but cannot be read."""


def load_state() -> dict:
    """Load current state."""
    if not STATE_FILE.exists():
        return {}
    with open(STATE_FILE, encoding='utf-8') as f:
        try:
            state = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise StateError(f'Invalid YAML in {STATE_FILE}: {e}') from e
    if not isinstance(state, dict):
        raise StateError(f'{STATE_FILE} must be a mapping')
    return state


def save_state(state: dict):
    """Save state."""
    STATE_FILE.parent.mkdir(parents=True, exist_ok=True)
    with open(STATE_FILE, 'w', encoding='utf-8') as f:
        yaml.safe_dump(state, f, sort_keys=False, default_flow_style=False)


def _downloads(state: dict) -> dict:
    downloads = state.get('downloads') or {}
    return downloads if isinstance(downloads, dict) else {}


def get_installed_version(package_id: str) -> str | None:
    """Version recorded after the last successful download install."""
    return _downloads(load_state()).get(package_id)


def record_installed_version(package_id: str, version: str):
    """Record a download install. An unreadable state file is replaced."""
    try:
        state = load_state()
    except StateError:
        state = {}
    downloads = _downloads(state)
    downloads[package_id] = version
    state['downloads'] = downloads
    save_state(state)

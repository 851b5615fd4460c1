from pathlib import Path

CONFIG_DIR = Path.home() / '.config' / 'winstrap'
LOG_DIR = CONFIG_DIR / 'logs'
STATE_FILE = CONFIG_DIR / 'state.yaml'

DATA_DIR = Path(__file__).parent / 'data'
CATALOG_FILE = DATA_DIR / 'catalog.yaml'
CONFIGS_DIR = DATA_DIR / 'configs'

# winget returns these as signed 32-bit ints on Windows
WINGET_UPDATE_NOT_APPLICABLE = 0x8A15002B
WINGET_ALREADY_INSTALLED = 0x8A150061
WINGET_OK_CODES = {0, WINGET_UPDATE_NOT_APPLICABLE, WINGET_ALREADY_INSTALLED}

WINGET_BOOTSTRAP_URL = 'https://aka.ms/getwinget'

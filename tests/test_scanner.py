from winstrap import scanner
from winstrap.config import load_catalog
from winstrap.scanner import InstalledSet, normalize_id, parse_listing, scan_installed

LISTING = '''\
   -\r   \\\r   |\r
Name                           Id                          Version        Available  Source
--------------------------------------------------------------------------------------------
Git                            Git.Git                     2.43.0                    winget
Fork                           ARP\\User\\X64\\Fork           1.95.0
Neovim                         Neovim.Neovim               0.9.5          0.10.0     winget
Some Very Long Application     Vendor.SomeVeryLongAppl…    3.1
Broken Encoding                Vendorâ€¦Broken             1.0
Version Where Id Should Be     12.0.4
Id                             Id                          Version
WeirdRow

14 upgrades available.
'''


def test_parse_listing_reads_second_column_after_separator():
    ids = parse_listing(LISTING)
    assert ids == ['Git.Git', 'ARP\\User\\X64\\Fork', 'Neovim.Neovim']


def test_parse_listing_without_separator_yields_nothing():
    text = 'Name    Id    Version\nGit    Git.Git    2.43.0\n'
    assert parse_listing(text) == []


def test_parse_listing_empty_input():
    assert parse_listing('') == []
    assert parse_listing(None) == []


def test_parse_listing_ignores_single_field_rows():
    text = '-----\nlonely\n   \nGit  Git.Git  1.0\n'
    assert parse_listing(text) == ['Git.Git']


def test_parse_listing_windows_line_endings():
    text = 'Name  Id  Version\r\n-----------------\r\nGit  Git.Git  2.43.0\r\n'
    assert parse_listing(text) == ['Git.Git']


def test_is_valid_id_rejects_noise():
    assert scanner.is_valid_id('Git.Git')
    assert scanner.is_valid_id('7zip.7zip')
    assert not scanner.is_valid_id('')
    assert not scanner.is_valid_id('Id')
    assert not scanner.is_valid_id('2.43.0.windows.1')
    assert not scanner.is_valid_id('< 1.2')
    assert not scanner.is_valid_id('v10')
    assert not scanner.is_valid_id('Microsoft.VisualStudio…')
    assert not scanner.is_valid_id('MÃ¼ller.App')


def test_fork_arp_id_maps_to_canonical():
    catalog = load_catalog()
    installed = InstalledSet(catalog.aliases, parse_listing(LISTING))
    assert 'Fork.Fork' in installed
    assert 'Fork.Fork' in list(installed)
    assert 'ARP\\User\\X64\\Fork' not in list(installed)


def test_normalize_id_is_idempotent():
    aliases = load_catalog().aliases
    for value in list(aliases) + list(aliases.values()) + ['Git.Git', 'Unknown.Thing']:
        once = normalize_id(value, aliases)
        assert normalize_id(once, aliases) == once


def test_normalize_id_alias_lookup_ignores_case():
    aliases = {'ARP\\User\\X64\\Fork': 'Fork.Fork'}
    assert normalize_id('  arp\\user\\x64\\fork ', aliases) == 'Fork.Fork'
    assert normalize_id('Git.Git', aliases) == 'Git.Git'


def test_installed_set_membership_ignores_case():
    installed = InstalledSet(ids=['Git.Git'])
    assert 'git.git' in installed
    assert 'GIT.GIT' in installed
    assert 'Git' not in installed
    assert None not in installed
    installed.add('GIT.git')
    assert len(installed) == 1


def test_scan_installed_uses_listing_and_checks(catalog, log, monkeypatch, tmp_path):
    docker = tmp_path / 'Docker' / 'Docker Desktop.exe'
    docker.parent.mkdir()
    docker.write_text('')
    monkeypatch.setenv('WINSTRAP_TEST_PROGRAMS', str(tmp_path))
    monkeypatch.setattr(scanner, 'list_installed', lambda: LISTING)
    monkeypatch.setattr(scanner.shutil, 'which', lambda cmd: '/bin/tsc' if cmd == 'tsc' else None)

    installed = scan_installed(catalog, log)

    assert set(installed) == {'Git.Git', 'Fork.Fork', 'Neovim.Neovim', 'typescript', 'docker-desktop'}


def test_scan_installed_survives_failed_listing(catalog, log, monkeypatch):
    monkeypatch.delenv('WINSTRAP_TEST_PROGRAMS', raising=False)
    monkeypatch.setattr(scanner, 'list_installed', lambda: None)
    monkeypatch.setattr(scanner.shutil, 'which', lambda cmd: '/usr/bin/nvim' if cmd == 'nvim' else None)

    installed = scan_installed(catalog, log)

    assert list(installed) == ['Neovim.Neovim']
    assert '[WARNING] Could not read winget list output' in log.path.read_text(encoding='utf-8')


def test_scan_installed_warns_on_unrecognized_listing(catalog, log, monkeypatch):
    monkeypatch.setattr(scanner, 'list_installed', lambda: 'winget: something went sideways')
    monkeypatch.setattr(scanner.shutil, 'which', lambda cmd: None)

    installed = scan_installed(catalog, log)

    assert len(installed) == 0
    assert 'no recognizable rows' in log.path.read_text(encoding='utf-8')


def test_scan_upgradable(catalog, log, monkeypatch):
    monkeypatch.setattr(scanner, 'list_upgradable', lambda: LISTING)
    assert 'Fork.Fork' in scanner.scan_upgradable(catalog, log)

    monkeypatch.setattr(scanner, 'list_upgradable', lambda: None)
    assert scanner.scan_upgradable(catalog, log) is None

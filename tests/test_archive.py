import os
import subprocess

import py7zr
import pytest

from romrunner.archive import (
    SevenZipArchiver, cache_name_for, has_folders, parse_listing, resolve_entry, resolve_folder,
)
from romrunner.errors import EntryNotFound, ExtractionFailure
from romrunner.models import ArchiveEntry

from conftest import corrupt_7z


def _line(name, size='', attrs='....A', packed=''):
    return f"2024-01-02 03:04:05 {attrs} {size:>12} {packed:>12}  {name}"


def _files(*names):
    return [ArchiveEntry(path=n, size=100) for n in names]


def test_parse_listing_reads_fixed_columns():
    output = "\n".join([
        _line('Foo.sfc', '524288', packed='262144'),
        _line('Foo (Japan).sfc', '524288'),
        _line('Bar', attrs='D....'),
        _line('Bar/  spaced name.dat', '12'),
        '',
        'short line',
    ])

    entries = parse_listing(output)

    assert entries == [
        ArchiveEntry(path='Foo.sfc', size=524288, is_directory=False),
        ArchiveEntry(path='Foo (Japan).sfc', size=524288, is_directory=False),
        ArchiveEntry(path='Bar', size=None, is_directory=True),
        ArchiveEntry(path='Bar/  spaced name.dat', size=12, is_directory=False),
    ]


def test_resolve_entry_prefers_exact_match():
    entries = _files('Foo (Japan).sfc', 'Foo.sfc')
    assert resolve_entry(entries, 'Foo').path == 'Foo.sfc'

    entries = _files('Foo.sfc', 'Foo (Japan).sfc')
    assert resolve_entry(entries, 'Foo').path == 'Foo.sfc'


def test_resolve_entry_first_exact_match_wins_in_archive_order():
    entries = _files('Foo.smc', 'Foo.sfc')
    assert resolve_entry(entries, 'Foo').path == 'Foo.smc'


def test_resolve_entry_falls_back_to_variant_prefix():
    entries = _files('Foo (Japan).sfc', 'Foo.sfc')
    entry = resolve_entry(entries, 'Foo__patch1')

    assert entry.path == 'Foo.sfc'
    assert cache_name_for(entry, 'Foo__patch1') == 'Foo__patch1.sfc'


def test_resolve_entry_exact_match_beats_prefix_fallback():
    entries = _files('Foo.sfc', 'Foo__patch1.sfc')
    assert resolve_entry(entries, 'Foo__patch1').path == 'Foo__patch1.sfc'


def test_resolve_entry_reports_missing_entry():
    entries = _files('Bar.sfc', 'Foo (USA).sfc')
    with pytest.raises(EntryNotFound):
        resolve_entry(entries, 'Foo')
    with pytest.raises(EntryNotFound):
        resolve_entry(entries, 'Baz__patch')


def test_resolve_entry_ignores_directories():
    entries = [ArchiveEntry(path='Foo', is_directory=True)] + _files('Foo.sfc')
    assert resolve_entry(entries, 'Foo').path == 'Foo.sfc'


def test_resolve_folder_matches_directory_prefix():
    entries = _files('Monkey Island (CD)/MONKEY.000', 'Monkey Island/MONKEY.000')
    assert resolve_folder(entries, 'Monkey Island') == 'Monkey Island'


def test_resolve_folder_uses_variant_prefix():
    entries = [ArchiveEntry(path='Loom', is_directory=True)] + _files('Loom/LOOM.LFL')
    assert resolve_folder(entries, 'Loom__Language-German') == 'Loom'


def test_resolve_folder_reports_missing_folder():
    with pytest.raises(EntryNotFound):
        resolve_folder(_files('Loom/LOOM.LFL'), 'Zak')


def test_has_folders():
    assert has_folders(_files('Loom/LOOM.LFL'))
    assert not has_folders(_files('LOOM.LFL', '000.LFL'))


def test_list_entries_reads_7z_structure(tmp_path):
    src = tmp_path / 'src'
    (src / 'Foo').mkdir(parents=True)
    (src / 'Foo' / 'game.dat').write_bytes(b'x' * 10)
    (src / 'Foo.sfc').write_bytes(b'y' * 20)
    archive = tmp_path / 'Foo.7z'
    with py7zr.SevenZipFile(archive, 'w') as sz:
        sz.write(src / 'Foo.sfc', 'Foo.sfc')
        sz.write(src / 'Foo', 'Foo')
        sz.write(src / 'Foo' / 'game.dat', 'Foo/game.dat')

    def no_cli(cmd, **kwargs):
        raise AssertionError('7z binary should not be needed for a readable 7z file')

    entries = SevenZipArchiver('7z', runner=no_cli).list_entries(str(archive))

    by_path = {e.path: (e.size, e.is_directory) for e in entries}
    assert by_path == {
        'Foo.sfc': (20, False),
        'Foo': (None, True),
        'Foo/game.dat': (10, False),
    }


def test_list_entries_falls_back_to_cli_listing(tmp_path):
    archive = tmp_path / 'Foo.zip'
    archive.write_bytes(b'PK\x03\x04 not a 7z archive')
    calls = []

    def runner(cmd, **kwargs):
        calls.append(cmd)
        return subprocess.CompletedProcess(cmd, 0, stdout=_line('Foo.sfc', '64') + '\n', stderr='')

    entries = SevenZipArchiver('7z', runner=runner).list_entries(str(archive))

    assert calls == [['7z', 'l', '-ba', str(archive)]]
    assert entries == [ArchiveEntry(path='Foo.sfc', size=64)]


def test_list_entries_fails_when_nothing_can_read(tmp_path):
    archive = tmp_path / 'broken.7z'
    archive.write_bytes(b'garbage')

    def runner(cmd, **kwargs):
        return subprocess.CompletedProcess(cmd, 2, stdout='', stderr='Can not open the file as archive')

    with pytest.raises(ExtractionFailure):
        SevenZipArchiver('7z', runner=runner).list_entries(str(archive))


def test_corrupt_header_falls_back_to_cli_listing(tmp_path):
    archive = corrupt_7z(tmp_path)
    calls = []

    def runner(cmd, **kwargs):
        calls.append(cmd)
        return subprocess.CompletedProcess(cmd, 0, stdout=_line('Foo.sfc', '192') + '\n', stderr='')

    entries = SevenZipArchiver('7z', runner=runner).list_entries(str(archive))

    assert calls == [['7z', 'l', '-ba', str(archive)]]
    assert entries == [ArchiveEntry(path='Foo.sfc', size=192)]


def test_corrupt_header_unreadable_by_cli_is_an_extraction_failure(tmp_path):
    archive = corrupt_7z(tmp_path)

    def runner(cmd, **kwargs):
        return subprocess.CompletedProcess(cmd, 2, stdout='', stderr='Headers Error')

    with pytest.raises(ExtractionFailure):
        SevenZipArchiver('7z', runner=runner).list_entries(str(archive))


def test_cli_listing_keeps_undecodable_names(tmp_path):
    archive = tmp_path / 'Foo.zip'
    archive.write_bytes(b'PK\x03\x04 not a 7z archive')
    raw_name = b'Caf\xe9.sfc'
    line = _line('', '64').encode() + raw_name + b'\n'

    def runner(cmd, **kwargs):
        out = line.decode(kwargs['encoding'], kwargs['errors'])
        return subprocess.CompletedProcess(cmd, 0, stdout=out, stderr='')

    entries = SevenZipArchiver('7z', runner=runner).list_entries(str(archive))

    assert [os.fsencode(e.path) for e in entries] == [raw_name]


def test_extract_entry_streams_to_destination(tmp_path):
    dest = tmp_path / 'Foo.sfc'
    calls = []

    def runner(cmd, stdout=None, **kwargs):
        calls.append(cmd)
        stdout.write(b'rom-bytes')
        return subprocess.CompletedProcess(cmd, 0, stderr=b'')

    SevenZipArchiver('7z', runner=runner).extract_entry('/roms/Foo.7z', 'Foo.sfc', str(dest))

    assert calls == [['7z', 'e', '-y', '-spd', '-so', '/roms/Foo.7z', 'Foo.sfc']]
    assert dest.read_bytes() == b'rom-bytes'


def test_extract_entry_raises_on_tool_failure(tmp_path):
    def runner(cmd, **kwargs):
        return subprocess.CompletedProcess(cmd, 2, stderr=b'Data Error')

    with pytest.raises(ExtractionFailure, match='Data Error'):
        SevenZipArchiver('7z', runner=runner).extract_entry('/roms/Foo.7z', 'Foo.sfc', str(tmp_path / 'out'))

from romrunner.classifier import classify_input, detect_content
from romrunner.models import ContentCategory, InputKind, RomRequest


def test_classify_by_extension(settings):
    assert classify_input(RomRequest.from_path('/roms/Loom.SCUMMVM'), settings) is InputKind.BUNDLE
    assert classify_input(RomRequest.from_path('/roms/Foo.7Z'), settings) is InputKind.ARCHIVE
    assert classify_input(RomRequest.from_path('/roms/Foo.zip'), settings) is InputKind.PLAIN
    assert classify_input(RomRequest.from_path('/roms/README'), settings) is InputKind.PLAIN


def test_archive_extensions_are_configurable(settings):
    settings['archive_extensions'] = ['.7z', 'zip']
    assert classify_input(RomRequest.from_path('/roms/Foo.zip'), settings) is InputKind.ARCHIVE


def test_n64_wins_over_snes(settings):
    assert detect_content(['Foo.sfc', 'Bar.Z64'], settings) is ContentCategory.N64
    assert detect_content(['Foo.smc', 'Foo.txt'], settings) is ContentCategory.SNES
    assert detect_content(['Foo.gba'], settings) is ContentCategory.OTHER
    assert detect_content([], settings) is ContentCategory.OTHER


def test_request_parts():
    request = RomRequest.from_path('/roms/snes/Foo__patch1.7z')

    assert request.source_dir == '/roms/snes'
    assert request.base_name == 'Foo__patch1'
    assert request.extension == '.7z'
    assert request.sibling('.bps') == '/roms/snes/Foo__patch1.bps'
    assert RomRequest.from_path('Foo.7z').source_dir == '.'

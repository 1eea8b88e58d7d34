"""
Input classification and content detection.

Both decisions are made once per invocation; later stages only look at the
resulting enum values.
"""

import os
from typing import Any, Dict, Iterable

from .models import ContentCategory, InputKind, RomRequest
from .settings import extensions


def classify_input(request: RomRequest, settings: Dict[str, Any]) -> InputKind:
    """Decide which sub-pipeline handles the request"""
    ext = request.extension.lower()
    if ext and ext == settings.get("bundle_extension", ".scummvm").lower():
        return InputKind.BUNDLE
    if ext and ext in extensions(settings.get("archive_extensions")):
        return InputKind.ARCHIVE
    return InputKind.PLAIN


def detect_content(names: Iterable[str], settings: Dict[str, Any]) -> ContentCategory:
    """
    Sniff the platform from file extensions. N64 wins over SNES.
    """
    content = settings.get("content", {})
    n64 = extensions(content.get("n64_extensions"))
    snes = extensions(content.get("snes_extensions"))

    found = {os.path.splitext(name)[1].lower() for name in names}
    if found & set(n64):
        return ContentCategory.N64
    if found & set(snes):
        return ContentCategory.SNES
    return ContentCategory.OTHER

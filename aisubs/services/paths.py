import os
import re
from typing import Dict, Tuple

# Ordered most specific first; each group is (suffixes, separator kept).
_LANGUAGE_SUFFIXES: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    ((".eng.hi", ".en.hi"), "."),
    (("_eng.hi", "_en.hi"), "_"),
    ((".eng", ".en"), "."),
    (("_eng", "_en"), "_"),
)

LANGUAGE_TAGS: Dict[str, str] = {
    "polish": "pl",
    "english": "en",
    "german": "de",
    "french": "fr",
    "spanish": "es",
    "italian": "it",
    "portuguese": "pt",
    "czech": "cs",
    "ukrainian": "uk",
}


_UNSAFE_TAG_CHARS = re.compile(r"[^a-z0-9-]+")


def language_tag(target_language: str) -> str:
    """Map a language name to a filename tag; unknown names are slugged."""
    normalized = target_language.strip().lower()
    if normalized in LANGUAGE_TAGS:
        return LANGUAGE_TAGS[normalized]
    return _UNSAFE_TAG_CHARS.sub("-", normalized).strip("-") or "translated"


def derive_output_path(input_path: str, tag: str = "pl") -> str:
    """Swap the English language segment of a subtitle path for ``tag``.

    ``movie.eng.hi.srt`` and ``movie.en.srt`` become ``movie.pl.srt``,
    ``movie_en.srt`` becomes ``movie_pl.srt``. Paths without a language
    segment get ``.pl`` appended before the extension; paths without an
    extension get ``.pl`` appended at the end.
    """
    base, extension = os.path.splitext(input_path)
    if not extension:
        return f"{input_path}.{tag}"

    for suffixes, separator in _LANGUAGE_SUFFIXES:
        for suffix in sorted(suffixes, key=len, reverse=True):
            if base.endswith(suffix):
                return f"{base[: -len(suffix)]}{separator}{tag}{extension}"

    return f"{base}.{tag}{extension}"


def translated_output_path(input_path: str, tag: str = "pl") -> str:
    """Like :func:`derive_output_path`, but never returns ``input_path``.

    With an English target, ``movie.en.srt`` derives to itself; the tag is
    then appended instead, giving ``movie.en.en.srt``.
    """
    output_path = derive_output_path(input_path, tag)
    if output_path != input_path:
        return output_path
    base, extension = os.path.splitext(input_path)
    return f"{base}.{tag}{extension}"

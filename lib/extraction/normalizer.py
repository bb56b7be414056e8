"""
Normalization helpers: reduce markup noise in title / artist / duration values
so that candidate queries can be compared with each other.
"""
from __future__ import annotations

import re
from typing import List

# Edition markers are part of the title proper and must survive normalization.
_EDITION_RE = re.compile(
    r"\b(radio edit|extended mix|club mix|original mix|version)\b",
    re.IGNORECASE,
)
_FEATURE_WORD = r"(?:feat\.|ft\.|featuring\b)"
_FEATURE_OR_REMIX_CREDIT_RE = re.compile(
    rf"(?<!\w){_FEATURE_WORD}|\bremix(?:ed)? by\b",
    re.IGNORECASE,
)

# "(feat. X)" / "[featuring X]"
_BRACKETED_FEATURE_RE = re.compile(
    rf"\s*[(\[]\s*{_FEATURE_WORD}\s*[^)\]]*[)\]]",
    re.IGNORECASE,
)
# "- feat. X" / " feat. X" up to the next " - " separator, bracket or the end
_BARE_FEATURE_RE = re.compile(
    rf"\s*-?\s*(?<!\w){_FEATURE_WORD}.*?(?=\s+-\s|\s*[(\[]|$)",
    re.IGNORECASE,
)
# "DJ Foo Remix", "Someone Edit", "remix by Someone"
_CREDIT_RE = re.compile(
    r"^(?:.+\s(?:remix|edit|mix|rework|bootleg|flip)|(?:remix|edit)(?:ed)? by\s+.+)$",
    re.IGNORECASE,
)

_ARTIST_SPLIT_RE = re.compile(
    r"\s*(?:,|;|&|/|(?<!\w)feat\.|(?<!\w)ft\.|\bfeaturing\b|\bwith\b|\bvs\b\.?)\s*",
    re.IGNORECASE,
)
_REMIX_OR_EDIT_RE = re.compile(r"\b(?:remix|edit)(?:ed)?\b", re.IGNORECASE)


def collapse_whitespace(value: str) -> str:
    return re.sub(r"\s+", " ", value or "").strip()


def has_edition_marker(title: str) -> bool:
    return bool(title) and bool(_EDITION_RE.search(title))


def has_feature_or_remix_credit(title: str) -> bool:
    return bool(title) and bool(_FEATURE_OR_REMIX_CREDIT_RE.search(title))


def _is_removable_credit(segment: str) -> bool:
    segment = collapse_whitespace(segment)
    if not segment or _EDITION_RE.search(segment):
        return False
    return bool(_CREDIT_RE.match(segment))


def _split_trailing_segment(s: str) -> tuple[str, str] | None:
    """Split off the last "(...)", "[...]" or " - ..." segment; never the whole title."""
    closers = {")": "(", "]": "["}
    if s and s[-1] in closers:
        start = s.rfind(closers[s[-1]])
        if start > 0:
            return s[:start], s[start + 1:-1]
        return None
    idx = s.rfind(" - ")
    if idx > 0:
        return s[:idx], s[idx + 3:]
    return None


def _drop_bare_feature(m: re.Match) -> str:
    # an edition marker swallowed by the feature span is put back as a suffix
    marker = _EDITION_RE.search(m.group(0))
    return f" - {marker.group(0)}" if marker else " "


def _title_pass(title: str) -> str:
    s = _BRACKETED_FEATURE_RE.sub("", title)
    s = _BARE_FEATURE_RE.sub(_drop_bare_feature, s)
    s = collapse_whitespace(s)

    split = _split_trailing_segment(s)
    if split and _is_removable_credit(split[1]):
        s = split[0]

    s = re.sub(r"\s*-\s*$", "", s)
    return collapse_whitespace(s)


def normalize_title(title: str) -> str:
    """
    Title normalization:
    - drop "(feat. X)", "[featuring X]", "- feat. X"
    - drop trailing remix credits: "(DJ Foo Remix)", "[Bar Edit]", "- Baz Remix"
    - keep edition markers: Radio Edit / Extended Mix / Club Mix / Original Mix / Version
    Applied until nothing changes, so the result is a fixpoint.
    """
    s = collapse_whitespace(title)
    while True:
        nxt = _title_pass(s)
        if nxt == s:
            return s
        s = nxt


def split_artists(artist: str) -> List[str]:
    return [p.strip() for p in _ARTIST_SPLIT_RE.split(artist or "") if p and p.strip()]


def normalize_artist(artist: str) -> str:
    """
    Artist normalization:
    - split on , ; & / feat. with vs.
    - remix/edit-credited names first, then the rest (stable)
    - drop duplicates (case-insensitive), keep first spelling
    """
    parts = split_artists(artist)
    remixers = [p for p in parts if _REMIX_OR_EDIT_RE.search(p)]
    others = [p for p in parts if not _REMIX_OR_EDIT_RE.search(p)]

    seen: set[str] = set()
    out: List[str] = []
    for p in remixers + others:
        key = p.casefold()
        if key in seen:
            continue
        seen.add(key)
        out.append(p)
    return ", ".join(out)


def starts_with_remix_credit(artist: str) -> bool:
    parts = split_artists(artist)
    return bool(parts) and bool(_REMIX_OR_EDIT_RE.search(parts[0]))


def normalize_duration(duration: str) -> str:
    """
    "125" -> "2:05", "3:45" -> "3:45", "abc" -> "".
    Anything other than digits and colons is dropped first.
    """
    s = re.sub(r"[^0-9:]", "", duration or "")
    if re.fullmatch(r"\d{1,3}", s):
        seconds = int(s)
        return f"{seconds // 60}:{seconds % 60:02d}"
    return s


def duration_from_ms(ms: int | str) -> str:
    try:
        seconds = (int(ms) + 500) // 1000
    except (TypeError, ValueError):
        return ""
    return f"{seconds // 60}:{seconds % 60:02d}"


def normalize_key(value: str) -> str:
    """Lookup key: lowercase, punctuation (except ' and &) to spaces, single spaced."""
    s = (value or "").lower().strip()
    s = re.sub(r"[^\w\s'&]+", " ", s)
    return collapse_whitespace(s)

"""Issue filenames: NNN-slug.md.

Slugs are lowercase, hyphen-separated and may contain any Unicode letter
(Korean titles keep their Hangul), so they are built character by character
rather than with an ASCII-only regex.
"""

import re
import unicodedata

FILENAME_NUMBER_RE = re.compile(r"^(\d+)-")
COMMIT_PREFIX_RE = re.compile(r"^(feat|fix|docs|chore|refactor|test|style|perf|ci|build):\s*")

SLUG_MAX_LENGTH = 50
SLUG_MIN_CUT = 30
DEFAULT_SLUG = "issue"


def generate_slug(title: str) -> str:
    """Build a filename slug from an issue title.

    Conventional commit prefixes (feat:, fix:, ...) are dropped. Long slugs
    are cut to 50 characters, at the last hyphen when it sits past
    character 30.
    """
    text = unicodedata.normalize("NFC", title).lower()
    text = COMMIT_PREFIX_RE.sub("", text)
    text = text.replace(" ", "-").replace("_", "-")

    chars: list[str] = []
    prev_hyphen = False
    for ch in text:
        if ch.isalpha() or ch.isdigit():
            chars.append(ch)
            prev_hyphen = False
        elif ch == "-" and not prev_hyphen and chars:
            chars.append("-")
            prev_hyphen = True
    slug = "".join(chars).rstrip("-")

    if len(slug) > SLUG_MAX_LENGTH:
        truncated = slug[:SLUG_MAX_LENGTH]
        last_hyphen = truncated.rfind("-")
        slug = truncated[:last_hyphen] if last_hyphen > SLUG_MIN_CUT else truncated
        slug = slug.rstrip("-")

    return slug or DEFAULT_SLUG


def is_valid_slug(slug: str) -> bool:
    """Non-empty and made only of lowercase letters, digits, hyphens and other Unicode letters."""
    if not slug:
        return False
    for ch in slug:
        if ch == "-" or ch.isdigit():
            continue
        if not ch.isalpha() or ch != ch.lower():
            return False
    return True


def issue_filename(number: int, slug: str) -> str:
    """Zero-padded (width 3) filename for an issue."""
    return f"{number:03d}-{slug or DEFAULT_SLUG}.md"


def extract_filename_number(file_name: str) -> int | None:
    """Integer NNN prefix of NNN-slug.md, or None when there is none."""
    m = FILENAME_NUMBER_RE.match(file_name)
    if not m:
        return None
    return int(m.group(1))


def extract_slug(file_name: str) -> str:
    """Text after the first hyphen, without .md ("001-feature-name.md" -> "feature-name")."""
    name = file_name[:-3] if file_name.endswith(".md") else file_name
    _, sep, rest = name.partition("-")
    if not sep:
        return ""
    return rest

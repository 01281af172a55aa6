import html
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Iterator

from uservault.core.exceptions import ExtractionFailure
from uservault.utils.common import dig, first_present, non_empty_str


logger = logging.getLogger(__name__)

CsrfExtractor = Callable[[str], Iterable[str]]

_META_PATTERNS = [
    re.compile(r"""<meta\s+name\s*=\s*["']csrf-token["']\s+content\s*=\s*["']([^"']+)["']""", re.I),
    re.compile(r"""<meta\s+content\s*=\s*["']([^"']+)["']\s+name\s*=\s*["']csrf-token["']""", re.I),
    re.compile(r"""name\s*=\s*["']csrf-token["'][^>]*content\s*=\s*["']([^"']+)["']""", re.I),
    re.compile(r"""content\s*=\s*["']([^"']+)["'][^>]*name\s*=\s*["']csrf-token["']""", re.I),
]

_HIDDEN_INPUT_PATTERNS = [
    re.compile(r"""<input[^>]*name\s*=\s*["']_token["'][^>]*value\s*=\s*["']([^"']+)["']""", re.I),
    re.compile(r"""<input[^>]*value\s*=\s*["']([^"']+)["'][^>]*name\s*=\s*["']_token["']""", re.I),
    re.compile(r"""type\s*=\s*["']hidden["'][^>]*name\s*=\s*["']_token["'][^>]*value\s*=\s*["']([^"']+)["']""", re.I),
]

_INLINE_SCRIPT_PATTERNS = [
    re.compile(r"""["']?csrf["']?\s*:\s*["']([a-zA-Z0-9]{20,})["']""", re.I),
    re.compile(r"""["']?csrfToken["']?\s*:\s*["']([a-zA-Z0-9]{20,})["']""", re.I),
    re.compile(r"""csrf_token\s*[=:]\s*["']([a-zA-Z0-9]{20,})["']""", re.I),
    re.compile(r"""Livewire\.(?:all\(\)|start).*?csrf.*?["']([a-zA-Z0-9]{20,})["']""", re.I | re.S),
    re.compile(r"""window\.livewire_token\s*=\s*["']([a-zA-Z0-9]{20,})["']""", re.I),
]

_SCRIPT_BLOCK = re.compile(r"<script[^>]*>([\s\S]*?)</script>", re.I)
_SCRIPT_ASSIGNMENT = re.compile(r"""['"]?(?:csrf|_token|csrfToken)['"]?\s*[=:]\s*['"]([a-zA-Z0-9]{30,})['"]""")
_GENERIC_CSRF = re.compile(r"""csrf[^"']*["']([a-zA-Z0-9]{40,})["']""", re.I)

_SNAPSHOT_PATTERNS = [
    ("wire:snapshot", re.compile(r'wire:snapshot\s*=\s*"([^"]+)"', re.I)),
    ("wire:snapshot", re.compile(r"wire:snapshot\s*=\s*'([^']+)'", re.I)),
    ("wire:initial-data", re.compile(r'wire:initial-data\s*=\s*"([^"]+)"', re.I)),
    ("wire:initial-data", re.compile(r"wire:initial-data\s*=\s*'([^']+)'", re.I)),
    ("x-data", re.compile(r"""x-data=["']\s*\{[^}]*snapshot\s*:\s*["']([^"']+)["']""")),
]


def _matches(patterns: list[re.Pattern]) -> CsrfExtractor:
    def extract(page: str) -> Iterator[str]:
        for pattern in patterns:
            match = pattern.search(page)
            if match:
                yield match.group(1)
    return extract


def _snapshot_memo_csrf(page: str) -> Iterator[str]:
    for raw in _raw_snapshots(page):
        try:
            data = json.loads(raw)
        except ValueError:
            continue
        token = dig(data, "memo.csrf")
        if isinstance(token, str):
            yield token


def _script_blocks(page: str) -> Iterator[str]:
    for block in _SCRIPT_BLOCK.finditer(page):
        match = _SCRIPT_ASSIGNMENT.search(block.group(0))
        if match:
            yield match.group(1)


def _generic(page: str) -> Iterator[str]:
    match = _GENERIC_CSRF.search(page)
    if match:
        yield match.group(1)


# Evaluated in order; later extractors only run if earlier ones found nothing usable.
CSRF_EXTRACTORS: list[tuple[str, CsrfExtractor]] = [
    ("meta-tag", _matches(_META_PATTERNS)),
    ("hidden-input", _matches(_HIDDEN_INPUT_PATTERNS)),
    ("inline-script", _matches(_INLINE_SCRIPT_PATTERNS)),
    ("snapshot-memo", _snapshot_memo_csrf),
    ("script-block", _script_blocks),
    ("generic", _generic),
]


def _raw_snapshots(page: str) -> Iterator[str]:
    for _, pattern in _SNAPSHOT_PATTERNS:
        for match in pattern.finditer(page):
            yield html.unescape(match.group(1))


@dataclass(frozen=True)
class ComponentSnapshot:
    """
    Serialized state of a server-rendered component. `raw` is sent back
    verbatim; `data` is the parsed form used for inspection.
    """
    raw: str
    data: dict[str, Any] = field(compare=False, repr=False)
    id: str
    name: str
    source: str = "wire:snapshot"

    @classmethod
    def parse(cls, raw: str, source: str = "wire:snapshot") -> "ComponentSnapshot | None":
        try:
            data = json.loads(raw)
        except ValueError:
            return None
        if not isinstance(data, dict):
            return None

        component_id = first_present(data, ("memo.id", "fingerprint.id"), accept=non_empty_str)
        name = first_present(data, ("memo.name", "fingerprint.name"), accept=non_empty_str)
        if not component_id or not name:
            return None
        return cls(raw=raw, data=data, id=component_id, name=name, source=source)

    @property
    def errors(self) -> dict[str, Any]:
        errors = dig(self.data, "memo.errors")
        return errors if isinstance(errors, dict) else {}


@dataclass(frozen=True)
class FormPage:
    url: str
    csrf_token: str
    snapshot: ComponentSnapshot
    csrf_source: str
    xsrf_token: str | None = None


def find_csrf_token(page: str, min_length: int = 20) -> tuple[str, str] | None:
    """Return (token, extractor name) for the first candidate longer than min_length."""
    for name, extractor in CSRF_EXTRACTORS:
        for candidate in extractor(page):
            if len(candidate) > min_length:
                return candidate, name
    return None


def find_snapshot(page: str) -> ComponentSnapshot | None:
    for source, pattern in _SNAPSHOT_PATTERNS:
        for match in pattern.finditer(page):
            snapshot = ComponentSnapshot.parse(html.unescape(match.group(1)), source)
            if snapshot is not None:
                return snapshot
    return None


def extract_form_page(
    page: str,
    url: str,
    min_length: int = 20,
    xsrf_cookie: str | None = None,
) -> FormPage:
    """
    Pull the anti-forgery token and the component snapshot out of a page.
    The XSRF-TOKEN cookie stands in for the CSRF token when the markup has
    none. Raises ExtractionFailure when either piece is missing.
    """
    found = find_csrf_token(page, min_length)
    if found is None and xsrf_cookie and len(xsrf_cookie) > min_length:
        found = (xsrf_cookie, "xsrf-cookie")

    snapshot = find_snapshot(page)

    if found is None or snapshot is None:
        details = {
            "csrf_found": found is not None,
            "snapshot_found": snapshot is not None,
            "page_length": len(page),
            "has_livewire_script": "livewire" in page.lower(),
        }
        logger.error(f"Form page extraction failed for {url}: {details}")
        missing = "CSRF token" if found is None else "component snapshot"
        raise ExtractionFailure(f"Could not find {missing}. Please try again.", url=url, details=details)

    token, source = found
    logger.debug(f"CSRF token found via {source} (length {len(token)}); snapshot {snapshot.name}#{snapshot.id}")
    return FormPage(url=url, csrf_token=token, snapshot=snapshot, csrf_source=source, xsrf_token=xsrf_cookie)

from __future__ import annotations

import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Generator, List, Optional, Tuple

from apkstage.core.config import DEFAULT_STORE_HEADER
from apkstage.core.errors import ConfigError, StoreIOError

try:
    import fcntl as _fcntl
    _HAS_FCNTL = True
except ImportError:
    _HAS_FCNTL = False
    logging.getLogger("apkstage.locking").warning(
        "fcntl not available (non-POSIX). Counter store locking is disabled. "
        "Do not run overlapping release builds against one store on this platform."
    )

_log = logging.getLogger("apkstage.store")

COUNT_SUFFIX = "_count"


def count_key(group_key: str) -> str:
    return f"{group_key}{COUNT_SUFFIX}"


def read_count(props: Dict[str, str], group_key: str) -> int:
    key = count_key(group_key)
    raw = props.get(key)
    if raw is None or raw.strip() == "":
        return 0
    try:
        value = int(raw.strip())
    except ValueError:
        raise ConfigError(f"counter store entry {key}={raw!r} is not an integer") from None
    if value < 0:
        raise ConfigError(f"counter store entry {key}={value} is negative")
    return value


_WHITESPACE = " \t\f"
_UNESCAPES = {"t": "\t", "n": "\n", "r": "\r", "f": "\f"}


@dataclass(frozen=True)
class PropertiesLine:
    """One logical line of a properties file, with the source text it came from.

    key is None for comments and blank lines.
    """

    raw: str
    key: Optional[str] = None
    value: str = ""


def _continues(line: str) -> bool:
    # an odd number of trailing backslashes escapes the line break
    return (len(line) - len(line.rstrip("\\"))) % 2 == 1


def _unescape(s: str) -> str:
    out: List[str] = []
    i = 0
    while i < len(s):
        c = s[i]
        if c != "\\":
            out.append(c)
            i += 1
            continue
        i += 1
        if i >= len(s):
            break
        c = s[i]
        if c == "u":
            digits = s[i + 1:i + 5]
            if len(digits) != 4 or any(d not in "0123456789abcdefABCDEF" for d in digits):
                raise ConfigError(f"malformed \\uxxxx escape in counter store: {s!r}")
            out.append(chr(int(digits, 16)))
            i += 5
            continue
        out.append(_UNESCAPES.get(c, c))
        i += 1
    return "".join(out)


def _escape(s: str, *, key: bool) -> str:
    out: List[str] = []
    for c in s:
        if c == "\\":
            out.append("\\\\")
        elif c == "\n":
            out.append("\\n")
        elif c == "\t":
            out.append("\\t")
        elif key and (c in "=:#!" or c in _WHITESPACE):
            out.append("\\" + c)
        else:
            out.append(c)
    return "".join(out)


def _split_entry(line: str) -> Tuple[str, str]:
    """Key ends at the first unescaped '=', ':' or whitespace, as in java.util.Properties."""
    i = 0
    while i < len(line):
        c = line[i]
        if c == "\\":
            i += 2
            continue
        if c in "=:" or c in _WHITESPACE:
            break
        i += 1
    rest = line[i:].lstrip(_WHITESPACE)
    if rest[:1] in ("=", ":"):
        rest = rest[1:].lstrip(_WHITESPACE)
    return _unescape(line[:i]), _unescape(rest)


def read_properties_lines(text: str) -> List[PropertiesLine]:
    physical = text.splitlines()
    out: List[PropertiesLine] = []
    i = 0
    while i < len(physical):
        first = physical[i]
        line = first.lstrip(_WHITESPACE)
        if not line or line[0] in ("#", "!"):
            out.append(PropertiesLine(raw=first))
            i += 1
            continue

        raw = [first]
        while _continues(line) and i + 1 < len(physical):
            i += 1
            raw.append(physical[i])
            line = line[:-1] + physical[i].lstrip(_WHITESPACE)
        if _continues(line):
            line = line[:-1]
        i += 1

        key, value = _split_entry(line)
        if not key:
            raise ConfigError(f"counter store line has an empty key: {first!r}")
        out.append(PropertiesLine(raw="\n".join(raw), key=key, value=value))
    return out


def parse_properties(text: str) -> Tuple[List[str], Dict[str, str]]:
    """Split a properties text store into (leading comment block, entries).

    Follows java.util.Properties: '#'/'!' comments, '=', ':' or whitespace
    separators, backslash line continuations and escapes.
    """
    header: List[str] = []
    props: Dict[str, str] = {}
    in_header = True
    for pl in read_properties_lines(text):
        if pl.key is None:
            stripped = pl.raw.strip()
            if in_header and stripped:
                header.append(stripped)
            continue
        in_header = False
        props[pl.key] = pl.value
    return header, props


def _has_header(lines: List[PropertiesLine]) -> bool:
    for pl in lines:
        if pl.key is not None:
            return False
        if pl.raw.strip():
            return True
    return False


def render_properties(
    header: List[str],
    props: Dict[str, str],
    source: Optional[List[PropertiesLine]] = None,
) -> str:
    """
    Render props back to text.

    Lines from source are kept verbatim while their value is unchanged;
    changed entries are rewritten as key=value, removed ones dropped, and new
    keys appended. header is written only when source has no leading comments.
    """
    source = source or []
    lines: List[str] = [] if _has_header(source) else list(header)
    seen = set()
    for pl in source:
        if pl.key is None:
            lines.append(pl.raw)
            continue
        if pl.key not in props or pl.key in seen:
            continue
        seen.add(pl.key)
        if props[pl.key] == pl.value:
            lines.append(pl.raw)
        else:
            lines.append(f"{_escape(pl.key, key=True)}={_escape(props[pl.key], key=False)}")
    for k, v in props.items():
        if k not in seen:
            lines.append(f"{_escape(k, key=True)}={_escape(v, key=False)}")
    return "\n".join(lines) + "\n"


class CounterStore(ABC):
    """Persisted per-group build counters.

    load() returns every entry (unrecognised keys included) and save() writes
    the full mapping back. Callers doing read-modify-write hold locked().
    """

    @abstractmethod
    def load(self) -> Dict[str, str]:
        ...

    @abstractmethod
    def save(self, props: Dict[str, str]) -> None:
        ...

    @abstractmethod
    def locked(self):
        """Context manager serialising read-modify-write cycles."""

    def counts(self) -> Dict[str, int]:
        props = self.load()
        return {
            k[: -len(COUNT_SUFFIX)]: read_count(props, k[: -len(COUNT_SUFFIX)])
            for k in props
            if k.endswith(COUNT_SUFFIX)
        }


class InMemoryCounterStore(CounterStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._props: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()
        self.save_calls = 0

    def load(self) -> Dict[str, str]:
        return dict(self._props)

    def save(self, props: Dict[str, str]) -> None:
        self._props = dict(props)
        self.save_calls += 1

    @contextmanager
    def locked(self) -> Generator[None, None, None]:
        with self._lock:
            yield


class PropertiesCounterStore(CounterStore):
    """
    key=value file store (``version.properties``).

    - created empty on first load if absent
    - lines this store did not change (comments, foreign keys, continuations)
      are written back verbatim; the default attribution header is added
      when the file has no leading comment block
    - save() writes a sibling temp file and os.replace()s it into place, so a
      reader never sees a truncated store
    - locked() takes an exclusive flock on ``<file>.lock`` (POSIX only)
    """

    def __init__(self, path: Path, *, header: Optional[List[str]] = None):
        self.path = Path(path)
        self.default_header = list(header if header is not None else DEFAULT_STORE_HEADER)
        self._source: List[PropertiesLine] = []

    @property
    def lock_path(self) -> Path:
        return self.path.with_name(self.path.name + ".lock")

    def load(self) -> Dict[str, str]:
        try:
            if not self.path.exists():
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self.path.touch()
                _log.info("Created empty counter store at %s", self.path)
            text = self.path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise ConfigError(f"counter store {self.path} is not valid UTF-8 text: {exc}") from exc
        except OSError as exc:
            raise StoreIOError(f"cannot read counter store {self.path}: {exc}") from exc

        self._source = read_properties_lines(text)
        _, props = parse_properties(text)
        return props

    def save(self, props: Dict[str, str]) -> None:
        payload = render_properties(self.default_header, props, self._source)

        tmp_name: Optional[str] = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self.path)
            tmp_name = None
        except OSError as exc:
            raise StoreIOError(f"cannot persist counter store {self.path}: {exc}") from exc
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    _log.warning("Could not remove temp file %s", tmp_name)

    @contextmanager
    def locked(self) -> Generator[None, None, None]:
        try:
            self.lock_path.parent.mkdir(parents=True, exist_ok=True)
            fh = open(self.lock_path, "a", encoding="utf-8")
        except OSError as exc:
            raise StoreIOError(f"cannot open lock file {self.lock_path}: {exc}") from exc

        with fh:
            if _HAS_FCNTL:
                _fcntl.flock(fh, _fcntl.LOCK_EX)
            try:
                yield
            finally:
                if _HAS_FCNTL:
                    _fcntl.flock(fh, _fcntl.LOCK_UN)

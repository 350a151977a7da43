#!/usr/bin/env python3
"""
Contextualizer - Source Tree Bundler for LLMs

Walks selected project directories, drops everything matched by the
configured ignore rules, and concatenates the remaining text files into
plain-text context bundles, one section per file.

Architecture:
    contextualizer.json → Config → Target Discovery → Tree Walk →
    Ignore Matching → Content Classification → Aggregation → Output
"""

from __future__ import annotations

import argparse
import errno
import json
import logging
import os
import posixpath
import re
import shutil
import stat
import subprocess
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from enum import Enum, auto
from pathlib import Path
from typing import (
    Any,
    Dict,
    Iterable,
    List,
    Optional,
    Sequence,
    Set,
    Tuple,
    Union,
)

import pyperclip

# =============================================================================
# VERSION MANAGEMENT
# =============================================================================

__version__ = "0.1.0"


def get_version() -> str:
    """Get version from package metadata or fallback to hardcoded."""
    from importlib.metadata import PackageNotFoundError, version

    try:
        return version("contextualizer")
    except PackageNotFoundError:
        return __version__


# =============================================================================
# CONSTANTS
# =============================================================================

class Defaults:
    """Default configuration values."""
    CONFIG_FILE_NAME = "contextualizer.json"
    OUTPUT_DIR = ".context"
    TOP_LEVEL_DIRS: Tuple[str, ...] = ("src",)
    SINGLE_OUTPUT_NAME = "context.txt"
    # Files above this size are never read into memory
    MAX_FILE_SIZE = 10 * 1024 * 1024
    BINARY_SNIFF_BYTES = 1024


class DefaultIgnore:
    """Ignore rules written into a freshly initialized config."""
    PATTERNS: Tuple[str, ...] = (
        # Directories
        "node_modules/", "tmp/", "dist/", "build/", "coverage/", ".git/",
        ".tmp/", ".vscode/", ".idea/", ".turbo/", "_build/", "__pycache__/",
        "burrito_out/", "doc/", "deps/", "simple",
        # Files
        "package-lock.json", "yarn.lock", "bun.lockb", "pnpm-lock.yaml",
        "CHANGELOG.md", ".gitignore", ".DS_Store", "LICENSE",
        # Extensions / globs
        "*.log", "*.env", "*.svg", "*.png", "*.jpg", "*.jpeg", "*.gif",
        "*.zip", "*.tar", "*.gz", "*.rar", "*.7z",
        "*.pdf", "*.doc", "*.docx", "*.xls", "*.xlsx", "*.ppt", "*.pptx",
        "*.exe", "*.dll", "*.so", "*.dylib", "*.bin", "*.out", "*.sum",
        "*.lock",
    )


class Headers:
    """Section templates of the rendered bundle. Downstream readers match these exactly."""
    CONTENT = "===== {path} =====\n{content}\n\n"
    TOO_LARGE = "===== {path} (Skipped: Too large) =====\n\n"
    READ_ERROR = "===== {path} (Error reading file) =====\n\n"
    PROJECT = "\n\n# Project: {name}\n\n"


# =============================================================================
# ERRORS
# =============================================================================

class ContextualizerError(Exception):
    """Base class for errors reported to the user."""


class ConfigError(ContextualizerError):
    """Configuration file is missing, unreadable or malformed."""


class OutputError(ContextualizerError):
    """Writing the generated bundle failed."""


class ScanError(ContextualizerError):
    """
    A walk could not continue (unlistable directory, unresolvable path).

    `output` holds everything aggregated before the failure; the caller
    decides whether it is worth keeping.
    """

    def __init__(self, message: str, output: str = ""):
        super().__init__(message)
        self.output = output


# =============================================================================
# ENUMS AND DATA MODELS
# =============================================================================

class OutputMode(Enum):
    """How scanned directories are grouped into output files."""
    MULTIPLE = auto()      # One <dir>.txt per directory (DEFAULT)
    SINGLE = auto()        # Everything in context.txt


class OutputTarget(Enum):
    """Output destination."""
    DIRECTORY = auto()
    CLIPBOARD = auto()
    STDOUT = auto()


class Outcome(Enum):
    """Per-file classification outcome."""
    INCLUDE = auto()
    SKIP_TOO_LARGE = auto()
    SKIP_BINARY = auto()
    SKIP_ERROR = auto()


@dataclass(frozen=True)
class Classification:
    """Result of sizing, reading and sniffing one file."""
    outcome: Outcome
    content: str = ""
    error: Optional[OSError] = None


@dataclass(frozen=True)
class Entry:
    """A path visited during the walk, relative to the project root."""
    relative_path: str
    is_dir: bool


@dataclass(frozen=True)
class ScanOutput:
    """Rendered bundle for one scanned directory."""
    directory: Path
    content: str


@dataclass(frozen=True)
class Config:
    """Immutable tool configuration, mirrored by contextualizer.json."""
    output_dir: str = Defaults.OUTPUT_DIR
    top_level_dirs: Tuple[str, ...] = Defaults.TOP_LEVEL_DIRS
    ignore: Tuple[str, ...] = DefaultIgnore.PATTERNS
    process_top_level_dirs: bool = False
    open_output_directory: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "outputDir": self.output_dir,
            "topLevelDirs": list(self.top_level_dirs),
            "ignore": list(self.ignore),
            "processTopLevelDirs": self.process_top_level_dirs,
            "openOutputDirectory": self.open_output_directory,
        }


# =============================================================================
# FILESYSTEM ABSTRACTION
# =============================================================================

@dataclass(frozen=True)
class FileStat:
    size: int
    is_dir: bool


@dataclass(frozen=True)
class DirEntry:
    name: str
    is_dir: bool


class FileSystem(ABC):
    """The three filesystem operations a walk needs."""

    @abstractmethod
    def stat(self, path: Path) -> FileStat:
        """Size and type of `path`, following symlinks. Raises OSError."""
        pass

    @abstractmethod
    def list_dir(self, path: Path) -> List[DirEntry]:
        """Children of `path` in no particular order. Raises OSError."""
        pass

    @abstractmethod
    def read_file(self, path: Path) -> bytes:
        """Full content of `path`. Raises OSError."""
        pass


class OSFileSystem(FileSystem):
    """The real disk."""

    def stat(self, path: Path) -> FileStat:
        st = os.stat(path)
        return FileStat(size=st.st_size, is_dir=stat.S_ISDIR(st.st_mode))

    def list_dir(self, path: Path) -> List[DirEntry]:
        # Symlinked directories are reported as files and never descended into
        with os.scandir(path) as it:
            return [DirEntry(e.name, e.is_dir(follow_symlinks=False)) for e in it]

    def read_file(self, path: Path) -> bytes:
        with open(path, "rb") as f:
            return f.read()


class MemoryFileSystem(FileSystem):
    """
    Dict-backed filesystem.

    Parent directories are created implicitly. `fail()` makes a single
    operation on a single path raise, which is how unreadable files and
    unlistable directories are simulated.
    """

    OPERATIONS = ("stat", "list_dir", "read_file")

    def __init__(self, files: Optional[Dict[str, Union[str, bytes]]] = None):
        self._files: Dict[str, bytes] = {}
        self._dirs: Set[str] = set()
        self._errors: Dict[Tuple[str, str], OSError] = {}
        for path, data in (files or {}).items():
            self.add_file(path, data)

    @staticmethod
    def _key(path: Union[str, Path]) -> str:
        return Path(path).as_posix()

    def add_file(self, path: Union[str, Path], data: Union[str, bytes]) -> None:
        key = self._key(path)
        if isinstance(data, str):
            data = data.encode("utf-8")
        self._files[key] = data
        self._add_parents(key)

    def add_dir(self, path: Union[str, Path]) -> None:
        key = self._key(path)
        self._dirs.add(key)
        self._add_parents(key)

    def fail(self, path: Union[str, Path], operation: str, error: OSError) -> None:
        if operation not in self.OPERATIONS:
            raise ValueError(f"Unknown operation: {operation}")
        self._errors[(self._key(path), operation)] = error

    def _add_parents(self, key: str) -> None:
        parent = posixpath.dirname(key)
        while parent and parent not in self._dirs:
            self._dirs.add(parent)
            up = posixpath.dirname(parent)
            if up == parent:
                break
            parent = up

    def _check(self, key: str, operation: str) -> None:
        error = self._errors.get((key, operation))
        if error is not None:
            raise error

    def stat(self, path: Path) -> FileStat:
        key = self._key(path)
        self._check(key, "stat")
        if key in self._files:
            return FileStat(size=len(self._files[key]), is_dir=False)
        if key in self._dirs:
            return FileStat(size=0, is_dir=True)
        raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), key)

    def list_dir(self, path: Path) -> List[DirEntry]:
        key = self._key(path)
        self._check(key, "list_dir")
        if key in self._files:
            raise NotADirectoryError(errno.ENOTDIR, os.strerror(errno.ENOTDIR), key)
        if key not in self._dirs:
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), key)

        entries = [
            DirEntry(posixpath.basename(d), True)
            for d in self._dirs if d != key and posixpath.dirname(d) == key
        ]
        entries.extend(
            DirEntry(posixpath.basename(f), False)
            for f in self._files if posixpath.dirname(f) == key
        )
        return entries

    def read_file(self, path: Path) -> bytes:
        key = self._key(path)
        self._check(key, "read_file")
        if key in self._dirs:
            raise IsADirectoryError(errno.EISDIR, os.strerror(errno.EISDIR), key)
        if key not in self._files:
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), key)
        return self._files[key]


# =============================================================================
# IGNORE MATCHING
# =============================================================================

def _find_brace_end(pattern: str, start: int) -> int:
    """Index of the "}" closing the "{" at `start`."""
    depth = 0
    i = start
    while i < len(pattern):
        c = pattern[i]
        if c == "\\":
            i += 1
        elif c == "{":
            depth += 1
        elif c == "}":
            depth -= 1
            if depth == 0:
                return i
        i += 1
    raise ValueError("unterminated '{'")


def _split_alternatives(body: str) -> List[str]:
    """Split brace contents on commas that are not nested in another brace."""
    parts: List[str] = []
    depth = 0
    current = ""
    i = 0
    while i < len(body):
        c = body[i]
        if c == "\\" and i + 1 < len(body):
            current += body[i:i + 2]
            i += 2
            continue
        if c == "{":
            depth += 1
        elif c == "}":
            depth -= 1
        if c == "," and depth == 0:
            parts.append(current)
            current = ""
        else:
            current += c
        i += 1
    parts.append(current)
    return parts


def _translate_glob(pattern: str) -> str:
    """
    Translate a full-path glob into a regular expression.

    `*` and `?` never cross a slash, a `**` segment spans any number of
    segments, `[...]` and `{a,b}` work as in shells. Every other character,
    `!`, `#` and a leading `/` included, is literal. Raises ValueError for
    unterminated classes, braces and escapes.
    """
    out: List[str] = []
    i = 0
    n = len(pattern)
    while i < n:
        c = pattern[i]
        if c == "*":
            whole_segment = (
                pattern.startswith("**", i)
                and (i == 0 or pattern[i - 1] == "/")
                and (i + 2 == n or pattern[i + 2] == "/")
            )
            if whole_segment and i + 2 == n:
                out.append(".*")
                i += 2
                continue
            if whole_segment:
                # "**/" is zero or more leading directories
                out.append("(?:[^/]+/)*")
                i += 3
                continue
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "\\":
            if i + 1 == n:
                raise ValueError("trailing '\\'")
            i += 1
            out.append(re.escape(pattern[i]))
        elif c == "[":
            j = i + 1
            if j < n and pattern[j] in "!^":
                j += 1
            if j < n and pattern[j] == "]":
                j += 1
            while j < n and pattern[j] != "]":
                j += 1
            if j >= n:
                raise ValueError("unterminated '['")
            body = pattern[i + 1:j]
            negate = body[:1] in ("!", "^")
            if negate:
                body = body[1:]
            chars = "".join(ch if ch == "-" else re.escape(ch) for ch in body)
            out.append(f"[^/{chars}]" if negate else f"[{chars}]")
            i = j
        elif c == "{":
            end = _find_brace_end(pattern, i)
            alternatives = _split_alternatives(pattern[i + 1:end])
            out.append("(?:" + "|".join(_translate_glob(a) for a in alternatives) + ")")
            i = end
        else:
            out.append(re.escape(c))
        i += 1
    return "".join(out)


def _compile_glob(pattern: str) -> Optional[re.Pattern[str]]:
    """Compile one full-path glob. Returns None if the pattern is malformed."""
    try:
        return re.compile(_translate_glob(pattern), re.DOTALL)
    except (ValueError, re.error) as e:
        logging.warning(f"Invalid ignore pattern {pattern!r}: {e}")
        return None


@dataclass(frozen=True)
class IgnoreRule:
    """A single ignore rule with its glob forms precompiled."""
    text: str
    direct: Optional[re.Pattern[str]] = field(default=None, compare=False)
    anywhere: Optional[re.Pattern[str]] = field(default=None, compare=False)

    @classmethod
    def compile(cls, text: str) -> IgnoreRule:
        # An empty rule would turn into "**/" below and swallow every directory
        if not text:
            return cls(text=text)
        direct = _compile_glob(text)
        anywhere = None
        if direct is not None and not text.startswith(("/", "**/")):
            anywhere = _compile_glob("**/" + text)
        return cls(text=text, direct=direct, anywhere=anywhere)

    def matches(self, path: str, is_dir: bool) -> bool:
        """`path` already carries a trailing slash when it names a directory."""
        if self.direct is not None and self.direct.fullmatch(path):
            return True
        # Unanchored rules also match below the root: "dist/" hits "sub/dist/"
        if self.anywhere is not None and self.anywhere.fullmatch(path):
            return True
        # Plain prefix test; the only case left for rules that fail to compile
        return not is_dir and self.text.endswith("/") and path.startswith(self.text)


class IgnoreMatcher:
    """
    Decides whether a project-relative path is excluded.

    The rule set is a union: a path is ignored as soon as any rule matches,
    so rule order is irrelevant. Rules are compiled once; the matcher holds
    no other state and may be shared between scans.
    """

    def __init__(self, rules: Iterable[str]):
        self.rules: Tuple[IgnoreRule, ...] = tuple(IgnoreRule.compile(r) for r in rules)

    def matches(self, relative_path: str, is_dir: bool) -> bool:
        path = relative_path
        if is_dir and not path.endswith("/"):
            path += "/"
        return any(rule.matches(path, is_dir) for rule in self.rules)


def should_ignore(relative_path: str, is_dir: bool, rules: Iterable[str]) -> bool:
    """One-shot form of IgnoreMatcher.matches. Compiles `rules` on every call."""
    return IgnoreMatcher(rules).matches(relative_path, is_dir)


# =============================================================================
# CONTENT CLASSIFIER
# =============================================================================

def classify_content(data: bytes) -> Tuple[str, bool]:
    """
    Return (text, is_binary) for raw file bytes.

    Content is binary when it is not valid UTF-8 or has a NUL byte within
    the first 1 KiB. Text in other charsets is therefore reported as binary,
    and binary formats that happen to be valid UTF-8 without an early NUL
    pass as text.
    """
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError:
        return "", True
    if b"\x00" in data[:Defaults.BINARY_SNIFF_BYTES]:
        return "", True
    return text, False


def classify_file(fs: FileSystem, path: Path) -> Classification:
    """Apply the size gate, then read and sniff the file."""
    try:
        size = fs.stat(path).size
    except OSError as e:
        return Classification(Outcome.SKIP_ERROR, error=e)

    if size > Defaults.MAX_FILE_SIZE:
        return Classification(Outcome.SKIP_TOO_LARGE)

    try:
        data = fs.read_file(path)
    except OSError as e:
        return Classification(Outcome.SKIP_ERROR, error=e)

    text, is_binary = classify_content(data)
    if is_binary:
        return Classification(Outcome.SKIP_BINARY)
    return Classification(Outcome.INCLUDE, content=text)


# =============================================================================
# AGGREGATOR
# =============================================================================

class ContextBuilder:
    """Accumulates rendered sections in the order files are visited."""

    def __init__(self) -> None:
        self._parts: List[str] = []

    def __len__(self) -> int:
        return len(self._parts)

    def add_content(self, path: str, content: str) -> None:
        self._parts.append(Headers.CONTENT.format(path=path, content=content))

    def add_too_large(self, path: str) -> None:
        self._parts.append(Headers.TOO_LARGE.format(path=path))

    def add_read_error(self, path: str) -> None:
        self._parts.append(Headers.READ_ERROR.format(path=path))

    def render(self) -> str:
        return "".join(self._parts)


# =============================================================================
# PROCESSOR (TREE WALKER)
# =============================================================================

class Processor:
    """
    Renders directories into context bundles.

    Paths in the output are relative to `project_root`, which may be an
    ancestor of the directory being processed. Siblings are visited in
    lexical order so that repeated scans give byte-identical output.
    """

    def __init__(
        self,
        rules: Union[IgnoreMatcher, Iterable[str]],
        project_root: Union[str, Path],
        fs: Optional[FileSystem] = None,
    ):
        self.matcher = rules if isinstance(rules, IgnoreMatcher) else IgnoreMatcher(rules)
        self.project_root = Path(os.path.abspath(project_root))
        self.fs = fs if fs is not None else OSFileSystem()

    def process_directory(self, dir_path: Union[str, Path]) -> str:
        """
        Walk `dir_path` and return the rendered bundle.

        Unreadable files become placeholders. Raises ScanError, carrying the
        partial bundle, when the root cannot be opened, a directory cannot
        be listed or a relative path cannot be computed.
        """
        root = Path(os.path.abspath(dir_path))
        builder = ContextBuilder()

        try:
            info = self.fs.stat(root)
        except OSError as e:
            raise ScanError(f"cannot open {root}: {e}", output=builder.render()) from e

        self._walk(root, info.is_dir, builder)
        logging.debug(f"Rendered {len(builder)} sections from {root}")
        return builder.render()

    def _relative(self, path: Path, builder: ContextBuilder) -> str:
        try:
            rel = os.path.relpath(path, self.project_root)
        except ValueError as e:
            raise ScanError(
                f"cannot express {path} relative to {self.project_root}: {e}",
                output=builder.render(),
            ) from e
        return rel.replace(os.sep, "/")

    def _walk(self, root: Path, root_is_dir: bool, builder: ContextBuilder) -> None:
        stack: List[Tuple[Path, bool]] = [(root, root_is_dir)]

        while stack:
            path, is_dir = stack.pop()
            entry = Entry(self._relative(path, builder), is_dir)

            # The project root itself is never matched against the rules
            if entry.relative_path != "." and self.matcher.matches(entry.relative_path, entry.is_dir):
                logging.debug(f"Ignored {entry.relative_path}{'/' if entry.is_dir else ''}")
                continue

            if not entry.is_dir:
                self._emit_file(path, entry, builder)
                continue

            try:
                children = self.fs.list_dir(path)
            except OSError as e:
                raise ScanError(
                    f"cannot read directory {entry.relative_path}: {e}",
                    output=builder.render(),
                ) from e

            # Pushed in reverse so the lexically first child is popped next
            for child in sorted(children, key=lambda c: c.name, reverse=True):
                stack.append((path / child.name, child.is_dir))

    def _emit_file(self, path: Path, entry: Entry, builder: ContextBuilder) -> None:
        result = classify_file(self.fs, path)

        if result.outcome is Outcome.INCLUDE:
            builder.add_content(entry.relative_path, result.content)
        elif result.outcome is Outcome.SKIP_TOO_LARGE:
            logging.debug(f"Skipped {entry.relative_path}: larger than {Defaults.MAX_FILE_SIZE:,} bytes")
            builder.add_too_large(entry.relative_path)
        elif result.outcome is Outcome.SKIP_ERROR:
            logging.warning(f"Could not read {entry.relative_path}: {result.error}")
            builder.add_read_error(entry.relative_path)
        else:
            logging.debug(f"Skipped binary file {entry.relative_path}")


def process_directory(
    dir_path: Union[str, Path],
    project_root: Union[str, Path],
    rules: Iterable[str],
    fs: Optional[FileSystem] = None,
) -> str:
    """Render `dir_path` with paths relative to `project_root`."""
    return Processor(rules, project_root, fs).process_directory(dir_path)


# =============================================================================
# CONFIGURATION
# =============================================================================

class ConfigLoader:
    """Reads, validates and generates contextualizer.json."""

    # JSON key -> (Config field, expected JSON type)
    FIELDS: Tuple[Tuple[str, str, type], ...] = (
        ("outputDir", "output_dir", str),
        ("topLevelDirs", "top_level_dirs", list),
        ("ignore", "ignore", list),
        ("processTopLevelDirs", "process_top_level_dirs", bool),
        ("openOutputDirectory", "open_output_directory", bool),
    )

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> Config:
        """Overlay `data` on the defaults. Present lists replace default lists."""
        values: Dict[str, Any] = {}
        for key, attr, kind in ConfigLoader.FIELDS:
            if key not in data or data[key] is None:
                continue
            value = data[key]
            if not isinstance(value, kind):
                raise ConfigError(
                    f"failed to parse config file: {key} must be {kind.__name__}, "
                    f"got {type(value).__name__}"
                )
            if kind is list:
                if not all(isinstance(item, str) for item in value):
                    raise ConfigError(f"failed to parse config file: {key} must contain only strings")
                value = tuple(value)
            values[attr] = value
        return Config(**values)

    @staticmethod
    def load(cwd: Path) -> Config:
        path = cwd / Defaults.CONFIG_FILE_NAME
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise ConfigError(
                f"config file {Defaults.CONFIG_FILE_NAME} not found in current directory"
            ) from None
        except OSError as e:
            raise ConfigError(f"failed to read config file: {e}") from e

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ConfigError(f"failed to parse config file: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError("failed to parse config file: top level must be an object")

        config = ConfigLoader.from_dict(data)

        # Never feed our own output back in
        output_pattern = f"{config.output_dir}/"
        if output_pattern not in config.ignore:
            config = replace(config, ignore=config.ignore + (output_pattern,))
        return config

    @staticmethod
    def generate_default() -> str:
        return json.dumps(Config().to_dict(), indent=2)


def load_config(cwd: Optional[Path] = None) -> Config:
    """Load contextualizer.json from `cwd` (default: the working directory)."""
    return ConfigLoader.load(cwd if cwd is not None else Path.cwd())


def generate_default() -> str:
    return ConfigLoader.generate_default()


def initialize_config(cwd: Optional[Path] = None) -> Path:
    """Write the default config and keep the output directory out of git."""
    cwd = cwd if cwd is not None else Path.cwd()
    path = cwd / Defaults.CONFIG_FILE_NAME
    try:
        path.write_text(generate_default(), encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"writing {Defaults.CONFIG_FILE_NAME}: {e}") from e
    print(f"✅ Initialized {Defaults.CONFIG_FILE_NAME}", file=sys.stderr)

    ensure_gitignore_entry(cwd / ".gitignore", f"{Config().output_dir}/")
    return path


def ensure_gitignore_entry(gitignore: Path, entry: str) -> bool:
    """Append `entry` to an existing .gitignore unless a line already equals it."""
    if not gitignore.is_file():
        return False

    try:
        content = gitignore.read_text(encoding="utf-8")
    except OSError as e:
        logging.warning(f"Failed to read .gitignore: {e}")
        return False

    if any(line.strip() == entry.strip() for line in content.split("\n")):
        return False

    try:
        with open(gitignore, "a", encoding="utf-8") as f:
            if content and not content.endswith("\n"):
                f.write("\n")
            f.write(entry + "\n")
    except OSError as e:
        logging.warning(f"Failed to write to .gitignore: {e}")
        return False

    print(f"Added {entry} to .gitignore", file=sys.stderr)
    return True


# =============================================================================
# TARGET DISCOVERY
# =============================================================================

def discover_directories(config: Config, cwd: Optional[Path] = None) -> List[Path]:
    """List candidate scan roots: visible subdirectories of each top-level dir."""
    cwd = cwd if cwd is not None else Path.cwd()
    candidates: List[Path] = []

    for top in config.top_level_dirs:
        top_path = cwd / top
        try:
            children = sorted(
                p for p in top_path.iterdir()
                if p.is_dir() and not p.name.startswith(".")
            )
        except OSError as e:
            logging.debug(f"Skipping top-level dir {top}: {e}")
            continue

        if config.process_top_level_dirs:
            candidates.append(top_path)
        candidates.extend(children)

    return candidates


def display_path(path: Path, cwd: Path) -> str:
    try:
        return path.relative_to(cwd).as_posix()
    except ValueError:
        return str(path)


# =============================================================================
# OUTPUT WRITER
# =============================================================================

def combine(results: Sequence[ScanOutput]) -> str:
    """Join bundles into one document, each under a project heading."""
    return "".join(
        Headers.PROJECT.format(name=r.directory.name) + r.content for r in results
    )


class OutputWriter:
    """Handles output to various destinations."""

    @staticmethod
    def write(
        results: Sequence[ScanOutput],
        mode: OutputMode,
        target: OutputTarget,
        output_dir: Path,
        cwd: Path,
    ) -> None:
        """Write results to the chosen destination. Raises OutputError."""
        if target is OutputTarget.DIRECTORY:
            OutputWriter._write_directory(results, mode, output_dir, cwd)
        elif target is OutputTarget.STDOUT:
            print(combine(results))
        else:
            OutputWriter._write_clipboard(combine(results))

    @staticmethod
    def _write_directory(
        results: Sequence[ScanOutput],
        mode: OutputMode,
        output_dir: Path,
        cwd: Path,
    ) -> None:
        OutputWriter._check_clearable(output_dir, cwd)

        try:
            # Start clean so no stale bundles survive
            if output_dir.exists():
                shutil.rmtree(output_dir)
            output_dir.mkdir(parents=True)

            if mode is OutputMode.SINGLE:
                target = output_dir / Defaults.SINGLE_OUTPUT_NAME
                target.write_bytes(combine(results).encode("utf-8"))
                return

            written: Set[str] = set()
            for r in results:
                name = f"{r.directory.name}.txt"
                if name in written:
                    logging.warning(f"{name} written twice; keeping the bundle for {r.directory}")
                written.add(name)
                (output_dir / name).write_bytes(r.content.encode("utf-8"))
        except OSError as e:
            raise OutputError(f"cannot write to {output_dir}: {e}") from e

    @staticmethod
    def _check_clearable(output_dir: Path, cwd: Path) -> None:
        resolved = output_dir.resolve()
        here = cwd.resolve()
        if resolved == here or resolved in here.parents:
            raise OutputError(
                f"refusing to clear output directory {output_dir}: it contains the working directory"
            )

    @staticmethod
    def _write_clipboard(content: str) -> None:
        try:
            pyperclip.copy(content)
        except pyperclip.PyperclipException as e:
            raise OutputError(f"Clipboard error: {e}") from e
        print(f"✅ {len(content):,} chars copied to clipboard", file=sys.stderr)


def open_directory(path: Path) -> None:
    """Open `path` in the desktop file browser. Failures are only logged."""
    if sys.platform == "win32":
        cmd = ["cmd", "/c", "start", "", str(path)]
    elif sys.platform == "darwin":
        cmd = ["open", str(path)]
    else:
        cmd = ["xdg-open", str(path)]

    try:
        subprocess.run(cmd, capture_output=True, check=False)
    except OSError as e:
        logging.debug(f"Could not open {path}: {e}")


# =============================================================================
# INTERACTIVE MODE
# =============================================================================

def parse_selection(text: str, count: int) -> List[int]:
    """
    Parse "1,3-5" style input into sorted zero-based indexes.

    Empty input selects everything. Raises ValueError on anything out of range.
    """
    text = text.strip()
    if not text:
        return list(range(count))

    picked: Set[int] = set()
    for token in text.replace(",", " ").split():
        if "-" in token:
            start_s, _, end_s = token.partition("-")
            start, end = int(start_s), int(end_s)
        else:
            start = end = int(token)
        if start < 1 or end > count or start > end:
            raise ValueError(f"Selection out of range: {token}")
        picked.update(range(start - 1, end))
    return sorted(picked)


class InteractiveSelector:
    """Numbered prompt for choosing directories and output mode."""

    @staticmethod
    def run(
        candidates: List[Path],
        mode: OutputMode,
        cwd: Path,
    ) -> Tuple[List[Path], OutputMode]:
        print("\n🔧 Select directories to bundle\n")
        for i, path in enumerate(candidates, 1):
            print(f"  {i}. {display_path(path, cwd)}")

        while True:
            inp = input("\nDirectories (e.g. 1,3-4) [all]: ")
            try:
                indexes = parse_selection(inp, len(candidates))
                break
            except ValueError as e:
                print(f"⚠️ {e}")

        print("\nOutput mode:")
        print("  1. Multiple files (one per directory)")
        print("  2. Single file")
        default = "2" if mode is OutputMode.SINGLE else "1"
        inp = input(f"Choice [{default}]: ").strip() or default
        chosen = OutputMode.SINGLE if inp == "2" else OutputMode.MULTIPLE

        print()
        return [candidates[i] for i in indexes], chosen


# =============================================================================
# CLI PARSER
# =============================================================================

def create_parser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog="contextualizer",
        description="Bundle project directories into plain-text context files for LLMs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  contextualizer --init            # Write contextualizer.json
  contextualizer                   # Bundle every directory under topLevelDirs
  contextualizer src/api src/web   # Bundle specific directories
  contextualizer --mode single     # One combined context.txt
  contextualizer -i                # Pick directories interactively
        """,
    )

    parser.add_argument(
        "dirs",
        nargs="*",
        type=Path,
        metavar="DIR",
        help="Directories to bundle (default: all discovered)",
    )

    setup = parser.add_argument_group("Setup")
    setup.add_argument("--init", action="store_true", help=f"Initialize default {Defaults.CONFIG_FILE_NAME}")
    setup.add_argument("--list", action="store_true", help="List discovered directories and exit")
    setup.add_argument("-i", "--interactive", action="store_true", help="Choose directories interactively")

    out = parser.add_argument_group("Output Options")
    out.add_argument(
        "--mode",
        choices=["multiple", "single"],
        default="multiple",
        help="One file per directory or a single combined file (default: multiple)",
    )
    dest = out.add_mutually_exclusive_group()
    dest.add_argument("--stdout", action="store_true", help="Print to stdout instead of the output dir")
    dest.add_argument("--clipboard", action="store_true", help="Copy to clipboard instead of the output dir")
    out.add_argument("--no-open", action="store_true", help="Don't open the output directory when done")

    meta = parser.add_argument_group("Information")
    meta.add_argument("-v", "--verbose", action="store_true", help="Log skipped and ignored paths")
    meta.add_argument("--version", action="version", version=f"%(prog)s {get_version()}")

    return parser


# =============================================================================
# MAIN
# =============================================================================

def _select_targets(
    args: argparse.Namespace,
    config: Config,
    cwd: Path,
) -> Tuple[List[Path], OutputMode]:
    mode = OutputMode[args.mode.upper()]

    if args.dirs:
        targets = [cwd / d for d in args.dirs]
        for target in targets:
            if not target.is_dir():
                raise ContextualizerError(f"Directory not found: {target}")
        return targets, mode

    candidates = discover_directories(config, cwd)
    if args.interactive and candidates:
        return InteractiveSelector.run(candidates, mode, cwd)
    return candidates, mode


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    cwd = Path.cwd()

    try:
        if args.init:
            initialize_config(cwd)
            return 0

        try:
            config = load_config(cwd)
        except ConfigError as e:
            print(f"❌ Error: {e}", file=sys.stderr)
            print("Run 'contextualizer --init' to generate a configuration file.", file=sys.stderr)
            return 1

        if args.list:
            for path in discover_directories(config, cwd):
                print(display_path(path, cwd))
            return 0

        targets, mode = _select_targets(args, config, cwd)
        if not targets:
            print("⚠️ No directories to process", file=sys.stderr)
            return 0

        processor = Processor(config.ignore, cwd)
        results = [ScanOutput(t, processor.process_directory(t)) for t in targets]

        if args.stdout:
            target = OutputTarget.STDOUT
        elif args.clipboard:
            target = OutputTarget.CLIPBOARD
        else:
            target = OutputTarget.DIRECTORY

        output_dir = cwd / config.output_dir
        OutputWriter.write(results, mode, target, output_dir, cwd)

        if target is OutputTarget.DIRECTORY:
            print(f"✅ Done! Generated context in {config.output_dir}", file=sys.stderr)
            if config.open_output_directory and not args.no_open:
                open_directory(output_dir)
        return 0

    except ContextualizerError as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\n⚠️ Interrupted", file=sys.stderr)
        return 130
    except Exception as e:
        logging.exception("Critical error")
        print(f"❌ Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())

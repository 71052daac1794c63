"""
Installation ledger for templatr-setup.

The ledger records every runtime installation, PATH modification and
environment variable modification this tool performs, so each one can be
reversed exactly. It is persisted to ``~/.templatr/state.json``:

    {
      "version": "1.0.0",
      "installations": [...],
      "path_modifications": [...],
      "env_modifications": [...]
    }

Nothing is inferred from the filesystem: the ledger is the single source of
truth for what this tool owns on the machine.

Example:
    >>> manager = StateManager()
    >>> state = manager.load()
    >>> state.add_installation("node", "20.11.1", "/home/me/.templatr/runtimes/node/20.11.1")
    >>> manager.save(state)
    >>>
    >>> result = undo_installation(state, "node", "20.11.1")
    >>> manager.save(state)
"""

import json
import logging
import os
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from filelock import FileLock, Timeout

from templatr_setup.core.directory import get_runtimes_dir, get_state_file
from templatr_setup.core.exceptions import (
    FilesystemError,
    InstallationNotFoundError,
    StateError,
    StateLockTimeout,
)
from templatr_setup.core.filesystem import atomic_write, safe_rmtree

logger = logging.getLogger(__name__)

STATE_VERSION = "1.0.0"

METHOD_SHELL_RC = "shell_rc"
METHOD_WINDOWS_ENV = "windows_env"


def utc_timestamp() -> str:
    """Current UTC time as an RFC 3339 string."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _known_fields(cls, data: Dict[str, Any]) -> Dict[str, Any]:
    # records written by newer versions may carry extra keys
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in names}


# ============================================================================
# Ledger Records
# ============================================================================


@dataclass
class Installation:
    """
    One runtime installation performed by this tool.

    Attributes:
        runtime: Runtime key (e.g. 'node')
        version: Installed version
        path: Install directory
        installed_at: RFC 3339 timestamp
        template: Slug or name of the template that requested it
        checksum: SHA-256 of the installed archive, if known
        previous_version: Version detected before this install, if any
        previous_path: Executable path detected before this install, if any
        action: 'install' or 'upgrade'
    """

    runtime: str
    version: str
    path: str
    installed_at: str = ""
    template: str = ""
    checksum: str = ""
    previous_version: str = ""
    previous_path: str = ""
    action: str = "install"

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Installation":
        return cls(**_known_fields(cls, data))


@dataclass
class PathModification:
    """
    A directory this tool added to the user's PATH.

    Attributes:
        method: 'shell_rc' or 'windows_env'
        file: First shell startup file that was edited (empty for windows_env)
        files: Every shell startup file that was edited
        line: Exact line that was written
        value: Directory added to PATH
        added_at: RFC 3339 timestamp
    """

    method: str
    value: str
    file: str = ""
    files: List[str] = field(default_factory=list)
    line: str = ""
    added_at: str = ""

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PathModification":
        return cls(**_known_fields(cls, data))


@dataclass
class EnvModification:
    """An environment variable this tool set persistently."""

    name: str
    value: str
    method: str
    file: str = ""
    files: List[str] = field(default_factory=list)
    added_at: str = ""

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EnvModification":
        return cls(**_known_fields(cls, data))


@dataclass
class State:
    """
    The installation ledger.

    Attributes:
        version: Ledger format version
        installations: Installation records, oldest first
        path_modifications: PATH modification records
        env_modifications: Environment variable modification records
    """

    version: str = STATE_VERSION
    installations: List[Installation] = field(default_factory=list)
    path_modifications: List[PathModification] = field(default_factory=list)
    env_modifications: List[EnvModification] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "version": self.version,
            "installations": [i.to_dict() for i in self.installations],
            "path_modifications": [p.to_dict() for p in self.path_modifications],
            "env_modifications": [e.to_dict() for e in self.env_modifications],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "State":
        """
        Build a State from decoded JSON.

        Unknown top-level keys and unknown record fields are ignored.

        Raises:
            StateError: If the document has the wrong shape
        """
        if not isinstance(data, dict):
            raise StateError("Ledger document must be a JSON object")
        try:
            return cls(
                version=str(data.get("version", STATE_VERSION)),
                installations=[
                    Installation.from_dict(i) for i in data.get("installations") or []
                ],
                path_modifications=[
                    PathModification.from_dict(p)
                    for p in data.get("path_modifications") or []
                ],
                env_modifications=[
                    EnvModification.from_dict(e)
                    for e in data.get("env_modifications") or []
                ],
            )
        except (TypeError, AttributeError) as e:
            raise StateError(f"Malformed ledger record: {e}") from e

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------

    def add_installation(
        self,
        runtime: str,
        version: str,
        path: str,
        template: str = "",
        action: str = "install",
        previous_version: str = "",
        previous_path: str = "",
        checksum: str = "",
    ) -> Installation:
        """Append an installation record stamped with the current time."""
        record = Installation(
            runtime=runtime,
            version=version,
            path=str(path),
            installed_at=utc_timestamp(),
            template=template,
            checksum=checksum,
            previous_version=previous_version,
            previous_path=previous_path,
            action=action,
        )
        self.installations.append(record)
        return record

    def add_path_modification(self, mod: PathModification) -> PathModification:
        """Append a PATH modification record stamped with the current time."""
        mod.added_at = utc_timestamp()
        self.path_modifications.append(mod)
        return mod

    def add_env_modification(self, mod: EnvModification) -> EnvModification:
        """
        Append an environment modification record stamped with the current time.

        A variable holds one value, so an older record for the same name is
        replaced.
        """
        mod.added_at = utc_timestamp()
        self.remove_env_modification(mod.name)
        self.env_modifications.append(mod)
        return mod

    def remove_installation(self, runtime: str, version: str) -> bool:
        """Remove the first matching installation record. Returns True if found."""
        for i, record in enumerate(self.installations):
            if record.runtime == runtime and record.version == version:
                del self.installations[i]
                return True
        return False

    def remove_path_modification(self, value: str) -> bool:
        """Remove every PATH record for ``value``. Returns True if any matched."""
        before = len(self.path_modifications)
        self.path_modifications = [
            p for p in self.path_modifications if p.value != value
        ]
        return len(self.path_modifications) != before

    def remove_env_modification(self, name: str) -> bool:
        """Remove every env record for ``name``. Returns True if any matched."""
        before = len(self.env_modifications)
        self.env_modifications = [e for e in self.env_modifications if e.name != name]
        return len(self.env_modifications) != before

    def find_installation(
        self, runtime: str, version: Optional[str] = None
    ) -> Optional[Installation]:
        """
        Find an installation record.

        With no version, returns the most recently added record for runtime.
        """
        for record in reversed(self.installations):
            if record.runtime == runtime and (version is None or record.version == version):
                return record
        return None

    def is_empty(self) -> bool:
        return not (
            self.installations or self.path_modifications or self.env_modifications
        )


# ============================================================================
# Undo
# ============================================================================


@dataclass
class UndoResult:
    """
    Outcome of reversing one installation.

    The caller is responsible for reverting the returned PATH and env
    modifications on the live environment.
    """

    runtime: str
    version: str
    path: str
    path_modifications: List[PathModification] = field(default_factory=list)
    env_modifications: List[EnvModification] = field(default_factory=list)
    previous_version: str = ""
    previous_path: str = ""


def _is_within(value: str, root: str) -> bool:
    """Whether ``value`` is ``root`` or a path below it."""
    if not value or not root:
        return False
    value_norm = os.path.normcase(os.path.normpath(value))
    root_norm = os.path.normcase(os.path.normpath(root))
    return value_norm == root_norm or value_norm.startswith(root_norm + os.sep)


def undo_installation(
    state: State, runtime: str, version: str, runtimes_dir: Optional[Path] = None
) -> UndoResult:
    """
    Reverse one installation in the ledger.

    Deletes the install directory, then removes the installation record and
    every PATH/env record whose value lies under the install directory.

    Args:
        state: Ledger to update in place
        runtime: Runtime key
        version: Installed version
        runtimes_dir: Directory the install must lie under
            (default: ~/.templatr/runtimes)

    Returns:
        UndoResult with the removed modifications and previous version info

    Raises:
        InstallationNotFoundError: If the ledger has no such installation
        FilesystemError: If the directory cannot be removed; the ledger is
            left unchanged
        ValueError: If the recorded path is outside runtimes_dir; the ledger
            is left unchanged
    """
    record = state.find_installation(runtime, version)
    if record is None:
        raise InstallationNotFoundError(runtime, version)

    if record.path:
        logger.info(f"Removing {record.path}")
        safe_rmtree(record.path, require_prefix=runtimes_dir or get_runtimes_dir())

    path_mods = [p for p in state.path_modifications if _is_within(p.value, record.path)]
    env_mods = [e for e in state.env_modifications if _is_within(e.value, record.path)]

    state.remove_installation(runtime, version)
    state.path_modifications = [
        p for p in state.path_modifications if not any(p is m for m in path_mods)
    ]
    state.env_modifications = [
        e for e in state.env_modifications if not any(e is m for m in env_mods)
    ]

    logger.debug(
        f"Undid {runtime} {version}: {len(path_mods)} PATH and "
        f"{len(env_mods)} env record(s) released"
    )
    return UndoResult(
        runtime=runtime,
        version=version,
        path=record.path,
        path_modifications=path_mods,
        env_modifications=env_mods,
        previous_version=record.previous_version,
        previous_path=record.previous_path,
    )


def undo_all(
    state: State, runtimes_dir: Optional[Path] = None
) -> Tuple[List[UndoResult], List[Exception]]:
    """
    Reverse every installation present when called.

    A failure on one installation never stops the rest.

    Returns:
        (successful results, collected errors)
    """
    results: List[UndoResult] = []
    errors: List[Exception] = []

    for record in list(state.installations):
        try:
            results.append(
                undo_installation(state, record.runtime, record.version, runtimes_dir)
            )
        except (StateError, FilesystemError, ValueError) as e:
            logger.error(f"Failed to undo {record.runtime} {record.version}: {e}")
            errors.append(e)

    return results, errors


# ============================================================================
# Persistence
# ============================================================================


class StateManager:
    """
    Loads and saves the installation ledger.

    Saves are atomic (temp file + rename) and serialized with a file lock.

    Attributes:
        state_file: Path to state.json
        lock_path: Path to the lock file guarding writes
    """

    def __init__(self, state_file: Optional[Path] = None, lock_timeout: float = 10.0):
        """
        Initialize state manager.

        Args:
            state_file: Ledger path (default: ~/.templatr/state.json)
            lock_timeout: Seconds to wait for the write lock
        """
        self.state_file = Path(state_file) if state_file else get_state_file()
        self.lock_path = self.state_file.with_name(self.state_file.name + ".lock")
        self.lock_timeout = lock_timeout

    def load(self) -> State:
        """
        Load the ledger from disk.

        A missing file is not an error: an empty ledger is returned.

        Raises:
            StateError: If the file exists but cannot be read or decoded
        """
        if not self.state_file.exists():
            logger.debug(f"Ledger not found, starting empty: {self.state_file}")
            return State()

        try:
            with open(self.state_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StateError(f"Failed to read ledger {self.state_file}: {e}") from e

        state = State.from_dict(data)
        if state.version != STATE_VERSION:
            logger.warning(
                f"Ledger version {state.version} differs from {STATE_VERSION}; "
                "reading known fields only"
            )
        logger.debug(
            f"Loaded ledger with {len(state.installations)} installation(s) "
            f"from {self.state_file}"
        )
        return state

    def load_or_empty(self) -> State:
        """Load the ledger, falling back to an empty one if it is unreadable."""
        try:
            return self.load()
        except StateError as e:
            logger.warning(f"{e}. Starting from an empty ledger.")
            return State()

    def save(self, state: State) -> None:
        """
        Save the ledger atomically under the write lock.

        Raises:
            StateLockTimeout: If the lock cannot be acquired in time
            StateError: If the file cannot be written
        """
        content = json.dumps(state.to_dict(), indent=2)
        with self._lock():
            try:
                atomic_write(self.state_file, content)
            except OSError as e:
                raise StateError(f"Failed to save ledger {self.state_file}: {e}") from e
        logger.debug(f"Saved ledger to {self.state_file}")

    @contextmanager
    def _lock(self):
        """
        Hold the ledger file lock.

        Raises:
            StateLockTimeout: If lock cannot be acquired within timeout
        """
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        lock = FileLock(self.lock_path, timeout=self.lock_timeout)
        try:
            with lock:
                yield
        except Timeout as e:
            raise StateLockTimeout(
                f"Could not acquire ledger lock within {self.lock_timeout} seconds"
            ) from e


__all__ = [
    "STATE_VERSION",
    "METHOD_SHELL_RC",
    "METHOD_WINDOWS_ENV",
    "utc_timestamp",
    "Installation",
    "PathModification",
    "EnvModification",
    "State",
    "UndoResult",
    "undo_installation",
    "undo_all",
    "StateManager",
]

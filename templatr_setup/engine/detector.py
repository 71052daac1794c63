"""
Detection of installed runtimes and tools.

The detector walks a fixed catalogue of binaries, finds each on PATH and asks
it for its version. A single tool can never fail the whole scan: missing
binaries are reported as not installed, probes that fail or hang are reported
as installed with an unknown version, and the placeholder launchers some
systems put on PATH (e.g. the Windows Store python3 alias) are recognised and
reported as not installed.

Example:
    >>> results = scan()
    >>> node = find_result(results, "Node.js")
    >>> node.installed, node.version
    (True, '20.11.1')
"""

import logging
import shutil
import subprocess
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

VERSION_UNKNOWN = "installed (version unknown)"
DEFAULT_PROBE_TIMEOUT = 10.0

# Lowercased fragments printed by placeholder executables
STUB_PATTERNS = (
    "microsoft store",
    "was not found",
    "app execution aliases",
    "no .net sdks were found",
)

# Order matters: longer prefixes that share a start must come first
VERSION_PREFIXES = (
    "go version go",
    "git version ",
    "Dart SDK version: ",
    "Python ",
    "python ",
    "Flutter ",
    "flutter ",
    "rustc ",
    "cargo ",
    "ruby ",
    "php ",
    "PHP ",
    "openjdk ",
    "java ",
    "pip ",
    "v",
)


@dataclass
class ToolCheck:
    """
    How to probe one tool.

    Attributes:
        name: Display name used as the detection key (e.g. 'Node.js')
        binary: Executable to look up on PATH
        args: Arguments that make it print its version
        fallbacks: Alternative executable names tried when binary is missing
    """

    name: str
    binary: str
    args: Tuple[str, ...] = ("--version",)
    fallbacks: Tuple[str, ...] = ()


DEFAULT_CHECKS: Tuple[ToolCheck, ...] = (
    ToolCheck("Node.js", "node"),
    ToolCheck("npm", "npm"),
    ToolCheck("pnpm", "pnpm"),
    ToolCheck("yarn", "yarn"),
    ToolCheck("bun", "bun"),
    ToolCheck("Python", "python3", fallbacks=("python",)),
    ToolCheck("pip", "pip3", fallbacks=("pip",)),
    ToolCheck("Flutter", "flutter"),
    ToolCheck("Dart", "dart"),
    ToolCheck("Java", "java"),
    ToolCheck("Go", "go", args=("version",)),
    ToolCheck("Rust", "rustc"),
    ToolCheck("Cargo", "cargo"),
    ToolCheck("Ruby", "ruby"),
    ToolCheck("PHP", "php"),
    ToolCheck(".NET", "dotnet"),
    ToolCheck("Git", "git"),
)


@dataclass
class DetectionResult:
    """
    Detection outcome for one tool.

    Attributes:
        name: Display name from the catalogue
        installed: Whether a usable executable was found
        version: Parsed version, VERSION_UNKNOWN, or empty if not installed
        path: Resolved executable path, or empty
    """

    name: str
    installed: bool = False
    version: str = ""
    path: str = ""

    @property
    def version_known(self) -> bool:
        return self.installed and self.version not in ("", VERSION_UNKNOWN)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


def parse_version_output(output: str) -> str:
    """
    Extract a bare version from ``--version`` style output.

    Takes the first non-empty line, strips a known tool-name prefix and cuts
    at the first whitespace.

    Example:
        >>> parse_version_output("go version go1.22.5 linux/amd64")
        '1.22.5'
        >>> parse_version_output("Python 3.12.1\\n")
        '3.12.1'
        >>> parse_version_output("openjdk 21.0.2 2024-01-16\\nOpenJDK Runtime ...")
        '21.0.2'
    """
    lines = [line.strip() for line in output.strip().splitlines() if line.strip()]
    if not lines:
        return ""
    text = lines[0]

    for prefix in VERSION_PREFIXES:
        if text.startswith(prefix):
            text = text[len(prefix):]
            break

    parts = text.split()
    return parts[0] if parts else ""


def is_stub_output(output: str) -> bool:
    """Whether probe output comes from a placeholder executable."""
    lower = output.lower()
    return any(pattern in lower for pattern in STUB_PATTERNS)


class Detector:
    """
    Probes the host for a catalogue of tools.

    Example:
        >>> detector = Detector(timeout=5)
        >>> for result in detector.scan():
        ...     print(result.name, result.version or "missing")
    """

    def __init__(
        self,
        checks: Optional[Sequence[ToolCheck]] = None,
        timeout: float = DEFAULT_PROBE_TIMEOUT,
    ):
        """
        Initialize detector.

        Args:
            checks: Tools to probe (default: DEFAULT_CHECKS)
            timeout: Seconds allowed for each version probe
        """
        self.checks = tuple(checks) if checks is not None else DEFAULT_CHECKS
        self.timeout = timeout

    def scan(self) -> List[DetectionResult]:
        """Probe every tool in catalogue order."""
        results = [self.probe(check) for check in self.checks]
        found = sum(1 for r in results if r.installed)
        logger.debug(f"Detection finished: {found}/{len(results)} tools found")
        return results

    def probe(self, check: ToolCheck) -> DetectionResult:
        """
        Probe a single tool.

        Never raises: every failure maps to a DetectionResult.
        """
        result = DetectionResult(name=check.name)

        path = self._locate(check)
        if path is None:
            logger.debug(f"{check.name}: not found on PATH")
            return result

        ok, output = self._run(path, check.args)

        if not ok and is_stub_output(output):
            logger.debug(f"{check.name}: {path} is a placeholder, treating as missing")
            return result

        result.installed = True
        result.path = path

        if not ok:
            result.version = VERSION_UNKNOWN
            return result

        result.version = parse_version_output(output) or VERSION_UNKNOWN
        logger.debug(f"{check.name}: {result.version} at {path}")
        return result

    def _locate(self, check: ToolCheck) -> Optional[str]:
        for binary in (check.binary,) + tuple(check.fallbacks):
            path = shutil.which(binary)
            if path:
                return path
        return None

    def _run(self, path: str, args: Sequence[str]) -> Tuple[bool, str]:
        """
        Run a version probe.

        Returns:
            (succeeded, combined stdout+stderr)
        """
        try:
            completed = subprocess.run(
                [path, *args],
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                stdin=subprocess.DEVNULL,
                text=True,
                errors="replace",
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired:
            logger.warning(f"Version probe timed out after {self.timeout}s: {path}")
            return False, ""
        except OSError as e:
            logger.debug(f"Failed to run {path}: {e}")
            return False, ""

        output = completed.stdout or ""
        if completed.returncode != 0:
            logger.debug(f"{path} {' '.join(args)} exited with {completed.returncode}")
            return False, output
        return True, output


def scan(timeout: float = DEFAULT_PROBE_TIMEOUT) -> List[DetectionResult]:
    """Probe the default catalogue."""
    return Detector(timeout=timeout).scan()


def find_result(results: Sequence[DetectionResult], name: str) -> Optional[DetectionResult]:
    """Find a detection result by catalogue name."""
    for result in results:
        if result.name == name:
            return result
    return None


__all__ = [
    "VERSION_UNKNOWN",
    "DEFAULT_PROBE_TIMEOUT",
    "ToolCheck",
    "DEFAULT_CHECKS",
    "DetectionResult",
    "Detector",
    "parse_version_output",
    "is_stub_output",
    "scan",
    "find_result",
]

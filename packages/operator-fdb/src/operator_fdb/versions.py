"""FoundationDB version parsing and capability flags."""

import re
from dataclasses import dataclass

_VERSION_PATTERN = re.compile(r"^(\d+)\.(\d+)\.(\d+)")


@dataclass(frozen=True, order=True)
class FdbVersion:
    """
    A major.minor.patch FoundationDB version.

    Capabilities that depend on the version are exposed as properties so
    callers never compare version tuples themselves.

    Example:
        version = FdbVersion.parse("6.2.20")
        if version.supports_require_not_empty:
            args += ["--require-not-empty", "fdb.cluster"]
    """

    major: int
    minor: int
    patch: int

    @classmethod
    def parse(cls, text: str) -> "FdbVersion":
        match = _VERSION_PATTERN.match(text)
        if match is None:
            raise ValueError(f"Could not parse FoundationDB version {text!r}")
        return cls(int(match.group(1)), int(match.group(2)), int(match.group(3)))

    @property
    def has_sidecar_cli_args(self) -> bool:
        """Sidecar takes its configuration as CLI args instead of env vars."""
        return self >= FdbVersion(6, 2, 15)

    @property
    def supports_require_not_empty(self) -> bool:
        """Sidecar init mode can refuse to copy an empty file."""
        return self >= FdbVersion(6, 2, 20)

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"

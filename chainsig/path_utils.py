"""BIP32 derivation path utilities.

This module parses derivation path strings such as ``m/44'/1'/0'/0/0`` or the
``m/84h/1h/0h/0/5`` form bitcoind reports in ``hdkeypath``, and renders them
back.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from .errors import ChainsigError

HARDENED_OFFSET = 0x80000000

_HARDENED_MARKERS = ("'", "h", "H")


class InvalidPath(ChainsigError, ValueError):
    """Derivation path string is structurally invalid."""


@dataclass(frozen=True, slots=True)
class PathStep:
    """One step of a derivation path.

    Attributes:
        index: The child index without the hardened offset
        hardened: Whether this is a hardened step

    """

    index: int
    hardened: bool = False

    @property
    def child_number(self) -> int:
        """Return the 32-bit child number used in CKD."""
        return self.index + HARDENED_OFFSET if self.hardened else self.index

    def __str__(self) -> str:
        return f"{self.index}h" if self.hardened else str(self.index)


@dataclass(frozen=True, slots=True)
class DerivationPath:
    """An ordered sequence of derivation steps starting at the master key."""

    steps: tuple[PathStep, ...] = ()

    @classmethod
    def parse(cls, path: str) -> DerivationPath:
        """Parse a derivation path string.

        Args:
            path: Path such as ``m/44'/1'/0'/0/0``. The leading ``m`` is optional.

        Returns:
            The parsed DerivationPath

        Raises:
            InvalidPath: If any component is not a non-negative integer
                below 2**31 optionally followed by a hardened marker

        """
        text = path.strip()
        if not text:
            raise InvalidPath("Derivation path is empty")

        parts = text.split("/")
        if parts[0] in ("m", "M"):
            parts = parts[1:]

        steps = []
        for part in parts:
            steps.append(_parse_step(part, path))
        return cls(tuple(steps))

    @property
    def depth(self) -> int:
        return len(self.steps)

    def child_numbers(self) -> list[int]:
        """Return the raw 32-bit child numbers along the path."""
        return [step.child_number for step in self.steps]

    def __iter__(self) -> Iterator[PathStep]:
        return iter(self.steps)

    def __len__(self) -> int:
        return len(self.steps)

    def __str__(self) -> str:
        return "/".join(["m", *(str(step) for step in self.steps)])


def _parse_step(part: str, path: str) -> PathStep:
    hardened = False
    if part.endswith(_HARDENED_MARKERS):
        hardened = True
        part = part[:-1]

    if not part or not part.isascii() or not part.isdigit():
        raise InvalidPath(f"Invalid derivation path component in {path!r}: {part!r}")

    index = int(part)
    if index >= HARDENED_OFFSET:
        raise InvalidPath(f"Derivation index out of range in {path!r}: {index}")
    return PathStep(index=index, hardened=hardened)


def parse_path(path: str | DerivationPath) -> DerivationPath:
    """Return a DerivationPath, parsing strings and passing paths through."""
    if isinstance(path, DerivationPath):
        return path
    return DerivationPath.parse(path)

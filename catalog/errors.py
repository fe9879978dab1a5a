from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass
class CatalogError(Exception):
    """Base error raised by catalog readers and writers.

    Parameters
    ----------
    code:
        Short machine readable error code.
    message:
        Human readable error message.
    """

    code: str
    message: str

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.code}: {self.message}"


class MalformedRecord(CatalogError):
    """A record file that could not be parsed into a JSON object."""

    def __init__(self, path: Path, message: str):
        super().__init__("malformed_record", message)
        self.path = Path(path)


class DirectoryMissing(CatalogError):
    """A required catalog or asset directory does not exist."""

    def __init__(self, path: Path):
        super().__init__("directory_missing", f"Directory not found: {path}")
        self.path = Path(path)


class ServiceContractError(CatalogError):
    """The taxonomy service rejected the call itself, not the name.

    Raised for errors such as a ``TypeError`` from a changed client
    signature. Every later call would fail the same way, so the run stops.
    """

    def __init__(self, message: str):
        super().__init__("service_contract", message)


__all__ = ["CatalogError", "MalformedRecord", "DirectoryMissing", "ServiceContractError"]

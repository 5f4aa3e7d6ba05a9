"""Where statement files and their sidecar JSON live.

Analysis only needs to list files, read them and write small JSON files
back, so both a real folder and an in-memory mapping can serve.
"""

from pathlib import Path
from typing import Protocol


class Directory(Protocol):
    name: str

    def list_files(self) -> list[str]: ...

    def read_bytes(self, name: str) -> bytes: ...

    def read_text(self, name: str) -> str | None: ...

    def write_text(self, name: str, text: str) -> None: ...


class LocalDirectory:
    """A folder on disk. Only its top level is scanned."""

    def __init__(self, path: Path | str):
        self.path = Path(path).expanduser()
        self.name = str(self.path)

    def list_files(self) -> list[str]:
        if not self.path.is_dir():
            return []
        return sorted(p.name for p in self.path.iterdir() if p.is_file())

    def read_bytes(self, name: str) -> bytes:
        return (self.path / name).read_bytes()

    def read_text(self, name: str) -> str | None:
        p = self.path / name
        if not p.exists():
            return None
        return p.read_text(encoding="utf-8")

    def write_text(self, name: str, text: str) -> None:
        (self.path / name).write_text(text, encoding="utf-8")


class MemoryDirectory:
    """Files held in a dict of name to bytes; handy for tests and embedding."""

    def __init__(self, files: dict[str, bytes | str] | None = None, name: str = "<memory>", read_only: bool = False):
        self.files: dict[str, bytes] = {
            k: v.encode("utf-8") if isinstance(v, str) else v for k, v in (files or {}).items()
        }
        self.name = name
        self.read_only = read_only

    def list_files(self) -> list[str]:
        return sorted(self.files)

    def read_bytes(self, name: str) -> bytes:
        try:
            return self.files[name]
        except KeyError:
            raise FileNotFoundError(name) from None

    def read_text(self, name: str) -> str | None:
        data = self.files.get(name)
        return None if data is None else data.decode("utf-8")

    def write_text(self, name: str, text: str) -> None:
        if self.read_only:
            raise PermissionError(f"{self.name} is read-only")
        self.files[name] = text.encode("utf-8")

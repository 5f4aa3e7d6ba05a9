class KupaError(Exception):
    """Base class for errors raised by kupa."""


class UserCancelled(KupaError):
    """The user declined to classify an ambiguous sheet."""

    def __init__(self, key: str):
        super().__init__(f"Sheet type not chosen for {key}")
        self.key = key


class NoStatementFiles(KupaError):
    def __init__(self, location: str = ""):
        super().__init__("No CSV/XLSX files found" + (f" in {location}" if location else ""))


class StatementReadError(KupaError):
    """A statement file could not be read at all (corrupt container)."""

    def __init__(self, file_name: str, reason: str):
        super().__init__(f"Could not read {file_name}: {reason}")
        self.file_name = file_name

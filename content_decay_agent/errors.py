from __future__ import annotations


class InvalidConfiguration(ValueError):
    """Operator-supplied settings that cannot be turned into a comparison."""


class GSCFetchError(RuntimeError):
    """Search Console request failed; the whole comparison is aborted."""


class PageVerdictError(RuntimeError):
    """Analysis output could not be read as a page verdict."""


class ImportRejected(ValueError):
    def __init__(self, file_name: str, reason: str) -> None:
        super().__init__(f"{file_name}: {reason}")
        self.file_name = file_name
        self.reason = reason


class UnknownSchemaError(ImportRejected):
    pass


class EmptyImportError(ImportRejected):
    pass

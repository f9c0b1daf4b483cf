from __future__ import annotations

import uuid


class FiregridError(Exception):
    def __init__(self, *, status_code: int, code: str, message: str, error_id: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.error_id = error_id or str(uuid.uuid4())


class RowSourceError(FiregridError):
    def __init__(self, message: str, *, status_code: int = 502, code: str = "row_source_error") -> None:
        super().__init__(status_code=status_code, code=code, message=message)


def not_found(code: str, message: str) -> FiregridError:
    return FiregridError(status_code=404, code=code, message=message)

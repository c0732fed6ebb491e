from __future__ import annotations


class PlatformServiceError(Exception):
    pass


class PlatformRequestError(PlatformServiceError):
    pass


class PlatformNotFoundError(PlatformServiceError):
    def __init__(self, message: str, *, entity_id: str | None = None) -> None:
        super().__init__(message)
        self.entity_id = entity_id


class PlatformUnavailableError(PlatformServiceError):
    def __init__(self, message: str, *, entity_id: str | None = None) -> None:
        super().__init__(message)
        self.entity_id = entity_id


class PlatformTransportError(PlatformServiceError):
    def __init__(self, message: str, *, operation: str) -> None:
        super().__init__(message)
        self.operation = operation


def summarize_exception_message(exc: BaseException, *, max_length: int = 400) -> str:
    raw = str(exc).strip()
    if not raw:
        raw = repr(exc)
    if len(raw) <= max_length:
        return raw
    return f"{raw[: max_length - 3]}..."

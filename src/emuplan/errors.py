"""Typed error model with stable, machine-readable error codes."""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum


class ErrorCode(StrEnum):
    """Stable error identifiers used across API and CLI surfaces."""

    VALIDATION = "E_VALIDATION"
    MALFORMED_TIMESTAMP = "E_MALFORMED_TIMESTAMP"
    UNSUPPORTED_PLATFORM = "E_UNSUPPORTED_PLATFORM"
    MISSING_LOCK_FILE = "E_MISSING_LOCK_FILE"
    LOCKFILE = "E_LOCKFILE"
    BUILD_FAILURE = "E_BUILD_FAILURE"
    INTERRUPTED = "E_INTERRUPTED"
    REPRODUCIBILITY = "E_REPRODUCIBILITY"


class EmuplanError(Exception):
    """Base error class that carries code, optional hint, and context."""

    code: str
    hint: str | None
    context: Mapping[str, str]

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code.value
        self.hint = hint
        self.context = dict(context or {})

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        if self.context:
            for k, v in self.context.items():
                if v:
                    parts.append(f"  {k}: {v}")
        return "\n".join(parts)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "code": self.code,
            "message": str(self),
            "context": dict(self.context),
        }
        if self.hint is not None:
            payload["hint"] = self.hint
        return payload


class ValidationError(EmuplanError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.VALIDATION, hint=hint, context=context)


class MalformedTimestampError(EmuplanError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(
            message, code=ErrorCode.MALFORMED_TIMESTAMP, hint=hint, context=context
        )


class UnsupportedPlatformError(EmuplanError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(
            message, code=ErrorCode.UNSUPPORTED_PLATFORM, hint=hint, context=context
        )


class MissingLockFileError(EmuplanError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.MISSING_LOCK_FILE, hint=hint, context=context)


class LockfileError(EmuplanError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.LOCKFILE, hint=hint, context=context)


class ReproducibilityError(EmuplanError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.REPRODUCIBILITY, hint=hint, context=context)


class BuildFailure(EmuplanError):
    """Toolchain-reported failure; diagnostics are surfaced verbatim."""

    diagnostics: str
    returncode: int | None

    def __init__(
        self,
        message: str,
        *,
        diagnostics: str = "",
        returncode: int | None = None,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
        code: ErrorCode = ErrorCode.BUILD_FAILURE,
    ) -> None:
        super().__init__(message, code=code, hint=hint, context=context)
        self.diagnostics = diagnostics
        self.returncode = returncode

    def __str__(self) -> str:
        rendered = super().__str__()
        if self.diagnostics:
            rendered = f"{rendered}\n--- toolchain diagnostics ---\n{self.diagnostics}"
        return rendered

    def to_dict(self) -> dict[str, object]:
        payload = super().to_dict()
        payload["diagnostics"] = self.diagnostics
        payload["returncode"] = self.returncode
        return payload


class BuildInterrupted(BuildFailure):
    """Caller-initiated cancellation of a toolchain invocation."""

    def __init__(
        self,
        message: str = "Build was interrupted.",
        *,
        diagnostics: str = "",
        returncode: int | None = None,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(
            message,
            diagnostics=diagnostics,
            returncode=returncode,
            hint=hint,
            context=context,
            code=ErrorCode.INTERRUPTED,
        )


__all__ = [
    "BuildFailure",
    "BuildInterrupted",
    "EmuplanError",
    "ErrorCode",
    "LockfileError",
    "MalformedTimestampError",
    "MissingLockFileError",
    "ReproducibilityError",
    "UnsupportedPlatformError",
    "ValidationError",
]

"""Compose policy configuration and enforcement helpers."""

from __future__ import annotations

from dataclasses import dataclass

from emuplan.errors import ValidationError


@dataclass(frozen=True, slots=True)
class ComposePolicy:
    run_tests: bool = True
    test_relaxation_reason: str | None = None

    @classmethod
    def skip_tests(cls, reason: str) -> ComposePolicy:
        return cls(run_tests=False, test_relaxation_reason=reason)


def ensure_test_policy(policy: ComposePolicy) -> None:
    if policy.run_tests:
        if policy.test_relaxation_reason:
            raise ValidationError(
                "A test relaxation reason was given but tests are enabled.",
                hint="Drop test_relaxation_reason or set run_tests=False.",
                context={"operation": "compose"},
            )
        return
    if not (policy.test_relaxation_reason or "").strip():
        raise ValidationError(
            "Disabling the test phase requires a stated reason.",
            hint="Use ComposePolicy.skip_tests('why') so the relaxation stays visible.",
            context={"operation": "compose"},
        )

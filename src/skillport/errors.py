from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .scopes import InstallLocation


class SkillportError(RuntimeError):
    pass


class InvalidSkillError(SkillportError):
    def __init__(self, message: str = "Skill is missing required fields (slug).") -> None:
        super().__init__(message)


class NoSourceError(SkillportError):
    pass


class NoLocationsSpecifiedError(SkillportError):
    def __init__(self, message: str = "No installation locations specified.") -> None:
        super().__init__(message)


class SourceNotFoundError(SkillportError):
    pass


class SymlinkFailedError(SkillportError):
    pass


class AlreadyExistsError(SymlinkFailedError):
    pass


class NotASymlinkError(SymlinkFailedError):
    pass


class InvalidScopeError(SkillportError):
    pass


class SkillNotFoundError(SkillportError):
    pass


class NoToolsSelectedError(SkillportError):
    def __init__(self, message: str = "No AI tools selected. Run `skillport tools set <platform>...` first.") -> None:
        super().__init__(message)


class StoreError(SkillportError):
    pass


@dataclass(frozen=True)
class LocationOutcome:
    # location is None for failures not tied to one location (e.g. a ledger lookup).
    location: InstallLocation | None
    path: str
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def describe(self) -> str:
        label = self.location.id if self.location is not None else "skill"
        if self.error is None:
            return f"{label}: {self.path}"
        return f"{label}: {self.error}"


class _AggregateError(SkillportError):
    summary = ""

    def __init__(self, outcomes: tuple[LocationOutcome, ...] | list[LocationOutcome]) -> None:
        self.outcomes = tuple(outcomes)
        details = "; ".join(o.describe() for o in self.outcomes if not o.ok)
        super().__init__(f"{self.summary}: {details}" if details else self.summary)

    @property
    def failed(self) -> tuple[LocationOutcome, ...]:
        return tuple(o for o in self.outcomes if not o.ok)


class InstallError(_AggregateError):
    summary = "Failed to install to any location"


class UninstallError(_AggregateError):
    summary = "Uninstall errors"

from __future__ import annotations

from typing import Any, List, Optional


class ConcatError(RuntimeError):
    pass


class DuplicateFragmentError(ConcatError):
    def __init__(self, target: str, name: str) -> None:
        super().__init__(f"Fragment {name!r} already registered for {target}")
        self.target = target
        self.name = name


class InvalidOptionValueError(ConcatError, ValueError):
    def __init__(self, option: Any, value: Any) -> None:
        super().__init__(
            f"Option {option!r} must be a string or a list of strings, got {type(value).__name__}"
        )
        self.option = option
        self.value = value


class EmptyTargetError(ConcatError):
    def __init__(self, target: str) -> None:
        super().__init__(f"No fragments registered for {target}")
        self.target = target


class WriteError(ConcatError):
    """Writing a target file failed; the previous file was left in place."""

    def __init__(self, path: str, message: str) -> None:
        super().__init__(f"Failed to write {path}: {message}")
        self.path = path


class DependentActionError(ConcatError):
    """A dependent action failed after its target file was written.

    `action` is the first failed action, `failed` lists all of them.
    """

    def __init__(
        self,
        target: str,
        action: Any,
        failed: Optional[List[Any]] = None,
        invoked: Optional[List[str]] = None,
    ) -> None:
        super().__init__(f"Dependent action {action} failed for {target}")
        self.target = target
        self.action = action
        self.failed = list(failed or [action])
        self.invoked = list(invoked or [])

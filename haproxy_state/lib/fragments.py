from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Tuple, Union

from ..errors import DuplicateFragmentError

logger = logging.getLogger(__name__)

Order = Union[str, int, float]
Content = Union[str, Callable[[], str]]


@dataclass(frozen=True)
class Fragment:
    """A named piece of text contributed to one target file.

    `content` is either literal text or a zero-argument callable producing it.
    Fragments carry their own trailing newline.
    """

    name: str
    target: str
    order: Order
    content: Content

    def __post_init__(self) -> None:
        if isinstance(self.order, bool) or not isinstance(self.order, (str, int, float)):
            raise TypeError(f"Fragment order must be a string or a number, got {self.order!r}")

    def text(self) -> str:
        if callable(self.content):
            return self.content()
        return self.content


class FragmentStore:
    """Fragments registered during one convergence pass."""

    def __init__(self) -> None:
        self._fragments: Dict[Tuple[str, str], Fragment] = {}

    def register(self, fragment: Fragment) -> None:
        key = (fragment.target, fragment.name)
        if key in self._fragments:
            raise DuplicateFragmentError(fragment.target, fragment.name)
        self._fragments[key] = fragment
        logger.debug("Registered fragment %s for %s (order=%s)", fragment.name, fragment.target, fragment.order)

    def fragments_for(self, target: str) -> List[Fragment]:
        return [f for (t, _), f in self._fragments.items() if t == target]

    def targets(self) -> List[str]:
        seen: List[str] = []
        for t, _ in self._fragments:
            if t not in seen:
                seen.append(t)
        return seen

    def reset(self) -> None:
        self._fragments.clear()

    def __len__(self) -> int:
        return len(self._fragments)

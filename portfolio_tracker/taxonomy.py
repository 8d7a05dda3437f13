"""Class taxonomy — append-only arena of named categories forming a forest."""
from __future__ import annotations

import logging

from .errors import InvalidInput, InvalidState, NotFound
from .models import ClassInfo

logger = logging.getLogger(__name__)

ROOT_PARENT = 0
CRYPTOS_NAME = "CRYPTOS"
STOCKS_NAME = "STOCKS"


class ClassRegistry:
    """Classes indexed by integer id; ids are never reused or removed.

    ``next_class_id`` is 0 until the registry is bootstrapped, after which it
    always points at the id the next ``create`` will mint.
    """

    def __init__(self) -> None:
        self._classes: dict[int, ClassInfo] = {}
        self.next_class_id = 0

    @property
    def bootstrapped(self) -> bool:
        return self.next_class_id != 0

    def bootstrap(self) -> tuple[int, int] | None:
        """Create the CRYPTOS and STOCKS roots once.

        Returns the two ids, or ``None`` when the registry was already
        bootstrapped.
        """
        if self.bootstrapped:
            return None
        self.next_class_id = 1
        cryptos = self.create(CRYPTOS_NAME, ROOT_PARENT)
        stocks = self.create(STOCKS_NAME, ROOT_PARENT)
        return cryptos, stocks

    def create(self, name: str, parent_id: int = ROOT_PARENT) -> int:
        if not self.bootstrapped:
            raise InvalidState("Class taxonomy is not initialized")
        if not name:
            raise InvalidInput("Class name must not be empty")
        if parent_id != ROOT_PARENT:
            self._require_active(parent_id)
        class_id = self.next_class_id
        self._classes[class_id] = ClassInfo(
            exists=True, active=True, parent_id=parent_id, name=name
        )
        self.next_class_id += 1
        logger.info("Class %d '%s' created (parent %d)", class_id, name, parent_id)
        return class_id

    def deactivate(self, class_id: int) -> None:
        info = self._require_existing(class_id)
        if not info.active:
            raise InvalidState(f"Class {class_id} is already inactive")
        self._classes[class_id] = ClassInfo(
            exists=True, active=False, parent_id=info.parent_id, name=info.name
        )
        logger.info("Class %d '%s' deactivated", class_id, info.name)

    def rename(self, class_id: int, name: str) -> None:
        info = self._require_existing(class_id)
        if not name:
            raise InvalidInput("Class name must not be empty")
        self._classes[class_id] = ClassInfo(
            exists=True, active=info.active, parent_id=info.parent_id, name=name
        )

    def get(self, class_id: int) -> ClassInfo:
        """Return the record for *class_id*, or an empty one if never minted."""
        return self._classes.get(class_id, ClassInfo())

    def is_active(self, class_id: int) -> bool:
        info = self.get(class_id)
        return info.exists and info.active

    def require_active(self, class_id: int) -> ClassInfo:
        return self._require_active(class_id)

    def children(self, parent_id: int) -> list[int]:
        return sorted(
            cid for cid, info in self._classes.items() if info.parent_id == parent_id
        )

    def items(self) -> list[tuple[int, ClassInfo]]:
        return sorted(self._classes.items())

    def path(self, class_id: int) -> list[str]:
        """Names from the root down to *class_id*."""
        names: list[str] = []
        current = class_id
        while current != ROOT_PARENT:
            info = self.get(current)
            if not info.exists:
                break
            names.append(info.name)
            current = info.parent_id
        return list(reversed(names))

    def restore(self, classes: dict[int, ClassInfo], next_class_id: int) -> None:
        self._classes = dict(classes)
        self.next_class_id = next_class_id

    def _require_existing(self, class_id: int) -> ClassInfo:
        info = self.get(class_id)
        if not info.exists:
            raise NotFound(f"Class {class_id} does not exist")
        return info

    def _require_active(self, class_id: int) -> ClassInfo:
        info = self._require_existing(class_id)
        if not info.active:
            raise InvalidState(f"Class {class_id} is inactive")
        return info

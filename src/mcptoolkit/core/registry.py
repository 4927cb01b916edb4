"""
ActiveToolkitRegistry - process-wide set of live toolkits.

Used only by the shutdown coordinator to find every toolkit that still owns a
server process. Membership is weak: the registry never keeps a toolkit alive.
"""

from __future__ import annotations

import weakref
from typing import Awaitable, List, Protocol


class ManagedToolkit(Protocol):
    id: str

    def cleanup(self) -> Awaitable[None]:
        ...


class ActiveToolkitRegistry:
    def __init__(self) -> None:
        self._members: "weakref.WeakValueDictionary[str, ManagedToolkit]" = weakref.WeakValueDictionary()

    def register(self, toolkit: ManagedToolkit) -> None:
        self._members[toolkit.id] = toolkit

    def unregister(self, toolkit: ManagedToolkit) -> bool:
        """Remove ``toolkit``; True only for the caller that actually removed it."""
        # No await between the check and the removal: atomic on the event loop.
        if self._members.get(toolkit.id) is not toolkit:
            return False
        del self._members[toolkit.id]
        return True

    def snapshot(self) -> List[ManagedToolkit]:
        return list(self._members.values())

    def clear(self) -> None:
        self._members.clear()

    def __contains__(self, toolkit: object) -> bool:
        toolkit_id = getattr(toolkit, "id", None)
        return toolkit_id is not None and self._members.get(toolkit_id) is toolkit

    def __len__(self) -> int:
        return len(self._members)


active_toolkits = ActiveToolkitRegistry()

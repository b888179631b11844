from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import logging
from typing import Any, Awaitable, Callable

from tenantforge.providers.store.base import RegistryStore


logger = logging.getLogger(__name__)


class UndoKind(str, Enum):
    TENANT = "tenant"
    BRANCH = "branch"
    STAFF = "staff"
    STAFF_BRANCHES = "staff_branches"
    USER_ROLE = "user_role"
    SERVICES = "services"
    FAQS = "faqs"
    CLIENT_LINK = "client_link"


def _undo_handlers(store: RegistryStore) -> dict[UndoKind, Callable[[str], Awaitable[None]]]:
    # Adding a deletable resource type means one enum member and one entry here.
    return {
        UndoKind.TENANT: store.delete_tenant,
        UndoKind.BRANCH: store.delete_branch,
        UndoKind.STAFF: store.delete_staff,
        UndoKind.STAFF_BRANCHES: store.delete_staff_branches,
        UndoKind.USER_ROLE: store.delete_user_role,
        UndoKind.SERVICES: store.delete_services,
        UndoKind.FAQS: store.delete_faqs,
    }


@dataclass(frozen=True)
class UndoAction:
    kind: UndoKind
    resource_id: str
    # Prior column values for actions that restore a row instead of deleting it.
    restore: dict[str, Any] | None = field(default=None, compare=False)


async def _apply_undo(
    store: RegistryStore,
    handlers: dict[UndoKind, Callable[[str], Awaitable[None]]],
    action: UndoAction,
) -> None:
    if action.kind is UndoKind.CLIENT_LINK:
        await store.update_client(action.resource_id, dict(action.restore or {}))
        return
    await handlers[action.kind](action.resource_id)


@dataclass
class RollbackReport:
    attempted: list[UndoAction] = field(default_factory=list)
    undone: list[UndoAction] = field(default_factory=list)
    failures: list[dict[str, str]] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.failures

    def to_dict(self) -> dict[str, Any]:
        return {
            "attempted": len(self.attempted),
            "undone": [{"kind": a.kind.value, "resource_id": a.resource_id} for a in self.undone],
            "failures": list(self.failures),
            "clean": self.clean,
        }


class RollbackTracker:
    """Ordered compensating actions for one provisioning attempt.

    Actions are recorded in creation order and replayed in reverse. The tracker
    belongs to a single attempt and can be replayed at most once.
    """

    def __init__(self) -> None:
        self._actions: list[UndoAction] = []
        self._consumed = False

    @property
    def actions(self) -> tuple[UndoAction, ...]:
        return tuple(self._actions)

    @property
    def has_tenant(self) -> bool:
        return any(action.kind is UndoKind.TENANT for action in self._actions)

    def track(self, kind: UndoKind, resource_id: str, *, restore: dict[str, Any] | None = None) -> None:
        if self._consumed:
            raise RuntimeError("rollback tracker already consumed")
        self._actions.append(UndoAction(kind=kind, resource_id=resource_id, restore=restore))

    def discard(self) -> None:
        self._actions.clear()
        self._consumed = True

    async def replay(self, store: RegistryStore) -> RollbackReport:
        if self._consumed:
            raise RuntimeError("rollback tracker already consumed")
        self._consumed = True
        handlers = _undo_handlers(store)
        report = RollbackReport()
        for action in reversed(self._actions):
            report.attempted.append(action)
            try:
                await _apply_undo(store, handlers, action)
            except Exception as exc:  # noqa: BLE001 - every undo is attempted independently
                # Keep going; leftovers are reported for operator cleanup.
                logger.error(
                    "rollback_step_failed kind=%s resource_id=%s",
                    action.kind.value,
                    action.resource_id,
                    exc_info=exc,
                )
                report.failures.append(
                    {"kind": action.kind.value, "resource_id": action.resource_id, "error": str(exc)}
                )
                continue
            report.undone.append(action)
        self._actions.clear()
        if report.failures:
            logger.error(
                "rollback_incomplete failures=%s attempted=%s",
                len(report.failures),
                len(report.attempted),
            )
        else:
            logger.info("rollback_completed undone=%s", len(report.undone))
        return report

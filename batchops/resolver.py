"""
Target resolution: turns a declarative filter into concrete, deduplicated targets.

Participants are registrations joined with their user and workshop documents.
Recipients are deduplicated on the normalised email address; the first
occurrence wins and resolution order is preserved.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Hashable, Iterable, List, Optional, TypeVar

from batchops.db.store import REGISTRATIONS, USERS, WORKSHOPS, Store
from batchops.schemas import Recipient, TargetFilter
from batchops.utils.conditions import conditions_met

logger = logging.getLogger(__name__)

T = TypeVar("T")


def dedupe(items: Iterable[T], key: Callable[[T], Hashable]) -> List[T]:
    """Keep the first item per key, in original order."""
    seen = set()
    unique: List[T] = []
    for item in items:
        identity = key(item)
        if identity in seen:
            continue
        seen.add(identity)
        unique.append(item)
    return unique


def _email_key(recipient: Recipient) -> str:
    return recipient.email.strip().lower()


class TargetResolver:
    """Resolves recipients and participant rows against the store."""

    def __init__(self, store: Store):
        self.store = store

    async def participants(self, group_ids: Optional[List[str]] = None) -> List[Dict[str, Any]]:
        """Registrations joined with ``user`` and ``workshop``; all groups when ``group_ids`` is None."""
        if group_ids is None:
            registrations = await self.store.list(REGISTRATIONS)
        else:
            registrations = []
            for group_id in group_ids:
                registrations.extend(await self.store.list(REGISTRATIONS, {"workshop_id": group_id}))
        return await self.join_registrations(registrations)

    async def join_registrations(self, registrations: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        users: Dict[str, Optional[Dict[str, Any]]] = {}
        workshops: Dict[str, Optional[Dict[str, Any]]] = {}
        joined = []
        for registration in registrations:
            user_id = registration.get("user_id")
            workshop_id = registration.get("workshop_id")
            if user_id not in users:
                users[user_id] = await self.store.get(USERS, user_id) if user_id else None
            if workshop_id not in workshops:
                workshops[workshop_id] = await self.store.get(WORKSHOPS, workshop_id) if workshop_id else None
            if users[user_id] is None:
                logger.warning(f"Registration {registration.get('id')} references unknown user {user_id}")
                continue
            joined.append({**registration, "user": users[user_id], "workshop": workshops[workshop_id] or {}})
        return joined

    async def resolve(self, target_filter: TargetFilter) -> List[Recipient]:
        if target_filter.type == "all":
            recipients = [self._participant_recipient(p) for p in await self.participants()]
        elif target_filter.type == "groups":
            recipients = [self._participant_recipient(p) for p in await self.participants(target_filter.group_ids)]
        elif target_filter.type == "ids":
            recipients = await self._resolve_user_ids(target_filter.ids)
        else:
            recipients = await self._resolve_custom(target_filter)

        with_email = []
        for recipient in recipients:
            if recipient.email.strip():
                with_email.append(recipient)
            else:
                logger.warning(f"Skipping target {recipient.id}: no email address")
        return dedupe(with_email, _email_key)

    async def _resolve_user_ids(self, user_ids: List[str]) -> List[Recipient]:
        recipients = []
        for user_id in user_ids:
            user = await self.store.get(USERS, user_id)
            if user is None:
                logger.warning(f"Skipping unknown user id {user_id}")
                continue
            recipients.append(Recipient(id=user["id"], email=user.get("email") or "", name=user.get("name") or ""))
        return recipients

    async def _resolve_custom(self, target_filter: TargetFilter) -> List[Recipient]:
        if not target_filter.criteria:
            return []
        recipients = []
        for participant in await self.participants():
            view = {
                **participant["user"],
                "group_id": participant.get("workshop_id"),
                "group_title": participant["workshop"].get("title"),
            }
            if conditions_met(view, target_filter.criteria):
                recipients.append(self._participant_recipient(participant))
        return recipients

    @staticmethod
    def _participant_recipient(participant: Dict[str, Any]) -> Recipient:
        user = participant["user"]
        return Recipient(
            id=user["id"],
            email=user.get("email") or "",
            name=user.get("name") or "",
            group_id=participant.get("workshop_id"),
            group_title=participant["workshop"].get("title"),
        )

# stampflow/approval/identity.py

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from pydantic import BaseModel, Field

WRITER_SLOT = "writer"


class Actor(BaseModel):
    """The signed-in user as seen by the approval engine."""
    user_id: str
    initials: str = ""
    is_privileged: bool = False
    slot_claims: List[str] = Field(default_factory=list)


class SlotAuthorizer(ABC):
    @abstractmethod
    def is_authorized_for_slot(self, actor: Actor, slot: str) -> bool:
        """Return True when ``actor`` may stamp ``slot``."""
        ...


class ClaimSlotAuthorizer(SlotAuthorizer):
    """Authorizes by the slots the actor claims; privileged users may stamp any slot."""

    def is_authorized_for_slot(self, actor: Actor, slot: str) -> bool:
        if slot == WRITER_SLOT:
            return True
        return actor.is_privileged or slot in actor.slot_claims

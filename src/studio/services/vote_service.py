"""
Vote Service

Community review of draft threats and FUD analyses. A net score of
VOTE_THRESHOLD publishes the item, minus the threshold archives it.
"""
import logging
from typing import List, Optional
from uuid import UUID

from ..models.audit import EntityAuditEntry
from ..models.threat import REVIEWABLE_STATUSES, WorkflowStatus
from ..models.vote import VOTE_THRESHOLD, Vote, VoteSummary, VoteTargetType
from .errors import ForbiddenError, NotFoundError

logger = logging.getLogger("studio.services.votes")

COMMUNITY_ACTOR = "community"
COMMUNITY_NAME = "Community Vote"


class VoteService:
    def __init__(self, vote_storage, threat_storage, fud_storage, entity_audit_storage):
        self.vote_storage = vote_storage
        self.threat_storage = threat_storage
        self.fud_storage = fud_storage
        self.entity_audit_storage = entity_audit_storage

    def _target_storage(self, target_type: VoteTargetType):
        if target_type == VoteTargetType.THREAT:
            return self.threat_storage
        return self.fud_storage

    async def cast(
        self,
        target_type: VoteTargetType,
        target_id: str,
        user_id: UUID,
        user_name: str,
        vote_value: int,
    ) -> dict:
        """
        Record a vote and apply the publish/archive threshold.

        Raises:
            NotFoundError: target does not exist
            ValueError: target is not open for review, or bad vote value
            ForbiddenError: voter submitted the target
        """
        if vote_value not in (1, -1):
            raise ValueError("vote_value must be 1 or -1")

        storage = self._target_storage(target_type)
        target = await storage.get_by_id(target_id)
        if not target:
            raise NotFoundError("Item not found")
        if target.status not in REVIEWABLE_STATUSES:
            raise ValueError("Voting is only allowed on items under review")
        if target.submitted_by and target.submitted_by == str(user_id):
            raise ForbiddenError("You cannot vote on your own submission")

        await self.vote_storage.upsert(Vote(
            target_type=target_type,
            target_id=target_id,
            user_id=user_id,
            user_name=user_name,
            vote_value=vote_value,
        ))

        summary = await self.vote_storage.summary(target_type.value, target_id)
        new_status = None
        if summary.net_score >= VOTE_THRESHOLD:
            new_status, action = WorkflowStatus.PUBLISHED, "vote_publish"
        elif summary.net_score <= -VOTE_THRESHOLD:
            new_status, action = WorkflowStatus.ARCHIVED, "vote_archive"

        if new_status is not None:
            await storage.update_status(target_id, new_status)
            await self.entity_audit_storage.append(EntityAuditEntry(
                entity_type=target_type.value,
                entity_id=target_id,
                action=action,
                user_id=COMMUNITY_ACTOR,
                user_name=COMMUNITY_NAME,
                diff={
                    "approvals": summary.approvals,
                    "rejections": summary.rejections,
                    "netScore": summary.net_score,
                    "threshold": VOTE_THRESHOLD,
                },
            ))
            logger.info(f"{target_type.value} {target_id} {new_status.value} by community vote")

        return {
            "vote_recorded": True,
            "net_score": summary.net_score,
            "new_status": new_status.value if new_status else None,
        }

    async def summary(
        self,
        target_type: VoteTargetType,
        target_id: str,
        user_id: Optional[UUID] = None,
    ) -> VoteSummary:
        return await self.vote_storage.summary(target_type.value, target_id, user_id)

    async def retract(self, target_type: VoteTargetType, target_id: str, user_id: UUID) -> bool:
        return await self.vote_storage.delete(target_type.value, target_id, user_id)

    async def _tally(self, target_type: VoteTargetType, target_id: str) -> dict:
        summary = await self.vote_storage.summary(target_type.value, target_id)
        return {
            "approvals": summary.approvals,
            "rejections": summary.rejections,
            "net_score": summary.net_score,
        }

    async def submissions(self, user_id: UUID) -> List[dict]:
        """
        A user's own threats and FUD analyses in every workflow state,
        newest first. Items still under review carry their vote tallies.
        """
        threats = await self.threat_storage.list_by_submitter(str(user_id))
        fud = await self.fud_storage.list_by_submitter(str(user_id))
        entries = [(VoteTargetType.THREAT, t.id, t.name, t.status, t.date_identified) for t in threats]
        entries += [(VoteTargetType.FUD, f.id, f.narrative, f.status, f.last_seen) for f in fud]
        entries.sort(key=lambda e: e[4], reverse=True)

        items = []
        for target_type, target_id, name, status, created_at in entries:
            item = {
                "id": target_id,
                "type": target_type.value,
                "name": name,
                "status": status.value,
                "created_at": created_at.isoformat(),
            }
            if status in REVIEWABLE_STATUSES:
                item.update(await self._tally(target_type, target_id))
            items.append(item)
        return items

    async def review_queue(self, user_id: UUID) -> List[dict]:
        """Drafts and under-review threats and FUD open for community votes, newest first"""
        threats = await self.threat_storage.list(statuses=REVIEWABLE_STATUSES)
        fud = await self.fud_storage.list(statuses=REVIEWABLE_STATUSES)
        entries = [(VoteTargetType.THREAT, t, t.name, t.date_identified) for t in threats]
        entries += [(VoteTargetType.FUD, f, f.narrative, f.last_seen) for f in fud]
        entries.sort(key=lambda e: e[3], reverse=True)

        items = []
        for target_type, target, name, created_at in entries:
            summary = await self.vote_storage.summary(target_type.value, target.id, user_id)
            items.append({
                "id": target.id,
                "type": target_type.value,
                "name": name,
                "status": target.status.value,
                "submitted_by": target.submitted_by,
                "submitted_by_name": target.submitted_by_name,
                "created_at": created_at.isoformat(),
                "approvals": summary.approvals,
                "rejections": summary.rejections,
                "net_score": summary.net_score,
                "user_vote": summary.user_vote,
            })
        return items

"""
Match lifecycle service.

Owns match creation and editing, invite codes, join-by-code, confirmations,
participant approval and attendance. Every state change is persisted through
the repository first and then fanned out to connected clients.
"""

import logging
import os
import secrets
from typing import Dict, List, Optional, Set

from sportsync.database.models import MatchStatus, ConfirmationStatus, NotificationType
from sportsync.models.schemas import (
    UserRecord,
    MatchResponse,
    MatchCreate,
    MatchUpdate,
    ConfirmationResponse,
    ParticipantResponse,
)
from sportsync.repositories.base import Repository
from sportsync.services import auth_service, notification_service, plan_limit_service
from sportsync.services.errors import (
    ConflictError,
    ForbiddenError,
    InvalidCodeError,
    NotFoundError,
    ValidationFailedError,
)
from sportsync.services.websocket_manager import EventType, publish
from sportsync.utils.constants import (
    MIN_MATCH_PLAYERS,
    MAX_MATCH_PLAYERS,
    INVITE_CODE_ALPHABET,
    INVITE_CODE_LENGTH,
    INVITE_CODE_MAX_ATTEMPTS,
)
from sportsync.utils.datetime_utils import utcnow, ensure_utc

logger = logging.getLogger(__name__)

# Allowed forward moves. Every MatchStatus member must be a key.
STATUS_TRANSITIONS: Dict[MatchStatus, Set[MatchStatus]] = {
    MatchStatus.SCHEDULED: {MatchStatus.IN_PROGRESS, MatchStatus.FINISHED},
    MatchStatus.IN_PROGRESS: {MatchStatus.FINISHED},
    MatchStatus.FINISHED: set(),
}
_missing_statuses = set(MatchStatus) - set(STATUS_TRANSITIONS)
if _missing_statuses:
    raise RuntimeError(f"STATUS_TRANSITIONS is missing: {sorted(s.value for s in _missing_statuses)}")

# Fields a patch may not set to null
NON_NULLABLE_FIELDS = {
    "title",
    "location",
    "date",
    "max_players",
    "status",
    "is_public",
    "auto_release",
    "requires_approval",
}


def strict_capacity_enabled() -> bool:
    return os.getenv("STRICT_MATCH_CAPACITY", "false").lower() == "true"


def frontend_url() -> str:
    return os.getenv("FRONTEND_URL", "http://localhost:5173").rstrip("/")


# ============================================================================
# Invite codes
# ============================================================================


def generate_invite_code() -> str:
    """Random code from an alphabet without look-alike characters."""
    return "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(INVITE_CODE_LENGTH))


def build_invite_link(code: str) -> str:
    return f"{frontend_url()}/join/{code}"


def normalize_invite_code(code: Optional[str]) -> str:
    """Codes are matched case-insensitively and ignore surrounding whitespace."""
    return (code or "").strip().upper()


# ============================================================================
# Helpers
# ============================================================================


def can_manage_match(user: UserRecord, match: MatchResponse) -> bool:
    """Creator or admin may edit or delete a match."""
    return user.id == match.created_by or auth_service.is_admin(user)


def can_moderate_match(user: UserRecord, match: MatchResponse) -> bool:
    """Creator, moderator or admin may review participants and record attendance."""
    return user.id == match.created_by or auth_service.is_staff(user)


def _validate_title_location(fields: dict):
    for key in ("title", "location"):
        if key in fields:
            value = (fields[key] or "").strip()
            if not value:
                raise ValidationFailedError(f"{key.capitalize()} is required")
            fields[key] = value


def _validate_max_players(max_players: int):
    if not MIN_MATCH_PLAYERS <= max_players <= MAX_MATCH_PLAYERS:
        raise ValidationFailedError(
            f"max_players must be between {MIN_MATCH_PLAYERS} and {MAX_MATCH_PLAYERS}"
        )


def _validate_status_transition(current: MatchStatus, new: MatchStatus):
    if new == current:
        return
    if new not in STATUS_TRANSITIONS[current]:
        raise ValidationFailedError(
            f"Cannot change match status from {current.value} to {new.value}"
        )


async def get_match(repo: Repository, match_id: int) -> MatchResponse:
    """
    Raises:
        NotFoundError: unknown match
    """
    match = await repo.get_match(match_id)
    if match is None:
        raise NotFoundError("Match not found")
    return match


def _holds_seat(confirmation: Optional[ConfirmationResponse]) -> bool:
    return (
        confirmation is not None
        and confirmation.status == ConfirmationStatus.APPROVED
        and confirmation.confirmed
    )


def _approval_cleared(match: MatchResponse, existing: Optional[ConfirmationResponse]) -> bool:
    """
    Whether a join or confirm may seat the user without a review.

    On a match requiring approval only a row approved by a reviewer (or an
    accepted invitation), or one already holding a seat, qualifies.
    """
    if not match.requires_approval:
        return True
    if existing is None or existing.status != ConfirmationStatus.APPROVED:
        return False
    return existing.reviewed_at is not None or _holds_seat(existing)


def is_visible_to(user: UserRecord, match: MatchResponse, participating: Set[int]) -> bool:
    return (
        match.is_public
        or match.created_by == user.id
        or match.id in participating
        or auth_service.is_admin(user)
    )


async def _participating_match_ids(repo: Repository, user_id: int) -> Set[int]:
    return {
        c.match_id
        for c in await repo.list_confirmations_by_user(user_id)
        if c.status != ConfirmationStatus.REJECTED
    }


async def _publish_match(event_type: EventType, match: MatchResponse):
    """Broadcast a match. Private matches go out without their invite code."""
    if match.is_public:
        await publish(event_type, match)
    else:
        await publish(event_type, match.model_dump(exclude={"invite_code", "invite_link"}))


async def count_participants(repo: Repository, match_id: int) -> int:
    """Approved participants who confirmed attendance."""
    confirmations = await repo.list_confirmations_by_match(match_id)
    return sum(1 for c in confirmations if _holds_seat(c))


async def _ensure_capacity(
    repo: Repository, match: MatchResponse, existing: Optional[ConfirmationResponse]
):
    """With strict capacity on, refuse a new seat once max_players is reached."""
    if not strict_capacity_enabled() or _holds_seat(existing):
        return
    if await count_participants(repo, match.id) >= match.max_players:
        raise ConflictError("Match is full")


# ============================================================================
# Matches
# ============================================================================


async def create_match(repo: Repository, creator: UserRecord, data: MatchCreate) -> MatchResponse:
    """
    Create a match with a fresh invite code and link.

    Raises:
        ValidationFailedError: missing title/location or max_players out of range
        QuotaExceededError: the creator's plan allows no further created match
        ConflictError: no unique invite code could be generated
    """
    fields = data.model_dump()
    _validate_title_location(fields)
    _validate_max_players(fields["max_players"])
    fields["date"] = ensure_utc(fields["date"])

    async with plan_limit_service.quota_lock(creator.id):
        await plan_limit_service.ensure_can_create(repo, creator.id)

        match = None
        for attempt in range(INVITE_CODE_MAX_ATTEMPTS):
            code = generate_invite_code()
            if await repo.get_match_by_invite_code(code) is not None:
                continue
            try:
                match = await repo.create_match(
                    created_by=creator.id,
                    invite_code=code,
                    invite_link=build_invite_link(code),
                    status=MatchStatus.SCHEDULED,
                    **fields,
                )
                break
            except ConflictError:
                logger.warning(f"Invite code collision on attempt {attempt + 1}, retrying")
        if match is None:
            raise ConflictError("Could not generate a unique invite code, please retry")

    logger.info(f"Match {match.id} created by user {creator.id} (code {match.invite_code})")
    await _publish_match(EventType.NEW_MATCH, match)
    return match


async def list_visible_matches(repo: Repository, user: UserRecord) -> List[MatchResponse]:
    """
    Public matches plus private ones the user created or takes part in.
    Admins see everything.
    """
    matches = await repo.list_matches()
    if auth_service.is_admin(user):
        return matches
    participating = await _participating_match_ids(repo, user.id)
    return [m for m in matches if is_visible_to(user, m, participating)]


async def get_visible_match(repo: Repository, user: UserRecord, match_id: int) -> MatchResponse:
    """
    Fetch a match the user is allowed to see.

    Raises:
        NotFoundError: unknown match, or a private match the user is not part of
    """
    match = await get_match(repo, match_id)
    if not is_visible_to(user, match, await _participating_match_ids(repo, user.id)):
        raise NotFoundError("Match not found")
    return match


async def list_my_matches(repo: Repository, user: UserRecord) -> List[MatchResponse]:
    return await repo.list_matches_by_creator(user.id)


async def update_match(
    repo: Repository, editor: UserRecord, match_id: int, patch: MatchUpdate
) -> MatchResponse:
    """
    Apply a partial update.

    Raises:
        NotFoundError: unknown match
        ForbiddenError: editor is neither the creator nor an admin
        ValidationFailedError: invalid field values or a backwards status move
    """
    match = await get_match(repo, match_id)
    if not can_manage_match(editor, match):
        raise ForbiddenError("Only the match creator or an admin can edit this match")

    fields = patch.model_dump(exclude_unset=True)
    for key in NON_NULLABLE_FIELDS:
        if key in fields and fields[key] is None:
            raise ValidationFailedError(f"{key} cannot be null")
    _validate_title_location(fields)
    if "max_players" in fields:
        _validate_max_players(fields["max_players"])
    if "date" in fields:
        fields["date"] = ensure_utc(fields["date"])
    if "status" in fields:
        _validate_status_transition(match.status, fields["status"])
    if not fields:
        return match

    updated = await repo.update_match(match_id, **fields)
    logger.info(f"Match {match_id} updated by user {editor.id}: {sorted(fields)}")
    await _publish_match(EventType.MATCH_UPDATED, updated)
    return updated


async def delete_match(repo: Repository, actor: UserRecord, match_id: int) -> None:
    """
    Delete a match and its match-scoped records.

    Raises:
        NotFoundError: unknown match
        ForbiddenError: actor is neither the creator nor an admin
    """
    match = await get_match(repo, match_id)
    if not can_manage_match(actor, match):
        raise ForbiddenError("Only the match creator or an admin can delete this match")
    await repo.delete_match(match_id)
    logger.info(f"Match {match_id} deleted by user {actor.id}")
    await publish(EventType.MATCH_DELETED, {"id": match_id})


# ============================================================================
# Participation
# ============================================================================


async def join_by_code(repo: Repository, user: UserRecord, code: str) -> MatchResponse:
    """
    Join a match through its invite code.

    Matches requiring approval get a pending, unconfirmed row and the creator
    is notified. Otherwise the user is approved and confirmed right away.
    Joining again while already holding a seat or a pending request changes
    nothing.

    Raises:
        InvalidCodeError: no match has this code
        ForbiddenError: the user was rejected from this match
        QuotaExceededError: the user's plan allows no further joined match
        ConflictError: strict capacity is on and the match is full
    """
    match = await repo.get_match_by_invite_code(normalize_invite_code(code))
    if match is None:
        raise InvalidCodeError("Invalid invite code")

    async with plan_limit_service.quota_lock(user.id):
        existing = await repo.get_confirmation(user.id, match.id)
        if existing is not None:
            if existing.status == ConfirmationStatus.REJECTED:
                raise ForbiddenError("Your participation in this match was rejected")
            if plan_limit_service.is_counted(existing):
                return match
        await plan_limit_service.ensure_can_join(repo, user.id)

        if not _approval_cleared(match, existing):
            confirmation = await repo.upsert_confirmation(
                user.id,
                match.id,
                confirmed=False,
                status=ConfirmationStatus.PENDING,
                confirmed_at=None,
                cancelled_at=None,
            )
        else:
            await _ensure_capacity(repo, match, existing)
            confirmation = await repo.upsert_confirmation(
                user.id,
                match.id,
                confirmed=True,
                status=ConfirmationStatus.APPROVED,
                confirmed_at=utcnow(),
                cancelled_at=None,
            )

    logger.info(
        f"User {user.id} joined match {match.id} by code ({confirmation.status.value})"
    )
    if confirmation.status == ConfirmationStatus.PENDING:
        await notification_service.notify(
            repo,
            match.created_by,
            NotificationType.MATCH_JOIN_REQUEST,
            "New join request",
            f"{user.name} asked to join {match.title}",
            related_id=match.id,
        )
    await publish(EventType.CONFIRMATION_UPDATED, confirmation)
    return match


async def set_confirmation(
    repo: Repository, user: UserRecord, match_id: int, confirmed: bool
) -> ConfirmationResponse:
    """
    Record the user's intent to attend (or not). Idempotent upsert.

    On a match that requires approval, a row nobody has reviewed becomes
    pending and stays unconfirmed until reviewed.

    Raises:
        NotFoundError: unknown match
        ForbiddenError: confirming after being rejected
        QuotaExceededError: confirming would exceed the join quota
        ConflictError: strict capacity is on and the match is full
    """
    match = await get_match(repo, match_id)

    async with plan_limit_service.quota_lock(user.id):
        existing = await repo.get_confirmation(user.id, match_id)
        fields = {}
        if confirmed:
            if existing is not None and existing.status == ConfirmationStatus.REJECTED:
                raise ForbiddenError("Your participation in this match was rejected")
            if existing is None or not plan_limit_service.is_counted(existing):
                await plan_limit_service.ensure_can_join(repo, user.id)

            if existing is not None and existing.status == ConfirmationStatus.PENDING:
                fields.update(confirmed=False)
            elif not _approval_cleared(match, existing):
                fields.update(status=ConfirmationStatus.PENDING, confirmed=False, confirmed_at=None)
            else:
                await _ensure_capacity(repo, match, existing)
                fields.update(
                    status=ConfirmationStatus.APPROVED,
                    confirmed=True,
                    confirmed_at=existing.confirmed_at if _holds_seat(existing) else utcnow(),
                )
            fields.update(cancelled_at=None)
        else:
            if existing is None:
                fields.update(
                    status=(
                        ConfirmationStatus.PENDING
                        if match.requires_approval
                        else ConfirmationStatus.APPROVED
                    )
                )
            fields.update(confirmed=False, confirmed_at=None, cancelled_at=utcnow())

        confirmation = await repo.upsert_confirmation(user.id, match_id, **fields)

    await publish(EventType.CONFIRMATION_UPDATED, confirmation)
    return confirmation


async def list_confirmations(repo: Repository, match_id: int) -> List[ConfirmationResponse]:
    await get_match(repo, match_id)
    return await repo.list_confirmations_by_match(match_id)


async def list_participants(repo: Repository, match_id: int) -> List[ParticipantResponse]:
    """Confirmations of a match joined with each participant's public profile."""
    confirmations = await list_confirmations(repo, match_id)
    users = {u.id: u.to_public() for u in await repo.get_users(c.user_id for c in confirmations)}
    return [
        ParticipantResponse(**c.model_dump(), user=users.get(c.user_id))
        for c in confirmations
    ]


async def review_participant(
    repo: Repository,
    reviewer: UserRecord,
    match_id: int,
    user_id: int,
    decision: ConfirmationStatus,
) -> ConfirmationResponse:
    """
    Approve or reject a participant and notify them.

    Raises:
        NotFoundError: unknown match or the user never asked to join
        ForbiddenError: reviewer is not the creator, a moderator or an admin
        ValidationFailedError: decision is not approved/rejected
        ConflictError: approving while strict capacity is on and the match is full
    """
    match = await get_match(repo, match_id)
    if not can_moderate_match(reviewer, match):
        raise ForbiddenError("Only the match creator or a moderator can review participants")
    if decision not in (ConfirmationStatus.APPROVED, ConfirmationStatus.REJECTED):
        raise ValidationFailedError("Decision must be 'approved' or 'rejected'")

    existing = await repo.get_confirmation(user_id, match_id)
    if existing is None:
        raise NotFoundError("Participant not found")

    if decision == ConfirmationStatus.APPROVED:
        await _ensure_capacity(repo, match, existing)
        confirmation = await repo.upsert_confirmation(
            user_id,
            match_id,
            status=ConfirmationStatus.APPROVED,
            confirmed=True,
            confirmed_at=utcnow(),
            cancelled_at=None,
            reviewed_at=utcnow(),
        )
        notification_type = NotificationType.MATCH_APPROVED
        title, message = "Request approved", f"You're in for {match.title}"
    else:
        confirmation = await repo.upsert_confirmation(
            user_id,
            match_id,
            status=ConfirmationStatus.REJECTED,
            confirmed=False,
            confirmed_at=None,
            cancelled_at=utcnow(),
            reviewed_at=utcnow(),
        )
        notification_type = NotificationType.MATCH_REJECTED
        title, message = "Request declined", f"Your request to join {match.title} was declined"

    logger.info(f"User {reviewer.id} set participant {user_id} of match {match_id} to {decision.value}")
    await notification_service.notify(
        repo, user_id, notification_type, title, message, related_id=match_id
    )
    await publish(EventType.CONFIRMATION_UPDATED, confirmation)
    return confirmation


async def set_attendance(
    repo: Repository, actor: UserRecord, match_id: int, user_id: int, attended: bool
) -> ConfirmationResponse:
    """
    Record whether a participant actually showed up.

    Raises:
        NotFoundError: unknown match, or the user has no participation row
        ForbiddenError: actor is not the creator, a moderator or an admin
    """
    match = await get_match(repo, match_id)
    if not can_moderate_match(actor, match):
        raise ForbiddenError("Only the match creator or a moderator can record attendance")
    if await repo.get_confirmation(user_id, match_id) is None:
        raise NotFoundError("Participant not found")
    confirmation = await repo.upsert_confirmation(user_id, match_id, attended=attended)
    await publish(EventType.CONFIRMATION_UPDATED, confirmation)
    return confirmation

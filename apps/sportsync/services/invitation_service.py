"""
Match invitation service.

Invitations address a registered user or an external email. Accepting one
seats the invitee directly: approved and confirmed, without the approval,
capacity or quota gates of open joining.
"""

import logging
from typing import List

from sportsync.database.models import ConfirmationStatus, InvitationStatus, NotificationType
from sportsync.models.schemas import (
    UserRecord,
    InvitationCreate,
    InvitationResponse,
    MatchResponse,
)
from sportsync.repositories.base import Repository
from sportsync.services import notification_service
from sportsync.services.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationFailedError,
)
from sportsync.services.match_service import get_match, can_moderate_match
from sportsync.services.websocket_manager import EventType, publish
from sportsync.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)


async def _can_invite(repo: Repository, user: UserRecord, match: MatchResponse) -> bool:
    if can_moderate_match(user, match):
        return True
    confirmation = await repo.get_confirmation(user.id, match.id)
    return confirmation is not None and confirmation.status == ConfirmationStatus.APPROVED


async def invite_user(
    repo: Repository, inviter: UserRecord, match_id: int, data: InvitationCreate
) -> InvitationResponse:
    """
    Invite a user (by id) or an external address (by email) to a match.

    An email belonging to a registered account is resolved to that user.
    Delivery to external addresses is not performed; the invitation is only
    recorded.

    Raises:
        NotFoundError: unknown match or invitee
        ForbiddenError: inviter is not the creator, staff or an approved participant
        ValidationFailedError: neither or both of user_id/email, or self-invite
        ConflictError: an unanswered invitation already exists for this invitee
    """
    match = await get_match(repo, match_id)
    if not await _can_invite(repo, inviter, match):
        raise ForbiddenError("Only participants of this match can invite others")

    if (data.user_id is None) == (not data.email):
        raise ValidationFailedError("Provide exactly one of user_id or email")

    invitee_id = data.user_id
    email = data.email.strip().lower() if data.email else None
    if invitee_id is not None:
        invitee = await repo.get_user(invitee_id)
        if invitee is None:
            raise NotFoundError("User not found")
    else:
        if "@" not in email:
            raise ValidationFailedError("Invalid email address")
        invitee = await repo.get_user_by_email(email)
        if invitee is not None:
            invitee_id = invitee.id

    if invitee_id == inviter.id:
        raise ValidationFailedError("Cannot invite yourself")

    for invitation in await repo.list_invitations_by_match(match_id):
        if invitation.status != InvitationStatus.SENT:
            continue
        if (invitee_id is not None and invitation.invitee_id == invitee_id) or (
            email is not None and invitation.email == email
        ):
            raise ConflictError("An invitation is already pending for this user")

    invitation = await repo.create_invitation(
        match_id=match_id, inviter_id=inviter.id, invitee_id=invitee_id, email=email
    )
    logger.info(f"User {inviter.id} invited {invitee_id or 'external address'} to match {match_id}")

    if invitee_id is not None:
        await notification_service.notify(
            repo,
            invitee_id,
            NotificationType.MATCH_INVITATION,
            "Match invitation",
            f"{inviter.name} invited you to {match.title}",
            related_id=invitation.id,
        )
    return invitation


async def list_match_invitations(
    repo: Repository, user: UserRecord, match_id: int
) -> List[InvitationResponse]:
    """
    Invitations of a match. The creator and staff see all of them, anybody else
    only the ones they sent or received.
    """
    match = await get_match(repo, match_id)
    invitations = await repo.list_invitations_by_match(match_id)
    if can_moderate_match(user, match):
        return invitations
    return [i for i in invitations if user.id in (i.inviter_id, i.invitee_id)]


async def list_user_invitations(repo: Repository, user: UserRecord) -> List[InvitationResponse]:
    """Invitations addressed to the user."""
    return await repo.list_invitations_by_user(user.id)


async def respond_to_invitation(
    repo: Repository, user: UserRecord, invitation_id: int, decision: InvitationStatus
) -> InvitationResponse:
    """
    Accept or reject an invitation.

    Raises:
        NotFoundError: unknown invitation
        ForbiddenError: caller is not the invitee
        ValidationFailedError: decision is not accepted/rejected
        ConflictError: the invitation was already answered
    """
    invitation = await repo.get_invitation(invitation_id)
    if invitation is None:
        raise NotFoundError("Invitation not found")

    addressed_to_user = invitation.invitee_id == user.id or (
        invitation.invitee_id is None and invitation.email == user.email
    )
    if not addressed_to_user:
        raise ForbiddenError("This invitation is not addressed to you")
    if decision not in (InvitationStatus.ACCEPTED, InvitationStatus.REJECTED):
        raise ValidationFailedError("Decision must be 'accepted' or 'rejected'")
    if invitation.status != InvitationStatus.SENT:
        raise ConflictError("Invitation has already been answered")

    invitee_id = invitation.invitee_id if invitation.invitee_id is not None else user.id
    updated = await repo.update_invitation(
        invitation_id, status=decision, responded_at=utcnow(), invitee_id=invitee_id
    )

    if decision == InvitationStatus.ACCEPTED:
        confirmation = await repo.upsert_confirmation(
            invitee_id,
            invitation.match_id,
            status=ConfirmationStatus.APPROVED,
            confirmed=True,
            confirmed_at=utcnow(),
            cancelled_at=None,
            reviewed_at=utcnow(),
        )
        await publish(EventType.CONFIRMATION_UPDATED, confirmation)

    logger.info(f"Invitation {invitation_id} {decision.value} by user {user.id}")
    return updated

"""
In-memory repository.

Used when STORAGE_BACKEND=memory, and as the fallback when the durable store is
unreachable at startup. Records are kept as pydantic models and handed out as
deep copies so callers can never mutate stored state. Every operation runs
without awaiting, so each call is atomic with respect to the event loop.
"""

import itertools
from collections import defaultdict
from datetime import datetime
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Type

from sportsync.database.models import (
    Role,
    Plan,
    MatchStatus,
    ConfirmationStatus,
    StatisticsStatus,
    FriendshipStatus,
    InvitationStatus,
    PaymentStatus,
)
from sportsync.models.schemas import (
    Record,
    UserRecord,
    MatchResponse,
    ConfirmationResponse,
    StatisticsResponse,
    PostResponse,
    CommentResponse,
    RatingResponse,
    FriendshipResponse,
    InvitationResponse,
    FinanceEntryResponse,
    PaymentResponse,
    NotificationResponse,
)
from sportsync.repositories.base import Repository
from sportsync.services.errors import ConflictError, NotFoundError
from sportsync.utils.datetime_utils import utcnow

USERS = "users"
MATCHES = "matches"
CONFIRMATIONS = "confirmations"
STATISTICS = "statistics"
POSTS = "posts"
COMMENTS = "comments"
RATINGS = "ratings"
FRIENDSHIPS = "friendships"
INVITATIONS = "match_invitations"
FINANCES = "match_finances"
PAYMENTS = "user_payments"
NOTIFICATIONS = "notifications"

# Tables whose rows belong to exactly one match and go away with it
MATCH_SCOPED_TABLES = (CONFIRMATIONS, STATISTICS, RATINGS, INVITATIONS, FINANCES, PAYMENTS)


def _by_id(record: Record):
    return record.id


def _newest_first(record: Record):
    return (record.created_at, record.id)


class MemoryRepository(Repository):
    """Process-local implementation of the repository contract."""

    backend_name = "memory"

    def __init__(self):
        self._tables: Dict[str, Dict[int, Record]] = defaultdict(dict)
        self._ids: Dict[str, Iterator[int]] = defaultdict(lambda: itertools.count(1))

    # ------------------------------------------------------------------
    # Generic helpers
    # ------------------------------------------------------------------

    def _insert(self, table: str, model: Type[Record], **values) -> Record:
        record_id = next(self._ids[table])
        values.setdefault("created_at", utcnow())
        record = model.model_validate({"id": record_id, **values})
        self._tables[table][record_id] = record
        return record.model_copy(deep=True)

    def _get(self, table: str, record_id: int) -> Optional[Record]:
        record = self._tables[table].get(record_id)
        return record.model_copy(deep=True) if record is not None else None

    def _update(self, table: str, record_id: int, label: str, **fields) -> Record:
        current = self._tables[table].get(record_id)
        if current is None:
            raise NotFoundError(f"{label} {record_id} not found")
        record = type(current).model_validate({**current.model_dump(), **fields})
        self._tables[table][record_id] = record
        return record.model_copy(deep=True)

    def _select(
        self,
        table: str,
        predicate: Callable[[Record], bool],
        key: Callable = _by_id,
        reverse: bool = False,
    ) -> List[Record]:
        rows = [r for r in self._tables[table].values() if predicate(r)]
        rows.sort(key=key, reverse=reverse)
        return [r.model_copy(deep=True) for r in rows]

    def _require(self, table: str, record_id: int, label: str) -> Record:
        record = self._tables[table].get(record_id)
        if record is None:
            raise NotFoundError(f"{label} {record_id} not found")
        return record

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def create_user(
        self,
        name: str,
        email: str,
        password_hash: str,
        role: Role = Role.PLAYER,
        plan: Plan = Plan.FREE,
        position: Optional[str] = None,
        photo_url: Optional[str] = None,
    ) -> UserRecord:
        if any(u.email == email for u in self._tables[USERS].values()):
            raise ConflictError("Email already registered")
        return self._insert(
            USERS,
            UserRecord,
            name=name,
            email=email,
            password_hash=password_hash,
            role=role,
            plan=plan,
            position=position,
            photo_url=photo_url,
        )

    async def get_user(self, user_id: int) -> Optional[UserRecord]:
        return self._get(USERS, user_id)

    async def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        rows = self._select(USERS, lambda u: u.email == email)
        return rows[0] if rows else None

    async def get_users(self, user_ids: Iterable[int]) -> List[UserRecord]:
        wanted = set(user_ids)
        return self._select(USERS, lambda u: u.id in wanted)

    async def update_user(self, user_id: int, **fields) -> UserRecord:
        if "email" in fields and any(
            u.email == fields["email"] and u.id != user_id for u in self._tables[USERS].values()
        ):
            raise ConflictError("Email already registered")
        return self._update(USERS, user_id, "User", **fields)

    # ------------------------------------------------------------------
    # Matches
    # ------------------------------------------------------------------

    async def create_match(
        self,
        title: str,
        location: str,
        date: datetime,
        created_by: int,
        invite_code: str,
        invite_link: str,
        description: Optional[str] = None,
        max_players: int = 20,
        status=None,
        is_public: bool = True,
        auto_release: bool = True,
        requires_approval: bool = False,
    ) -> MatchResponse:
        for match in self._tables[MATCHES].values():
            if match.invite_code == invite_code or match.invite_link == invite_link:
                raise ConflictError("Invite code already in use")
        return self._insert(
            MATCHES,
            MatchResponse,
            title=title,
            description=description,
            location=location,
            date=date,
            max_players=max_players,
            status=status or MatchStatus.SCHEDULED,
            is_public=is_public,
            auto_release=auto_release,
            requires_approval=requires_approval,
            invite_code=invite_code,
            invite_link=invite_link,
            created_by=created_by,
        )

    async def get_match(self, match_id: int) -> Optional[MatchResponse]:
        return self._get(MATCHES, match_id)

    async def get_match_by_invite_code(self, code: str) -> Optional[MatchResponse]:
        rows = self._select(MATCHES, lambda m: m.invite_code == code)
        return rows[0] if rows else None

    async def list_matches(self) -> List[MatchResponse]:
        return self._select(MATCHES, lambda m: True, key=lambda m: (m.date, m.id), reverse=True)

    async def list_matches_by_creator(self, user_id: int) -> List[MatchResponse]:
        return self._select(
            MATCHES, lambda m: m.created_by == user_id, key=lambda m: (m.date, m.id), reverse=True
        )

    async def update_match(self, match_id: int, **fields) -> MatchResponse:
        return self._update(MATCHES, match_id, "Match", **fields)

    async def delete_match(self, match_id: int) -> None:
        self._require(MATCHES, match_id, "Match")
        for table in MATCH_SCOPED_TABLES:
            rows = self._tables[table]
            for record_id in [rid for rid, r in rows.items() if r.match_id == match_id]:
                del rows[record_id]
        for post in self._tables[POSTS].values():
            if post.match_id == match_id:
                post.match_id = None
        del self._tables[MATCHES][match_id]

    # ------------------------------------------------------------------
    # Confirmations
    # ------------------------------------------------------------------

    def _find_confirmation(self, user_id: int, match_id: int) -> Optional[ConfirmationResponse]:
        for confirmation in self._tables[CONFIRMATIONS].values():
            if confirmation.user_id == user_id and confirmation.match_id == match_id:
                return confirmation
        return None

    async def get_confirmation(self, user_id: int, match_id: int) -> Optional[ConfirmationResponse]:
        found = self._find_confirmation(user_id, match_id)
        return found.model_copy(deep=True) if found is not None else None

    async def list_confirmations_by_match(self, match_id: int) -> List[ConfirmationResponse]:
        return self._select(CONFIRMATIONS, lambda c: c.match_id == match_id)

    async def list_confirmations_by_user(self, user_id: int) -> List[ConfirmationResponse]:
        return self._select(CONFIRMATIONS, lambda c: c.user_id == user_id)

    async def upsert_confirmation(self, user_id: int, match_id: int, **fields) -> ConfirmationResponse:
        existing = self._find_confirmation(user_id, match_id)
        if existing is not None:
            return self._update(CONFIRMATIONS, existing.id, "Confirmation", **fields)
        values = {
            "confirmed": False,
            "attended": False,
            "status": ConfirmationStatus.APPROVED,
            "confirmed_at": None,
            "cancelled_at": None,
            "reviewed_at": None,
        }
        values.update(fields)
        return self._insert(
            CONFIRMATIONS, ConfirmationResponse, user_id=user_id, match_id=match_id, **values
        )

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    async def create_statistics(
        self,
        match_id: int,
        user_id: int,
        goals: int = 0,
        assists: int = 0,
        yellow_cards: int = 0,
        red_cards: int = 0,
    ) -> StatisticsResponse:
        return self._insert(
            STATISTICS,
            StatisticsResponse,
            match_id=match_id,
            user_id=user_id,
            goals=goals,
            assists=assists,
            yellow_cards=yellow_cards,
            red_cards=red_cards,
            approved_by=[],
            status=StatisticsStatus.PENDING,
        )

    async def get_statistics(self, statistics_id: int) -> Optional[StatisticsResponse]:
        return self._get(STATISTICS, statistics_id)

    async def list_statistics_by_match(self, match_id: int) -> List[StatisticsResponse]:
        return self._select(STATISTICS, lambda s: s.match_id == match_id)

    async def list_statistics_by_user(self, user_id: int) -> List[StatisticsResponse]:
        return self._select(STATISTICS, lambda s: s.user_id == user_id)

    async def update_statistics(self, statistics_id: int, **fields) -> StatisticsResponse:
        return self._update(STATISTICS, statistics_id, "Statistics", **fields)

    # ------------------------------------------------------------------
    # Posts, likes, comments
    # ------------------------------------------------------------------

    async def create_post(
        self,
        user_id: int,
        content: str,
        match_id: Optional[int] = None,
        image_url: Optional[str] = None,
    ) -> PostResponse:
        return self._insert(
            POSTS,
            PostResponse,
            user_id=user_id,
            content=content,
            match_id=match_id,
            image_url=image_url,
            likes=[],
        )

    async def get_post(self, post_id: int) -> Optional[PostResponse]:
        return self._get(POSTS, post_id)

    async def list_posts(self, match_id: Optional[int] = None) -> List[PostResponse]:
        return self._select(
            POSTS,
            lambda p: match_id is None or p.match_id == match_id,
            key=_newest_first,
            reverse=True,
        )

    async def update_post(self, post_id: int, **fields) -> PostResponse:
        return self._update(POSTS, post_id, "Post", **fields)

    async def delete_post(self, post_id: int) -> None:
        self._require(POSTS, post_id, "Post")
        comments = self._tables[COMMENTS]
        for comment_id in [cid for cid, c in comments.items() if c.post_id == post_id]:
            del comments[comment_id]
        del self._tables[POSTS][post_id]

    async def toggle_like(self, post_id: int, user_id: int) -> PostResponse:
        post = self._require(POSTS, post_id, "Post")
        if user_id in post.likes:
            post.likes.remove(user_id)
        else:
            post.likes.append(user_id)
        return post.model_copy(deep=True)

    async def create_comment(self, post_id: int, user_id: int, content: str) -> CommentResponse:
        return self._insert(COMMENTS, CommentResponse, post_id=post_id, user_id=user_id, content=content)

    async def list_comments_by_post(self, post_id: int) -> List[CommentResponse]:
        return self._select(COMMENTS, lambda c: c.post_id == post_id, key=_newest_first, reverse=True)

    # ------------------------------------------------------------------
    # Ratings
    # ------------------------------------------------------------------

    async def create_rating(
        self,
        rater_id: int,
        player_id: int,
        match_id: int,
        rating: int,
        comment: Optional[str] = None,
    ) -> RatingResponse:
        return self._insert(
            RATINGS,
            RatingResponse,
            rater_id=rater_id,
            player_id=player_id,
            match_id=match_id,
            rating=rating,
            comment=comment,
        )

    async def list_ratings_by_player(self, player_id: int) -> List[RatingResponse]:
        return self._select(RATINGS, lambda r: r.player_id == player_id)

    async def list_ratings_by_match(self, match_id: int) -> List[RatingResponse]:
        return self._select(RATINGS, lambda r: r.match_id == match_id)

    # ------------------------------------------------------------------
    # Friendships
    # ------------------------------------------------------------------

    async def create_friendship(self, requester_id: int, addressee_id: int) -> FriendshipResponse:
        if await self.get_friendship_between(requester_id, addressee_id) is not None:
            raise ConflictError("Friend request already exists")
        return self._insert(
            FRIENDSHIPS,
            FriendshipResponse,
            requester_id=requester_id,
            addressee_id=addressee_id,
            status=FriendshipStatus.PENDING,
            accepted_at=None,
        )

    async def get_friendship(self, friendship_id: int) -> Optional[FriendshipResponse]:
        return self._get(FRIENDSHIPS, friendship_id)

    async def get_friendship_between(
        self, requester_id: int, addressee_id: int
    ) -> Optional[FriendshipResponse]:
        rows = self._select(
            FRIENDSHIPS,
            lambda f: f.requester_id == requester_id and f.addressee_id == addressee_id,
        )
        return rows[0] if rows else None

    async def list_friendships_by_user(
        self, user_id: int, status: Optional[FriendshipStatus] = None
    ) -> List[FriendshipResponse]:
        return self._select(
            FRIENDSHIPS,
            lambda f: user_id in (f.requester_id, f.addressee_id)
            and (status is None or f.status == status),
        )

    async def update_friendship(self, friendship_id: int, **fields) -> FriendshipResponse:
        return self._update(FRIENDSHIPS, friendship_id, "Friend request", **fields)

    # ------------------------------------------------------------------
    # Invitations
    # ------------------------------------------------------------------

    async def create_invitation(
        self,
        match_id: int,
        inviter_id: int,
        invitee_id: Optional[int] = None,
        email: Optional[str] = None,
    ) -> InvitationResponse:
        return self._insert(
            INVITATIONS,
            InvitationResponse,
            match_id=match_id,
            inviter_id=inviter_id,
            invitee_id=invitee_id,
            email=email,
            status=InvitationStatus.SENT,
            responded_at=None,
        )

    async def get_invitation(self, invitation_id: int) -> Optional[InvitationResponse]:
        return self._get(INVITATIONS, invitation_id)

    async def list_invitations_by_match(self, match_id: int) -> List[InvitationResponse]:
        return self._select(INVITATIONS, lambda i: i.match_id == match_id)

    async def list_invitations_by_user(self, user_id: int) -> List[InvitationResponse]:
        return self._select(INVITATIONS, lambda i: i.invitee_id == user_id)

    async def update_invitation(self, invitation_id: int, **fields) -> InvitationResponse:
        return self._update(INVITATIONS, invitation_id, "Invitation", **fields)

    # ------------------------------------------------------------------
    # Finances & payments
    # ------------------------------------------------------------------

    async def create_finance_entry(
        self,
        match_id: int,
        type,
        category: str,
        amount: int,
        created_by: int,
        description: Optional[str] = None,
    ) -> FinanceEntryResponse:
        return self._insert(
            FINANCES,
            FinanceEntryResponse,
            match_id=match_id,
            type=type,
            category=category,
            description=description,
            amount=amount,
            created_by=created_by,
        )

    async def list_finance_entries_by_match(self, match_id: int) -> List[FinanceEntryResponse]:
        return self._select(FINANCES, lambda f: f.match_id == match_id)

    async def create_payment(
        self,
        user_id: int,
        match_id: int,
        amount: int,
        due_date: Optional[datetime] = None,
    ) -> PaymentResponse:
        return self._insert(
            PAYMENTS,
            PaymentResponse,
            user_id=user_id,
            match_id=match_id,
            amount=amount,
            status=PaymentStatus.PENDING,
            due_date=due_date,
            paid_at=None,
        )

    async def get_payment(self, payment_id: int) -> Optional[PaymentResponse]:
        return self._get(PAYMENTS, payment_id)

    async def list_payments_by_user(self, user_id: int) -> List[PaymentResponse]:
        return self._select(PAYMENTS, lambda p: p.user_id == user_id)

    async def list_payments_by_match(self, match_id: int) -> List[PaymentResponse]:
        return self._select(PAYMENTS, lambda p: p.match_id == match_id)

    async def update_payment(self, payment_id: int, **fields) -> PaymentResponse:
        return self._update(PAYMENTS, payment_id, "Payment", **fields)

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    async def create_notification(
        self,
        user_id: int,
        type,
        title: str,
        message: str,
        related_id: Optional[int] = None,
    ) -> NotificationResponse:
        return self._insert(
            NOTIFICATIONS,
            NotificationResponse,
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            related_id=related_id,
            is_read=False,
            read_at=None,
        )

    async def get_notification(self, notification_id: int) -> Optional[NotificationResponse]:
        return self._get(NOTIFICATIONS, notification_id)

    async def list_notifications_by_user(
        self, user_id: int, unread_only: bool = False
    ) -> List[NotificationResponse]:
        return self._select(
            NOTIFICATIONS,
            lambda n: n.user_id == user_id and (not unread_only or not n.is_read),
            key=_newest_first,
            reverse=True,
        )

    async def update_notification(self, notification_id: int, **fields) -> NotificationResponse:
        return self._update(NOTIFICATIONS, notification_id, "Notification", **fields)

    async def mark_all_notifications_read(self, user_id: int) -> int:
        now = utcnow()
        changed = 0
        for record_id, notification in list(self._tables[NOTIFICATIONS].items()):
            if notification.user_id == user_id and not notification.is_read:
                self._update(NOTIFICATIONS, record_id, "Notification", is_read=True, read_at=now)
                changed += 1
        return changed

    async def ping(self) -> None:
        return None

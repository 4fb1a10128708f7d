"""
SQLAlchemy async implementation of the repository contract.

Each public method runs in its own session that commits on success and rolls
back on error. Integrity violations surface as ConflictError.
"""

import enum
import json
import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import select, update, delete, func, or_, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from sportsync.database.models import (
    Role,
    Plan,
    MatchStatus,
    ConfirmationStatus,
    StatisticsStatus,
    FriendshipStatus,
    InvitationStatus,
    PaymentStatus,
    User,
    Match,
    Confirmation,
    Statistics,
    Post,
    PostLike,
    Comment,
    Rating,
    Friendship,
    MatchInvitation,
    MatchFinance,
    UserPayment,
    Notification,
)
from sportsync.models.schemas import (
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
    UserStatsResponse,
)
from sportsync.repositories.base import Repository, summarize_user_stats
from sportsync.services.errors import ConflictError, NotFoundError
from sportsync.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)

# Child tables removed together with their match
MATCH_SCOPED_MODELS = (Confirmation, Statistics, Rating, MatchInvitation, MatchFinance, UserPayment)


def _column_values(fields: dict) -> dict:
    """Convert enum members to their stored string values."""
    values = {}
    for key, value in fields.items():
        if isinstance(value, enum.Enum):
            value = value.value
        values[key] = value
    return values


def _row_dict(row) -> dict:
    return {column.name: getattr(row, column.name) for column in row.__table__.columns}


class SqlRepository(Repository):
    """Durable repository backed by PostgreSQL (asyncpg) or any SQLAlchemy async URL."""

    backend_name = "sql"

    def __init__(
        self,
        session_factory: async_sessionmaker,
        engine: Optional[AsyncEngine] = None,
    ):
        self._session_factory = session_factory
        self._engine = engine

    @asynccontextmanager
    async def _session(self):
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                logger.warning(f"Integrity violation rejected: {e.orig}")
                raise ConflictError("Conflicting record already exists") from e
            except Exception:
                await session.rollback()
                raise

    async def _update_row(self, session: AsyncSession, model, record_id: int, label: str, fields: dict):
        row = await session.get(model, record_id)
        if row is None:
            raise NotFoundError(f"{label} {record_id} not found")
        for key, value in _column_values(fields).items():
            setattr(row, key, value)
        await session.flush()
        return row

    async def _scalars(self, statement) -> list:
        async with self._session() as session:
            result = await session.execute(statement)
            return list(result.scalars().all())

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
        async with self._session() as session:
            existing = await session.execute(select(User.id).where(User.email == email))
            if existing.scalar_one_or_none() is not None:
                raise ConflictError("Email already registered")
            user = User(
                name=name,
                email=email,
                password_hash=password_hash,
                role=role.value,
                plan=plan.value,
                position=position,
                photo_url=photo_url,
                created_at=utcnow(),
            )
            session.add(user)
            await session.flush()
            return UserRecord.model_validate(user)

    async def get_user(self, user_id: int) -> Optional[UserRecord]:
        async with self._session() as session:
            user = await session.get(User, user_id)
            return UserRecord.model_validate(user) if user else None

    async def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        rows = await self._scalars(select(User).where(User.email == email))
        return UserRecord.model_validate(rows[0]) if rows else None

    async def get_users(self, user_ids: Iterable[int]) -> List[UserRecord]:
        ids = list(set(user_ids))
        if not ids:
            return []
        rows = await self._scalars(select(User).where(User.id.in_(ids)).order_by(User.id))
        return [UserRecord.model_validate(u) for u in rows]

    async def update_user(self, user_id: int, **fields) -> UserRecord:
        async with self._session() as session:
            user = await self._update_row(session, User, user_id, "User", fields)
            return UserRecord.model_validate(user)

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
        async with self._session() as session:
            clash = await session.execute(
                select(Match.id).where(
                    or_(Match.invite_code == invite_code, Match.invite_link == invite_link)
                )
            )
            if clash.first() is not None:
                raise ConflictError("Invite code already in use")
            match = Match(
                title=title,
                description=description,
                location=location,
                date=date,
                max_players=max_players,
                status=(status or MatchStatus.SCHEDULED).value,
                is_public=is_public,
                auto_release=auto_release,
                requires_approval=requires_approval,
                invite_code=invite_code,
                invite_link=invite_link,
                created_by=created_by,
                created_at=utcnow(),
            )
            session.add(match)
            await session.flush()
            return MatchResponse.model_validate(match)

    async def get_match(self, match_id: int) -> Optional[MatchResponse]:
        async with self._session() as session:
            match = await session.get(Match, match_id)
            return MatchResponse.model_validate(match) if match else None

    async def get_match_by_invite_code(self, code: str) -> Optional[MatchResponse]:
        rows = await self._scalars(select(Match).where(Match.invite_code == code))
        return MatchResponse.model_validate(rows[0]) if rows else None

    async def list_matches(self) -> List[MatchResponse]:
        rows = await self._scalars(select(Match).order_by(Match.date.desc(), Match.id.desc()))
        return [MatchResponse.model_validate(m) for m in rows]

    async def list_matches_by_creator(self, user_id: int) -> List[MatchResponse]:
        rows = await self._scalars(
            select(Match)
            .where(Match.created_by == user_id)
            .order_by(Match.date.desc(), Match.id.desc())
        )
        return [MatchResponse.model_validate(m) for m in rows]

    async def update_match(self, match_id: int, **fields) -> MatchResponse:
        async with self._session() as session:
            match = await self._update_row(session, Match, match_id, "Match", fields)
            return MatchResponse.model_validate(match)

    async def delete_match(self, match_id: int) -> None:
        async with self._session() as session:
            match = await session.get(Match, match_id)
            if match is None:
                raise NotFoundError(f"Match {match_id} not found")
            for model in MATCH_SCOPED_MODELS:
                await session.execute(delete(model).where(model.match_id == match_id))
            await session.execute(
                update(Post).where(Post.match_id == match_id).values(match_id=None)
            )
            await session.delete(match)

    # ------------------------------------------------------------------
    # Confirmations
    # ------------------------------------------------------------------

    async def get_confirmation(self, user_id: int, match_id: int) -> Optional[ConfirmationResponse]:
        rows = await self._scalars(
            select(Confirmation).where(
                Confirmation.user_id == user_id, Confirmation.match_id == match_id
            )
        )
        return ConfirmationResponse.model_validate(rows[0]) if rows else None

    async def list_confirmations_by_match(self, match_id: int) -> List[ConfirmationResponse]:
        rows = await self._scalars(
            select(Confirmation).where(Confirmation.match_id == match_id).order_by(Confirmation.id)
        )
        return [ConfirmationResponse.model_validate(c) for c in rows]

    async def list_confirmations_by_user(self, user_id: int) -> List[ConfirmationResponse]:
        rows = await self._scalars(
            select(Confirmation).where(Confirmation.user_id == user_id).order_by(Confirmation.id)
        )
        return [ConfirmationResponse.model_validate(c) for c in rows]

    async def upsert_confirmation(self, user_id: int, match_id: int, **fields) -> ConfirmationResponse:
        async with self._session() as session:
            result = await session.execute(
                select(Confirmation).where(
                    Confirmation.user_id == user_id, Confirmation.match_id == match_id
                )
            )
            confirmation = result.scalar_one_or_none()
            if confirmation is None:
                values = {
                    "confirmed": False,
                    "attended": False,
                    "status": ConfirmationStatus.APPROVED.value,
                    "confirmed_at": None,
                    "cancelled_at": None,
                    "reviewed_at": None,
                }
                values.update(_column_values(fields))
                confirmation = Confirmation(
                    user_id=user_id, match_id=match_id, created_at=utcnow(), **values
                )
                session.add(confirmation)
            else:
                for key, value in _column_values(fields).items():
                    setattr(confirmation, key, value)
            await session.flush()
            return ConfirmationResponse.model_validate(confirmation)

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
        async with self._session() as session:
            statistics = Statistics(
                match_id=match_id,
                user_id=user_id,
                goals=goals,
                assists=assists,
                yellow_cards=yellow_cards,
                red_cards=red_cards,
                approved_by=json.dumps([]),
                status=StatisticsStatus.PENDING.value,
                created_at=utcnow(),
            )
            session.add(statistics)
            await session.flush()
            return StatisticsResponse.model_validate(statistics)

    async def get_statistics(self, statistics_id: int) -> Optional[StatisticsResponse]:
        async with self._session() as session:
            statistics = await session.get(Statistics, statistics_id)
            return StatisticsResponse.model_validate(statistics) if statistics else None

    async def list_statistics_by_match(self, match_id: int) -> List[StatisticsResponse]:
        rows = await self._scalars(
            select(Statistics).where(Statistics.match_id == match_id).order_by(Statistics.id)
        )
        return [StatisticsResponse.model_validate(s) for s in rows]

    async def list_statistics_by_user(self, user_id: int) -> List[StatisticsResponse]:
        rows = await self._scalars(
            select(Statistics).where(Statistics.user_id == user_id).order_by(Statistics.id)
        )
        return [StatisticsResponse.model_validate(s) for s in rows]

    async def update_statistics(self, statistics_id: int, **fields) -> StatisticsResponse:
        if "approved_by" in fields:
            fields["approved_by"] = json.dumps(list(fields["approved_by"]))
        async with self._session() as session:
            statistics = await self._update_row(session, Statistics, statistics_id, "Statistics", fields)
            return StatisticsResponse.model_validate(statistics)

    # ------------------------------------------------------------------
    # Posts, likes, comments
    # ------------------------------------------------------------------

    async def _with_likes(self, session: AsyncSession, posts) -> List[PostResponse]:
        if not posts:
            return []
        result = await session.execute(
            select(PostLike.post_id, PostLike.user_id)
            .where(PostLike.post_id.in_([p.id for p in posts]))
            .order_by(PostLike.id)
        )
        likes = defaultdict(list)
        for post_id, user_id in result.all():
            likes[post_id].append(user_id)
        return [PostResponse.model_validate({**_row_dict(p), "likes": likes[p.id]}) for p in posts]

    async def create_post(
        self,
        user_id: int,
        content: str,
        match_id: Optional[int] = None,
        image_url: Optional[str] = None,
    ) -> PostResponse:
        async with self._session() as session:
            post = Post(
                user_id=user_id,
                content=content,
                match_id=match_id,
                image_url=image_url,
                created_at=utcnow(),
            )
            session.add(post)
            await session.flush()
            return PostResponse.model_validate({**_row_dict(post), "likes": []})

    async def get_post(self, post_id: int) -> Optional[PostResponse]:
        async with self._session() as session:
            post = await session.get(Post, post_id)
            if post is None:
                return None
            return (await self._with_likes(session, [post]))[0]

    async def list_posts(self, match_id: Optional[int] = None) -> List[PostResponse]:
        async with self._session() as session:
            query = select(Post).order_by(Post.created_at.desc(), Post.id.desc())
            if match_id is not None:
                query = query.where(Post.match_id == match_id)
            result = await session.execute(query)
            return await self._with_likes(session, result.scalars().all())

    async def update_post(self, post_id: int, **fields) -> PostResponse:
        async with self._session() as session:
            post = await self._update_row(session, Post, post_id, "Post", fields)
            return (await self._with_likes(session, [post]))[0]

    async def delete_post(self, post_id: int) -> None:
        async with self._session() as session:
            post = await session.get(Post, post_id)
            if post is None:
                raise NotFoundError(f"Post {post_id} not found")
            await session.execute(delete(PostLike).where(PostLike.post_id == post_id))
            await session.execute(delete(Comment).where(Comment.post_id == post_id))
            await session.delete(post)

    async def toggle_like(self, post_id: int, user_id: int) -> PostResponse:
        async with self._session() as session:
            post = await session.get(Post, post_id)
            if post is None:
                raise NotFoundError(f"Post {post_id} not found")
            result = await session.execute(
                select(PostLike).where(PostLike.post_id == post_id, PostLike.user_id == user_id)
            )
            like = result.scalar_one_or_none()
            if like is not None:
                await session.delete(like)
            else:
                session.add(PostLike(post_id=post_id, user_id=user_id, created_at=utcnow()))
            await session.flush()
            return (await self._with_likes(session, [post]))[0]

    async def create_comment(self, post_id: int, user_id: int, content: str) -> CommentResponse:
        async with self._session() as session:
            comment = Comment(post_id=post_id, user_id=user_id, content=content, created_at=utcnow())
            session.add(comment)
            await session.flush()
            return CommentResponse.model_validate(comment)

    async def list_comments_by_post(self, post_id: int) -> List[CommentResponse]:
        rows = await self._scalars(
            select(Comment)
            .where(Comment.post_id == post_id)
            .order_by(Comment.created_at.desc(), Comment.id.desc())
        )
        return [CommentResponse.model_validate(c) for c in rows]

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
        async with self._session() as session:
            row = Rating(
                rater_id=rater_id,
                player_id=player_id,
                match_id=match_id,
                rating=rating,
                comment=comment,
                created_at=utcnow(),
            )
            session.add(row)
            await session.flush()
            return RatingResponse.model_validate(row)

    async def list_ratings_by_player(self, player_id: int) -> List[RatingResponse]:
        rows = await self._scalars(
            select(Rating).where(Rating.player_id == player_id).order_by(Rating.id)
        )
        return [RatingResponse.model_validate(r) for r in rows]

    async def list_ratings_by_match(self, match_id: int) -> List[RatingResponse]:
        rows = await self._scalars(
            select(Rating).where(Rating.match_id == match_id).order_by(Rating.id)
        )
        return [RatingResponse.model_validate(r) for r in rows]

    # ------------------------------------------------------------------
    # Friendships
    # ------------------------------------------------------------------

    async def create_friendship(self, requester_id: int, addressee_id: int) -> FriendshipResponse:
        async with self._session() as session:
            existing = await session.execute(
                select(Friendship.id).where(
                    Friendship.requester_id == requester_id,
                    Friendship.addressee_id == addressee_id,
                )
            )
            if existing.first() is not None:
                raise ConflictError("Friend request already exists")
            friendship = Friendship(
                requester_id=requester_id,
                addressee_id=addressee_id,
                status=FriendshipStatus.PENDING.value,
                created_at=utcnow(),
            )
            session.add(friendship)
            await session.flush()
            return FriendshipResponse.model_validate(friendship)

    async def get_friendship(self, friendship_id: int) -> Optional[FriendshipResponse]:
        async with self._session() as session:
            friendship = await session.get(Friendship, friendship_id)
            return FriendshipResponse.model_validate(friendship) if friendship else None

    async def get_friendship_between(
        self, requester_id: int, addressee_id: int
    ) -> Optional[FriendshipResponse]:
        rows = await self._scalars(
            select(Friendship).where(
                Friendship.requester_id == requester_id,
                Friendship.addressee_id == addressee_id,
            )
        )
        return FriendshipResponse.model_validate(rows[0]) if rows else None

    async def list_friendships_by_user(
        self, user_id: int, status: Optional[FriendshipStatus] = None
    ) -> List[FriendshipResponse]:
        query = select(Friendship).where(
            or_(Friendship.requester_id == user_id, Friendship.addressee_id == user_id)
        )
        if status is not None:
            query = query.where(Friendship.status == status.value)
        rows = await self._scalars(query.order_by(Friendship.id))
        return [FriendshipResponse.model_validate(f) for f in rows]

    async def update_friendship(self, friendship_id: int, **fields) -> FriendshipResponse:
        async with self._session() as session:
            friendship = await self._update_row(
                session, Friendship, friendship_id, "Friend request", fields
            )
            return FriendshipResponse.model_validate(friendship)

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
        async with self._session() as session:
            invitation = MatchInvitation(
                match_id=match_id,
                inviter_id=inviter_id,
                invitee_id=invitee_id,
                email=email,
                status=InvitationStatus.SENT.value,
                created_at=utcnow(),
            )
            session.add(invitation)
            await session.flush()
            return InvitationResponse.model_validate(invitation)

    async def get_invitation(self, invitation_id: int) -> Optional[InvitationResponse]:
        async with self._session() as session:
            invitation = await session.get(MatchInvitation, invitation_id)
            return InvitationResponse.model_validate(invitation) if invitation else None

    async def list_invitations_by_match(self, match_id: int) -> List[InvitationResponse]:
        rows = await self._scalars(
            select(MatchInvitation)
            .where(MatchInvitation.match_id == match_id)
            .order_by(MatchInvitation.id)
        )
        return [InvitationResponse.model_validate(i) for i in rows]

    async def list_invitations_by_user(self, user_id: int) -> List[InvitationResponse]:
        rows = await self._scalars(
            select(MatchInvitation)
            .where(MatchInvitation.invitee_id == user_id)
            .order_by(MatchInvitation.id)
        )
        return [InvitationResponse.model_validate(i) for i in rows]

    async def update_invitation(self, invitation_id: int, **fields) -> InvitationResponse:
        async with self._session() as session:
            invitation = await self._update_row(
                session, MatchInvitation, invitation_id, "Invitation", fields
            )
            return InvitationResponse.model_validate(invitation)

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
        async with self._session() as session:
            entry = MatchFinance(
                match_id=match_id,
                type=type.value if isinstance(type, enum.Enum) else type,
                category=category,
                description=description,
                amount=amount,
                created_by=created_by,
                created_at=utcnow(),
            )
            session.add(entry)
            await session.flush()
            return FinanceEntryResponse.model_validate(entry)

    async def list_finance_entries_by_match(self, match_id: int) -> List[FinanceEntryResponse]:
        rows = await self._scalars(
            select(MatchFinance).where(MatchFinance.match_id == match_id).order_by(MatchFinance.id)
        )
        return [FinanceEntryResponse.model_validate(f) for f in rows]

    async def create_payment(
        self,
        user_id: int,
        match_id: int,
        amount: int,
        due_date: Optional[datetime] = None,
    ) -> PaymentResponse:
        async with self._session() as session:
            payment = UserPayment(
                user_id=user_id,
                match_id=match_id,
                amount=amount,
                status=PaymentStatus.PENDING.value,
                due_date=due_date,
                created_at=utcnow(),
            )
            session.add(payment)
            await session.flush()
            return PaymentResponse.model_validate(payment)

    async def get_payment(self, payment_id: int) -> Optional[PaymentResponse]:
        async with self._session() as session:
            payment = await session.get(UserPayment, payment_id)
            return PaymentResponse.model_validate(payment) if payment else None

    async def list_payments_by_user(self, user_id: int) -> List[PaymentResponse]:
        rows = await self._scalars(
            select(UserPayment).where(UserPayment.user_id == user_id).order_by(UserPayment.id)
        )
        return [PaymentResponse.model_validate(p) for p in rows]

    async def list_payments_by_match(self, match_id: int) -> List[PaymentResponse]:
        rows = await self._scalars(
            select(UserPayment).where(UserPayment.match_id == match_id).order_by(UserPayment.id)
        )
        return [PaymentResponse.model_validate(p) for p in rows]

    async def update_payment(self, payment_id: int, **fields) -> PaymentResponse:
        async with self._session() as session:
            payment = await self._update_row(session, UserPayment, payment_id, "Payment", fields)
            return PaymentResponse.model_validate(payment)

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
        async with self._session() as session:
            notification = Notification(
                user_id=user_id,
                type=type.value if isinstance(type, enum.Enum) else type,
                title=title,
                message=message,
                related_id=related_id,
                is_read=False,
                created_at=utcnow(),
            )
            session.add(notification)
            await session.flush()
            return NotificationResponse.model_validate(notification)

    async def get_notification(self, notification_id: int) -> Optional[NotificationResponse]:
        async with self._session() as session:
            notification = await session.get(Notification, notification_id)
            return NotificationResponse.model_validate(notification) if notification else None

    async def list_notifications_by_user(
        self, user_id: int, unread_only: bool = False
    ) -> List[NotificationResponse]:
        query = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            query = query.where(Notification.is_read.is_(False))
        rows = await self._scalars(
            query.order_by(Notification.created_at.desc(), Notification.id.desc())
        )
        return [NotificationResponse.model_validate(n) for n in rows]

    async def update_notification(self, notification_id: int, **fields) -> NotificationResponse:
        async with self._session() as session:
            notification = await self._update_row(
                session, Notification, notification_id, "Notification", fields
            )
            return NotificationResponse.model_validate(notification)

    async def mark_all_notifications_read(self, user_id: int) -> int:
        async with self._session() as session:
            result = await session.execute(
                update(Notification)
                .where(Notification.user_id == user_id, Notification.is_read.is_(False))
                .values(is_read=True, read_at=utcnow())
            )
            return result.rowcount or 0

    # ------------------------------------------------------------------
    # Aggregates & lifecycle
    # ------------------------------------------------------------------

    async def get_user_stats(self, user_id: int) -> UserStatsResponse:
        async with self._session() as session:
            total_matches = await session.scalar(
                select(func.count(Confirmation.id)).where(Confirmation.user_id == user_id)
            )
            attended_matches = await session.scalar(
                select(func.count(Confirmation.id)).where(
                    Confirmation.user_id == user_id, Confirmation.attended.is_(True)
                )
            )
            statistics = await session.execute(
                select(Statistics).where(Statistics.user_id == user_id).order_by(Statistics.id)
            )
            ratings = await session.execute(select(Rating.rating).where(Rating.player_id == user_id))
            return summarize_user_stats(
                total_matches=total_matches or 0,
                attended_matches=attended_matches or 0,
                statistics=[StatisticsResponse.model_validate(s) for s in statistics.scalars().all()],
                ratings=list(ratings.scalars().all()),
            )

    async def ping(self) -> None:
        async with self._session_factory() as session:
            await session.execute(text("SELECT 1"))

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()

"""
Repository interface - abstraction over the durable store.

Two implementations exist: SqlRepository (SQLAlchemy async) and
MemoryRepository (process-local fallback). Both must behave identically,
including list orderings:

- matches: date desc, then id desc
- posts, comments, notifications: created_at desc, then id desc
- everything else: id asc

``update_*`` and ``delete_*`` raise NotFoundError for unknown ids.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, List, Iterable

from sportsync.database.models import (
    Role,
    Plan,
    FriendshipStatus,
    StatisticsStatus,
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


def summarize_user_stats(
    total_matches: int,
    attended_matches: int,
    statistics: Iterable[StatisticsResponse],
    ratings: Iterable[int],
) -> UserStatsResponse:
    """
    Build the aggregated stats for one user.

    Rejected statistics lines are excluded from the totals. Attendance rate is
    attended / total * 100, and 0 when the user has no confirmations.
    """
    counted = [s for s in statistics if s.status != StatisticsStatus.REJECTED]
    ratings = list(ratings)
    average_rating = round(sum(ratings) / len(ratings), 2) if ratings else 0.0
    attendance_rate = (
        round(attended_matches / total_matches * 100, 2) if total_matches else 0.0
    )
    return UserStatsResponse(
        total_matches=total_matches,
        attended_matches=attended_matches,
        total_goals=sum(s.goals for s in counted),
        total_assists=sum(s.assists for s in counted),
        yellow_cards=sum(s.yellow_cards for s in counted),
        red_cards=sum(s.red_cards for s in counted),
        average_rating=average_rating,
        attendance_rate=attendance_rate,
    )


class Repository(ABC):
    """Storage contract for every SportSync entity."""

    backend_name: str = "abstract"

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    @abstractmethod
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
        """Create a user. Raises ConflictError if the email is taken."""

    @abstractmethod
    async def get_user(self, user_id: int) -> Optional[UserRecord]:
        pass

    @abstractmethod
    async def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        pass

    @abstractmethod
    async def get_users(self, user_ids: Iterable[int]) -> List[UserRecord]:
        """Fetch several users at once (id asc). Unknown ids are skipped."""

    @abstractmethod
    async def update_user(self, user_id: int, **fields) -> UserRecord:
        pass

    # ------------------------------------------------------------------
    # Matches
    # ------------------------------------------------------------------

    @abstractmethod
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
        """Persist a match. Raises ConflictError on a duplicate invite code or link."""

    @abstractmethod
    async def get_match(self, match_id: int) -> Optional[MatchResponse]:
        pass

    @abstractmethod
    async def get_match_by_invite_code(self, code: str) -> Optional[MatchResponse]:
        pass

    @abstractmethod
    async def list_matches(self) -> List[MatchResponse]:
        pass

    @abstractmethod
    async def list_matches_by_creator(self, user_id: int) -> List[MatchResponse]:
        pass

    @abstractmethod
    async def update_match(self, match_id: int, **fields) -> MatchResponse:
        pass

    @abstractmethod
    async def delete_match(self, match_id: int) -> None:
        """
        Delete a match and everything scoped to it (confirmations, statistics,
        ratings, invitations, finance lines, payments). Posts survive with
        match_id cleared.
        """

    # ------------------------------------------------------------------
    # Confirmations
    # ------------------------------------------------------------------

    @abstractmethod
    async def get_confirmation(self, user_id: int, match_id: int) -> Optional[ConfirmationResponse]:
        pass

    @abstractmethod
    async def list_confirmations_by_match(self, match_id: int) -> List[ConfirmationResponse]:
        pass

    @abstractmethod
    async def list_confirmations_by_user(self, user_id: int) -> List[ConfirmationResponse]:
        pass

    @abstractmethod
    async def upsert_confirmation(self, user_id: int, match_id: int, **fields) -> ConfirmationResponse:
        """Create the (user, match) row if missing, otherwise update it in place."""

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    @abstractmethod
    async def create_statistics(
        self,
        match_id: int,
        user_id: int,
        goals: int = 0,
        assists: int = 0,
        yellow_cards: int = 0,
        red_cards: int = 0,
    ) -> StatisticsResponse:
        pass

    @abstractmethod
    async def get_statistics(self, statistics_id: int) -> Optional[StatisticsResponse]:
        pass

    @abstractmethod
    async def list_statistics_by_match(self, match_id: int) -> List[StatisticsResponse]:
        pass

    @abstractmethod
    async def list_statistics_by_user(self, user_id: int) -> List[StatisticsResponse]:
        pass

    @abstractmethod
    async def update_statistics(self, statistics_id: int, **fields) -> StatisticsResponse:
        pass

    # ------------------------------------------------------------------
    # Posts, likes, comments
    # ------------------------------------------------------------------

    @abstractmethod
    async def create_post(
        self,
        user_id: int,
        content: str,
        match_id: Optional[int] = None,
        image_url: Optional[str] = None,
    ) -> PostResponse:
        pass

    @abstractmethod
    async def get_post(self, post_id: int) -> Optional[PostResponse]:
        pass

    @abstractmethod
    async def list_posts(self, match_id: Optional[int] = None) -> List[PostResponse]:
        pass

    @abstractmethod
    async def update_post(self, post_id: int, **fields) -> PostResponse:
        pass

    @abstractmethod
    async def delete_post(self, post_id: int) -> None:
        """Delete a post with its likes and comments."""

    @abstractmethod
    async def toggle_like(self, post_id: int, user_id: int) -> PostResponse:
        """Add user_id to the post's likes, or remove it if already present."""

    @abstractmethod
    async def create_comment(self, post_id: int, user_id: int, content: str) -> CommentResponse:
        pass

    @abstractmethod
    async def list_comments_by_post(self, post_id: int) -> List[CommentResponse]:
        pass

    # ------------------------------------------------------------------
    # Ratings
    # ------------------------------------------------------------------

    @abstractmethod
    async def create_rating(
        self,
        rater_id: int,
        player_id: int,
        match_id: int,
        rating: int,
        comment: Optional[str] = None,
    ) -> RatingResponse:
        pass

    @abstractmethod
    async def list_ratings_by_player(self, player_id: int) -> List[RatingResponse]:
        pass

    @abstractmethod
    async def list_ratings_by_match(self, match_id: int) -> List[RatingResponse]:
        pass

    # ------------------------------------------------------------------
    # Friendships
    # ------------------------------------------------------------------

    @abstractmethod
    async def create_friendship(self, requester_id: int, addressee_id: int) -> FriendshipResponse:
        pass

    @abstractmethod
    async def get_friendship(self, friendship_id: int) -> Optional[FriendshipResponse]:
        pass

    @abstractmethod
    async def get_friendship_between(
        self, requester_id: int, addressee_id: int
    ) -> Optional[FriendshipResponse]:
        """Directed lookup: the request sent by requester_id to addressee_id."""

    @abstractmethod
    async def list_friendships_by_user(
        self, user_id: int, status: Optional[FriendshipStatus] = None
    ) -> List[FriendshipResponse]:
        """Rows where user_id is either side, optionally filtered by status."""

    @abstractmethod
    async def update_friendship(self, friendship_id: int, **fields) -> FriendshipResponse:
        pass

    # ------------------------------------------------------------------
    # Invitations
    # ------------------------------------------------------------------

    @abstractmethod
    async def create_invitation(
        self,
        match_id: int,
        inviter_id: int,
        invitee_id: Optional[int] = None,
        email: Optional[str] = None,
    ) -> InvitationResponse:
        pass

    @abstractmethod
    async def get_invitation(self, invitation_id: int) -> Optional[InvitationResponse]:
        pass

    @abstractmethod
    async def list_invitations_by_match(self, match_id: int) -> List[InvitationResponse]:
        pass

    @abstractmethod
    async def list_invitations_by_user(self, user_id: int) -> List[InvitationResponse]:
        pass

    @abstractmethod
    async def update_invitation(self, invitation_id: int, **fields) -> InvitationResponse:
        pass

    # ------------------------------------------------------------------
    # Finances & payments
    # ------------------------------------------------------------------

    @abstractmethod
    async def create_finance_entry(
        self,
        match_id: int,
        type,
        category: str,
        amount: int,
        created_by: int,
        description: Optional[str] = None,
    ) -> FinanceEntryResponse:
        pass

    @abstractmethod
    async def list_finance_entries_by_match(self, match_id: int) -> List[FinanceEntryResponse]:
        pass

    @abstractmethod
    async def create_payment(
        self,
        user_id: int,
        match_id: int,
        amount: int,
        due_date: Optional[datetime] = None,
    ) -> PaymentResponse:
        pass

    @abstractmethod
    async def get_payment(self, payment_id: int) -> Optional[PaymentResponse]:
        pass

    @abstractmethod
    async def list_payments_by_user(self, user_id: int) -> List[PaymentResponse]:
        pass

    @abstractmethod
    async def list_payments_by_match(self, match_id: int) -> List[PaymentResponse]:
        pass

    @abstractmethod
    async def update_payment(self, payment_id: int, **fields) -> PaymentResponse:
        pass

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    @abstractmethod
    async def create_notification(
        self,
        user_id: int,
        type,
        title: str,
        message: str,
        related_id: Optional[int] = None,
    ) -> NotificationResponse:
        pass

    @abstractmethod
    async def get_notification(self, notification_id: int) -> Optional[NotificationResponse]:
        pass

    @abstractmethod
    async def list_notifications_by_user(
        self, user_id: int, unread_only: bool = False
    ) -> List[NotificationResponse]:
        pass

    @abstractmethod
    async def update_notification(self, notification_id: int, **fields) -> NotificationResponse:
        pass

    @abstractmethod
    async def mark_all_notifications_read(self, user_id: int) -> int:
        """Mark every unread notification of the user as read. Returns how many changed."""

    # ------------------------------------------------------------------
    # Aggregates & lifecycle
    # ------------------------------------------------------------------

    async def get_user_stats(self, user_id: int) -> UserStatsResponse:
        """Aggregated stats for a user, built from the list queries above."""
        confirmations = await self.list_confirmations_by_user(user_id)
        statistics = await self.list_statistics_by_user(user_id)
        ratings = await self.list_ratings_by_player(user_id)
        return summarize_user_stats(
            total_matches=len(confirmations),
            attended_matches=sum(1 for c in confirmations if c.attended),
            statistics=statistics,
            ratings=[r.rating for r in ratings],
        )

    @abstractmethod
    async def ping(self) -> None:
        """Raise if the backing store is unreachable."""

    async def close(self) -> None:
        """Release backend resources."""
        return None

"""
Pydantic models for API request/response validation.

The ``*Response`` models double as the records handed out by both repository
backends, so the in-memory and SQL stores return identical shapes.
"""

import json
from datetime import datetime
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator

from sportsync.database.models import (
    Role,
    Plan,
    MatchStatus,
    ConfirmationStatus,
    StatisticsStatus,
    FriendshipStatus,
    InvitationStatus,
    FinanceType,
    PaymentStatus,
    NotificationType,
)
from sportsync.utils.datetime_utils import ensure_utc


class Record(BaseModel):
    """Base for persisted entities. Datetimes always come out as aware UTC."""

    model_config = ConfigDict(from_attributes=True)

    @field_validator("*", mode="after")
    @classmethod
    def normalize_datetimes(cls, value):
        if isinstance(value, datetime):
            return ensure_utc(value)
        return value


# ============================================================================
# Users & auth
# ============================================================================


class UserResponse(Record):
    """Public user profile. Never carries the credential hash."""

    id: int
    name: str
    email: str
    role: Role = Role.PLAYER
    plan: Plan = Plan.FREE
    position: Optional[str] = None
    photo_url: Optional[str] = None
    created_at: Optional[datetime] = None

    @field_validator("plan", mode="before")
    @classmethod
    def default_unknown_plan(cls, value):
        """Unrecognized plan values are treated as free."""
        if isinstance(value, Plan):
            return value
        try:
            return Plan(value)
        except ValueError:
            return Plan.FREE

    @field_validator("role", mode="before")
    @classmethod
    def default_unknown_role(cls, value):
        if isinstance(value, Role):
            return value
        try:
            return Role(value)
        except ValueError:
            return Role.PLAYER


class UserRecord(UserResponse):
    """Stored user including the bcrypt hash. Internal use only."""

    password_hash: str

    def to_public(self) -> UserResponse:
        return UserResponse(**self.model_dump(exclude={"password_hash"}))


class RegisterRequest(BaseModel):
    """Request to register a new account."""

    name: str
    email: str
    password: str
    position: Optional[str] = None
    photo_url: Optional[str] = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        value = value.strip().lower()
        if "@" not in value or value.startswith("@") or value.endswith("@"):
            raise ValueError("Invalid email address")
        return value


class LoginRequest(BaseModel):
    """Request to login with email and password."""

    email: str
    password: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class AuthResponse(BaseModel):
    """Authentication response with the bearer token."""

    user: UserResponse
    token: str


class UserUpdate(BaseModel):
    """Request to update the caller's own profile."""

    name: Optional[str] = None
    position: Optional[str] = None
    photo_url: Optional[str] = None


class PlanUpdateRequest(BaseModel):
    """Request to change a user's subscription plan (admin only)."""

    plan: Plan


class RoleUpdateRequest(BaseModel):
    """Request to change a user's role (admin only)."""

    role: Role


class PlanLimitsResponse(BaseModel):
    """Result of the plan-limit evaluation for one user."""

    plan: Plan
    can_create: bool
    can_join: bool
    created_count: int
    joined_count: int
    max_created: int
    max_joined: int


# ============================================================================
# Matches & participation
# ============================================================================


class MatchResponse(Record):
    """Match data."""

    id: int
    title: str
    description: Optional[str] = None
    location: str
    date: datetime
    max_players: int
    status: MatchStatus = MatchStatus.SCHEDULED
    is_public: bool = True
    auto_release: bool = True
    requires_approval: bool = False
    invite_code: str
    invite_link: str
    created_by: int
    created_at: Optional[datetime] = None


class MatchCreate(BaseModel):
    """Request to create a match."""

    title: str
    description: Optional[str] = None
    location: str
    date: datetime
    max_players: int = 20
    is_public: bool = True
    auto_release: bool = True
    requires_approval: bool = False


class MatchUpdate(BaseModel):
    """Partial match update. Invite code and link are not editable."""

    title: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    date: Optional[datetime] = None
    max_players: Optional[int] = None
    status: Optional[MatchStatus] = None
    is_public: Optional[bool] = None
    auto_release: Optional[bool] = None
    requires_approval: Optional[bool] = None


class JoinByCodeRequest(BaseModel):
    """Request to join a match with its invite code."""

    code: str


class ConfirmationResponse(Record):
    """A user's participation record for one match."""

    id: int
    user_id: int
    match_id: int
    confirmed: bool = False
    attended: bool = False
    status: ConfirmationStatus = ConfirmationStatus.APPROVED
    confirmed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class ParticipantResponse(ConfirmationResponse):
    """Confirmation joined with the participant's public profile."""

    user: Optional[UserResponse] = None


class ParticipantReviewRequest(BaseModel):
    """Creator/moderator decision on a pending participant."""

    status: ConfirmationStatus


class AttendanceRequest(BaseModel):
    """Post-hoc attendance fact for a participant."""

    attended: bool


# ============================================================================
# Invitations
# ============================================================================


class InvitationResponse(Record):
    """Match invitation."""

    id: int
    match_id: int
    inviter_id: int
    invitee_id: Optional[int] = None
    email: Optional[str] = None
    status: InvitationStatus = InvitationStatus.SENT
    created_at: Optional[datetime] = None
    responded_at: Optional[datetime] = None


class InvitationCreate(BaseModel):
    """Invite a registered user (user_id) or an external address (email)."""

    user_id: Optional[int] = None
    email: Optional[str] = None

    @model_validator(mode="after")
    def validate_user_or_email(self):
        """Ensure exactly one of user_id or email is provided."""
        if self.user_id is None and not self.email:
            raise ValueError("Either user_id or email must be provided")
        if self.user_id is not None and self.email:
            raise ValueError("Provide either user_id or email, not both")
        return self


class InvitationResponseRequest(BaseModel):
    """Invitee's answer to an invitation."""

    status: InvitationStatus


# ============================================================================
# Friends
# ============================================================================


class FriendshipResponse(Record):
    """Directed friend request."""

    id: int
    requester_id: int
    addressee_id: int
    status: FriendshipStatus = FriendshipStatus.PENDING
    created_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    requester: Optional[UserResponse] = None  # Populated on incoming request listings


class FriendRequestCreate(BaseModel):
    """Request to befriend another user."""

    user_id: int


class FriendRequestUpdate(BaseModel):
    """Addressee's answer to a friend request."""

    status: FriendshipStatus


# ============================================================================
# Social feed
# ============================================================================


class PostResponse(Record):
    """Feed post with the set of liking users."""

    id: int
    match_id: Optional[int] = None
    user_id: int
    content: str
    image_url: Optional[str] = None
    likes: List[int] = []
    created_at: Optional[datetime] = None


class PostCreate(BaseModel):
    """Request to create a post."""

    content: str
    match_id: Optional[int] = None
    image_url: Optional[str] = None


class PostUpdate(BaseModel):
    """Request to edit a post."""

    content: Optional[str] = None
    image_url: Optional[str] = None


class CommentResponse(Record):
    """Comment under a post."""

    id: int
    post_id: int
    user_id: int
    content: str
    created_at: Optional[datetime] = None


class CommentCreate(BaseModel):
    """Request to comment on a post."""

    content: str


# ============================================================================
# Ratings & statistics
# ============================================================================


class RatingResponse(Record):
    """A rater's score of a player for one match."""

    id: int
    rater_id: int
    player_id: int
    match_id: int
    rating: int
    comment: Optional[str] = None
    created_at: Optional[datetime] = None


class RatingCreate(BaseModel):
    """Request to rate a player."""

    match_id: int
    rating: int
    comment: Optional[str] = None


class StatisticsResponse(Record):
    """Per-match player counts plus the attesting users."""

    id: int
    match_id: int
    user_id: int
    goals: int = 0
    assists: int = 0
    yellow_cards: int = 0
    red_cards: int = 0
    approved_by: List[int] = []
    status: StatisticsStatus = StatisticsStatus.PENDING
    created_at: Optional[datetime] = None

    @field_validator("approved_by", mode="before")
    @classmethod
    def decode_approved_by(cls, value):
        # Stored as a JSON text column by the SQL backend
        if value is None or value == "":
            return []
        if isinstance(value, str):
            return json.loads(value)
        return value


class StatisticsCreate(BaseModel):
    """Request to record a player's match statistics."""

    user_id: int
    goals: int = 0
    assists: int = 0
    yellow_cards: int = 0
    red_cards: int = 0


class UserStatsResponse(BaseModel):
    """Aggregated player statistics."""

    total_matches: int = 0
    attended_matches: int = 0
    total_goals: int = 0
    total_assists: int = 0
    yellow_cards: int = 0
    red_cards: int = 0
    average_rating: float = 0.0
    attendance_rate: float = 0.0


# ============================================================================
# Finances & payments
# ============================================================================


class FinanceEntryResponse(Record):
    """Ledger line for a match. Amounts are integer minor units."""

    id: int
    match_id: int
    type: FinanceType
    category: str
    description: Optional[str] = None
    amount: int
    created_by: int
    created_at: Optional[datetime] = None


class FinanceEntryCreate(BaseModel):
    """Request to add a ledger line."""

    type: FinanceType
    category: str
    description: Optional[str] = None
    amount: int


class CategoryTotals(BaseModel):
    revenue: int = 0
    expense: int = 0


class PaymentSummary(BaseModel):
    pending: int = 0
    paid: int = 0
    overdue: int = 0
    count: int = 0


class FinancialReportResponse(BaseModel):
    """Match-level financial summary."""

    match_id: int
    total_revenue: int = 0
    total_expenses: int = 0
    balance: int = 0
    by_category: Dict[str, CategoryTotals] = {}
    payments: PaymentSummary = PaymentSummary()


class PaymentResponse(Record):
    """Amount a user owes for a match."""

    id: int
    user_id: int
    match_id: int
    amount: int
    status: PaymentStatus = PaymentStatus.PENDING
    due_date: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class PaymentCreate(BaseModel):
    """Request to charge a participant."""

    user_id: int
    amount: int
    due_date: Optional[datetime] = None


class PaymentUpdate(BaseModel):
    """Request to change a payment's status."""

    status: PaymentStatus


# ============================================================================
# Notifications
# ============================================================================


class NotificationResponse(Record):
    """Notification response."""

    id: int
    user_id: int
    type: NotificationType
    title: str
    message: str
    related_id: Optional[int] = None
    is_read: bool = False
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class NotificationListResponse(BaseModel):
    """Paginated notification list response."""

    notifications: List[NotificationResponse]
    total_count: int
    has_more: bool


class UnreadCountResponse(BaseModel):
    """Unread notification count response."""

    count: int


# ============================================================================
# Misc
# ============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    storage_backend: str
    websocket_connections: int = 0


class MessageResponse(BaseModel):
    """Generic acknowledgement."""

    success: bool = True
    message: Optional[str] = None
    data: Optional[Dict[str, Any]] = None

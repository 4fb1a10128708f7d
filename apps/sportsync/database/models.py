"""
SQLAlchemy ORM models for the SportSync match coordination system.
"""

import enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Boolean,
    DateTime,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sportsync.database.db import Base


class Role(str, enum.Enum):
    """User role enum."""

    PLAYER = "player"
    MODERATOR = "moderator"
    ADMIN = "admin"


class Plan(str, enum.Enum):
    """Subscription plan enum."""

    FREE = "free"
    BASIC = "basic"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class MatchStatus(str, enum.Enum):
    """Match status enum."""

    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"


class ConfirmationStatus(str, enum.Enum):
    """Participation approval status enum."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class StatisticsStatus(str, enum.Enum):
    """Statistics attestation status enum."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class FriendshipStatus(str, enum.Enum):
    """Friend request status enum."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class InvitationStatus(str, enum.Enum):
    """Match invitation status enum."""

    SENT = "sent"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class FinanceType(str, enum.Enum):
    """Match ledger line type."""

    EXPENSE = "expense"
    REVENUE = "revenue"


class PaymentStatus(str, enum.Enum):
    """User payment status enum."""

    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"


class NotificationType(str, enum.Enum):
    """Notification type enum."""

    FRIEND_REQUEST = "friend_request"
    FRIEND_ACCEPTED = "friend_accepted"
    MATCH_INVITATION = "match_invitation"
    MATCH_JOIN_REQUEST = "match_join_request"
    MATCH_APPROVED = "match_approved"
    MATCH_REJECTED = "match_rejected"
    PAYMENT_DUE = "payment_due"


class User(Base):
    """User accounts with email/password authentication."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    email = Column(String, nullable=False, unique=True)
    password_hash = Column(String, nullable=False)
    role = Column(String(20), default=Role.PLAYER.value, nullable=False)
    plan = Column(String(20), default=Plan.FREE.value, nullable=False)
    position = Column(String(50), nullable=True)  # e.g. "midfielder", "goalkeeper"
    photo_url = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("idx_users_email", "email"),)


class Match(Base):
    """Scheduled informal matches."""

    __tablename__ = "matches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    location = Column(String(300), nullable=False)
    date = Column(DateTime(timezone=True), nullable=False)
    max_players = Column(Integer, default=20, nullable=False)
    status = Column(String(20), default=MatchStatus.SCHEDULED.value, nullable=False)
    is_public = Column(Boolean, default=True, nullable=False)
    auto_release = Column(Boolean, default=True, nullable=False)
    requires_approval = Column(Boolean, default=False, nullable=False)
    invite_code = Column(String(16), nullable=False, unique=True)  # Immutable after creation
    invite_link = Column(String(500), nullable=False, unique=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    creator = relationship("User", foreign_keys=[created_by], backref="created_matches")

    __table_args__ = (
        CheckConstraint("max_players >= 4 AND max_players <= 50", name="ck_matches_max_players"),
        Index("idx_matches_date", "date"),
        Index("idx_matches_created_by", "created_by"),
    )


class Confirmation(Base):
    """A user's attendance intent and outcome for one match."""

    __tablename__ = "confirmations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    match_id = Column(Integer, ForeignKey("matches.id"), nullable=False)
    confirmed = Column(Boolean, default=False, nullable=False)
    attended = Column(Boolean, default=False, nullable=False)
    status = Column(String(20), default=ConfirmationStatus.APPROVED.value, nullable=False)
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "match_id", name="uq_confirmation_user_match"),
        Index("idx_confirmations_match", "match_id"),
        Index("idx_confirmations_user", "user_id"),
    )


class Statistics(Base):
    """Per-match player counts awaiting multi-party attestation."""

    __tablename__ = "statistics"

    id = Column(Integer, primary_key=True, autoincrement=True)
    match_id = Column(Integer, ForeignKey("matches.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    goals = Column(Integer, default=0, nullable=False)
    assists = Column(Integer, default=0, nullable=False)
    yellow_cards = Column(Integer, default=0, nullable=False)
    red_cards = Column(Integer, default=0, nullable=False)
    approved_by = Column(Text, nullable=True)  # JSON list of approver user ids
    status = Column(String(20), default=StatisticsStatus.PENDING.value, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_statistics_match", "match_id"),
        Index("idx_statistics_user", "user_id"),
    )


class Post(Base):
    """Social feed posts, optionally attached to a match."""

    __tablename__ = "posts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    match_id = Column(Integer, ForeignKey("matches.id"), nullable=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    content = Column(Text, nullable=False)
    image_url = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_posts_created", "created_at"),
        Index("idx_posts_match", "match_id"),
    )


class PostLike(Base):
    """Join table (Post ↔ User) holding the set of users who like a post."""

    __tablename__ = "post_likes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    post_id = Column(Integer, ForeignKey("posts.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("post_id", "user_id", name="uq_post_like"),
        Index("idx_post_likes_post", "post_id"),
    )


class Comment(Base):
    """Comments under a post."""

    __tablename__ = "comments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    post_id = Column(Integer, ForeignKey("posts.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("idx_comments_post_created", "post_id", "created_at"),)


class Rating(Base):
    """A rater's 1-10 score of a player for a specific match."""

    __tablename__ = "ratings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    rater_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    player_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    match_id = Column(Integer, ForeignKey("matches.id"), nullable=False)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("rating >= 1 AND rating <= 10", name="ck_ratings_range"),
        Index("idx_ratings_player", "player_id"),
        Index("idx_ratings_match", "match_id"),
    )


class Friendship(Base):
    """Directed friend request; accepted rows form a symmetric friendship."""

    __tablename__ = "friendships"

    id = Column(Integer, primary_key=True, autoincrement=True)
    requester_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    addressee_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    status = Column(String(20), default=FriendshipStatus.PENDING.value, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    accepted_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("requester_id", "addressee_id", name="uq_friendship_requester_addressee"),
        Index("idx_friendships_addressee_status", "addressee_id", "status"),
        Index("idx_friendships_requester", "requester_id"),
    )


class MatchInvitation(Base):
    """Invite to a match addressed to a registered user or an external email."""

    __tablename__ = "match_invitations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    match_id = Column(Integer, ForeignKey("matches.id"), nullable=False)
    inviter_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    invitee_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    email = Column(String, nullable=True)
    status = Column(String(20), default=InvitationStatus.SENT.value, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    responded_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_match_invitations_match", "match_id"),
        Index("idx_match_invitations_invitee", "invitee_id"),
    )


class MatchFinance(Base):
    """Ledger line for a match. Amounts are integer minor currency units."""

    __tablename__ = "match_finances"

    id = Column(Integer, primary_key=True, autoincrement=True)
    match_id = Column(Integer, ForeignKey("matches.id"), nullable=False)
    type = Column(String(20), nullable=False)  # FinanceType enum value
    category = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    amount = Column(Integer, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_match_finances_amount"),
        Index("idx_match_finances_match", "match_id"),
    )


class UserPayment(Base):
    """Amount a user owes for a match."""

    __tablename__ = "user_payments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    match_id = Column(Integer, ForeignKey("matches.id"), nullable=False)
    amount = Column(Integer, nullable=False)
    status = Column(String(20), default=PaymentStatus.PENDING.value, nullable=False)
    due_date = Column(DateTime(timezone=True), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_user_payments_amount"),
        Index("idx_user_payments_user", "user_id"),
        Index("idx_user_payments_match", "match_id"),
    )


class Notification(Base):
    """User notifications for in-app messaging."""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    type = Column(String, nullable=False)  # NotificationType enum value
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    related_id = Column(Integer, nullable=True)  # Match, invitation, payment, ... depending on type
    is_read = Column(Boolean, default=False, nullable=False)
    read_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    user = relationship("User", backref="notifications")

    __table_args__ = (
        Index("idx_notifications_user_unread", "user_id", "is_read", "created_at"),
        Index("idx_notifications_user_created", "user_id", "created_at"),
    )

"""Pydantic schemas for the Web API.

Request and response models for auth, dashboard, skills, notifications,
connections, settings, SAOs, experiences and reviews.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from accreda.core.roles import Role


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    timestamp: str


class ErrorResponse(BaseModel):
    detail: str
    errors: list[str] = Field(default_factory=list)


# =============================================================================
# AUTH SCHEMAS
# =============================================================================


class SignupRequest(BaseModel):
    """Request body for signing up."""

    email: str = Field(..., min_length=3, max_length=200)
    password: str = Field(..., max_length=200)
    confirm_password: str = Field(..., max_length=200)
    full_name: str = Field(..., min_length=1, max_length=200)
    role: Role
    organization: str = Field(default="", max_length=200)


class LoginRequest(BaseModel):
    email: str
    password: str


class SessionResponse(BaseModel):
    """Signed-in session."""

    token: str
    user_id: str
    email: str
    role: Role | None = None
    redirect_to: str | None = None


class RouteGuardResponse(BaseModel):
    allowed: bool
    redirect_to: str | None = None
    role: Role | None = None


# =============================================================================
# DASHBOARD / SKILLS SCHEMAS
# =============================================================================


class ProgressResponse(BaseModel):
    """Overall progress of an EIT."""

    overall_progress: int = Field(..., ge=0, le=100)
    completed_skills: int
    total_skills: int
    documented_experiences: int
    total_experiences: int
    supervisor_approvals: int
    total_approvals: int
    last_updated: str


class SkillResponse(BaseModel):
    id: str
    code: str
    name: str
    category_name: str
    rank: int | None = None
    status: str
    completed: bool


class SkillCategoryResponse(BaseModel):
    name: str
    completed: int
    total: int
    percentage: int
    skills: list[SkillResponse]


class SkillsResponse(BaseModel):
    """Skill tree with completion counts."""

    categories: list[SkillCategoryResponse]
    completed: int


class SkillRankUpdate(BaseModel):
    """Request body for ranking a skill; null clears the rank."""

    rank: int | None = Field(default=None, ge=0, le=5)


# =============================================================================
# NOTIFICATION SCHEMAS
# =============================================================================


class NotificationResponse(BaseModel):
    id: str
    user_id: str
    type: str
    title: str
    message: str
    data: dict[str, Any] = Field(default_factory=dict)
    read: bool
    created_at: str

    model_config = {"from_attributes": True}


class NotificationListResponse(BaseModel):
    """Notifications newest first with the unread count."""

    notifications: list[NotificationResponse]
    unread_count: int


class MarkAllReadResponse(BaseModel):
    marked: int
    unread_count: int


# =============================================================================
# CONNECTION SCHEMAS
# =============================================================================


class ConnectionRequest(BaseModel):
    supervisor_email: str = Field(..., min_length=3, max_length=200)


class RelationshipResponse(BaseModel):
    id: str
    eit_id: str
    supervisor_id: str
    status: str
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}


class ConnectionResultResponse(BaseModel):
    """Outcome of a connection request."""

    status: str
    relationship: RelationshipResponse | None = None
    supervisor_name: str | None = None


class ProfileResponse(BaseModel):
    id: str
    email: str
    full_name: str
    organization: str
    avatar_url: str | None = None
    start_date: str | None = None
    target_date: str | None = None

    model_config = {"from_attributes": True}


# =============================================================================
# SETTINGS SCHEMAS
# =============================================================================


class ProfileUpdate(BaseModel):
    full_name: str | None = Field(default=None, min_length=1, max_length=200)
    organization: str | None = Field(default=None, max_length=200)


class PasswordChange(BaseModel):
    current_password: str
    new_password: str
    confirm_password: str


class TimelineUpdate(BaseModel):
    start_date: str | None = None
    target_date: str | None = None


class SubscriptionResponse(BaseModel):
    tier: str
    document_limit: int
    sao_limit: int
    supervisor_limit: int
    eit_limit: int


class CheckoutRequest(BaseModel):
    tier: str


class CheckoutResponse(BaseModel):
    url: str


class PreferencesUpdate(BaseModel):
    supervisor_reviews: bool | None = None
    skill_validations: bool | None = None
    connection_requests: bool | None = None
    sao_feedback: bool | None = None
    weekly_digest: bool | None = None


class AvatarResponse(BaseModel):
    avatar_url: str


class SupportRequest(BaseModel):
    subject: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=5000)


class DeleteAccountResponse(BaseModel):
    deleted_rows: int


# =============================================================================
# SAO / EXPERIENCE SCHEMAS
# =============================================================================


class SaoCreate(BaseModel):
    """Request body for writing an SAO."""

    title: str = Field(..., min_length=1, max_length=300)
    situation: str = ""
    action: str = ""
    outcome: str = ""
    employer: str = ""
    skill_ids: list[str] = Field(default_factory=list)


class SaoResponse(BaseModel):
    id: str
    eit_id: str
    title: str
    situation: str
    action: str
    outcome: str
    employer: str
    status: str
    created_at: str
    updated_at: str
    skill_ids: list[str]

    model_config = {"from_attributes": True}


class ValidationRequest(BaseModel):
    skill_id: str
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(default="", max_length=100)
    email: str = Field(..., min_length=3, max_length=200)


class ValidatorResponse(BaseModel):
    id: str
    skill_id: str
    first_name: str
    last_name: str
    email: str
    status: str
    created_at: str

    model_config = {"from_attributes": True}


class ExperienceCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=300)
    description: str = ""
    is_documented: bool = False


class ExperienceResponse(BaseModel):
    id: str
    user_id: str
    title: str
    description: str
    is_documented: bool
    supervisor_approved: bool
    approved_by: str | None = None
    created_at: str

    model_config = {"from_attributes": True}


# =============================================================================
# REVIEW SCHEMAS
# =============================================================================


class SkillScoreCreate(BaseModel):
    """Request body for scoring a supervised EIT's skill."""

    eit_id: str
    skill_id: str
    score: int = Field(..., ge=1, le=5)
    feedback: str = ""


class SkillValidationResponse(BaseModel):
    id: str
    eit_id: str
    skill_id: str
    validator_id: str
    score: int
    feedback: str
    validated_at: str

    model_config = {"from_attributes": True}


class SaoFeedbackResponse(BaseModel):
    id: str
    sao_id: str
    eit_id: str
    supervisor_id: str
    feedback: str
    score: int | None = None
    status: str
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}


class FeedbackSubmit(BaseModel):
    feedback: str = Field(..., min_length=1)
    score: int | None = Field(default=None, ge=1, le=5)


class NudgeRequest(BaseModel):
    user_id: str

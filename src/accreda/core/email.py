"""Templated transactional email.

Email is a best-effort side channel of notifications: a disabled
preference, a missing recipient or a failing send function never reaches
the caller; the outcome is logged and returned as a bool.
"""

from __future__ import annotations

import asyncio
import sqlite3

import structlog
from jinja2 import TemplateError

from accreda.backend.functions import FunctionInvocationError, FunctionsClient
from accreda.config.app_config import EmailConfig, load_app_config
from accreda.db import accounts_repository, profiles_repository
from accreda.templates.registry import render_template

logger = structlog.get_logger(__name__)

# Notification type -> preference switch (None = always sent)
PREFERENCE_FOR_TYPE: dict[str, str | None] = {
    "request": "connection_requests",
    "score": "supervisor_reviews",
    "approval": "skill_validations",
    "validation_request": "skill_validations",
    "sao_feedback": "sao_feedback",
    "nudge": None,
}

SUBJECTS: dict[str, str] = {
    "connection_request": "New EIT connection request",
    "connection_accepted": "Your supervisor connection was accepted",
    "connection_denied": "Your supervisor connection request was declined",
    "skill_score": "You received a new skill score",
    "skill_approval": "A skill was approved",
    "validation_request": "New validation request",
    "sao_feedback": "New feedback on your SAO",
    "nudge": "You have been nudged",
}


class EmailNotifier:
    """Sends notification emails through the send-email function."""

    def __init__(
        self,
        functions: FunctionsClient | None = None,
        config: EmailConfig | None = None,
    ):
        self.functions = functions or FunctionsClient()
        self.config = config or load_app_config().email

    async def is_enabled_for(self, user_id: str, notification_type: str) -> bool:
        """Check the recipient's preference for a notification type."""
        preference = PREFERENCE_FOR_TYPE.get(notification_type)
        if preference is None:
            return True
        preferences = await asyncio.to_thread(accounts_repository.get_preferences, user_id)
        return preferences.get(preference, True)

    async def send(
        self,
        user_id: str,
        notification_type: str,
        template: str,
        **variables: object,
    ) -> bool:
        """Render and send one email.

        Returns:
            True if the send function accepted the email
        """
        if not self.config.enabled:
            return False

        try:
            if not await self.is_enabled_for(user_id, notification_type):
                logger.debug("email.suppressed_by_preference", user_id=user_id, type=notification_type)
                return False

            profile = await asyncio.to_thread(profiles_repository.find_profile_anywhere, user_id)
            if profile is None or not profile.email:
                logger.warning("email.no_recipient", user_id=user_id)
                return False

            html_body = render_template(
                template,
                recipient_name=profile.full_name or "there",
                app_url=self.config.app_url,
                **variables,
            )
            await self.functions.send_email(
                to=profile.email,
                subject=SUBJECTS.get(template, "Accreda notification"),
                html=html_body,
                sender=self.config.sender,
            )
        except (FunctionInvocationError, TemplateError, sqlite3.Error) as e:
            logger.error("email.send_failed", user_id=user_id, template=template, error=str(e))
            return False

        logger.info("email.sent", user_id=user_id, template=template)
        return True

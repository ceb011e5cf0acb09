"""
Notification dispatcher: post-operation notices to owners and participants.

Each notice is rendered from a built-in jinja2 template, written as an in-app
notification document and emailed through the gateway.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from jinja2 import DictLoader, Environment, select_autoescape

from batchops.db.store import NOTIFICATIONS, USERS, WORKSHOPS, Store
from batchops.resolver import TargetResolver
from batchops.services.email_service import EmailService, html_to_text

logger = logging.getLogger(__name__)

# Event type constants
EVENT_WORKSHOPS_CREATED = 'workshops_created'
EVENT_WORKSHOP_UPDATED = 'workshop_updated'
EVENT_WORKSHOP_CANCELLED = 'workshop_cancelled'
EVENT_WORKSHOPS_CHANGED = 'workshops_changed'

# Template name constants
TEMPLATE_OWNER_NEW_WORKSHOPS = 'owner_new_workshops'
TEMPLATE_WORKSHOP_UPDATED = 'workshop_updated'
TEMPLATE_WORKSHOP_CANCELLED = 'workshop_cancelled'
TEMPLATE_OWNER_CHANGED_WORKSHOPS = 'owner_changed_workshops'

_TEMPLATES = {
    f'{TEMPLATE_OWNER_NEW_WORKSHOPS}.subject': (
        '{{ workshops|length }} new workshop{{ "s" if workshops|length != 1 }} assigned to you'
    ),
    f'{TEMPLATE_OWNER_NEW_WORKSHOPS}.html': (
        '<p>Hello {{ user.name or "there" }},</p>'
        '<p>The following workshops were created with you as instructor:</p>'
        '<ul>{% for workshop in workshops %}'
        '<li>{{ workshop.title }}{% if workshop.start_time %} ({{ workshop.start_time }}){% endif %}</li>'
        '{% endfor %}</ul>'
    ),
    f'{TEMPLATE_OWNER_CHANGED_WORKSHOPS}.subject': (
        '{% if workshops|length == 1 %}Your workshop {{ workshops[0].title }} changed'
        '{% else %}{{ workshops|length }} of your workshops changed{% endif %}'
    ),
    f'{TEMPLATE_OWNER_CHANGED_WORKSHOPS}.html': (
        '<p>Hello {{ user.name or "there" }},</p>'
        '<p>The following workshops you teach were updated:</p>'
        '<ul>{% for workshop in workshops %}<li>{{ workshop.title }}</li>{% endfor %}</ul>'
    ),
    f'{TEMPLATE_WORKSHOP_UPDATED}.subject': 'Workshop updated: {{ workshop.title }}',
    f'{TEMPLATE_WORKSHOP_UPDATED}.html': (
        '<p>Hello {{ user.name or "there" }},</p>'
        '<p>The workshop <strong>{{ workshop.title }}</strong> has been updated.</p>'
        '{% if workshop.start_time %}<p>Starts: {{ workshop.start_time }}</p>{% endif %}'
        '{% if workshop.end_time %}<p>Ends: {{ workshop.end_time }}</p>{% endif %}'
    ),
    f'{TEMPLATE_WORKSHOP_CANCELLED}.subject': 'Workshop cancelled: {{ workshop.title }}',
    f'{TEMPLATE_WORKSHOP_CANCELLED}.html': (
        '<p>Hello {{ user.name or "there" }},</p>'
        '<p>The workshop <strong>{{ workshop.title }}</strong> has been cancelled.</p>'
        '{% if workshop.cancellation_reason %}<p>Reason: {{ workshop.cancellation_reason }}</p>{% endif %}'
    ),
}


class NotificationDispatcher:
    """Service class for sending batch operation side-effect notifications."""

    def __init__(self, store: Store, email_service: Optional[Any] = None, expires_days: int = 30):
        self.store = store
        self.email_service = email_service if email_service is not None else EmailService()
        self.expires_days = expires_days
        self.template_env = Environment(
            loader=DictLoader(_TEMPLATES),
            autoescape=select_autoescape(enabled_extensions=('html',), default_for_string=False),
        )

    def render_template(self, template_name: str, context: Dict[str, Any]) -> tuple[str, str, str]:
        """
        Render a notification template with context.

        Returns:
            Tuple of (subject, html_content, text_content)
        """
        subject = self.template_env.get_template(f"{template_name}.subject").render(**context).strip()
        html_content = self.template_env.get_template(f"{template_name}.html").render(**context)
        return subject, html_content, html_to_text(html_content)

    async def create_notification(
        self,
        user_id: str,
        event_type: str,
        title: str,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Create an in-app notification for a user."""
        expires_at = datetime.now(timezone.utc) + timedelta(days=self.expires_days)
        return await self.store.create(
            NOTIFICATIONS,
            {
                'user_id': user_id,
                'event_type': event_type,
                'title': title,
                'message': message,
                'is_read': False,
                'metadata': metadata or {},
                'expires_at': expires_at,
            },
        )

    async def _deliver(
        self,
        user: Dict[str, Any],
        event_type: str,
        template_name: str,
        context: Dict[str, Any],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> bool:
        subject, html_content, text_content = self.render_template(template_name, {**context, 'user': user})
        try:
            await self.create_notification(user['id'], event_type, subject, text_content, metadata)
        except Exception as e:
            logger.warning(f"Failed to create in-app notification for user {user.get('id')}: {e}")

        email = user.get('email')
        if not email:
            logger.warning(f"User {user.get('id')} has no email address; email notification skipped")
            return False
        result = await self.email_service.send_email(
            to_email=email,
            subject=subject,
            html_content=html_content,
            text_content=text_content,
        )
        return bool(result.get('success'))

    async def _notify_owner(
        self, owner_id: str, workshops: List[Dict[str, Any]], event_type: str, template_name: str
    ) -> Dict[str, int]:
        owner = await self.store.get(USERS, owner_id) if owner_id else None
        if owner is None:
            logger.warning(f"Owner {owner_id!r} not found; {event_type} notice not sent")
            return {'success': 0, 'failed': 1}

        delivered = await self._deliver(
            owner,
            event_type,
            template_name,
            {'workshops': workshops},
            metadata={'workshop_ids': [workshop.get('id') for workshop in workshops]},
        )
        return {'success': 1, 'failed': 0} if delivered else {'success': 0, 'failed': 1}

    async def notify_owner_of_new_items(self, owner_id: str, workshops: List[Dict[str, Any]]) -> Dict[str, int]:
        """Tell one instructor about the workshops just created for them."""
        return await self._notify_owner(owner_id, workshops, EVENT_WORKSHOPS_CREATED, TEMPLATE_OWNER_NEW_WORKSHOPS)

    async def notify_owner_of_changes(self, owner_id: str, workshops: List[Dict[str, Any]]) -> Dict[str, int]:
        return await self._notify_owner(owner_id, workshops, EVENT_WORKSHOPS_CHANGED, TEMPLATE_OWNER_CHANGED_WORKSHOPS)

    async def _notify_participants(self, workshop_id: str, event_type: str, template_name: str) -> Dict[str, int]:
        workshop = await self.store.get(WORKSHOPS, workshop_id)
        if workshop is None:
            logger.error(f"Workshop not found: {workshop_id}")
            return {'success': 0, 'failed': 1}

        participants = await TargetResolver(self.store).participants([workshop_id])
        success = 0
        failed = 0
        for participant in participants:
            try:
                delivered = await self._deliver(
                    participant['user'],
                    event_type,
                    template_name,
                    {'workshop': workshop},
                    metadata={'workshop_id': workshop_id},
                )
            except Exception as e:
                logger.warning(f"Failed to notify participant {participant['user'].get('id')}: {e}")
                delivered = False
            if delivered:
                success += 1
            else:
                failed += 1

        logger.info(f"{event_type} notices for workshop {workshop_id}: {success} sent, {failed} failed")
        return {'success': success, 'failed': failed}

    async def send_workshop_update(self, workshop_id: str) -> Dict[str, int]:
        return await self._notify_participants(workshop_id, EVENT_WORKSHOP_UPDATED, TEMPLATE_WORKSHOP_UPDATED)

    async def send_workshop_cancellation(self, workshop_id: str) -> Dict[str, int]:
        return await self._notify_participants(workshop_id, EVENT_WORKSHOP_CANCELLED, TEMPLATE_WORKSHOP_CANCELLED)

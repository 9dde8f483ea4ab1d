"""Notification side channel for mission transitions."""
import requests
from dataclasses import dataclass
from datetime import datetime, timezone
from loguru import logger
from typing import List, Optional

from configurations.config import Config

@dataclass
class Notification:
    user_id: str
    kind: str
    title: str
    message: str
    mission_id: Optional[str]
    timestamp: datetime

class NotificationService:
    """Sends notifications to a webhook when configured, otherwise just logs.

    Failures are logged and never raised: a notification is a side effect of a
    transition, not a condition for it.
    """
    
    def __init__(self, webhook_url: Optional[str] = None, timeout: float = None):
        self.webhook_url = webhook_url if webhook_url is not None else Config.NOTIFICATION_WEBHOOK_URL
        self.timeout = timeout if timeout is not None else Config.NOTIFICATION_TIMEOUT_SECONDS
        self.sent: List[Notification] = []
    
    def notify(self, user_id: Optional[str], kind: str, title: str, message: str,
               mission_id: Optional[str] = None) -> bool:
        if not user_id:
            return False
        notification = Notification(user_id, kind, title, message, mission_id, datetime.now(timezone.utc))
        self.sent.append(notification)
        
        if not self.webhook_url:
            logger.info(f"Notification [{kind}] for {user_id}: {title}")
            return True
        
        try:
            response = requests.post(self.webhook_url, json={
                'userId': user_id,
                'type': kind,
                'title': title,
                'message': message,
                'donationId': mission_id,
            }, timeout=self.timeout)
            
            if response.status_code in [200, 201, 202, 204]:
                return True
            logger.error(f"Notification webhook returned {response.status_code}")
            return False
        except requests.RequestException as e:
            logger.error(f"Error sending notification: {e}")
            return False

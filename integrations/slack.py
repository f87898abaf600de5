import os
from typing import List, Dict, Any, Optional

from loguru import logger
from slack_sdk.web import WebClient
from slack_sdk.errors import SlackApiError

from pipeline.models import EnrichedLead

class SlackNotifier:
    """Slack integration announcing discovery runs to the sales channel."""

    def __init__(self, token: str = None, default_channel: str = None):
        self.token = token if token is not None else os.getenv("SLACK_BOT_TOKEN")
        self.default_channel = default_channel or os.getenv("SLACK_DEFAULT_CHANNEL", "#sales-leads")

        if not self.token:
            logger.warning("No Slack token provided, using mock mode")

    def send_discovery_notification(self, account_id: str, leads: List[EnrichedLead], channel: Optional[str] = None) -> Optional[str]:
        """
        Post an "N leads discovered" message.

        Args:
            account_id: Account the run belongs to
            leads: Leads returned by the run
            channel: Slack channel (optional, uses default if not specified)

        Returns:
            Slack message timestamp or None if failed
        """
        if not self.token:
            logger.info(f"Mock mode: would announce {len(leads)} leads for {account_id}")
            return "mock_timestamp_123"

        try:
            client = WebClient(token=self.token)
            target_channel = channel or self.default_channel

            message = self._build_discovery_message(account_id, leads)

            response = client.chat_postMessage(
                channel=target_channel,
                text=message["text"],
                blocks=message["blocks"]
            )

            message_ts = response["ts"]
            logger.info(f"Slack notification sent to {target_channel}: {message_ts}")

            return message_ts

        except SlackApiError as e:
            logger.error(f"Slack notification failed: {e}")
            return None

    def _build_discovery_message(self, account_id: str, leads: List[EnrichedLead]) -> Dict[str, Any]:
        """Build Slack message for a finished discovery run."""
        count = len(leads)
        top = sorted(leads, key=lambda lead: lead.score, reverse=True)[:3]

        text = f"🔎 {count} leads discovered for account {account_id}"

        blocks = [
            {
                "type": "header",
                "text": {
                    "type": "plain_text",
                    "text": f"🔎 {count} leads discovered"
                }
            },
            {
                "type": "section",
                "fields": [
                    {
                        "type": "mrkdwn",
                        "text": f"*Account:*\n{account_id}"
                    },
                    {
                        "type": "mrkdwn",
                        "text": f"*Sources:*\n{', '.join(sorted({lead.source.value for lead in leads})) or 'none'}"
                    }
                ]
            }
        ]

        if top:
            top_text = "\n".join(
                f"• {lead.name} ({lead.job_title or 'Unknown title'}) at {lead.company}: {lead.score}/100"
                for lead in top
            )
            blocks.append({
                "type": "section",
                "text": {
                    "type": "mrkdwn",
                    "text": f"*Top leads:*\n{top_text}"
                }
            })

        return {"text": text, "blocks": blocks}

# Global Slack notifier instance
slack_notifier = SlackNotifier()

def send_discovery_notification(account_id: str, leads: List[EnrichedLead], channel: Optional[str] = None) -> Optional[str]:
    """Announce a discovery run using the global Slack notifier."""
    return slack_notifier.send_discovery_notification(account_id, leads, channel)

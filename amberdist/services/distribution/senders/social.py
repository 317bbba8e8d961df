from __future__ import annotations

from amberdist.core.errors import DeliveryError
from amberdist.domain.distribution import Alert, DistributionUnit
from amberdist.providers.social.base import SocialPostingClient
from amberdist.services.distribution.formatting import format_social_post, public_alert_url, social_hashtags
from amberdist.services.distribution.senders.base import SendOutcome


class SocialMediaSender:
    def __init__(self, *, client: SocialPostingClient, public_base_url: str) -> None:
        self._client = client
        self._public_base_url = public_base_url

    async def send(self, unit: DistributionUnit, alert: Alert) -> SendOutcome:
        if not unit.target_id:
            raise DeliveryError("Social media unit has no target account")
        platform = str(unit.channel_config.get("platform") or "unknown")
        post = format_social_post(alert)
        result = await self._client.post(
            account_id=unit.target_id,
            platform=platform,
            message=post.body,
            image_url=alert.child_photo_url,
            link=public_alert_url(alert, self._public_base_url),
            hashtags=social_hashtags(alert),
        )
        return SendOutcome(
            message=f"Posted to {unit.target_name or platform}",
            external_id=result.post_id,
            details={"post_url": result.post_url},
        )

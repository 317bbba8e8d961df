from __future__ import annotations

from typing import Any, Sequence

from amberdist.core.errors import DeliveryError
from amberdist.providers.social.base import SocialPostResult


class FakeSocialPostingClient:
    def __init__(self, *, failing_accounts: Sequence[str] = ()) -> None:
        self.failing_accounts = set(failing_accounts)
        self.posts: list[dict[str, Any]] = []

    async def post(
        self,
        *,
        account_id: str,
        platform: str,
        message: str,
        image_url: str | None = None,
        link: str | None = None,
        hashtags: Sequence[str] = (),
    ) -> SocialPostResult:
        if account_id in self.failing_accounts:
            raise DeliveryError(f"{platform} rejected post for account {account_id}")
        self.posts.append(
            {
                "account_id": account_id,
                "platform": platform,
                "message": message,
                "image_url": image_url,
                "link": link,
                "hashtags": list(hashtags),
            }
        )
        post_id = f"{platform}-{len(self.posts)}"
        return SocialPostResult(post_id=post_id, post_url=f"https://{platform}.example/posts/{post_id}")

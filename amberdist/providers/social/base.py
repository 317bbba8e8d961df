from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence


@dataclass(frozen=True)
class SocialPostResult:
    post_id: str
    post_url: str | None = None


class SocialPostingClient(Protocol):
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
        ...

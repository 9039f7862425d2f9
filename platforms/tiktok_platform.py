from models import Platform
from .base_platform import BaseScraperPlatform

MOBILE_USER_AGENT = (
    'Mozilla/5.0 (iPhone; CPU iPhone OS 17_4 like Mac OS X) AppleWebKit/605.1.15 '
    '(KHTML, like Gecko) Version/17.4 Mobile/15E148 Safari/604.1'
)

BLOCKED_RESOURCE_TYPES = {'image', 'stylesheet', 'font'}


class TikTokPlatform(BaseScraperPlatform):
    platform = Platform.TIKTOK
    base_url = 'https://www.tiktok.com'
    lightweight_user_agent = MOBILE_USER_AGENT
    lightweight_headers = {
        'Referer': 'https://m.tiktok.com/',
    }
    http_timeout = 15.0
    settle_delay = 5.0

    live_selectors = (
        ('[data-e2e="live-badge"]', None),
        ('.live-badge', None),
        ('.live-indicator', 'live'),
        ('.live-room-header', None),
    )
    live_markers = (
        # room status 2 means the room is broadcasting
        r'"liveRoom"\s*:\s*\{[^{}]*"status"\s*:\s*2\b',
        r'"isLiveBroadcast"\s*:\s*true',
    )
    title_selectors = (
        ('[data-e2e="live-title"]', None),
        ('.live-title', None),
        ('.room-title', None),
        ('h1', None),
        ('meta[property="og:title"]', 'content'),
    )
    viewer_selectors = (
        ('[data-e2e="live-viewer-count"]', None),
        ('.live-viewer-count', None),
        ('.viewer-count', None),
    )
    thumbnail_selectors = (
        ('video[poster]', 'poster'),
        ('meta[property="og:image"]', 'content'),
    )
    category_selectors = (
        ('[data-e2e="live-category"]', None),
    )
    ignored_title_pattern = r'tiktok'

    def page_url(self, handle: str) -> str:
        return f"{self.base_url}/@{handle}/live"

    def lightweight_url(self, handle: str) -> str:
        return f"https://m.tiktok.com/@{handle}/live"

    async def prepare_page(self, page) -> None:
        async def block_heavy_resources(route):
            if route.request.resource_type in BLOCKED_RESOURCE_TYPES:
                await route.abort()
            else:
                await route.continue_()

        await page.route('**/*', block_heavy_resources)

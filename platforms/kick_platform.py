from models import Platform
from .base_platform import BaseScraperPlatform


class KickPlatform(BaseScraperPlatform):
    platform = Platform.KICK
    base_url = 'https://kick.com'
    lightweight_headers = {
        'Referer': 'https://kick.com/',
        'Upgrade-Insecure-Requests': '1',
    }
    http_timeout = 10.0
    settle_delay = 3.0

    live_selectors = (
        ('[data-testid="live-badge"]', 'live'),
        ('.live-status', 'live'),
        ('.live-indicator', 'live'),
        ('.stream-status', 'live'),
        ('[data-live="true"]', None),
    )
    live_markers = (
        r'"is_live"\s*:\s*true',
        r'\\"is_live\\"\s*:\s*true',
    )
    title_selectors = (
        ('[data-testid="stream-title"]', None),
        ('.stream-title', None),
        ('h1', None),
        ('meta[property="og:title"]', 'content'),
        ('title', None),
    )
    viewer_selectors = (
        ('[data-testid="viewer-count"]', None),
        ('.viewer-count', None),
    )
    thumbnail_selectors = (
        ('video[poster]', 'poster'),
        ('[data-testid="stream-thumbnail"] img', 'src'),
        ('.stream-thumbnail img', 'src'),
        ('meta[property="og:image"]', 'content'),
    )
    category_selectors = (
        ('[data-testid="stream-category"]', None),
        ('.stream-category', None),
        ('.category-name', None),
    )
    ignored_title_pattern = r'^\s*kick(\.com)?\s*$'

import re
from typing import NamedTuple, Optional, Tuple

from models import Platform


class HandleRule(NamedTuple):
    min_length: int
    max_length: int
    pattern: str
    allowed: str


HANDLE_RULES = {
    Platform.TWITCH: HandleRule(4, 25, r'^[a-zA-Z0-9][a-zA-Z0-9_]*$', "letters, numbers, and underscores"),
    Platform.YOUTUBE: HandleRule(3, 30, r'^[a-zA-Z0-9_.\-]+$', "letters, numbers, underscores, hyphens, and periods"),
    Platform.TIKTOK: HandleRule(2, 24, r'^[a-zA-Z0-9_.]+$', "letters, numbers, underscores, and periods"),
    Platform.KICK: HandleRule(3, 25, r'^[a-zA-Z0-9_-]+$', "letters, numbers, underscores, and hyphens"),
}


class UsernameValidator:
    @staticmethod
    def validate_username(platform: Platform, username: str) -> Tuple[bool, str]:
        """Check a bare handle against the platform's naming rules"""
        rule = HANDLE_RULES.get(platform)
        if rule is None:
            return False, f"Unsupported platform: {platform}"

        name = platform.display_name
        if not rule.min_length <= len(username) <= rule.max_length:
            return False, f"{name} username must be between {rule.min_length} and {rule.max_length} characters long"

        if platform is Platform.TIKTOK:
            if username.startswith('.') or username.endswith('.'):
                return False, "TikTok username cannot begin or end with a period"
            if '..' in username:
                return False, "TikTok username cannot contain consecutive periods"

        if not re.match(rule.pattern, username):
            return False, f"{name} username can only contain {rule.allowed}"

        return True, "Valid username"


class Validators:
    URL_PATTERNS = {
        Platform.TWITCH: r'^(?:https?://)?(?:www\.|m\.)?twitch\.tv/([^/?#]+)',
        Platform.YOUTUBE: r'^(?:https?://)?(?:www\.|m\.)?youtube\.com/@([^/?#]+)',
        Platform.TIKTOK: r'^(?:https?://)?(?:www\.|m\.)?tiktok\.com/@([^/?#]+)',
        Platform.KICK: r'^(?:https?://)?(?:www\.)?kick\.com/([^/?#]+)',
    }

    @staticmethod
    def extract_handle(platform: Platform, value: str) -> Tuple[bool, Optional[str], Optional[str]]:
        """
        Accept either a profile URL or a bare handle and extract the handle
        Returns: (is_valid, handle, error_message)
        """
        if not value or not value.strip():
            return False, None, "Handle cannot be empty"

        value = value.strip().rstrip('/')
        if value.endswith('/live'):
            value = value[:-len('/live')]

        match = re.match(Validators.URL_PATTERNS[platform], value)
        if match:
            handle = match.group(1)
        elif '/' in value or '.com' in value or '.tv' in value:
            return False, None, f"Invalid {platform.display_name} URL format"
        else:
            handle = value

        handle = handle.lstrip('@')
        if platform in (Platform.TWITCH, Platform.KICK):
            handle = handle.lower()

        is_valid, message = UsernameValidator.validate_username(platform, handle)
        if not is_valid:
            return False, None, message
        return True, handle, None

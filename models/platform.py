from enum import Enum


class Platform(Enum):
    """Supported streaming platforms"""
    TWITCH = "twitch"
    YOUTUBE = "youtube"
    TIKTOK = "tiktok"
    KICK = "kick"

    @classmethod
    def from_value(cls, value: str) -> "Platform":
        """Parse a platform name, case-insensitive"""
        try:
            return cls(value.strip().lower())
        except ValueError:
            supported = ', '.join(p.value for p in cls)
            raise ValueError(f"Unsupported platform: {value}. Supported platforms: {supported}") from None

    @property
    def is_api_backed(self) -> bool:
        return self in (Platform.TWITCH, Platform.YOUTUBE)

    @property
    def display_name(self) -> str:
        if self is Platform.TIKTOK:
            return "TikTok"
        if self is Platform.YOUTUBE:
            return "YouTube"
        return self.value.capitalize()

    def profile_url(self, handle: str) -> str:
        """Public profile URL for a handle"""
        if self is Platform.TWITCH:
            return f"https://twitch.tv/{handle}"
        if self is Platform.YOUTUBE:
            return f"https://www.youtube.com/@{handle}"
        if self is Platform.TIKTOK:
            return f"https://tiktok.com/@{handle}"
        if self is Platform.KICK:
            return f"https://kick.com/{handle}"
        raise ValueError(f"Unsupported platform: {self}")

"""Service for managing learner profiles."""
import logging
import re
from datetime import datetime, UTC
from typing import Dict, List, Optional

from spellrush.exceptions import PersistenceFailure, ProfileError
from spellrush.models.game_models import Difficulty, LearnerProfile, VoiceSettings
from spellrush.services.storage_service import StorageService

logger = logging.getLogger(__name__)

PROFILES_KEY = "profiles"
CURRENT_PROFILE_KEY = "current-profile"

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def normalize_email(email: str) -> str:
    return email.strip().lower()


class ProfileService:
    """Email-keyed learner profiles and the currently selected one."""

    def __init__(self, storage: StorageService):
        """Initialize the service and load stored profiles."""
        self.storage = storage
        self._profiles: Dict[str, LearnerProfile] = {}
        self._current: Optional[LearnerProfile] = None
        self._load()

    def _load(self) -> None:
        try:
            stored = self.storage.get(PROFILES_KEY) or []
            self._profiles = {
                normalize_email(data["email"]): LearnerProfile.from_data(data) for data in stored
            }
            current_email = self.storage.get(CURRENT_PROFILE_KEY)
        except PersistenceFailure:
            logger.error("Could not load profiles, starting with none")
            self._profiles = {}
            return
        except (KeyError, TypeError, ValueError) as e:
            logger.error("Ignoring malformed stored profiles: %s", e)
            self._profiles = {}
            return

        if current_email:
            self._current = self._profiles.get(normalize_email(current_email))
        logger.info("Loaded %d profiles", len(self._profiles))

    def _save(self) -> None:
        try:
            self.storage.set(PROFILES_KEY, [p.to_data() for p in self._profiles.values()])
        except PersistenceFailure:
            logger.error("Could not save profiles, keeping them in memory")

    def _save_current(self) -> None:
        try:
            if self._current is not None:
                self.storage.set(CURRENT_PROFILE_KEY, self._current.email)
            else:
                self.storage.remove(CURRENT_PROFILE_KEY)
        except PersistenceFailure:
            logger.error("Could not save the current profile")

    def _require(self, email: str) -> LearnerProfile:
        profile = self._profiles.get(normalize_email(email))
        if profile is None:
            raise ProfileError("Profile not found")
        return profile

    def create_profile(
        self,
        email: str,
        nickname: str,
        avatar: str,
        initial_difficulty: Difficulty = Difficulty.EASY,
        voice: Optional[VoiceSettings] = None,
    ) -> LearnerProfile:
        """Create a new profile.

        Raises ProfileError for an invalid or taken email and for an empty
        nickname or avatar.
        """
        normalized = normalize_email(email)
        if not EMAIL_PATTERN.match(normalized):
            raise ProfileError("Invalid email format")
        if normalized in self._profiles:
            raise ProfileError("A profile with this email already exists")
        if not nickname.strip():
            raise ProfileError("Nickname is required")
        if not avatar.strip():
            raise ProfileError("Avatar is required")

        now = datetime.now(UTC)
        profile = LearnerProfile(
            email=normalized,
            nickname=nickname.strip(),
            avatar=avatar.strip(),
            initial_difficulty=initial_difficulty,
            voice=voice or VoiceSettings(),
            created_at=now,
            last_used=now,
        )
        self._profiles[normalized] = profile
        self._save()
        logger.info("Created profile %s", normalized)
        return profile

    def update_profile(
        self,
        email: str,
        nickname: Optional[str] = None,
        avatar: Optional[str] = None,
    ) -> LearnerProfile:
        """Change nickname and/or avatar; the email is fixed."""
        profile = self._require(email)

        if nickname is not None:
            if not nickname.strip():
                raise ProfileError("Nickname cannot be empty")
            profile.nickname = nickname.strip()

        if avatar is not None:
            if not avatar.strip():
                raise ProfileError("Avatar cannot be empty")
            profile.avatar = avatar.strip()

        self._save()
        return profile

    def update_voice(self, email: str, voice: VoiceSettings) -> LearnerProfile:
        profile = self._require(email)
        profile.voice = voice
        self._save()
        return profile

    def delete_profile(self, email: str) -> None:
        """Delete a profile, deselecting it if it was current."""
        profile = self._require(email)
        del self._profiles[profile.email]
        self._save()

        if self._current is not None and self._current.email == profile.email:
            self._current = None
            self._save_current()
        logger.info("Deleted profile %s", profile.email)

    def get_profile(self, email: str) -> Optional[LearnerProfile]:
        return self._profiles.get(normalize_email(email))

    def get_all_profiles(self) -> List[LearnerProfile]:
        """All profiles, most recently used first."""
        return sorted(self._profiles.values(), key=lambda p: p.last_used, reverse=True)

    def select_profile(self, email: str) -> LearnerProfile:
        """Make a profile current and bump its last-used time."""
        profile = self._require(email)
        profile.last_used = datetime.now(UTC)
        self._save()

        self._current = profile
        self._save_current()
        return profile

    @property
    def current_profile(self) -> Optional[LearnerProfile]:
        return self._current

    def clear_current_profile(self) -> None:
        self._current = None
        self._save_current()

    def has_profiles(self) -> bool:
        return bool(self._profiles)

    def profile_count(self) -> int:
        return len(self._profiles)

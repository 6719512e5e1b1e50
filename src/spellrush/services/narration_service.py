"""Text-to-speech narration of the target words."""
import asyncio
import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

from gtts import gTTS, gTTSError

from spellrush.config import NarrationSettings, settings
from spellrush.exceptions import NarrationFailure
from spellrush.models.game_models import VoiceSettings
from spellrush.monitoring import error_count

logger = logging.getLogger(__name__)


def sanitize_filename(text: str) -> str:
    """Make a string safe to use as a file name."""
    name = re.sub(r"[^\w-]+", "_", text.strip().lower(), flags=re.UNICODE)
    return name.strip("_") or "blank"


class Narrator(ABC):
    """Speaks a text; concrete narrators raise NarrationFailure on errors."""

    @abstractmethod
    async def speak(self, text: str, voice: VoiceSettings) -> None:
        """Say a text once, returning when playback has finished."""

    @abstractmethod
    def stop(self) -> None:
        """Cut off any speech in progress."""


class SilentNarrator(Narrator):
    """Narrator for headless runs; remembers what it was asked to say."""

    def __init__(self):
        self.spoken: List[str] = []

    async def speak(self, text: str, voice: VoiceSettings) -> None:
        self.spoken.append(text)

    def stop(self) -> None:
        pass


class GttsNarrator(Narrator):
    """Synthesizes speech with gTTS and plays it through an external player.

    Audio is cached per text and voice. Without a player command the file is
    only synthesized. gTTS knows normal and slow speech only, so the rate
    picks one of the two and the pitch is not used.
    """

    def __init__(self, narration: Optional[NarrationSettings] = None, cache_dir: Optional[Path] = None):
        self.narration = narration or settings.narration
        self.cache_dir = Path(cache_dir or settings.paths.narration_cache_dir)
        self._process: Optional[asyncio.subprocess.Process] = None

    def _tld(self, voice: VoiceSettings) -> str:
        # The voice names an accent as a Google domain, e.g. "co.uk"
        return voice.voice or self.narration.tld

    def audio_path(self, text: str, voice: VoiceSettings) -> Path:
        slow = "slow" if voice.rate < self.narration.slow_rate_threshold else "normal"
        filename = f"{sanitize_filename(text)}.{self.narration.language}.{self._tld(voice)}.{slow}.mp3"
        return self.cache_dir / filename

    def _synthesize(self, text: str, voice: VoiceSettings, path: Path) -> None:
        tts = gTTS(
            text=text,
            lang=self.narration.language,
            tld=self._tld(voice),
            slow=voice.rate < self.narration.slow_rate_threshold,
        )
        path.parent.mkdir(parents=True, exist_ok=True)
        tts.save(str(path))
        logger.info("Narration generated for %r, file: %s", text, path.name)

    async def speak(self, text: str, voice: VoiceSettings) -> None:
        path = self.audio_path(text, voice)
        if not path.exists():
            try:
                await asyncio.to_thread(self._synthesize, text, voice, path)
            except (gTTSError, ValueError, OSError) as e:
                raise NarrationFailure(text, f"Speech synthesis failed: {e}") from e

        if not self.narration.player_command:
            return

        try:
            self._process = await asyncio.create_subprocess_exec(
                *self.narration.player_command,
                str(path),
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
            returncode = await self._process.wait()
        except OSError as e:
            raise NarrationFailure(text, f"Audio player failed: {e}") from e
        finally:
            self._process = None

        # Negative codes mean the player was stopped by a signal
        if returncode > 0:
            raise NarrationFailure(text, f"Audio player exited with {returncode}")

    def stop(self) -> None:
        if self._process is not None and self._process.returncode is None:
            try:
                self._process.terminate()
            except ProcessLookupError:
                pass


class NarrationService:
    """Voice settings plus auto-repeat on top of a narrator."""

    def __init__(self, narrator: Narrator, voice: Optional[VoiceSettings] = None):
        self.narrator = narrator
        self.voice = voice or VoiceSettings(
            rate=settings.narration.rate,
            pitch=settings.narration.pitch,
            auto_repeat=settings.narration.auto_repeat,
            auto_repeat_delay=settings.narration.auto_repeat_delay,
        )
        self._repeat_task: Optional[asyncio.Task] = None

    def update_voice_settings(self, **changes) -> VoiceSettings:
        self.voice = self.voice.merged(**changes)
        logger.info("Voice settings updated: %s", self.voice)
        return self.voice

    async def speak(self, text: str) -> None:
        """Speak a text once; with auto-repeat on, keep repeating after silence.

        Raises NarrationFailure when the narrator fails.
        """
        self._cancel_repeat()
        try:
            await self.narrator.speak(text, self.voice)
        except NarrationFailure:
            error_count.labels(error_type="narration").inc()
            raise

        if self.voice.auto_repeat:
            self._repeat_task = asyncio.create_task(self._repeat(text))

    async def _repeat(self, text: str) -> None:
        while True:
            await asyncio.sleep(self.voice.auto_repeat_delay)
            try:
                await self.narrator.speak(text, self.voice)
            except NarrationFailure as e:
                error_count.labels(error_type="narration").inc()
                logger.error("Auto-repeat stopped: %s", e)
                return

    def _cancel_repeat(self) -> None:
        if self._repeat_task is not None:
            self._repeat_task.cancel()
            self._repeat_task = None

    def stop(self) -> None:
        """Stop speaking and cancel any pending repeat."""
        self._cancel_repeat()
        self.narrator.stop()

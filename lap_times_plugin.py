"""
Lap Times Plugin
Records completed laps per track and driver, keeps the clean-lap leaderboard
and announces new laps and leaderboard changes in-session and on Discord
"""

import logging
from typing import Dict, List, Optional

from lap_messages import (
    build_driver_laps_message,
    build_lap_message,
    build_leaderboard_message,
)
from lap_persistence import LapDataStorage
from lap_store import LapEntry, LapStore
from lap_times_config import LapTimesConfig
from leaderboard import driver_top_laps, lap_qualifies, rank_personal_bests
from notifications import DiscordWebhook, LapNotifier, ThrottledChatSender
from track_names import sanitize_track_name

DRIVER_LAPS_COUNT = 3


class LapResult:
    """Outcome of one lap-completion event"""

    def __init__(self, track_key: str, accepted: bool, lap: Optional[LapEntry], qualified: bool = False):
        self.track_key = track_key
        self.accepted = accepted
        self.lap = lap
        self.qualified = qualified

    def to_dict(self) -> Dict:
        return {
            'track_key': self.track_key,
            'accepted': self.accepted,
            'qualified': self.qualified,
            'lap': lap_to_dict(self.lap) if self.lap else None,
        }


def lap_to_dict(lap: LapEntry) -> Dict:
    return {
        'driver_guid': lap.driver_guid,
        'driver_name': lap.driver_name,
        'car_name': lap.car_name,
        'lap_time_ms': lap.lap_time_ms,
        'cuts': lap.cuts,
    }


class LapTimesPlugin:
    """Handles lap-completion and chat-command events coming from the host"""

    def __init__(self, config: LapTimesConfig, chat_transport, store: Optional[LapStore] = None,
                 storage: Optional[LapDataStorage] = None, notifier: Optional[LapNotifier] = None):
        self.config = config
        self.logger = logging.getLogger(__name__)
        self.store = store or LapStore()
        self.storage = storage or LapDataStorage(config.data_folder)

        if notifier is None:
            chat = ThrottledChatSender(
                chat_transport,
                delay_seconds=config.chat_throttle_seconds,
                max_line_length=config.max_chat_line_length,
            )
            webhook = DiscordWebhook(config.discord_webhook_url, timeout=config.webhook_timeout_seconds)
            notifier = LapNotifier(chat, webhook)
        self.notifier = notifier

        self.load_all_lap_data()

        if not self.config.enabled:
            self.logger.warning("Lap times plugin disabled via config.")
        else:
            self.logger.info("Lap times plugin ready")

    def load_all_lap_data(self) -> None:
        """Fill the store from the data folder"""
        for track_key, track_laps in self.storage.load_all().items():
            self.store.replace_track(track_key, track_laps)

    def on_lap_completed(self, raw_track: str, driver_guid: int, driver_name: str,
                         car_name: str, lap_time_ms: int, cuts: int) -> Optional[LapResult]:
        """Record a lap, persist it and announce it.

        Returns None when the plugin is disabled or the lap time is invalid.
        """
        self.logger.info(f"Lap completed event received for driver GUID: {driver_guid}")

        if not self.config.enabled or not lap_time_ms:
            self.logger.debug("Plugin disabled or invalid lap time. Skipping lap processing.")
            return None

        track_key = sanitize_track_name(raw_track)
        self.logger.debug(f"Processed track name: {track_key}")

        with self.store.track_lock(track_key):
            accepted, lap = self.store.record_lap(track_key, driver_guid, driver_name, car_name, lap_time_ms, cuts)
            if lap is None:
                return None
            if not accepted:
                return LapResult(track_key, False, lap)

            track_laps = self.store.get_track(track_key)
            self.storage.save_track(track_key, track_laps)

            self.notifier.announce(
                build_lap_message(lap, track_key, include_emojis=False),
                build_lap_message(lap, track_key, include_emojis=True),
                f"lap of {lap.driver_name}",
            )

            qualified = False
            if lap.is_clean:
                qualified = self._update_leaderboard(track_key, track_laps, lap)
            else:
                self.logger.debug(f"Lap has {lap.cuts} cuts. Not updating leaderboard.")

        return LapResult(track_key, True, lap, qualified)

    def _update_leaderboard(self, track_key: str, track_laps, lap: LapEntry) -> bool:
        """Announce the leaderboard if the new lap made it; caller holds the track lock"""
        limit = self.config.max_top_times
        if not lap_qualifies(track_laps, limit, lap):
            return False

        self.logger.info(f"{lap.driver_name} set a top {limit} lap on {track_key}")
        if not self.config.broadcast_messages:
            self.logger.debug("Leaderboard broadcasts disabled via config.")
            return True

        top_laps = rank_personal_bests(track_laps, limit)
        self.notifier.announce(
            build_leaderboard_message(track_key, top_laps, limit, include_emojis=False),
            build_leaderboard_message(track_key, top_laps, limit, include_emojis=True),
            "leaderboard update",
        )
        return True

    def on_chat_message(self, raw_track: str, driver_guid: int, message: str) -> bool:
        """Answer /leaderboard and /laptimes; returns True when the message was a command"""
        if not self.config.enabled or not message:
            return False

        command = message.strip().lower()
        track_key = sanitize_track_name(raw_track)

        if command == '/leaderboard':
            limit = self.config.max_top_times
            top_laps = self.leaderboard_for(track_key, limit)
            self.notifier.reply(driver_guid, build_leaderboard_message(track_key, top_laps, limit))
            return True

        if command == '/laptimes':
            laps = driver_top_laps(self.store.snapshot(track_key), driver_guid, DRIVER_LAPS_COUNT)
            self.notifier.reply(driver_guid, build_driver_laps_message(track_key, laps))
            return True

        return False

    def leaderboard_for(self, track_key: str, limit: Optional[int] = None) -> List[LapEntry]:
        limit = self.config.max_top_times if limit is None else limit
        return rank_personal_bests(self.store.snapshot(track_key), limit)

    def driver_laps_for(self, track_key: str, driver_guid: int) -> List[LapEntry]:
        return self.store.snapshot(track_key).get(driver_guid, [])

    def current_track_key(self) -> str:
        return sanitize_track_name(self.config.track)

"""
Notification Delivery
Throttled in-session chat plus the Discord webhook channel
"""

import logging
import threading
import time
from typing import Callable, Optional

import requests

from lap_messages import MAX_CHAT_LINE_LENGTH, build_webhook_payload, split_message_lines


class ThrottledChatSender:
    """Sends chat lines one by one so a burst stays under the host rate limit.

    Line n (starting at 1) goes out n * delay_seconds after the message was
    scheduled. Each message gets one daemon thread that carries its own
    pre-rendered lines; nothing is retried or cancelled.
    """

    def __init__(self, transport, delay_seconds: float = 1.0,
                 max_line_length: int = MAX_CHAT_LINE_LENGTH,
                 thread_factory: Callable = threading.Thread,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep):
        self.transport = transport
        self.delay_seconds = delay_seconds
        self.max_line_length = max_line_length
        self.thread_factory = thread_factory
        self.clock = clock
        self.sleep = sleep
        self.logger = logging.getLogger(__name__)

    def broadcast_lines(self, message: str) -> int:
        """Schedule a message for everybody in the session"""
        return self._schedule(message, None)

    def send_lines(self, driver_guid: int, message: str) -> int:
        """Schedule a message for a single driver"""
        return self._schedule(message, driver_guid)

    def _schedule(self, message: str, driver_guid: Optional[int]) -> int:
        lines = tuple(split_message_lines(message, self.max_line_length))
        if not lines:
            return 0

        try:
            thread = self.thread_factory(
                target=self._deliver_lines,
                args=(lines, driver_guid, self.clock()),
                daemon=True
            )
            thread.start()
        except RuntimeError as e:
            self.logger.error(f"Could not start chat delivery ({len(lines)} lines dropped): {e}")
            return 0

        return len(lines)

    def _deliver_lines(self, lines, driver_guid: Optional[int], scheduled_at: float) -> None:
        for index, line in enumerate(lines, 1):
            remaining = scheduled_at + index * self.delay_seconds - self.clock()
            if remaining > 0:
                self.sleep(remaining)
            self._deliver(line, driver_guid)

    def _deliver(self, line: str, driver_guid: Optional[int]) -> None:
        try:
            if driver_guid is None:
                self.transport.broadcast(line)
            else:
                self.transport.send_to(driver_guid, line)
        except Exception as e:
            target = 'session' if driver_guid is None else f'driver {driver_guid}'
            self.logger.error(f"Failed to send chat line to {target}: {e}")


class DiscordWebhook:
    """Posts decorated messages to a Discord webhook URL"""

    def __init__(self, url: str, timeout: float = 5.0, session=None):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()
        self.logger = logging.getLogger(__name__)

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    def post(self, message: str) -> bool:
        """Send one message; failures are logged, never raised or retried"""
        if not self.enabled:
            return False

        try:
            response = self.session.post(
                self.url,
                data=build_webhook_payload(message).encode('utf-8'),
                headers={'Content-Type': 'application/json'},
                timeout=self.timeout
            )
            if not 200 <= response.status_code < 300:
                self.logger.error(f"Discord POST failed: {response.status_code}")
                return False
            return True
        except Exception as e:
            self.logger.error(f"Error posting to Discord: {e}")
            return False

    def post_in_background(self, message: str) -> Optional[threading.Thread]:
        """Fire-and-forget post so the lap handler never waits on the network"""
        if not self.enabled:
            return None
        thread = threading.Thread(target=self.post, args=(message,), daemon=True)
        try:
            thread.start()
        except RuntimeError as e:
            self.logger.error(f"Could not start Discord post: {e}")
            return None
        return thread


class LapNotifier:
    """Sends lap and leaderboard announcements over both channels"""

    def __init__(self, chat: ThrottledChatSender, webhook: Optional[DiscordWebhook] = None):
        self.chat = chat
        self.webhook = webhook
        self.logger = logging.getLogger(__name__)

    def announce(self, plain_message: str, decorated_message: str, source: str) -> None:
        """Broadcast in-session and post to Discord when configured"""
        line_count = self.chat.broadcast_lines(plain_message)
        self.logger.info(f"Broadcasted {source} ({line_count} lines)")

        if self.webhook and self.webhook.enabled:
            self.webhook.post_in_background(decorated_message)
            self.logger.info(f"Posted {source} to Discord")

    def reply(self, driver_guid: int, message: str) -> int:
        """Send a command reply to one driver"""
        return self.chat.send_lines(driver_guid, message)

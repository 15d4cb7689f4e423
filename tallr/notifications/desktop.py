"""
Native desktop notifications for task alerts.

Supports:
- macOS: osascript
- Linux: notify-send, falling back to dbus-send

Delivery is fire-and-forget: failures are logged and never raised to the
caller, whose state mutation has already succeeded.
"""

import logging
import platform
import subprocess

logger = logging.getLogger(__name__)

APP_LABEL = "Tallr"


class DesktopNotificationService:
    """Sends native OS notifications for PENDING and ERROR alerts."""

    MAX_TITLE_LENGTH = 80
    MAX_MESSAGE_LENGTH = 200

    def __init__(self):
        self.platform = platform.system()
        logger.info(f"Desktop notification service initialized for platform: {self.platform}")

    def is_available(self) -> bool:
        return self.platform in ["Darwin", "Linux"]

    def send_notification(self, title: str, message: str) -> None:
        """Show a notification; errors are logged, not raised."""
        try:
            title = self._truncate(title, self.MAX_TITLE_LENGTH)
            message = self._truncate(message, self.MAX_MESSAGE_LENGTH)

            if self.platform == "Darwin":
                self._send_macos(title, message)
            elif self.platform == "Linux":
                self._send_linux(title, message)
            else:
                logger.warning(f"Desktop notifications not supported on platform: {self.platform}")

        except Exception as e:
            logger.error(f"Failed to send desktop notification: {e}")

    def _send_macos(self, title: str, message: str) -> None:
        script = (
            f'display notification "{self._escape_applescript(message)}" '
            f'with title "{self._escape_applescript(title)}"'
        )
        try:
            subprocess.run(["osascript", "-e", script], check=True, capture_output=True, timeout=5)
        except Exception as e:
            logger.error(f"osascript notification failed: {e}")

    def _send_linux(self, title: str, message: str) -> None:
        try:
            result = subprocess.run(
                ["notify-send", "--app-name", APP_LABEL, title, message],
                capture_output=True,
                timeout=5,
            )
            if result.returncode == 0:
                return
        except Exception as e:
            logger.warning(f"notify-send failed, trying dbus fallback: {e}")

        self._send_linux_fallback(title, message)

    def _send_linux_fallback(self, title: str, message: str) -> None:
        try:
            subprocess.run(
                [
                    "dbus-send",
                    "--session",
                    "--dest=org.freedesktop.Notifications",
                    "--type=method_call",
                    "/org/freedesktop/Notifications",
                    "org.freedesktop.Notifications.Notify",
                    f"string:{APP_LABEL}",
                    "uint32:0",
                    "string:",
                    f"string:{title}",
                    f"string:{message}",
                    "array:string:",
                    "dict:string:string:",
                    "int32:5000",
                ],
                check=True,
                capture_output=True,
                timeout=5,
            )
        except Exception as e:
            logger.error(f"dbus notification failed: {e}")

    @staticmethod
    def _escape_applescript(text: str) -> str:
        return text.replace("\\", "\\\\").replace('"', '\\"')

    @staticmethod
    def _truncate(text: str, max_length: int) -> str:
        if len(text) <= max_length:
            return text
        return text[: max_length - 3] + "..."

"""
Clipboard access backed by pyperclip.

Copying is best effort: a missing clipboard mechanism is logged and reported
back as a failure, never raised.
"""

import logging

import pyperclip


logger = logging.getLogger(__name__)


class ClipboardSink:
    """Writes text to the system clipboard."""

    def write(self, text: str) -> str | None:
        """
        Copy text to the clipboard.

        Returns:
            None on success, otherwise the error message
        """
        try:
            pyperclip.copy(text)
        except pyperclip.PyperclipException as e:
            logger.warning("Clipboard unavailable: %s", e)
            return str(e) or "Clipboard unavailable"
        return None

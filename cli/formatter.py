"""Renders streamed answer events to a terminal."""

import logging
from typing import TextIO

logger = logging.getLogger(__name__)


class ResponseFormatter:
    """Writes chunks as they arrive and remembers the final answer."""

    def __init__(self, output: TextIO):
        self.output = output
        self.started = False
        self.full_content: str | None = None
        self.error: str | None = None

    def handle_event(self, event: dict) -> None:
        event_type = event.get("type")

        if event_type == "start":
            self._print("\nAssistant: ")
            self.started = True

        elif event_type == "chunk":
            if not self.started:
                self._print("\nAssistant: ")
                self.started = True
            self._print(event.get("content", ""))

        elif event_type == "complete":
            self.full_content = event.get("fullContent", "")

        elif event_type == "error":
            self.error = event.get("error", "Unknown error")
            self._print(f"\n❌ Error: {self.error}\n")

        else:
            logger.debug("Unknown event type %r: %s", event_type, event)

    @property
    def succeeded(self) -> bool:
        return self.full_content is not None and self.error is None

    def finish_response(self) -> None:
        self._print("\n")
        self.started = False

    def _print(self, text: str) -> None:
        self.output.write(text)
        self.output.flush()

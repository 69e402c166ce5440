"""Interactive loop for chatting about one article."""

import logging
import sys
from typing import TextIO

from .client import ChatAPIClient
from .config import CLIConfig
from .formatter import ResponseFormatter

logger = logging.getLogger(__name__)

EXIT_COMMANDS = ("exit", "quit", "q")


class ArticleChatCLI:
    """Keeps the conversation history and sends it with every question."""

    def __init__(
        self,
        config: CLIConfig,
        input_stream: TextIO = sys.stdin,
        output_stream: TextIO = sys.stdout,
        client: ChatAPIClient | None = None,
    ):
        self.config = config
        self.input_stream = input_stream
        self.output_stream = output_stream
        self.client = client or ChatAPIClient(config)
        self.history: list[dict] = []

    async def run(self) -> None:
        try:
            self._print_welcome()
            while True:
                try:
                    message = self._get_user_input()
                    if not message.strip():
                        continue
                    if message.strip().lower() in EXIT_COMMANDS:
                        self._print("Goodbye!\n")
                        break
                    await self.ask(message)
                except KeyboardInterrupt:
                    self._print("\n\nInterrupted. Use 'exit' or 'quit' to exit.\n")
                except EOFError:
                    self._print("\nGoodbye!\n")
                    break
        finally:
            await self.client.close()

    async def ask(self, message: str) -> str | None:
        """Stream one answer; on success record both turns in the history."""
        formatter = ResponseFormatter(self.output_stream)
        async for event in self.client.chat(message, self.history):
            formatter.handle_event(event)
        formatter.finish_response()

        if not formatter.succeeded:
            return None
        self.history.append({"role": "user", "content": message})
        self.history.append({"role": "assistant", "content": formatter.full_content})
        return formatter.full_content

    def _get_user_input(self) -> str:
        self._print("> ")
        line = self.input_stream.readline()
        if not line:
            raise EOFError
        return line.rstrip("\n\r")

    def _print_welcome(self) -> None:
        self._print("ArticleChat CLI\n")
        self._print(f"Connected to: {self.config.chat_url}\n")
        self._print(f"Article: {self.config.article_title or self.config.article_id}\n")
        self._print(
            "Type your question and press Enter. Type 'exit' or 'quit' to exit.\n\n"
        )

    def _print(self, text: str) -> None:
        self.output_stream.write(text)
        self.output_stream.flush()


async def main(config: CLIConfig, debug: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )
    await ArticleChatCLI(config).run()

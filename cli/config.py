"""Configuration management for the CLI tool."""

from pathlib import Path

from pydantic import BaseModel, Field


class CLIConfig(BaseModel):
    """CLI configuration settings."""

    host: str = Field(default="localhost", description="Server host")
    port: int = Field(default=8080, description="Server port")
    api_path: str = Field(
        default="/api/v1/chat/stream",
        description="API path for the streaming chat endpoint",
    )
    article_id: str = Field(description="Identifier of the article to discuss")
    article_title: str | None = Field(default=None, description="Article title")
    article_content: str | None = Field(default=None, description="Article body")
    token: str | None = Field(
        default=None, description="Session JWT sent as a bearer token"
    )

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    @property
    def chat_url(self) -> str:
        return f"{self.base_url}{self.api_path}"

    def article_context(self) -> dict:
        """The ``articleContext`` object sent with every request."""
        context: dict = {"article_id": self.article_id}
        if self.article_title:
            context["title"] = self.article_title
        if self.article_content:
            context["content"] = self.article_content
        return context


def load_article_file(path: Path) -> tuple[str, str]:
    """Read an article from a text file: first line title, rest body."""
    title, _, content = path.read_text(encoding="utf-8").partition("\n")
    return title.strip(), content.strip()

"""Entry point for running the CLI as a module."""

import argparse
import asyncio
import os
import sys
from pathlib import Path

from .article_cli import main
from .config import CLIConfig, load_article_file

TOKEN_ENV_VAR = "ARTICLECHAT_CLI_TOKEN"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Interactive CLI for the ArticleChat API",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--host", default="localhost", help="Server host")
    parser.add_argument("--port", type=int, default=8080, help="Server port")
    parser.add_argument(
        "--api-path",
        default="/api/v1/chat/stream",
        help="Streaming chat path (default: /api/v1/chat/stream)",
    )
    parser.add_argument(
        "--article-id", required=True, help="Identifier of the article to discuss"
    )
    parser.add_argument(
        "--article-file",
        type=Path,
        help="Text file with the article: first line title, rest body",
    )
    parser.add_argument(
        "--token",
        default=os.environ.get(TOKEN_ENV_VAR),
        help=f"Session JWT (default: ${TOKEN_ENV_VAR})",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging (shows response headers)",
    )
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> CLIConfig:
    title = content = None
    if args.article_file is not None:
        title, content = load_article_file(args.article_file)
    return CLIConfig(
        host=args.host,
        port=args.port,
        api_path=args.api_path,
        article_id=args.article_id,
        article_title=title,
        article_content=content,
        token=args.token,
    )


def cli_entry() -> None:
    """CLI entry point."""
    args = parse_args()
    try:
        asyncio.run(main(build_config(args), debug=args.debug))
    except KeyboardInterrupt:
        sys.exit(0)


if __name__ == "__main__":
    cli_entry()

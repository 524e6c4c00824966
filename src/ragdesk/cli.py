"""Command-line interface.

Examples
--------
    ragdesk ingest docs/guide.md
    ragdesk ingest https://example.com/post
    ragdesk ask "What does the guide say about overlap?"
    ragdesk sources
    ragdesk serve --port 3000
"""

from __future__ import annotations

import argparse
import json
import logging
import mimetypes
import sys
from collections.abc import Sequence
from pathlib import Path

from ragdesk.errors import RagDeskError

logger = logging.getLogger("ragdesk")


def _is_url(value: str) -> bool:
    return value.startswith(("http://", "https://"))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ragdesk", description="Retrieval-augmented question answering")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    sub = parser.add_subparsers(dest="command", required=True)

    ingest = sub.add_parser("ingest", help="Add a file or web page")
    ingest.add_argument("source", help="File path or http(s) URL")
    ingest.add_argument("--type", dest="content_type", default=None, help="Declared MIME type of a file")

    ask = sub.add_parser("ask", help="Ask a question")
    ask.add_argument("question")

    sub.add_parser("sources", help="List ingested sources")
    sub.add_parser("clear", help="Remove every source")
    sub.add_parser("health", help="Report store readiness")

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    from ragdesk.config import settings

    logging.basicConfig(
        level=(args.log_level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "serve":
        import uvicorn

        from ragdesk.serving.app import create_app

        uvicorn.run(create_app(settings=settings), host=args.host or settings.host, port=args.port or settings.port)
        return 0

    from ragdesk.service import build_service

    service = build_service(settings)
    try:
        if args.command == "ingest":
            if _is_url(args.source):
                receipt = service.add_web_source(args.source)
            else:
                content_type = args.content_type or mimetypes.guess_type(args.source)[0] or ""
                receipt = service.add_file_source(Path(args.source), content_type, cleanup=False)
            print(json.dumps(receipt.model_dump(mode="json", by_alias=True)))
        elif args.command == "ask":
            print(service.ask(args.question).answer)
        elif args.command == "sources":
            for item in service.list_sources():
                print(f"{item.icon} {item.display_name}  ({item.source})")
        elif args.command == "clear":
            service.clear_sources()
            print("All sources cleared.")
        elif args.command == "health":
            print(json.dumps(service.health().model_dump(by_alias=True)))
    except RagDeskError as exc:
        logger.error("%s: %s", exc.kind, exc)
        return 1
    finally:
        service.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

import uvicorn

from aisubs import config
from aisubs.main import create_app
from aisubs.services.jobs import JobService
from aisubs.services.models import JobStatus


logger = logging.getLogger("aisubs")


def configure_logging(level: str = config.LOG_LEVEL) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def start_server(host: str = config.SERVICE_HOST, port: int = config.SERVICE_PORT) -> None:
    app = create_app()
    server_config = uvicorn.Config(
        app,
        host=host,
        port=port,
        log_level=config.LOG_LEVEL.lower(),
    )
    server = uvicorn.Server(server_config)
    logger.info("Web service running on %s:%d", host, port)
    server.run()


def translate_once(input_path: str, track_index: int) -> int:
    if not Path(input_path).is_file():
        print(f"Error: File '{input_path}' does not exist", file=sys.stderr)
        return 1

    job = asyncio.run(JobService().translate_file(input_path, track_index))
    if job.status != JobStatus.COMPLETED or job.result is None:
        message = job.result.error_message if job.result else "unknown error"
        print(f"Error translating subtitles: {message}", file=sys.stderr)
        return 1

    print(f"Translated subtitles saved to: {job.result.output_path}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="aisubs",
        description="Translate subtitle files, or subtitle tracks embedded in videos.",
    )
    parser.add_argument("input", nargs="?", help="video or subtitle file to translate")
    parser.add_argument("-s", "--serve", action="store_true", help="run the web service")
    parser.add_argument("-t", "--track", type=int, default=0, help="subtitle track index for video input")
    parser.add_argument("--host", default=config.SERVICE_HOST)
    parser.add_argument("--port", type=int, default=config.SERVICE_PORT)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging()

    if args.serve:
        start_server(args.host, args.port)
        return 0

    if not args.input:
        parser.print_usage(sys.stderr)
        return 1

    return translate_once(args.input, args.track)


if __name__ == "__main__":
    sys.exit(main())

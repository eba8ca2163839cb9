"""Command line access to the configured storage backend.

Usage:
    qiniu-storage ls photos/ --limit 100
    qiniu-storage get /legacy/key.bin -o key.bin
    qiniu-storage put photos/a.jpg ./a.jpg
    qiniu-storage cp photos/a.jpg photos/b.jpg
    qiniu-storage rm photos/b.jpg
    qiniu-storage stat photos/a.jpg

Configuration comes from the environment or a .env file
(QINIU_ENDPOINT, QINIU_ACCESS_KEY, QINIU_SECRET_KEY, QINIU_DOMAIN, ...).
"""
import argparse
import shutil
import sys
import uuid
from typing import List, Optional

from qiniu_storage.core.config import settings
from qiniu_storage.core.errors import StorageError
from qiniu_storage.core.logging_config import clear_trace_id, get_logger, set_trace_id, setup_logging
from qiniu_storage.storage import create_storage
from qiniu_storage.storage.protocol import ObjectStorage

EXIT_ERROR = 1
EXIT_FATAL = 2

LOG_STREAM = "ext://sys.stderr"

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="qiniu-storage",
        description="Object storage commands against the configured backend",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    ls = sub.add_parser("ls", help="List objects under a prefix")
    ls.add_argument("prefix", nargs="?", default="")
    ls.add_argument("--limit", type=int, default=settings.LIST_PAGE_SIZE, help="Page size")

    get = sub.add_parser("get", help="Download an object")
    get.add_argument("key")
    get.add_argument("--offset", type=int, default=0)
    get.add_argument("--limit", type=int, default=-1, help="Bytes to read; <= 0 reads to the end")
    get.add_argument("-o", "--output", help="Write to this file instead of stdout")

    put = sub.add_parser("put", help="Upload a local file")
    put.add_argument("key")
    put.add_argument("path")

    cp = sub.add_parser("cp", help="Server-side copy")
    cp.add_argument("src")
    cp.add_argument("dst")

    rm = sub.add_parser("rm", help="Delete an object")
    rm.add_argument("key")

    stat = sub.add_parser("stat", help="Show object metadata")
    stat.add_argument("key")

    return parser


def run(storage: ObjectStorage, args: argparse.Namespace) -> int:
    if args.command == "ls":
        marker = ""
        while True:
            page = storage.list(args.prefix, marker, args.limit)
            if not page:
                break
            for obj in page:
                print(f"{obj.size:>12} {obj.mtime:>11} {obj.key}")
            marker = page[-1].key

    elif args.command == "get":
        stream = storage.get(args.key, args.offset, args.limit)
        try:
            if args.output:
                with open(args.output, "wb") as f:
                    shutil.copyfileobj(stream, f)
            else:
                shutil.copyfileobj(stream, sys.stdout.buffer)
        finally:
            stream.close()

    elif args.command == "put":
        with open(args.path, "rb") as f:
            storage.put(args.key, f)

    elif args.command == "cp":
        storage.copy(args.dst, args.src)

    elif args.command == "rm":
        storage.delete(args.key)

    elif args.command == "stat":
        obj = storage.head(args.key)
        print(f"key:   {obj.key}")
        print(f"size:  {obj.size}")
        print(f"mtime: {obj.mtime}")

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    # stdout carries object bytes and listings
    setup_logging(debug=settings.is_debug_mode, json_logs=settings.use_json_logs, stream=LOG_STREAM)
    set_trace_id(uuid.uuid4().hex)

    try:
        try:
            storage = create_storage(settings)
        except StorageError as exc:
            if exc.fatal:
                print(f"fatal: {exc}", file=sys.stderr)
                return EXIT_FATAL
            raise

        logger.debug("cli_command_started", command=args.command, backend=str(storage))
        with storage:
            return run(storage, args)

    except StorageError as exc:
        logger.error("cli_command_failed", command=args.command, code=exc.code.value, error=str(exc))
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_ERROR
    finally:
        clear_trace_id()


if __name__ == "__main__":
    sys.exit(main())

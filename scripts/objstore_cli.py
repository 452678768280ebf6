#!/usr/bin/env python3
"""Command-line access to the configured bucket.

Usage:
  .venv/bin/python scripts/objstore_cli.py list --prefix documents/
  .venv/bin/python scripts/objstore_cli.py upload uploads/myfile.pdf ./myfile.pdf --content-type application/pdf
  .venv/bin/python scripts/objstore_cli.py download uploads/myfile.pdf ./copy.pdf
  .venv/bin/python scripts/objstore_cli.py exists uploads/myfile.pdf
  .venv/bin/python scripts/objstore_cli.py delete uploads/myfile.pdf
  .venv/bin/python scripts/objstore_cli.py health

Bucket, region and credentials come from the same environment variables as
the service (S3_BUCKET or AWS_S3_BUCKET, AWS_REGION, AWS_ROLE_ARN, ...).
"""

from __future__ import annotations

import argparse
import sys

from objstore.common.config import get_settings
from objstore.common.logging import setup_logging
from objstore.infra.storage.client import ObjectStore, StorageError
from objstore.infra.storage.factory import object_store_scope
from objstore.infra.storage.health import StorageHealthCheck


def run_command(store: ObjectStore, args: argparse.Namespace) -> int:
    if args.command == "list":
        objects = store.list_objects(args.prefix)
        for info in objects:
            print(f"  {info.key} - {info.size} bytes - {info.last_modified}")
        print(f"{len(objects)} objects")
        return 0

    if args.command == "upload":
        locator = store.upload_from_path(args.key, args.path, args.content_type)
        print(f"Uploaded to {locator}")
        return 0

    if args.command == "download":
        if args.destination:
            store.download_to_path(args.key, args.destination)
            print(f"Downloaded {store.locator(args.key)} to {args.destination}")
        else:
            sys.stdout.buffer.write(store.download(args.key))
        return 0

    if args.command == "exists":
        found = store.exists(args.key)
        print("yes" if found else "no")
        return 0 if found else 1

    if args.command == "delete":
        removed = store.delete(args.key)
        print(f"Deleted {store.locator(args.key)}" if removed else "Delete not confirmed")
        return 0 if removed else 1

    if args.command == "health":
        report = StorageHealthCheck(store).check()
        print("healthy" if report.healthy else f"unhealthy: {report.detail}")
        return 0 if report.healthy else 1

    raise ValueError(f"Unknown command: {args.command}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Operate on the configured bucket")
    sub = parser.add_subparsers(dest="command", required=True)

    list_cmd = sub.add_parser("list", help="List objects")
    list_cmd.add_argument("--prefix", default="", help="Only keys with this prefix")

    upload_cmd = sub.add_parser("upload", help="Upload a local file")
    upload_cmd.add_argument("key")
    upload_cmd.add_argument("path")
    upload_cmd.add_argument("--content-type", default=None)

    download_cmd = sub.add_parser("download", help="Download an object")
    download_cmd.add_argument("key")
    download_cmd.add_argument(
        "destination", nargs="?", default=None, help="File path (default: stdout)"
    )

    exists_cmd = sub.add_parser("exists", help="Check whether an object exists")
    exists_cmd.add_argument("key")

    delete_cmd = sub.add_parser("delete", help="Delete an object")
    delete_cmd.add_argument("key")

    sub.add_parser("health", help="Verify credentials and bucket access")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)
    try:
        with object_store_scope(settings) as store:
            return run_command(store, args)
    except StorageError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())

"""Command-line interface for browsing and managing blob storage."""

import argparse
import logging
import sys
from pathlib import Path

from blobstore.blob_storage import BlobStorage, open_storage
from blobstore.config import DEFAULT_CONFIG_PATH, Config
from blobstore.errors import StorageError
from blobstore.files import StoredFile
from blobstore.uploads import FileUpload, resolve_deploy_context, upload_handler, uploads_namespace
from blobstore.utils import format_size, format_timestamp


def get_storage(args, config: Config) -> BlobStorage:
    """Open storage for the provider and namespace selected on the command line."""
    if args.provider:
        provider = config.get_provider(args.provider)
        if not provider:
            print(f"Error: Provider '{args.provider}' not found in config", file=sys.stderr)
            sys.exit(1)
    else:
        provider = config.default_provider()
        if not provider:
            print("Error: No providers enabled", file=sys.stderr)
            sys.exit(1)

    try:
        provider.validate()
    except ValueError as e:
        print(f"Configuration error for provider '{provider.name}': {e}", file=sys.stderr)
        sys.exit(1)

    namespace = args.namespace or uploads_namespace(
        resolve_deploy_context(config.storage), config.storage.namespace_prefix
    )
    return open_storage(namespace, provider, config.storage)


def cmd_put(args, config: Config):
    """Store a local file under a key."""
    storage = get_storage(args, config)
    file = StoredFile.from_path(args.path, mime_type=args.type)
    storage.set(args.key, file)
    print(f"Stored {args.key} ({format_size(file.size)}, {file.mime_type}) in {storage.namespace}")


def cmd_upload(args, config: Config):
    """Store a local file the way the upload handler does."""
    storage = get_storage(args, config)
    file = StoredFile.from_path(args.path)
    print(upload_handler(storage, FileUpload(field_name=args.field, file=file)))


def cmd_get(args, config: Config):
    """Fetch a key to a file or stdout."""
    storage = get_storage(args, config)
    file = storage.get(args.key)
    if file is None:
        print(f"Not found: {args.key}", file=sys.stderr)
        sys.exit(1)

    if args.output:
        Path(args.output).write_bytes(file.content)
    else:
        sys.stdout.buffer.write(file.content)
        sys.stdout.buffer.flush()

    print(
        f"{file.name} | {file.mime_type} | {format_size(file.size)} | "
        f"{format_timestamp(file.last_modified)}",
        file=sys.stderr,
    )


def cmd_has(args, config: Config):
    """Report whether a key exists."""
    storage = get_storage(args, config)
    if storage.has(args.key):
        print("yes")
    else:
        print("no")
        sys.exit(1)


def cmd_rm(args, config: Config):
    """Remove a key."""
    storage = get_storage(args, config)
    storage.remove(args.key)
    print(f"Removed {args.key}")


def print_entries(entries, include_metadata: bool) -> None:
    for entry in entries:
        if include_metadata:
            print(
                f"{entry.key:<50} | {entry.name or '-':<30} | {entry.mime_type or '-':<25} | "
                f"{format_size(entry.size):>8} | {format_timestamp(entry.last_modified)}"
            )
        else:
            print(entry.key)


def cmd_ls(args, config: Config):
    """List keys page by page."""
    storage = get_storage(args, config)
    limit = args.limit if args.limit is not None else config.storage.default_page_size

    if args.all:
        count = 0
        for page in storage.lister.iter_pages(
            args.prefix, limit or None, args.cursor, args.metadata
        ):
            print_entries(page.entries, args.metadata)
            count += len(page.entries)
        print(f"\n{count} key(s)", file=sys.stderr)
        return

    page = storage.list(args.prefix, limit, args.cursor, args.metadata)
    print_entries(page.entries, args.metadata)
    if page.cursor is not None:
        print(f"\nNext cursor: {page.cursor}", file=sys.stderr)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Store, fetch and browse files in local or S3-compatible blob storage"
    )
    parser.add_argument(
        "--config", default=DEFAULT_CONFIG_PATH, help=f"Config file (default: {DEFAULT_CONFIG_PATH})"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Log storage operations")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--provider", "-p", help="Provider to use (default: first enabled)")
    common.add_argument(
        "--namespace", "-n", help="Namespace to use (default: uploads namespace of the deploy context)"
    )

    subparsers = parser.add_subparsers(dest="command", required=True, help="Command to run")

    put_parser = subparsers.add_parser("put", parents=[common], help="Store a file under a key")
    put_parser.add_argument("key", help="Key to store under")
    put_parser.add_argument("path", help="Local file to store")
    put_parser.add_argument("--type", "-t", help="MIME type (default: guessed from file name)")

    upload_parser = subparsers.add_parser(
        "upload", parents=[common], help="Store a file under a generated upload key"
    )
    upload_parser.add_argument("field", help="Form field name used as key prefix")
    upload_parser.add_argument("path", help="Local file to upload")

    get_parser = subparsers.add_parser("get", parents=[common], help="Fetch a file")
    get_parser.add_argument("key", help="Key to fetch")
    get_parser.add_argument("--output", "-o", help="Write content here instead of stdout")

    has_parser = subparsers.add_parser("has", parents=[common], help="Check whether a key exists")
    has_parser.add_argument("key", help="Key to check")

    rm_parser = subparsers.add_parser("rm", parents=[common], help="Remove a key")
    rm_parser.add_argument("key", help="Key to remove")

    ls_parser = subparsers.add_parser("ls", parents=[common], help="List keys")
    ls_parser.add_argument("--prefix", help="Only keys starting with this prefix")
    ls_parser.add_argument("--limit", "-l", type=int, help="Page size (default: from config)")
    ls_parser.add_argument("--cursor", help="Cursor returned by a previous page")
    ls_parser.add_argument(
        "--metadata", "-m", action="store_true", help="Show name, type, size and modification time"
    )
    ls_parser.add_argument("--all", "-a", action="store_true", help="Follow cursors to the end")

    return parser


COMMANDS = {
    "put": cmd_put,
    "upload": cmd_upload,
    "get": cmd_get,
    "has": cmd_has,
    "rm": cmd_rm,
    "ls": cmd_ls,
}


def main(argv=None):
    """Main entry point."""
    args = build_parser().parse_args(argv)

    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
        )

    # Load configuration
    try:
        config = Config.from_file(args.config)
        config.validate()
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    # Execute command
    try:
        COMMANDS[args.command](args, config)
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        sys.exit(1)
    except (StorageError, ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()

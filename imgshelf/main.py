# main.py
import argparse
import json
import logging
import sys
from pathlib import Path

from . import actions
from .config import get_settings
from .exceptions import StorageError
from .mime import mime_type_for
from .storage.dto import UploadedFile
from .storage.local import LocalStorageClient


def setup_logging():
    """Configures logging to console and, if LOG_FILE is set, to a file."""
    settings = get_settings()
    log_level_name = settings.LOG_LEVEL.upper()

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level_name)

    # Clear any existing handlers to prevent duplicate logs on re-runs or implicit configs
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    # Console output goes to stderr so command output on stdout stays parseable
    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    root_logger.addHandler(stream_handler)

    if settings.LOG_FILE:
        try:
            file_handler = logging.FileHandler(settings.LOG_FILE)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
        except IOError as e:
            root_logger.error(f"Failed to set up file logging to {settings.LOG_FILE}: {e}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Browse and manage the image library under the storage root."
    )
    parser.add_argument(
        "--data-path", help="Storage root to use instead of DATA_PATH from the settings."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    ls = subparsers.add_parser("ls", help="List a directory.")
    ls.add_argument("path", nargs="?", default="")

    tree = subparsers.add_parser("tree", help="List a directory and everything below it.")
    tree.add_argument("path", nargs="?", default="")

    mkdir = subparsers.add_parser("mkdir", help="Create a folder.")
    mkdir.add_argument("parent")
    mkdir.add_argument("name")

    rename = subparsers.add_parser("rename", help="Rename a file or folder.")
    rename.add_argument("path")
    rename.add_argument("new_name")

    rm = subparsers.add_parser("rm", help="Delete a file or folder.")
    rm.add_argument("path")

    mv = subparsers.add_parser("mv", help="Move a file or folder into another folder.")
    mv.add_argument("path")
    mv.add_argument("target")

    upload = subparsers.add_parser("upload", help="Upload local files into a folder.")
    upload.add_argument("target")
    upload.add_argument("files", nargs="+", type=Path)

    cat = subparsers.add_parser("cat", help="Write a file's bytes to stdout.")
    cat.add_argument("path")

    return parser


def _print_model(model):
    print(json.dumps(model.model_dump(mode="json", by_alias=True), indent=2))


def run(args) -> int:
    """Executes one parsed command and returns the process exit code."""
    settings = get_settings()
    root_dir = Path(args.data_path).expanduser() if args.data_path else None
    storage_client = LocalStorageClient.from_settings(settings, root_dir=root_dir)

    if args.command == "ls":
        _print_model(actions.get_directory_contents(args.path, storage_client))
        return 0

    if args.command == "tree":
        try:
            _print_model(storage_client.list_directory_recursive(args.path))
        except StorageError as e:
            logging.error(f"Could not list '{args.path}': {e}")
            return 1
        return 0

    if args.command == "cat":
        try:
            served = actions.get_file(args.path, storage_client)
        except StorageError as e:
            logging.error(f"Could not read '{args.path}': {e}")
            return 1
        sys.stdout.buffer.write(served.content)
        sys.stdout.buffer.flush()
        return 0

    if args.command == "mkdir":
        result = actions.create_folder(args.parent, args.name, storage_client)
    elif args.command == "rename":
        result = actions.rename_item(args.path, args.new_name, storage_client)
    elif args.command == "rm":
        result = actions.delete_item(args.path, storage_client)
    elif args.command == "mv":
        result = actions.move_item(args.path, args.target, storage_client)
    elif args.command == "upload":
        uploads = [
            UploadedFile(
                filename=path.name,
                content=path.read_bytes(),
                content_type=mime_type_for(path.name),
            )
            for path in args.files
        ]
        result = actions.upload_files(args.target, uploads, storage_client)
    else:
        raise ValueError(f"Unknown command: {args.command}")

    _print_model(result)
    return 0 if result.success else 1


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging()

    try:
        exit_code = run(args)
    except OSError as e:
        logging.critical(f"An unexpected error occurred: {e}", exc_info=True)
        exit_code = 2
    sys.exit(exit_code)


if __name__ == "__main__":
    main()

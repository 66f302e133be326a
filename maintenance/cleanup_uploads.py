"""
Remove uploaded images that no product references any more.

Lists the uploads directory, collects every filename referenced from a
product's ``image`` array in MongoDB, and offers to delete the difference
after a y/N confirmation. There are no flags; the database and directory come
from ``MONGO_URI`` and ``UPLOADS_DIR`` (a ``.env`` file is honoured).

Run with:
    python -m maintenance.cleanup_uploads
"""

import asyncio
import logging
import re
import sys
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterable, Optional

from dotenv import load_dotenv
from motor.motor_asyncio import AsyncIOMotorClient

from shop.config import Settings, get_settings

logger = logging.getLogger("cleanup_uploads")


UPLOAD_URL_PATTERN = re.compile(r"/uploads/([^/]+)$")
CONFIRM_PATTERN = re.compile(r"^y(es)?$", re.IGNORECASE)
DEFAULT_DATABASE = "boutique"


# =============================================================================
# Pure helpers
# =============================================================================

def list_upload_files(uploads_dir: Path) -> list[str]:
    """Names of the files in the uploads directory (subdirectories ignored)."""
    return sorted(entry.name for entry in Path(uploads_dir).iterdir() if entry.is_file())


def referenced_filename(image_url: str) -> str:
    """``/uploads/<name>`` yields ``<name>``; anything else its basename."""
    match = UPLOAD_URL_PATTERN.search(image_url)
    if match:
        return match.group(1)
    return image_url.rstrip("/").rsplit("/", 1)[-1]


def collect_referenced_files(products: Iterable[dict[str, Any]]) -> set[str]:
    referenced = set()
    for product in products:
        images = product.get("image")
        if not isinstance(images, list):
            continue
        for image_url in images:
            if isinstance(image_url, str) and image_url:
                referenced.add(referenced_filename(image_url))
    return referenced


def find_unused(all_files: Iterable[str], referenced: set[str]) -> list[str]:
    return [name for name in all_files if name not in referenced]


def confirm(answer: str) -> bool:
    return bool(CONFIRM_PATTERN.match(answer.strip()))


def prompt_delete(unused: list[str], input_fn: Callable[[str], str] = input) -> bool:
    """List the unused files and ask for confirmation. Nothing to delete is a no."""
    if not unused:
        print("No unused files found.")
        return False
    print("Unused files:")
    for name in unused:
        print(f"  {name}")
    return confirm(input_fn("Delete these files? (y/N): "))


def delete_files(uploads_dir: Path, files: Iterable[str]) -> list[str]:
    """
    Delete files from the uploads directory.

    A file that cannot be removed is logged and skipped; the rest of the batch
    still goes through.

    Returns:
        Names of the files actually deleted
    """
    deleted = []
    for name in files:
        try:
            (Path(uploads_dir) / name).unlink()
        except OSError as e:
            logger.error(f"Failed to delete {name}: {e}")
            continue
        print(f"Deleted: {name}")
        deleted.append(name)
    return deleted


# =============================================================================
# Database
# =============================================================================

async def fetch_product_images(mongo_uri: str) -> list[dict[str, Any]]:
    """Fetch the ``image`` field of every product document."""
    client = AsyncIOMotorClient(mongo_uri)
    try:
        db = client.get_default_database(default=DEFAULT_DATABASE)
        cursor = db.get_collection("products").find({}, {"image": 1})
        return await cursor.to_list(length=None)
    finally:
        client.close()


# =============================================================================
# Entry point
# =============================================================================

def run(
    settings: Settings,
    fetch: Optional[Callable[[str], Awaitable[list[dict[str, Any]]]]] = None,
    input_fn: Optional[Callable[[str], str]] = None,
) -> list[str]:
    """
    Report unused uploads and delete them once confirmed.

    Args:
        settings: Supplies ``uploads_dir`` and ``mongo_uri``
        fetch: Coroutine function returning product documents (MongoDB by default)
        input_fn: Prompt used for the confirmation (``input`` by default)

    Returns:
        Names of the deleted files (empty when declined or nothing was unused)
    """
    fetch = fetch or fetch_product_images
    input_fn = input_fn or input

    all_files = list_upload_files(settings.uploads_dir)
    products = asyncio.run(fetch(settings.mongo_uri))
    referenced = collect_referenced_files(products)
    unused = find_unused(all_files, referenced)

    print(f"\nTotal files in uploads: {len(all_files)}")
    print(f"Referenced by products: {len(referenced)}")
    print(f"Unused files: {len(unused)}")

    if not prompt_delete(unused, input_fn):
        if unused:
            print("No files deleted.")
        return []
    deleted = delete_files(settings.uploads_dir, unused)
    logger.info(f"Deleted {len(deleted)} of {len(unused)} unused uploads")
    return deleted


def main(settings: Optional[Settings] = None) -> int:
    load_dotenv()
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(name)-24s | %(levelname)-5s | %(message)s",
        datefmt="%H:%M:%S",
    )
    try:
        run(settings or get_settings())
    except Exception as e:
        logger.exception(f"Upload cleanup failed: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

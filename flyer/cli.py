"""Command-line interface for appending products and saving flyers."""

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional

__all__ = ["main", "parse_args"]

from flyer.config import HIERARCHY_PATH, LOCAL_STORAGE_ROOT, STORAGE_BACKEND
from flyer.errors import FlyerError, ValidationError
from flyer.hierarchy import load_template
from flyer.logging_config import setup_logging
from flyer.merge import rebuild_document
from flyer.models import ProductRecord
from flyer.persistence import (
    PersistenceCoordinator,
    load_json,
    parse_document,
    serialize_document,
)
from flyer.storage import LocalStorage, StorageBackend, create_storage


def _read_json(path: str) -> Any:
    """Read a JSON file (``-`` reads stdin)."""
    if path == "-":
        return load_json(sys.stdin.buffer.read(), path="<stdin>")
    try:
        raw = Path(path).read_bytes()
    except OSError as e:
        raise ValidationError(f"Cannot read {path}: {e}", path=path) from e
    return load_json(raw, path=path)


def _read_product(path: str) -> ProductRecord:
    data = _read_json(path)
    if not isinstance(data, dict):
        raise ValidationError(f"{path} must contain a single product object", path=path)
    return ProductRecord.from_dict(data)


def _storage(args: argparse.Namespace) -> StorageBackend:
    if args.storage == "local":
        return LocalStorage(args.local_root)
    return create_storage(args.storage)


def cmd_append(args: argparse.Namespace) -> None:
    coordinator = PersistenceCoordinator(_storage(args))
    result = coordinator.append_product(args.path, _read_product(args.product))
    print(f"{result.outcome.value}: {result.path} ({result.total} products)")


def cmd_append_master(args: argparse.Namespace) -> None:
    coordinator = PersistenceCoordinator(_storage(args))
    result = coordinator.append_master_product(args.country, _read_product(args.product))
    print(f"{result.outcome.value}: {result.path} ({result.total} products)")


def cmd_rebuild(args: argparse.Namespace) -> None:
    data = _read_json(args.products)
    if not isinstance(data, list):
        raise ValidationError(f"{args.products} must contain a product array", path=args.products)
    products = [ProductRecord.from_dict(item) for item in data]

    document = rebuild_document(load_template(args.template), [(p.hierarchy, p) for p in products])
    text = serialize_document(document)
    if args.out:
        Path(args.out).write_text(text, encoding="utf-8")
        print(f"Wrote {document.product_count()} products to {args.out}")
    else:
        print(text)


def cmd_save(args: argparse.Namespace) -> None:
    document = parse_document(Path(args.document).read_bytes(), path=args.document)
    coordinator = PersistenceCoordinator(_storage(args))
    result = coordinator.save_document(
        document,
        country=args.country,
        shop=args.shop,
        date_from=args.date_from,
        date_to=args.date_to,
    )
    print(f"Saved to {result.path}")


def cmd_check(args: argparse.Namespace) -> None:
    document = parse_document(Path(args.document).read_bytes(), path=args.document)

    print(f"\n{'='*50}")
    print(f"Document: {args.document}")
    print(f"{'='*50}")
    print(f"\nTotal products: {document.product_count()}")
    print("\nProducts by category:")
    for category in document.categories:
        count = sum(len(p.products) for s in category.subcategories for p in s.placements)
        print(f"  {category.name}: {count}")
    print()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Flyer builder: append products and save flyer JSON to storage",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Append a product to a shop flyer (skipped if already there)
  python -m flyer.cli append sk/billa.json product.json

  # Append to the Slovak master catalog, using the local public/data folder
  python -m flyer.cli --storage local append-master sk product.json

  # Build a flyer from a list of products and the hierarchy template
  python -m flyer.cli rebuild products.json --out letak.json

  # Save a flyer as a new file (never overwrites)
  python -m flyer.cli save letak.json --country sk --shop billa --date-from 05.03.2026 --date-to 11.03.2026

  # Show product counts of a flyer file
  python -m flyer.cli check letak.json
        """,
    )
    parser.add_argument(
        "--storage",
        choices=["supabase", "local"],
        default=STORAGE_BACKEND,
        help=f"Storage backend (default: {STORAGE_BACKEND})",
    )
    parser.add_argument(
        "--local-root",
        default=LOCAL_STORAGE_ROOT,
        help=f"Root folder for --storage local (default: {LOCAL_STORAGE_ROOT})",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log debug messages to the console",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("append", help="Append one product to a stored flyer")
    p.add_argument("path", help="Object path, e.g. sk/billa.json")
    p.add_argument("product", help="Product JSON file ('-' for stdin)")
    p.set_defaults(func=cmd_append)

    p = sub.add_parser("append-master", help="Append one product to a country master catalog")
    p.add_argument("country", help="sk, cz or pl")
    p.add_argument("product", help="Product JSON file ('-' for stdin)")
    p.set_defaults(func=cmd_append_master)

    p = sub.add_parser("rebuild", help="Fill the hierarchy template with products")
    p.add_argument("products", help="JSON array of products ('-' for stdin)")
    p.add_argument("--template", default=HIERARCHY_PATH, help="Hierarchy template JSON")
    p.add_argument("--out", help="Write the document here instead of stdout")
    p.set_defaults(func=cmd_rebuild)

    p = sub.add_parser("save", help="Save a flyer document as a new file")
    p.add_argument("document", help="Flyer JSON file")
    p.add_argument("--country", required=True, help="Country folder, e.g. sk")
    p.add_argument("--shop", default="", help="Shop name (default: nezaradene)")
    p.add_argument("--date-from", help="Sale start, DD.MM.YYYY (default: today)")
    p.add_argument("--date-to", help="Sale end, DD.MM.YYYY (default: today)")
    p.set_defaults(func=cmd_save)

    p = sub.add_parser("check", help="Parse a flyer file and print product counts")
    p.add_argument("document", help="Flyer JSON file")
    p.set_defaults(func=cmd_check)

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for CLI."""
    args = parse_args(argv)
    setup_logging(level=logging.DEBUG if args.verbose else logging.WARNING, log_to_file=False)

    try:
        args.func(args)
    except FlyerError as e:
        print(f"Error [{e.kind}]: {e.detail}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

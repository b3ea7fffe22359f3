"""
CLI script exercising a dynamic collection end to end.

Usage:
    python scripts/run_demo.py                      # Uses database path from config
    python scripts/run_demo.py --database demo.db
    python scripts/run_demo.py --collection books --reset
    python scripts/run_demo.py --config path/to/config.json
"""

import argparse
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from vecstore import (
    CollectionOptions,
    DistanceFunction,
    DynamicCollection,
    FieldDefinition,
    SchemaDefinition,
    StorageType,
    VecStoreError,
)
from vecstore.core import ConfigurationError, get_config_or_defaults
from vecstore.core.config_loader import reload_config

BOOKS = {
    "a": {"title": "Republic", "embedding": [0.1, 0.2, 0.3]},
    "b": {"title": "Meditations", "embedding": [0.9, 0.1, 0.0]},
    "c": {"title": "Ethics", "embedding": [0.2, 0.2, 0.2]},
}


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Create a small vector collection, write to it and search it"
    )

    parser.add_argument(
        "--database",
        type=str,
        help="SQLite database file (defaults to paths.database_path)"
    )

    parser.add_argument(
        "--collection",
        type=str,
        default="books",
        help="Collection name"
    )

    parser.add_argument(
        "--reset",
        action="store_true",
        help="Drop the collection before writing"
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to custom config.json file"
    )

    return parser.parse_args()


async def run(database: str, collection_name: str, reset: bool) -> None:
    definition = SchemaDefinition([
        FieldDefinition("id", StorageType.TEXT, is_key=True),
        FieldDefinition("title", StorageType.TEXT),
        FieldDefinition.vector("embedding", 3, DistanceFunction.COSINE),
    ])

    with DynamicCollection.from_connection_string(
        database, collection_name, CollectionOptions(definition=definition)
    ) as collection:
        if reset:
            await collection.ensure_deleted()
        await collection.ensure_exists()

        await collection.upsert_batch(BOOKS.items())
        print(f"Stored {len(BOOKS)} records in '{collection_name}'")

        record = await collection.get("a")
        print(f"get('a') -> {record}")

        print("Nearest to [0.1, 0.2, 0.31]:")
        for result in await collection.search([0.1, 0.2, 0.31], top_k=3):
            print(f"  {result.record['id']:<4} {result.record['title']:<12} score={result.score:.4f}")


def main():
    """Main entry point for the demo CLI."""
    args = parse_args()

    if args.config:
        config_path = Path(args.config)
        if not config_path.exists():
            print(f"Error: Config file not found: {config_path}")
            sys.exit(1)
        try:
            reload_config(config_path)
        except ConfigurationError as e:
            print(f"Configuration error: {e.message}")
            sys.exit(1)

    database = args.database or str(get_config_or_defaults().paths.database_path)

    try:
        asyncio.run(run(database, args.collection, args.reset))
    except VecStoreError as e:
        print(f"Error: {e.message}")
        sys.exit(1)


if __name__ == "__main__":
    main()

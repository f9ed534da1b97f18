"""CLI to validate a curriculum file and print each language's study order.

Usage:
    python -m curation.cli.check_curriculum --file curriculum/nodes.json
    python -m curation.cli.check_curriculum --file nodes.json --language ES
    python -m curation.cli.check_curriculum --file nodes.json --import-into data/store.json

The file holds a JSON list of curriculum nodes. Exits 1 if any node is
malformed or a language's graph is not a DAG of unique concept ids.
"""

import argparse
import logging
import sys
from typing import Dict, List

from pydantic import ValidationError

from curation.curriculum.graph import CurriculumGraphService, topological_sort
from curation.exceptions import CurriculumGraphError
from curation.models import CurriculumNode
from curation.storage.memory import InMemoryStore
from curation.utils.file_io import read_json
from curation.utils.logging_config import configure_logging

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Validate curriculum prerequisite graphs")
    parser.add_argument("--file", required=True, help="JSON list of curriculum nodes")
    parser.add_argument("--language", help="Only check this language")
    parser.add_argument("--import-into", help="Store snapshot to import the nodes into when valid")
    parser.add_argument("--log-level", default="WARNING")
    return parser.parse_args(argv)


def load_nodes(file_path: str) -> List[CurriculumNode]:
    raw = read_json(file_path)
    if not isinstance(raw, list):
        raise ValueError(f"{file_path} must contain a JSON list of nodes")
    return [CurriculumNode.model_validate(entry) for entry in raw]


def main(argv=None) -> int:
    args = parse_args(argv)
    configure_logging(level=args.log_level, json_format=False)

    try:
        nodes = load_nodes(args.file)
    except (ValidationError, ValueError) as e:
        print(f"Invalid curriculum file: {e}", file=sys.stderr)
        return 1

    by_language: Dict[str, List[CurriculumNode]] = {}
    for node in nodes:
        if args.language and node.language != args.language:
            continue
        by_language.setdefault(node.language, []).append(node)

    ok = True
    for language, language_nodes in sorted(by_language.items()):
        language_nodes.sort(key=lambda n: (n.priority_order, n.concept_id))
        try:
            order = topological_sort(language_nodes, language)
        except CurriculumGraphError as e:
            print(f"{language}: {e}", file=sys.stderr)
            ok = False
            continue
        print(f"{language} ({len(order)} concepts): {' -> '.join(order)}")

    if not ok:
        return 1

    if args.import_into:
        store = InMemoryStore.load(args.import_into)
        imported = CurriculumGraphService(store).save_nodes(
            [n for group in by_language.values() for n in group]
        )
        store.save(args.import_into)
        print(f"Imported {imported} nodes into {args.import_into}")

    return 0


if __name__ == "__main__":
    sys.exit(main())

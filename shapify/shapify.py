"""

Command line utility to infer Python type declarations from JSON samples or JSON Schema documents.

"""

import argparse
import json
import logging
import sys
from typing import Any, List, Optional

from shapify import _version
from shapify.jsoninfer import infer_from_samples
from shapify.jsonsinfer import infer_from_schema, infer_from_schema_set
from shapify.optimizer import Optimizer
from shapify.shapetopython import ShapeToPython

MODES = ['json', 'jsonschema', 'jsonschema-set']


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(description='Infer Python type declarations from JSON samples or JSON Schema documents.')
    parser.add_argument('--version', action='store_true', help='Print the version of shapify.')
    parser.add_argument('--input', type=str, help='Input file. Reads stdin when omitted.')
    parser.add_argument('--out', type=str, help='Output file. Writes to stdout when omitted.')
    parser.add_argument('--mode', type=str, choices=MODES, default='json',
                        help='json: the input holds JSON samples (a top-level array is a list of samples); '
                             'jsonschema: the input is one JSON Schema document; '
                             'jsonschema-set: the input is an object mapping schema names to schema texts.')
    parser.add_argument('--root-name', type=str, default='Root', help='Name of the root type.')
    parser.add_argument('--kind', type=str, choices=['typeddict', 'dataclass'], default='typeddict', help='Kind of Python class to generate.')
    parser.add_argument('--merge-similar', action='store_true', help='Merge structurally identical records.')
    parser.add_argument('--merge-by-name', action='store_true', help='Merge records that share a name hint.')
    parser.add_argument('--merge-unions', action='store_true', help='Merge unions with the same members.')
    parser.add_argument('--fold-records', action='store_true', help='Fold differently shaped objects at the same position into one record with optional fields.')
    parser.add_argument('--no-union-alias', action='store_true', help='Always write unions inline instead of as named aliases.')
    parser.add_argument('--verbose', action='store_true', help='Enable debug logging.')
    return parser


def load_samples(data: Any) -> List[Any]:
    """A top-level array is a list of samples, anything else a single sample."""
    if isinstance(data, list):
        return data
    return [data]


def run(args: argparse.Namespace, text: str) -> str:
    """Infers, optimizes and renders the input text according to `args`."""
    if args.mode == 'json':
        schema = infer_from_samples(load_samples(json.loads(text)), args.root_name, fold_records=args.fold_records)
    elif args.mode == 'jsonschema':
        schema = infer_from_schema(json.loads(text), args.root_name)
    else:
        documents = json.loads(text)
        if not isinstance(documents, dict):
            raise ValueError("Expected an object mapping schema names to schema texts")
        # schema texts may also be given as already parsed objects
        documents = {name: value if isinstance(value, str) else json.dumps(value) for name, value in documents.items()}
        schema = infer_from_schema_set(documents, args.root_name)

    Optimizer(
        merge_similar=args.merge_similar,
        merge_by_name=args.merge_by_name,
        merge_unions=args.merge_unions,
    ).optimize(schema)
    target = ShapeToPython(kind=args.kind, alias_unions=not args.no_union_alias, root_name=args.root_name)
    return target.generate(schema).join()


def main(argv: Optional[List[str]] = None):
    """Main function for the command line utility."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f'shapify {_version.version}')
        return

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format='%(levelname)s %(name)s: %(message)s')
    try:
        if args.input:
            with open(args.input, 'r', encoding='utf-8') as f:
                text = f.read()
        else:
            text = sys.stdin.read()
        output = run(args, text)
        if args.out:
            with open(args.out, 'w', encoding='utf-8') as f:
                f.write(output)
        else:
            sys.stdout.write(output)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()

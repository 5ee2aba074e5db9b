"""Write the launcher API's OpenAPI schema to a JSON file.

Usage:
    python -m scripts.export_openapi [output_path] [--check]

Defaults to docs/openapi.json.  With --check nothing is written; the exit
status is 1 when the file on disk differs from the current schema.
"""

import argparse
import json
import sys
from pathlib import Path


def render_schema() -> str:
    from copilot_launcher.launcher_api import app

    return json.dumps(app.openapi(), indent=2) + "\n"


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("output", nargs="?", default="docs/openapi.json")
    parser.add_argument("--check", action="store_true", help="Fail if the file is out of date")
    args = parser.parse_args(argv)

    output = Path(args.output)
    rendered = render_schema()
    if args.check:
        current = output.read_text(encoding="utf-8") if output.exists() else ""
        if current != rendered:
            print(f"{output} is out of date; run python -m scripts.export_openapi")
            return 1
        print(f"{output} is up to date")
        return 0

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(rendered, encoding="utf-8")
    print(f"Exported OpenAPI schema to {output} ({output.stat().st_size:,} bytes)")
    return 0


if __name__ == "__main__":
    sys.exit(main())

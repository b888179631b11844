from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path
import sys

from tenantforge.core.logging import configure_logging
from tenantforge.domain.components import Component
from tenantforge.providers.store.factory import get_registry_store


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Load a JSON component catalog into the registry")
    parser.add_argument("catalog", type=Path, help="JSON file holding a list of component entries")
    return parser


def load_catalog(path: Path) -> list[Component]:
    payload = json.loads(path.read_text(encoding="utf-8"))
    entries = payload.get("components", []) if isinstance(payload, dict) else payload
    return [Component.from_mapping(entry) for entry in entries]


async def _seed(args: argparse.Namespace) -> int:
    store = get_registry_store()
    components = load_catalog(args.catalog)
    for component in components:
        await store.upsert_component(component)
        print(f"  upserted {component.component_name} ({component.component_type})")
    print(f"Seeded {len(components)} components")
    return 0


def main() -> int:
    configure_logging()
    parser = _build_parser()
    args = parser.parse_args()
    try:
        return asyncio.run(_seed(args))
    except Exception as exc:  # noqa: BLE001 - surface seeding failures clearly
        print(f"seed_components failed: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())

from __future__ import annotations

import argparse
import asyncio
import json
import sys

from tenantforge.core.logging import configure_logging
from tenantforge.domain.components import ClientConfig
from tenantforge.providers.store.factory import get_registry_store
from tenantforge.services.assembly.engine import AssemblyRequest, assemble_deployment_plan


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Assemble a deployment plan for a client")
    parser.add_argument("--client-id", required=True)
    parser.add_argument("--vertical", required=True)
    parser.add_argument("--plan", required=True)
    parser.add_argument("--addon", action="append", default=[], help="Requested addon; repeatable")
    parser.add_argument("--legacy-system", default=None)
    parser.add_argument("--branches", type=int, default=None)
    parser.add_argument("--client-name", default=None)
    parser.add_argument(
        "--override",
        action="append",
        default=[],
        help="Feature override as name=true|false; repeatable",
    )
    parser.add_argument("--proposal-id", default=None)
    parser.add_argument("--subscription-id", default=None)
    parser.add_argument("--persist", action="store_true", help="Write the deployment log and feature flags")
    return parser


def _parse_overrides(values: list[str]) -> dict[str, bool]:
    overrides: dict[str, bool] = {}
    for raw in values:
        name, _, flag = raw.partition("=")
        if not name or flag.lower() not in {"true", "false"}:
            raise ValueError(f"Invalid override '{raw}', expected name=true|false")
        overrides[name] = flag.lower() == "true"
    return overrides


async def _assemble(args: argparse.Namespace) -> int:
    config = ClientConfig(
        client_id=args.client_id,
        vertical=args.vertical,
        plan=args.plan,
        addons=frozenset(args.addon),
        legacy_system=args.legacy_system,
        feature_overrides=_parse_overrides(args.override),
        branches_count=args.branches,
        client_name=args.client_name,
    )
    result = await assemble_deployment_plan(
        get_registry_store(),
        AssemblyRequest(
            config=config,
            persist=args.persist,
            proposal_id=args.proposal_id,
            subscription_id=args.subscription_id,
        ),
    )
    print(json.dumps(result.to_dict(), indent=2, default=str))
    return 0


def main() -> int:
    configure_logging()
    parser = _build_parser()
    args = parser.parse_args()
    try:
        return asyncio.run(_assemble(args))
    except Exception as exc:  # noqa: BLE001 - surface assembly failures clearly
        print(f"assemble_plan failed: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())

from __future__ import annotations

import argparse
import asyncio
import json
import sys

from tenantforge.core.logging import configure_logging
from tenantforge.providers.identity.factory import get_identity_provider
from tenantforge.providers.store.factory import get_registry_store
from tenantforge.services.provisioning.locks import get_provisioning_lock
from tenantforge.services.provisioning.orchestrator import ProvisionParams, provision_tenant


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Provision a tenant for an existing paying client")
    parser.add_argument("--client-id", required=True, help="Client identifier created by billing")
    parser.add_argument("--email", required=True, help="Customer email; reused identities are matched case-insensitively")
    parser.add_argument("--name", default=None, help="Customer or business name")
    parser.add_argument("--phone", default=None, help="Customer phone number")
    parser.add_argument("--vertical", required=True, help="Vertical: dental|restaurant")
    parser.add_argument("--plan", required=True, help="Plan: starter|essentials|growth|scale")
    parser.add_argument("--branches", type=int, default=1, help="Number of branches purchased")
    parser.add_argument("--subscription-id", default=None, help="Billing subscription identifier")
    return parser


async def _provision(args: argparse.Namespace) -> int:
    result = await provision_tenant(
        ProvisionParams(
            client_id=args.client_id,
            customer_email=args.email,
            customer_name=args.name,
            customer_phone=args.phone,
            vertical=args.vertical,
            plan=args.plan,
            branches_count=args.branches,
            subscription_id=args.subscription_id,
        ),
        store=get_registry_store(),
        identity=get_identity_provider(),
        lock=get_provisioning_lock(),
    )
    print(json.dumps(result.to_dict(), indent=2, default=str))
    return 0 if result.success else 1


def main() -> int:
    configure_logging()
    parser = _build_parser()
    args = parser.parse_args()
    try:
        return asyncio.run(_provision(args))
    except Exception as exc:  # noqa: BLE001 - surface provisioning failures clearly
        print(f"provision_tenant failed: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())

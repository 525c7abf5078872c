"""Accepted proposal -> client inventory + implementation project."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from ..schemas.entities import ProposalStatus, new_id, utc_now_iso
from ..store.local_store import TENANT_FIELD, LocalStore
from ..sync.reconciler import RemoteReconciler

logger = logging.getLogger(__name__)

PROJECT_DEADLINE_DAYS = 30
INITIAL_PROJECT_STATUS = "Kitting"
INITIAL_PROJECT_PROGRESS = 25


def _product_lines(proposal: dict[str, Any]) -> list[str]:
    return [
        f"{item.get('quantity', 1)}x {item.get('name', '')}"
        for item in proposal.get("items") or []
        if item.get("category") == "Product"
    ]


def _item_names(proposal: dict[str, Any]) -> list[str]:
    return [item["name"] for item in proposal.get("items") or [] if item.get("name")]


def build_implementation_project(
    proposal: dict[str, Any],
    manager: str = "Operations",
    tenant: str | None = None,
) -> dict[str, Any]:
    """Project with kitting, one assembly task per product line and go-live."""
    products = _product_lines(proposal)
    tasks = [{"id": new_id("TK"), "title": "Kitting: pick and validate equipment", "status": "Pending"}]
    tasks += [{"id": new_id("TK"), "title": f"Assembly: {line}", "status": "Pending"} for line in products]
    tasks.append({"id": new_id("TK"), "title": "Go-Live: final setup and training", "status": "Pending"})

    now = datetime.now(timezone.utc)
    project = {
        "id": new_id("PROJ"),
        "title": f"Implementation: {proposal.get('title', proposal.get('id'))}",
        "clientName": proposal.get("companyName") or proposal.get("clientName") or "",
        "status": INITIAL_PROJECT_STATUS,
        "progress": INITIAL_PROJECT_PROGRESS,
        "startDate": now.isoformat(),
        "deadline": (now + timedelta(days=PROJECT_DEADLINE_DAYS)).isoformat(),
        "manager": manager,
        "description": "Project created from a signed proposal.",
        "tasks": tasks,
        "products": products,
        "proposalId": proposal["id"],
        "statusUpdatedAt": utc_now_iso(),
    }
    org = proposal.get(TENANT_FIELD) or tenant
    if org:
        project[TENANT_FIELD] = org
    return project


class ProposalConverter:
    """Turns accepted proposals into contracted products and a project."""

    def __init__(self, store: LocalStore, reconciler: RemoteReconciler):
        self.store = store
        self.reconciler = reconciler

    def _find_client(self, proposal: dict[str, Any]) -> dict[str, Any] | None:
        client_id = proposal.get("clientId")
        company = str(proposal.get("companyName") or "").strip().lower()
        for client in self.store.get("clients"):
            if client_id and client.get("id") == client_id:
                return client
            if company and str(client.get("name") or "").strip().lower() == company:
                return client
        return None

    def has_project(self, proposal_id: str) -> bool:
        return any(p.get("proposalId") == proposal_id for p in self.store.get("projects"))

    def convert(
        self,
        proposal: dict[str, Any],
        manager: str = "Operations",
        tenant: str | None = None,
    ) -> dict[str, Any] | None:
        """Convert one accepted proposal; returns the project or None when already converted."""
        if self.has_project(proposal["id"]):
            return None

        client = self._find_client(proposal)
        if client is not None:
            contracted = list(client.get("contractedProducts") or [])
            for name in _item_names(proposal):
                if name not in contracted:
                    contracted.append(name)
            updated = {**client, "contractedProducts": contracted}
            self.store.update("clients", updated)
            self.reconciler.push("clients", updated)
            logger.info("Inventory updated for client %s", client.get("name"))

        project = build_implementation_project(proposal, manager=manager, tenant=tenant)
        self.store.add("projects", project)
        self.reconciler.push("projects", project)
        logger.info("Created project %s from proposal %s", project["id"], proposal["id"])
        return project

    def sweep(self, tenant: str | None = None) -> list[dict[str, Any]]:
        """Convert every accepted proposal that has no project yet."""
        created = []
        for proposal in self.store.get("proposals"):
            if proposal.get("status") != ProposalStatus.ACCEPTED.value:
                continue
            project = self.convert(proposal, manager="Auto-Flow", tenant=tenant)
            if project is not None:
                created.append(project)
        return created

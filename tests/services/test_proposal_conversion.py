"""Tests for accepted-proposal conversion."""

from datetime import datetime

import pytest

from nexus_crm.services.conversion_svc import build_implementation_project

PROPOSAL = {
    "id": "PROP-1",
    "title": "Parking automation",
    "companyName": "Acme",
    "clientId": "C-1",
    "status": "Sent",
    "organizationId": "org-1",
    "items": [
        {"name": "Gate controller", "quantity": 2, "category": "Product"},
        {"name": "Ticket reader", "quantity": 1, "category": "Product"},
        {"name": "Monthly support", "quantity": 1, "category": "Service"},
    ],
}


class TestBuildProject:
    def test_tasks_and_products(self):
        project = build_implementation_project(PROPOSAL)

        titles = [t["title"] for t in project["tasks"]]
        assert titles[0].startswith("Kitting")
        assert titles[1:3] == ["Assembly: 2x Gate controller", "Assembly: 1x Ticket reader"]
        assert titles[-1].startswith("Go-Live")
        assert project["products"] == ["2x Gate controller", "1x Ticket reader"]
        assert project["proposalId"] == "PROP-1"
        assert project["organizationId"] == "org-1"
        assert project["clientName"] == "Acme"

    def test_deadline_thirty_days(self):
        project = build_implementation_project(PROPOSAL)
        start = datetime.fromisoformat(project["startDate"])
        deadline = datetime.fromisoformat(project["deadline"])
        assert (deadline - start).days == 30


class TestProposalConversion:
    """Tests for conversion through the data service."""

    @pytest.mark.asyncio
    async def test_accepting_creates_project_and_updates_inventory(self, app_context, actor):
        app_context.data.add(actor, "clients", {"id": "C-1", "name": "Acme", "contractedProducts": ["Gate controller"]})
        app_context.data.add(actor, "proposals", dict(PROPOSAL))

        app_context.data.update_proposal(actor, {**PROPOSAL, "status": "Accepted"})

        projects = app_context.store.get("projects")
        assert len(projects) == 1
        assert projects[0]["proposalId"] == "PROP-1"
        client = app_context.store.find("clients", "C-1")
        assert client["contractedProducts"] == ["Gate controller", "Ticket reader", "Monthly support"]
        assert any(n.title == "Proposal signed" for n in app_context.notifications.notifications)

    @pytest.mark.asyncio
    async def test_client_matched_by_company_name(self, app_context, actor):
        app_context.data.add(actor, "clients", {"id": "C-7", "name": "ACME"})
        proposal = {**PROPOSAL, "clientId": ""}
        app_context.data.add(actor, "proposals", proposal)

        app_context.data.update_proposal(actor, {**proposal, "status": "Accepted"})

        assert "Gate controller" in app_context.store.find("clients", "C-7")["contractedProducts"]

    @pytest.mark.asyncio
    async def test_re_saving_accepted_proposal_does_not_duplicate(self, app_context, actor):
        app_context.data.add(actor, "proposals", dict(PROPOSAL))
        app_context.data.update_proposal(actor, {**PROPOSAL, "status": "Accepted"})
        app_context.data.update_proposal(actor, {**PROPOSAL, "status": "Accepted", "title": "Renamed"})
        assert len(app_context.store.get("projects")) == 1

    @pytest.mark.asyncio
    async def test_tenant_kept_from_original(self, app_context, actor):
        app_context.data.add(actor, "proposals", dict(PROPOSAL))
        updated = {k: v for k, v in PROPOSAL.items() if k != "organizationId"}
        stored = app_context.data.update_proposal(actor, updated)
        assert stored["organizationId"] == "org-1"

    @pytest.mark.asyncio
    async def test_sweep_after_pull(self, app_context, fake_remote):
        fake_remote.tables["proposals"] = [
            {"id": "PROP-9", "title": "Signed remotely", "company_name": "Globex", "status": "Accepted", "items": []},
            {"id": "PROP-10", "title": "Draft", "company_name": "Initech", "status": "Draft", "items": []},
        ]

        await app_context.reconciler.pull_all()

        projects = app_context.store.get("projects")
        assert [p["proposalId"] for p in projects] == ["PROP-9"]

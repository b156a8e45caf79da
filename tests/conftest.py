"""Test fixtures for the Contract Wizard."""

from __future__ import annotations

import os

import pytest

PARTY_DETAILS = {
    "disclosing.legal_name": "Amani Holdings Ltd",
    "disclosing.email": "legal@amani.co.ke",
    "disclosing.address": "P.O. Box 100, Nairobi",
    "disclosing.id_number": "12345678",
    "disclosing.app_id": "APP-001",
    "receiving.legal_name": "Wanjiru Kamau",
    "receiving.email": "wanjiru@example.com",
    "receiving.address": "Kilimani, Nairobi",
}

MANDATORY_TERMS = {
    "terms.confidential_info_scope": "Financial statements and customer lists",
    "terms.purpose": "Evaluating a potential joint venture",
    "terms.permitted_use": "Internal evaluation only",
    "terms.effective_date": "2026-01-01",
    "terms.duration_months": 24,
    "terms.survival_years": 5,
    "terms.return_timeline_days": 14,
    "terms.governing_law": "Laws of Kenya",
    "terms.jurisdiction": "High Court of Kenya",
    "terms.dispute_resolution_method": "arbitration",
    "terms.arbitration_location": "Nairobi, Kenya",
}

# Mandatory clauses with no required fields are confirmed by hand.
MANUAL_CLAUSES = ("obligations_and_duties", "restrictions_and_prohibitions", "signatures_execution")


@pytest.fixture(autouse=True)
def _test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Set up test environment variables."""
    monkeypatch.setenv("ENVIRONMENT", "testing")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    for key in ("AI_ASSIST_URL", "PERSISTENCE_URL", "IDENTITY_URL", "POLICY_PATH"):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture()
def settings():
    """Create test settings."""
    os.environ.setdefault("ENVIRONMENT", "testing")
    from contract_wizard.config import Settings

    return Settings(
        environment="testing",
        log_level="DEBUG",
    )


@pytest.fixture()
def policy():
    """The built-in Kenyan NDA policy."""
    from contract_wizard.policy import default_policy

    return default_policy()


@pytest.fixture()
def store():
    from contract_wizard.persistence import InMemoryDraftStore

    return InMemoryDraftStore()


@pytest.fixture()
def directory():
    """Identity directory with one registered organisation."""
    from contract_wizard.identity import InMemoryIdentityDirectory
    from contract_wizard.models import IdType, PartyRecord, PartyType

    return InMemoryIdentityDirectory(
        [
            PartyRecord(
                app_id="APP-001",
                name="Amani Holdings Ltd",
                email="legal@amani.co.ke",
                phone="+254700000001",
                address="P.O. Box 100, Nairobi",
                id_type=IdType.COMPANY_REGISTRATION,
                id_number="CPR/2020/1234",
                party_type=PartyType.COMPANY,
            )
        ]
    )


@pytest.fixture()
def controller(policy, store, directory):
    """A fresh controller using in-process collaborators."""
    from contract_wizard.assist import PolicyAssistClient
    from contract_wizard.workflow.controller import WorkflowController

    return WorkflowController(
        policy=policy,
        store=store,
        assistant=PolicyAssistClient(policy),
        identity=directory,
    )


@pytest.fixture()
def app(settings):
    """Create a test FastAPI application."""
    from contract_wizard.api import create_app

    return create_app(settings)


@pytest.fixture()
def client(app):
    """Create an async test client."""
    from httpx import ASGITransport, AsyncClient

    transport = ASGITransport(app=app)
    return AsyncClient(transport=transport, base_url="http://test")


def fill_parties(controller) -> None:
    controller.edit_fields(PARTY_DETAILS)


def complete_mandatory(controller) -> None:
    controller.edit_fields(MANDATORY_TERMS)
    for key in MANUAL_CLAUSES:
        controller.mark_clause_complete(key)

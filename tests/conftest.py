"""Shared test fixtures for the Compliance Monitor test suite."""

from __future__ import annotations

from datetime import date, datetime, timezone

import pytest
from fastapi.testclient import TestClient

from compliance_monitor.app import create_app
from compliance_monitor.clock import FixedClock
from compliance_monitor.config import Settings, TokenGrant
from compliance_monitor.schemas.financials import (
    DafRecord,
    DonorRecord,
    FilingRecord,
    Grant,
    Organization,
    RiskScore,
)
from compliance_monitor.store import data_store

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)

OWNER_TOKEN = "owner-token"
ANALYST_TOKEN = "analyst-token"
CLIENT_TOKEN = "client-token"


def _test_settings(**overrides) -> Settings:
    """Return settings suitable for testing."""
    values = dict(
        environment="development",
        debug=True,
        log_format="console",
        rate_limit_default="1000/minute",
        report_rate_limit="1000/minute",
        allowed_origins="http://localhost:3000,http://localhost:5015",
        secret_key="test-secret",
        public_base_url="http://testserver",
        access_tokens={
            OWNER_TOKEN: TokenGrant(user_id="u-owner", role="owner"),
            ANALYST_TOKEN: TokenGrant(user_id="u-analyst", role="analyst"),
            CLIENT_TOKEN: TokenGrant(user_id="u-client", role="client", org_id="org-hope"),
        },
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings(tmp_path):
    """Test settings with report storage under a temporary directory."""
    return _test_settings(report_storage_dir=str(tmp_path / "reports"))


@pytest.fixture
def clock():
    """A clock frozen at 2025-06-15 12:00 UTC."""
    return FixedClock(NOW)


@pytest.fixture
def app(settings, clock):
    """Create a fresh FastAPI app for testing."""
    return create_app(settings, clock=clock)


@pytest.fixture
def client(app):
    """HTTP test client."""
    return TestClient(app)


@pytest.fixture(autouse=True)
def reset_store():
    """Reset the global data store before each test."""
    data_store.reset()
    yield
    data_store.reset()


@pytest.fixture
def owner_headers():
    return {"Authorization": f"Bearer {OWNER_TOKEN}"}


@pytest.fixture
def analyst_headers():
    return {"Authorization": f"Bearer {ANALYST_TOKEN}"}


@pytest.fixture
def client_headers():
    """Headers for a client-role user confined to org-hope."""
    return {"Authorization": f"Bearer {CLIENT_TOKEN}"}


@pytest.fixture
def sample_org():
    """Create a sample organization in the data store."""
    org = Organization(
        id="org-hope",
        name="Hope Foundation",
        ein="12-3456789",
        mission="Feeding families across the county.",
        website="https://hope.example.org",
    )
    data_store.add_organization(org)
    return org.id


@pytest.fixture
def other_org():
    """A second organization the client-role user may not access."""
    org = Organization(id="org-river", name="River Trust")
    data_store.add_organization(org)
    return org.id


@pytest.fixture
def sample_financials(sample_org):
    """History that trips every alert rule for the sample org.

    DAF ratio 40 -> 62 (+55%, high), top donor 850k of 1M (85%, high),
    last 990 filed 2023-01-01 (~29 months before NOW, medium).
    """
    data_store.add_daf_record(DafRecord(organization_id=sample_org, year=2023, daf_ratio=40.0))
    data_store.add_daf_record(DafRecord(organization_id=sample_org, year=2024, daf_ratio=62.0))
    data_store.add_donor(
        DonorRecord(
            organization_id=sample_org,
            name="Big Giver",
            total_contribution=850_000,
            contribution_year=2025,
        )
    )
    data_store.add_donor(
        DonorRecord(
            organization_id=sample_org,
            name="Small Giver",
            total_contribution=150_000,
            contribution_year=2025,
        )
    )
    data_store.add_filing(
        FilingRecord(organization_id=sample_org, filing_date=date(2023, 1, 1), tax_year=2021)
    )
    return sample_org


@pytest.fixture
def sample_grants(sample_org):
    """Two grants totalling $350,000 and a low risk score."""
    grants = [
        Grant(recipient_id=sample_org, donor_id="donor-a", amount=200_000, year=2024, confirmed=True),
        Grant(recipient_id=sample_org, donor_id="donor-b", amount=150_000, year=2025),
    ]
    for grant in grants:
        data_store.add_grant(grant)
    data_store.upsert_risk_score(
        RiskScore(org_id=sample_org, year=2025, score=35.0, dependency_ratio=0.4, transparency_index=75.0)
    )
    return grants


@pytest.fixture
def make_client(tmp_path, clock):
    """Build a client for an app with overridden settings or collaborators."""

    def _make(renderer=None, **overrides) -> TestClient:
        overrides.setdefault("report_storage_dir", str(tmp_path / "reports"))
        return TestClient(create_app(_test_settings(**overrides), clock=clock, renderer=renderer))

    return _make

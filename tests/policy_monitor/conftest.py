"""Fixtures for the policy monitor tests."""

import pytest

from policy_fakes import FEEDS_DIR
from src.policy_monitor.database import PolicyDatabase
from src.policy_monitor.gateway import PolicyGateway


@pytest.fixture
def policy_db(tmp_path):
    return PolicyDatabase(db_path=tmp_path / "policy_monitor.db")


@pytest.fixture
def gateway(policy_db):
    return PolicyGateway(policy_db)


@pytest.fixture
def rss_feed():
    return (FEEDS_DIR / "white_house_rss.xml").read_text(encoding="utf-8")


@pytest.fixture
def atom_feed():
    return (FEEDS_DIR / "digital_strategy_atom.xml").read_text(encoding="utf-8")

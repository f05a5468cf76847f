"""Shared fixtures for the blocks-world planner tests.

All tests use the real planner, deliberation layer and world model. Nothing
is mocked except where a test needs to force a failure path.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from dotenv import load_dotenv

# Load .env from project root, as the CLI entrypoint does
load_dotenv(Path(__file__).parent.parent / ".env", override=False)

from blocksworld.core.config import AppConfig, load_config
from blocksworld.core.models import AGENT_A, Move, MoveReason, Proposal
from blocksworld.deliberation.manager import DeliberationManager
from blocksworld.deliberation.negotiation import NegotiationProtocol


@pytest.fixture(autouse=True)
def _clear_env_overrides(monkeypatch):
    for name in (
        "BLOCKSWORLD_MAX_ITERATIONS",
        "BLOCKSWORLD_ENABLE_NEGOTIATION",
        "BLOCKSWORLD_RANDOM_SEED",
        "BLOCKSWORLD_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def config_dir() -> Path:
    return Path(__file__).parent.parent / "config"


@pytest.fixture
def app_config(config_dir: Path) -> AppConfig:
    return load_config(config_dir=config_dir)


# ---------------------------------------------------------------------------
# Deliberation fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def protocol() -> NegotiationProtocol:
    return NegotiationProtocol(seed=7)


@pytest.fixture
def manager(protocol: NegotiationProtocol) -> DeliberationManager:
    return DeliberationManager(protocol=protocol)


def make_proposal(agent_id: str, block: str, to: str, reason: MoveReason = MoveReason.STACK,
                  cycle: int = 1, order: int | None = None) -> Proposal:
    if order is None:
        order = 0 if agent_id == AGENT_A else 1
    return Proposal(agent_id=agent_id, move=Move(block, to, reason), cycle=cycle, order=order)


@pytest.fixture
def proposal_factory():
    return make_proposal


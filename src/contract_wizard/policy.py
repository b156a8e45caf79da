"""Clause policy: the jurisdiction-specific clause table.

A policy lists every clause the wizard tracks, which of them are mandatory,
the template text of each clause, the fields a clause needs before it counts
as complete, and the placeholder tokens used in the templates. Policies are
plain data so a jurisdiction can be swapped without code changes.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any

import structlog
from pydantic import BaseModel, Field, ValidationError

from contract_wizard.models import RiskLevel

logger = structlog.get_logger(__name__)


class ClauseDefinition(BaseModel):
    """Static description of one clause."""

    key: str
    label: str
    mandatory: bool
    template: str
    required_fields: list[str] = Field(default_factory=list)
    risk_level: RiskLevel = RiskLevel.LOW
    recommended: bool = False
    guidance: str = ""
    order: int = 0


class ClausePolicy(BaseModel):
    """A complete, swappable clause table for one jurisdiction."""

    name: str
    jurisdiction: str
    contract_type: str = "nda"
    duration_ceiling_months: int = Field(default=60, gt=0)
    return_timeline_range_days: tuple[int, int] = (7, 30)
    clauses: list[ClauseDefinition]
    # Maps ``[TOKEN]`` placeholders to workflow field paths.
    placeholders: dict[str, str] = Field(default_factory=dict)
    default_terms: dict[str, Any] = Field(default_factory=dict)

    def get(self, key: str) -> ClauseDefinition | None:
        for clause in self.clauses:
            if clause.key == key:
                return clause
        return None

    @property
    def mandatory_keys(self) -> list[str]:
        return [c.key for c in self.ordered() if c.mandatory]

    @property
    def optional_keys(self) -> list[str]:
        return [c.key for c in self.ordered() if not c.mandatory]

    def ordered(self) -> list[ClauseDefinition]:
        return sorted(self.clauses, key=lambda c: (not c.mandatory, c.order))

    def clauses_requiring(self, field: str) -> list[ClauseDefinition]:
        """Return the mandatory clauses whose required fields include *field*."""
        return [c for c in self.clauses if c.mandatory and field in c.required_fields]


def load_policy(path: str | Path) -> ClausePolicy:
    """Load a clause policy from a JSON file.

    Args:
        path: Location of a JSON document matching :class:`ClausePolicy`.

    Returns:
        The parsed policy.

    Raises:
        ValueError: If the file does not describe a valid policy.
    """
    source = Path(path)
    try:
        policy = ClausePolicy.model_validate_json(source.read_text(encoding="utf-8"))
    except ValidationError as exc:
        raise ValueError(f"Invalid clause policy in {source}: {exc}") from exc

    logger.info(
        "policy_loaded",
        path=str(source),
        policy=policy.name,
        mandatory=len(policy.mandatory_keys),
        optional=len(policy.optional_keys),
    )
    return policy


@lru_cache(maxsize=1)
def default_policy() -> ClausePolicy:
    """Return the built-in reference policy (Kenyan NDA)."""
    from contract_wizard.policies.kenya_nda import KENYA_NDA_POLICY

    return ClausePolicy.model_validate(KENYA_NDA_POLICY)


def resolve_policy(policy_path: str | None) -> ClausePolicy:
    """Return the policy at *policy_path*, or the reference policy."""
    if policy_path:
        return load_policy(policy_path)
    return default_policy()

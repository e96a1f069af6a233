"""Model definition: which ptypes exist and what their columns are.

A definition is the programmatic equivalent of the ``[policy_definition]`` and
``[role_definition]`` blocks of a model file::

    ModelDefinition(
        policy_definition={"p": "sub, obj, act"},
        role_definition={"g": "_, _", "g2": "_, _, _"},
    )

Token count fixes the arity of every rule stored under that ptype.
"""

from __future__ import annotations

from typing import Any, Iterator

from pydantic import BaseModel, Field, field_validator, model_validator

from .constants import Section


def _split_tokens(raw: Any) -> list[str]:
    if isinstance(raw, str):
        tokens = [t.strip() for t in raw.split(",")]
    elif isinstance(raw, (list, tuple)):
        tokens = [str(t).strip() for t in raw]
    else:
        raise ValueError(f"Tokens must be a comma separated string or a list, got {type(raw)}")
    if not tokens or any(not t for t in tokens):
        raise ValueError(f"Empty token in definition: {raw!r}")
    return tokens


class ModelDefinition(BaseModel):
    """Declared ptypes per section and their column tokens."""

    policy_definition: dict[str, list[str]] = Field(
        default_factory=lambda: {"p": ["sub", "obj", "act"]},
        description="ptype → tokens for the authorization section",
    )
    role_definition: dict[str, list[str]] = Field(
        default_factory=dict,
        description="ptype → tokens for the grouping section",
    )

    model_config = {"extra": "forbid"}

    @field_validator("policy_definition", "role_definition", mode="before")
    @classmethod
    def parse_tokens(cls, v: Any) -> dict[str, list[str]]:
        """Accept ``"sub, obj, act"`` strings as well as token lists."""
        if not isinstance(v, dict):
            raise ValueError(f"Definition must be a mapping of ptype to tokens, got {type(v)}")
        return {str(ptype).strip(): _split_tokens(tokens) for ptype, tokens in v.items()}

    @model_validator(mode="after")
    def check_ptypes(self) -> "ModelDefinition":
        for ptype in self.policy_definition:
            if not ptype.startswith(Section.POLICY):
                raise ValueError(f"Policy ptype must start with 'p': {ptype!r}")
        for ptype, tokens in self.role_definition.items():
            if not ptype.startswith(Section.GROUPING):
                raise ValueError(f"Role ptype must start with 'g': {ptype!r}")
            if len(tokens) < 2:
                raise ValueError(f"Role definition {ptype!r} needs at least 2 tokens, got {len(tokens)}")
        return self

    def sections(self) -> dict[str, dict[str, list[str]]]:
        return {
            Section.POLICY: self.policy_definition,
            Section.GROUPING: self.role_definition,
        }

    def iter_ptypes(self) -> Iterator[tuple[str, str, list[str]]]:
        """Yield ``(section, ptype, tokens)`` in declaration order."""
        for section, ptypes in self.sections().items():
            for ptype, tokens in ptypes.items():
                yield section, ptype, tokens


__all__ = ["ModelDefinition"]

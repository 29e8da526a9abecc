"""Retry policy documents and loading.

This module provides RetryPolicyDoc and PolicyRegistry for loading retry
options from YAML files validated against the bundled JSON schema.

Examples
--------
A policy file ``idempotent.yaml``::

    name: idempotent
    description: Retry reads aggressively
    max_attempts: 6
    wait:
      kind: full_jitter
      min_s: 0.5
      max_s: 10
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Final

import jsonschema
import yaml

from httpsling.retry import RetryOptions, exponential_backoff, full_jitter_backoff

if TYPE_CHECKING:
    from httpsling.types import BackoffStrategy

__all__ = ["PolicyRegistry", "RetryPolicyDoc", "load_policy"]

SCHEMA_PATH: Final = Path(__file__).with_name("policy.schema.json")

_BACKOFFS: Final[dict[str, BackoffStrategy]] = {
    "exponential": exponential_backoff,
    "full_jitter": full_jitter_backoff,
}


@dataclass(frozen=True)
class RetryPolicyDoc:
    """Retry policy configuration document.

    Attributes
    ----------
    name : str
        Policy name identifier.
    description : str | None
        Human-readable description of the policy.
    max_attempts : int
        Retries allowed after the first send.
    wait_kind : str
        Backoff strategy name ("exponential" or "full_jitter").
    wait_min_s : float
        Minimum wait bound in seconds.
    wait_max_s : float
        Maximum wait bound in seconds.
    """

    name: str
    description: str | None
    max_attempts: int
    wait_kind: str
    wait_min_s: float
    wait_max_s: float

    def to_options(self) -> RetryOptions:
        """Build the RetryOptions described by this document."""
        return RetryOptions(
            max_attempts=self.max_attempts,
            min_wait=self.wait_min_s,
            max_wait=self.wait_max_s,
            backoff=_BACKOFFS[self.wait_kind],
        )


def load_policy(path: Path, schema_path: Path | None = SCHEMA_PATH) -> RetryPolicyDoc:
    """Load retry policy from YAML file.

    Parameters
    ----------
    path : Path
        Path to policy YAML file.
    schema_path : Path | None, optional
        JSON schema used for validation; None skips validation. Defaults to the
        bundled ``policy.schema.json``.

    Returns
    -------
    RetryPolicyDoc
        Loaded policy document.

    Notes
    -----
    This function may propagate the following exceptions from dependencies:
    - ``FileNotFoundError``: If policy file does not exist (from ``path.read_text()``)
    - ``jsonschema.ValidationError``: If policy does not match schema (from ``jsonschema.validate()``),
      or if ``wait.min_s`` exceeds ``wait.max_s``
    """
    obj = yaml.safe_load(path.read_text(encoding="utf-8"))
    if schema_path is not None and schema_path.exists():
        jsonschema.validate(obj, json.loads(schema_path.read_text(encoding="utf-8")))
    wait = obj["wait"]
    if float(wait["min_s"]) > float(wait["max_s"]):
        msg = f"{path}: wait.min_s ({wait['min_s']}) must not exceed wait.max_s ({wait['max_s']})"
        raise jsonschema.ValidationError(msg, path=("wait",))
    return RetryPolicyDoc(
        name=obj["name"],
        description=obj.get("description"),
        max_attempts=int(obj["max_attempts"]),
        wait_kind=wait.get("kind", "exponential"),
        wait_min_s=float(wait["min_s"]),
        wait_max_s=float(wait["max_s"]),
    )


class PolicyRegistry:
    """Registry for loading retry policies from a directory.

    Parameters
    ----------
    root : Path
        Root directory containing policy YAML files.
    """

    def __init__(self, root: Path) -> None:
        self.root = root

    def get(self, name: str) -> RetryPolicyDoc:
        """Load policy by name (without the ``.yaml`` extension).

        Raises
        ------
        FileNotFoundError
            If policy file does not exist.
        """
        p = self.root / f"{name}.yaml"
        if not p.exists():
            raise FileNotFoundError(p)
        return load_policy(p)

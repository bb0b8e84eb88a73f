"""
Embedded contract artifacts.

Each ``<Contract>.json`` holds one record per network id (ABI, unlinked
binary, deployed address, event topic table, links, update timestamp). The
records are static data shipped with the package and validated against
``network_record.schema.json`` when loaded.
"""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any

import jsonschema
from jsonschema import FormatChecker

ARTIFACTS_DIR = Path(__file__).resolve().parent
SCHEMA_FILENAME = "network_record.schema.json"


class ArtifactValidationError(ValueError):
    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


@lru_cache(maxsize=1)
def _validator() -> jsonschema.Validator:
    with (ARTIFACTS_DIR / SCHEMA_FILENAME).open("r", encoding="utf-8") as f:
        schema = json.load(f)
    validator_cls = jsonschema.validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema, format_checker=FormatChecker())


def _format_error(error: jsonschema.ValidationError) -> str:
    location = "/".join(str(part) for part in error.path) or "<root>"
    return f"{location}: {error.message}"


def validate_artifact(artifact: dict[str, Any], source: str = "<artifact>") -> None:
    errors = sorted(_validator().iter_errors(artifact), key=lambda e: list(e.path))
    if errors:
        raise ArtifactValidationError(
            f"Artifact validation failed for {source}.",
            errors=[_format_error(err) for err in errors],
        )


def load_artifact_file(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        artifact = json.load(f)
    validate_artifact(artifact, source=str(path))
    return artifact


@lru_cache(maxsize=16)
def _load_cached(contract_name: str) -> str:
    path = ARTIFACTS_DIR / f"{contract_name}.json"
    if not path.exists():
        raise FileNotFoundError(f"Artifact not found: {path}")
    artifact = load_artifact_file(path)
    return json.dumps(artifact)


def load_artifact(contract_name: str) -> dict[str, Any]:
    """
    Load the embedded artifact for a contract.

    Args:
        contract_name: Contract name (e.g., "ComDAO", "SGBManager")

    Returns:
        A fresh copy of the artifact dict (callers may mutate it)

    Raises:
        FileNotFoundError: If no artifact is shipped for the contract
        ArtifactValidationError: If the artifact does not match the schema
    """
    return json.loads(_load_cached(contract_name))


def available_contracts() -> list[str]:
    return sorted(
        p.stem for p in ARTIFACTS_DIR.glob("*.json") if p.name != SCHEMA_FILENAME
    )

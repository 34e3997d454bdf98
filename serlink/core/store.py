"""Persistence of configured connections as a validated YAML document."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from serlink.core.errors import ConnectionStoreError
from serlink.core.model import ConnectionConfig

LOGGER = logging.getLogger(__name__)
CONFIG_ENV = "SERLINK_CONFIG"


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys and keeps yes/no/on/off as text."""


UniqueKeyLoader.yaml_implicit_resolvers = {
    key: list(value) for key, value in yaml.SafeLoader.yaml_implicit_resolvers.items()
}

for first_char, mappings in list(UniqueKeyLoader.yaml_implicit_resolvers.items()):
    UniqueKeyLoader.yaml_implicit_resolvers[first_char] = [
        (tag, regexp)
        for tag, regexp in mappings
        if tag != "tag:yaml.org,2002:bool"
    ]


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise ConnectionStoreError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


@dataclass(frozen=True)
class StoredConnection:
    name: str
    config: ConnectionConfig


def default_store_path() -> Path:
    override = os.environ.get(CONFIG_ENV)
    if override:
        return Path(override)
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "serlink/connections.yaml"


def _load_schema_validator() -> Any:
    schema_text = resources.files("serlink.schemas").joinpath("connection.schema.json").read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def _normalize_bool(value: Any, *, context: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    raise ConnectionStoreError(f"{context} must be boolean true/false")


def _build_config(entry: dict[str, Any]) -> ConnectionConfig:
    fields = {key: value for key, value in entry.items() if key != "name"}
    # Unquoted codes such as 13 arrive as integers.
    for key in ("start_code", "end_code"):
        if key in fields:
            fields[key] = str(fields[key])
    if "flush_on_idle" in fields:
        fields["flush_on_idle"] = _normalize_bool(
            fields["flush_on_idle"], context=f"{entry['name']}.flush_on_idle"
        )
    return ConnectionConfig(**fields)


class ConnectionStore:
    """Reads and writes the ordered list of configured connections."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or default_store_path()

    def load(self) -> list[StoredConnection]:
        if not self.path.exists():
            return []
        try:
            content = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConnectionStoreError(f"Could not read connection file {self.path}: {exc}") from exc

        try:
            doc = yaml.load(content, Loader=UniqueKeyLoader)
        except yaml.YAMLError as exc:
            raise ConnectionStoreError(f"Invalid YAML in {self.path}: {exc}") from exc
        if doc is None:
            return []
        if not isinstance(doc, dict):
            raise ConnectionStoreError(f"Connection file {self.path} must contain a mapping at root")

        try:
            _load_schema_validator().validate(doc)
        except ValidationError as exc:
            path = ".".join(str(p) for p in exc.path)
            where = f" ({path})" if path else ""
            raise ConnectionStoreError(
                f"Schema validation failed for {self.path}{where}: {exc.message}"
            ) from exc

        stored: list[StoredConnection] = []
        seen: set[str] = set()
        for entry in doc["connections"]:
            name = entry["name"]
            if name in seen:
                raise ConnectionStoreError(f"Duplicate connection name '{name}' in {self.path}")
            seen.add(name)
            stored.append(StoredConnection(name=name, config=_build_config(entry)))
        return stored

    def save(self, connections: list[StoredConnection]) -> None:
        doc = {
            "connections": [
                {"name": item.name, **item.config.to_dict()} for item in connections
            ]
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(yaml.safe_dump(doc, sort_keys=False), encoding="utf-8")
        except OSError as exc:
            raise ConnectionStoreError(f"Could not write connection file {self.path}: {exc}") from exc
        LOGGER.debug("Saved %d connection(s) to %s", len(connections), self.path)

"""
DefinitionValidator - Validates pipeline definitions loaded from YAML.

Uses JSON Schema-like validation, supporting:
- Type validation (string, array, object, map)
- Required fields
- Min length constraints
- Cross-field rules (unique pipeline names, plans only for members,
  "terminate" reserved for plan targets)
"""

import logging
from typing import Any, Dict, List, Tuple

logger = logging.getLogger(__name__)

# Plan target meaning "stop the run"; no action or pipeline may take this name
TERMINATE_NAME = "terminate"

# Shape of a definition file:
#
#   actions:   {<name>: "<module>:<attr>"}       (optional)
#   pipelines: [{name, members: [..], plans: {<member>: {<direction>: <target>}}}]
DEFINITION_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["pipelines"],
    "properties": {
        "actions": {
            "type": "map",
            "values": {"type": "string", "minLength": 1},
        },
        "pipelines": {
            "type": "array",
            "minItems": 1,
            "items": {
                "type": "object",
                "required": ["name", "members"],
                "properties": {
                    "name": {"type": "string", "minLength": 1},
                    "members": {
                        "type": "array",
                        "minItems": 1,
                        "items": {"type": "string", "minLength": 1},
                    },
                    "plans": {
                        "type": "map",
                        "values": {
                            "type": "map",
                            "nullable": True,
                            "values": {"type": "string", "minLength": 1},
                        },
                    },
                },
            },
        },
    },
}


class DefinitionValidator:
    """
    Validates definition dicts against DEFINITION_SCHEMA.

    Collects every problem instead of stopping at the first so a broken file
    can be fixed in one pass.
    """

    def __init__(self, schema: Dict[str, Any] = None):
        self.schema = schema or DEFINITION_SCHEMA

    def validate(self, data: Any) -> Tuple[bool, List[str]]:
        """
        Validate a definition.

        Args:
            data: Parsed YAML document

        Returns:
            Tuple of (is_valid, list_of_errors)
        """
        errors: List[str] = []

        self._validate_type(data, self.schema, errors, path="definition")

        # Cross-field rules only make sense on a structurally sound document
        if not errors:
            self._apply_custom_rules(data, errors)

        is_valid = len(errors) == 0
        if not is_valid:
            logger.warning(f"Pipeline definition invalid: {errors}")

        return (is_valid, errors)

    def _validate_type(self, data: Any, schema: dict, errors: List[str], path: str) -> None:
        """
        Validate data type and structure.

        Args:
            data: Data to validate
            schema: Schema definition
            errors: List to append errors to
            path: Current validation path (for error messages)
        """
        if data is None and schema.get("nullable"):
            return

        expected_type = schema.get("type")

        if expected_type == "object":
            if not isinstance(data, dict):
                errors.append(f"{path}: Expected object, got {type(data).__name__}")
                return

            for field in schema.get("required", []):
                if field not in data:
                    errors.append(f"{path}.{field}: Required field missing")

            for field, field_schema in schema.get("properties", {}).items():
                if field in data:
                    self._validate_type(data[field], field_schema, errors, f"{path}.{field}")

        elif expected_type == "map":
            # Free-form keys, every value shares one schema
            if not isinstance(data, dict):
                errors.append(f"{path}: Expected mapping, got {type(data).__name__}")
                return

            values_schema = schema.get("values")
            for key, value in data.items():
                if not isinstance(key, str):
                    errors.append(f"{path}: Expected string key, got {type(key).__name__}")
                    continue
                if values_schema:
                    self._validate_type(value, values_schema, errors, f"{path}.{key}")

        elif expected_type == "array":
            if not isinstance(data, list):
                errors.append(f"{path}: Expected array, got {type(data).__name__}")
                return

            min_items = schema.get("minItems")
            if min_items is not None and len(data) < min_items:
                errors.append(f"{path}: Array too short (min {min_items}, got {len(data)})")

            items_schema = schema.get("items")
            if items_schema:
                for i, item in enumerate(data):
                    self._validate_type(item, items_schema, errors, f"{path}[{i}]")

        elif expected_type == "string":
            if not isinstance(data, str):
                errors.append(f"{path}: Expected string, got {type(data).__name__}")
                return

            min_length = schema.get("minLength")
            if min_length is not None and len(data) < min_length:
                errors.append(f"{path}: String too short (min {min_length}, got {len(data)})")

    def _apply_custom_rules(self, data: Dict[str, Any], errors: List[str]) -> None:
        """
        Rules spanning several fields.

        Args:
            data: Structurally valid definition
            errors: List to append errors to
        """
        for action_name in (data.get("actions") or {}):
            if action_name == TERMINATE_NAME:
                errors.append(f"definition.actions.{action_name}: '{TERMINATE_NAME}' is reserved for plan targets")

        seen_pipelines = set()
        for i, pipeline in enumerate(data["pipelines"]):
            name = pipeline["name"]
            path = f"definition.pipelines[{i}]"

            if name == TERMINATE_NAME:
                errors.append(f"{path}.name: '{TERMINATE_NAME}' is reserved for plan targets")
            if name in seen_pipelines:
                errors.append(f"{path}.name: Duplicate pipeline name '{name}'")
            seen_pipelines.add(name)

            members = pipeline["members"]
            duplicates = sorted({m for m in members if members.count(m) > 1})
            if duplicates:
                errors.append(f"{path}.members: Duplicate members {duplicates}")
            if name in members:
                errors.append(f"{path}.members: Pipeline '{name}' cannot contain itself")
            if TERMINATE_NAME in members:
                errors.append(f"{path}.members: '{TERMINATE_NAME}' cannot be a member")

            for action_name in (pipeline.get("plans") or {}):
                if action_name not in members:
                    errors.append(f"{path}.plans.{action_name}: Plan for non-member '{action_name}'")

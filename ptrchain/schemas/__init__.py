# This file is Copyright 2019 Volatility Foundation and licensed under the Volatility Software License 1.0
# which is available at https://www.volatilityfoundation.org/license/vsl-v1.0
#

import json
import logging
import os
from typing import Any, Dict

import jsonschema

vollog = logging.getLogger(__name__)


def load_schema(format: str) -> Dict[str, Any]:
    """Loads the bundled schema for a particular format."""
    basepath = os.path.abspath(os.path.dirname(__file__))
    schema_path = os.path.join(basepath, "schema-" + format + ".json")
    if not os.path.exists(schema_path):
        raise FileNotFoundError(f"Schema for format not found: {schema_path}")
    with open(schema_path, "r") as s:
        return json.load(s)


def validate(input: Any, format: str = "modules") -> bool:
    """Validates an input JSON document against a bundled schema."""
    return valid(input, load_schema(format))


def valid(input: Any, schema: Dict[str, Any]) -> bool:
    """Validates a json schema."""
    try:
        vollog.debug("Validating JSON against schema...")
        jsonschema.validate(input, schema)
    except jsonschema.exceptions.ValidationError as excp:
        vollog.debug(f"JSON failed schema validation: {excp.message}")
        return False
    vollog.debug("JSON validated against schema")
    return True

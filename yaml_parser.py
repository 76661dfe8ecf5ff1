# yaml_parser.py
import logging
from typing import Any

import yaml
from pydantic import ValidationError

from models.request_models import GenerationRequest, MythCategory

logger = logging.getLogger(__name__)


def normalize_keys_recursive(data: Any) -> Any:
    """
    Recursively normalizes keys in a dictionary to lowercase and replaces spaces with underscores,
    so "Custom Descriptions" and "custom_descriptions" are read the same way.
    """
    if isinstance(data, dict):
        new_dict = {}
        for key, value in data.items():
            normalized_key = str(key).strip().lower().replace(" ", "_")
            new_dict[normalized_key] = normalize_keys_recursive(value)
        return new_dict
    elif isinstance(data, list):
        return [normalize_keys_recursive(item) for item in data]
    else:
        return data


def load_yaml_file(filepath: str, normalize_keys: bool = True) -> dict[str, Any] | None:
    """
    Loads and parses a YAML file.

    Args:
        filepath: Path to the YAML file.
        normalize_keys: Whether to recursively normalize dictionary keys
                        (lowercase, spaces to underscores). Defaults to True.

    Returns:
        A dictionary representing the YAML content, or None if an error occurs.
    """
    if not filepath.endswith((".yaml", ".yml")):
        logger.error(f"File specified is not a YAML file: {filepath}")
        return None
    try:
        with open(filepath, encoding="utf-8") as f:
            content = yaml.safe_load(f)
    except FileNotFoundError:
        logger.warning(f"YAML file '{filepath}' not found.")
        return None
    except yaml.YAMLError as e:
        logger.error(f"Error parsing YAML file {filepath}: {e}", exc_info=True)
        return None

    if content is None:
        return {}
    if not isinstance(content, dict):
        logger.error(
            f"YAML file {filepath} must have a mapping as its root element. Parsed type: {type(content)}"
        )
        return None
    if normalize_keys:
        return normalize_keys_recursive(content)
    return content


def _category_key(key: str) -> str:
    # "Social Codes", "social_codes" and "socialcodes" all name one category.
    return key.replace("_", "").replace("-", "")


def _by_category(section: Any, name: str) -> dict[str, str]:
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ValueError(f"'{name}' must be a mapping of category to value")
    known = {c.value for c in MythCategory}
    mapped: dict[str, str] = {}
    for key, value in section.items():
        category = _category_key(key)
        if category not in known:
            raise ValueError(f"Unknown category '{key}' in '{name}'")
        mapped[category] = "" if value is None else str(value)
    return mapped


def load_request_file(filepath: str) -> GenerationRequest:
    """
    Builds a GenerationRequest from a YAML file of the form::

        mood: epic
        selections:
          cosmology: cos-egg
          social codes: soc-taboo
          ...
        custom_descriptions:
          beings: shapeshifting creatures born from overlapping emotions
        thresholds:
          min_entities: 6

    Raises:
        ValueError: if the file cannot be read or does not describe a valid request.
    """
    data = load_yaml_file(filepath)
    if data is None:
        raise ValueError(f"Could not load request file '{filepath}'")

    payload: dict[str, Any] = {
        "selections": _by_category(data.get("selections"), "selections"),
        "custom_descriptions": _by_category(
            data.get("custom_descriptions"), "custom_descriptions"
        ),
    }
    if data.get("mood"):
        payload["mood"] = str(data["mood"]).strip().lower()
    if data.get("thresholds"):
        payload["thresholds"] = data["thresholds"]

    try:
        request = GenerationRequest.model_validate(payload)
    except ValidationError as e:
        raise ValueError(f"Invalid request in '{filepath}': {e}") from e
    logger.info(
        f"Loaded generation request from {filepath} "
        f"({len(request.customized_categories)} customized categories, mood '{request.mood.value}')."
    )
    return request

"""Deterministic parsers the model can call on file contents it has already read."""

import json
import xml.etree.ElementTree as ET
from typing import (
    List,
    Optional,
)

from netcheck.tools import register_tool


def _local_name(tag: str) -> str:
    # MSBuild files may carry the 2003 namespace: "{http://...}TargetFramework"
    return tag.rsplit("}", 1)[-1]


@register_tool("parse_json")
def parse_json(file_content: str) -> Optional[str]:
    """Parses the content of a global.json file to return any sdk version found."""
    try:
        root = json.loads(file_content)
    except ValueError as exc:
        raise ValueError("Invalid JSON content.") from exc

    if not isinstance(root, dict):
        return None
    sdk = root.get("sdk")
    if isinstance(sdk, dict) and isinstance(sdk.get("version"), str):
        return sdk["version"]
    return None  # SDK version not found


@register_tool("parse_xml")
def parse_xml(file_content: str) -> List[str]:
    """Parses the content of a project file to return any dotnet versions found."""
    try:
        root = ET.fromstring(file_content)
    except ET.ParseError as exc:
        raise ValueError(f"Invalid XML content: {exc}") from exc

    target_frameworks: List[str] = []
    for element in root.iter():
        name = _local_name(element.tag)
        value = (element.text or "").strip()
        if not value:
            continue
        if name == "TargetFramework":
            target_frameworks.append(value)
        elif name == "TargetFrameworks":  # plural form
            target_frameworks.extend(fw.strip() for fw in value.split(";") if fw.strip())
    return target_frameworks

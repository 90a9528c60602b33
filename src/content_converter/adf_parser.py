"""Parser for ADF (Atlassian Document Format) documents.

Converts ADF JSON (dict or string) into AdfDocument/AdfNode objects.
Editor placeholder nodes are dropped while parsing since they never carry
page content.
"""

import json
import logging
from typing import Any, Dict, Union

from .adf_models import AdfDocument, AdfMark, AdfNode

logger = logging.getLogger(__name__)

PLACEHOLDER_TYPE = "placeholder"


class AdfParser:
    """Parser for ADF documents."""

    def parse(self, adf: Union[str, bytes, Dict[str, Any], None]) -> AdfDocument:
        """Parse ADF given as a dict, a JSON string, or nothing.

        An empty body parses to an empty document.

        Raises:
            ValueError: If the input is not a valid ADF document
        """
        if adf is None or adf == "" or adf == b"":
            return AdfDocument()
        if isinstance(adf, (str, bytes)):
            return self.parse_from_string(adf)
        return self.parse_document(adf)

    def parse_document(self, adf_json: Dict[str, Any]) -> AdfDocument:
        """Parse an ADF JSON document into an AdfDocument object.

        Args:
            adf_json: The ADF document as a dictionary (parsed JSON)

        Returns:
            AdfDocument object with parsed content tree

        Raises:
            ValueError: If the JSON is not valid ADF format
        """
        if not isinstance(adf_json, dict):
            raise ValueError("ADF must be a dictionary")

        doc_type = adf_json.get("type")
        if doc_type != "doc":
            raise ValueError(f"Expected type 'doc', got '{doc_type}'")

        version = adf_json.get("version", 1)
        content_data = adf_json.get("content") or []

        content = [
            self._parse_node(node_data)
            for node_data in content_data
            if not _is_placeholder(node_data)
        ]

        return AdfDocument(version=version, content=content)

    def parse_from_string(self, adf_string: Union[str, bytes]) -> AdfDocument:
        """Parse an ADF JSON string into an AdfDocument object.

        Raises:
            ValueError: If the string is not JSON or not ADF
        """
        try:
            adf_json = json.loads(adf_string)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid ADF JSON: {e}")
        return self.parse_document(adf_json)

    def _parse_node(self, node_data: Dict[str, Any]) -> AdfNode:
        if not isinstance(node_data, dict):
            raise ValueError(f"ADF node must be an object, got {type(node_data).__name__}")

        node_type = node_data.get("type", "unknown")
        text = node_data.get("text")
        attrs = node_data.get("attrs") or {}

        marks = [
            AdfMark(type=m.get("type", "unknown"), attrs=m.get("attrs") or {})
            for m in node_data.get("marks") or []
        ]

        content = []
        for child in node_data.get("content") or []:
            if _is_placeholder(child):
                logger.debug("Dropping placeholder node")
                continue
            content.append(self._parse_node(child))

        return AdfNode(
            type=node_type,
            content=content,
            text=text,
            attrs=attrs,
            marks=marks,
        )


def _is_placeholder(node_data: Any) -> bool:
    return isinstance(node_data, dict) and node_data.get("type") == PLACEHOLDER_TYPE

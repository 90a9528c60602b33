"""YAML frontmatter parsing and generation for Markdown files.

Every synced Markdown file starts with a YAML block delimited by '---'
lines carrying the sync metadata:

    ---
    title: Release Notes
    confluence_page_id: "123456"
    confluence_space_key: TEAM
    confluence_version: 7
    confluence_last_modified: "2024-01-15T10:30:00Z"
    confluence_parent_page_id: "98765"
    ---

Keys not owned by the sync engine are preserved in order after the known
keys.
"""

import logging
import os
from datetime import datetime
from typing import Any, Dict, List, Tuple

import yaml

from .errors import FilesystemError, FrontmatterError
from .models import Frontmatter, LocalDocument, ValidationIssue
from .timestamps import format_rfc3339, parse_rfc3339

logger = logging.getLogger(__name__)

DELIMITER = "---"

# Only the head of the file is read when just the metadata is needed
FRONTMATTER_READ_LIMIT = 8192

IMMUTABLE_KEYS = ("confluence_page_id", "confluence_space_key")
MUTABLE_BY_SYNC_KEYS = (
    "confluence_version",
    "confluence_last_modified",
    "confluence_parent_page_id",
)
KNOWN_KEYS = ("title",) + IMMUTABLE_KEYS + MUTABLE_BY_SYNC_KEYS


class FrontmatterHandler:
    """Reads, writes and validates Markdown frontmatter.

    All methods are classmethods; the handler holds no state.
    """

    # Maximum allowed depth for YAML structures to prevent DoS attacks
    MAX_YAML_DEPTH = 10

    @classmethod
    def _validate_yaml_depth(cls, obj: Any, current_depth: int = 0) -> None:
        """Reject YAML structures nested deeper than MAX_YAML_DEPTH.

        Raises:
            FrontmatterError: If depth exceeds maximum
        """
        if current_depth > cls.MAX_YAML_DEPTH:
            raise FrontmatterError(
                "<yaml>",
                f"YAML structure exceeds maximum depth of {cls.MAX_YAML_DEPTH}"
            )
        if isinstance(obj, dict):
            for value in obj.values():
                cls._validate_yaml_depth(value, current_depth + 1)
        elif isinstance(obj, list):
            for item in obj:
                cls._validate_yaml_depth(item, current_depth + 1)

    @classmethod
    def split(cls, file_path: str, content: str) -> Tuple[str, str]:
        """Split content into the raw YAML block and the body.

        Raises:
            FrontmatterError: If the opening or closing delimiter is missing
        """
        if content.startswith("\ufeff"):
            content = content[1:]
        lines = content.splitlines(keepends=True)
        if not lines or lines[0].strip() != DELIMITER:
            raise FrontmatterError(file_path, "missing YAML frontmatter")

        for index in range(1, len(lines)):
            if lines[index].strip() == DELIMITER:
                return "".join(lines[1:index]), "".join(lines[index + 1:])

        raise FrontmatterError(file_path, "invalid YAML frontmatter: missing closing delimiter")

    @classmethod
    def _load_mapping(cls, file_path: str, block: str) -> Dict[str, Any]:
        try:
            data = yaml.safe_load(block)
        except yaml.YAMLError as e:
            raise FrontmatterError(file_path, f"invalid YAML frontmatter: {e}")

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise FrontmatterError(
                file_path,
                f"Frontmatter must be a YAML dictionary, got {type(data).__name__}"
            )
        try:
            cls._validate_yaml_depth(data)
        except FrontmatterError as e:
            raise FrontmatterError(file_path, e.message)
        return data

    @classmethod
    def _from_mapping(cls, file_path: str, data: Dict[str, Any]) -> Frontmatter:
        raw_version = data.get("confluence_version")
        if raw_version is None or raw_version == "":
            version = 0
        else:
            try:
                version = int(raw_version)
            except (TypeError, ValueError):
                raise FrontmatterError(
                    file_path,
                    f"confluence_version must be an integer, got {raw_version!r}"
                )

        return Frontmatter(
            title=_as_text(data.get("title")),
            page_id=_as_text(data.get("confluence_page_id")),
            space_key=_as_text(data.get("confluence_space_key")),
            version=version,
            last_modified=_as_text(data.get("confluence_last_modified")),
            parent_page_id=_as_text(data.get("confluence_parent_page_id")),
            extra={k: v for k, v in data.items() if k not in KNOWN_KEYS},
        )

    @classmethod
    def parse(cls, file_path: str, content: str) -> LocalDocument:
        """Parse a Markdown document with frontmatter.

        Args:
            file_path: Path to the file (for error messages)
            content: Full file content

        Returns:
            LocalDocument with parsed frontmatter and the raw body

        Raises:
            FrontmatterError: If frontmatter is missing or malformed
        """
        block, body = cls.split(file_path, content)
        frontmatter = cls._from_mapping(file_path, cls._load_mapping(file_path, block))
        return LocalDocument(frontmatter=frontmatter, body=body)

    @classmethod
    def generate(cls, document: LocalDocument) -> str:
        """Render a document back to text with the known keys first."""
        fm = document.frontmatter
        data: Dict[str, Any] = {}
        if fm.title:
            data["title"] = fm.title
        data["confluence_page_id"] = fm.page_id
        data["confluence_space_key"] = fm.space_key
        data["confluence_version"] = fm.version
        data["confluence_last_modified"] = fm.last_modified
        if fm.parent_page_id:
            data["confluence_parent_page_id"] = fm.parent_page_id
        for key, value in fm.extra.items():
            if key not in data:
                data[key] = value

        yaml_str = yaml.safe_dump(
            data,
            default_flow_style=False,
            allow_unicode=True,
            sort_keys=False,
        )
        return f"{DELIMITER}\n{yaml_str}{DELIMITER}\n{document.body}"

    @classmethod
    def read_document(cls, file_path: str) -> LocalDocument:
        """Read and parse a Markdown file.

        Raises:
            FilesystemError: If the file cannot be read
            FrontmatterError: If frontmatter is missing or malformed
        """
        try:
            with open(file_path, "r", encoding="utf-8") as f:
                content = f.read()
        except OSError as e:
            raise FilesystemError(file_path, "read", str(e))
        return cls.parse(file_path, content)

    @classmethod
    def write_document(cls, file_path: str, document: LocalDocument) -> None:
        """Write a Markdown file, creating parent directories as needed.

        Raises:
            FilesystemError: If the file cannot be written
        """
        try:
            parent = os.path.dirname(file_path)
            if parent:
                os.makedirs(parent, exist_ok=True)
            with open(file_path, "w", encoding="utf-8", newline="\n") as f:
                f.write(cls.generate(document))
        except OSError as e:
            raise FilesystemError(file_path, "write", str(e))

    @classmethod
    def read_frontmatter(cls, file_path: str) -> Frontmatter:
        """Read only the frontmatter of a Markdown file.

        Only the first 8KB are read, so frontmatter larger than that is
        reported as invalid.

        Raises:
            FilesystemError: If the file cannot be read
            FrontmatterError: If frontmatter is missing, malformed or too large
        """
        try:
            with open(file_path, "rb") as f:
                head = f.read(FRONTMATTER_READ_LIMIT)
        except OSError as e:
            raise FilesystemError(file_path, "read", str(e))

        text = head.decode("utf-8", errors="ignore")
        try:
            block, _ = cls.split(file_path, text)
        except FrontmatterError as e:
            if "closing delimiter" in e.message:
                raise FrontmatterError(
                    file_path,
                    "invalid YAML frontmatter: missing closing delimiter or exceeds 8KB limit"
                )
            raise
        return cls._from_mapping(file_path, cls._load_mapping(file_path, block))


def validate_schema(frontmatter: Frontmatter) -> List[ValidationIssue]:
    """Check required sync metadata and field formats.

    A file that has never been pushed (no page ID) only needs its optional
    fields to be well-formed; the push engine fills the rest in.
    """
    issues: List[ValidationIssue] = []
    is_new = frontmatter.is_new

    if not is_new and not frontmatter.space_key.strip():
        issues.append(ValidationIssue(
            "confluence_space_key", "required", "confluence_space_key is required"
        ))
    if frontmatter.version < 0 or (not is_new and frontmatter.version == 0):
        issues.append(ValidationIssue(
            "confluence_version", "invalid", "confluence_version must be greater than zero"
        ))

    last_modified = frontmatter.last_modified.strip()
    if not last_modified:
        if not is_new:
            issues.append(ValidationIssue(
                "confluence_last_modified", "required", "confluence_last_modified is required"
            ))
    else:
        try:
            parse_rfc3339(last_modified)
        except ValueError:
            issues.append(ValidationIssue(
                "confluence_last_modified", "invalid", "confluence_last_modified must be RFC3339"
            ))
    return issues


def validate_immutable(previous: Frontmatter, current: Frontmatter) -> List[ValidationIssue]:
    """Compare immutable keys between the recorded and current metadata."""
    issues: List[ValidationIssue] = []
    if previous.page_id.strip() != current.page_id.strip():
        issues.append(ValidationIssue(
            "confluence_page_id",
            "immutable",
            "confluence_page_id is immutable and cannot be changed manually",
        ))
    if previous.space_key.strip().lower() != current.space_key.strip().lower():
        issues.append(ValidationIssue(
            "confluence_space_key",
            "immutable",
            "confluence_space_key is immutable and cannot be changed manually",
        ))
    return issues


def _as_text(value: Any) -> str:
    # Unquoted YAML timestamps and numeric IDs come back as datetime/int
    if value is None:
        return ""
    if isinstance(value, datetime):
        return format_rfc3339(value)
    return str(value).strip()

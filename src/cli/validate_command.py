"""Validate command: check every Markdown file of a space before pushing."""

import logging
import os
from typing import Dict, List, Optional

from src.cli.config import StateManager
from src.cli.errors import CLIError
from src.cli.models import ExitCode
from src.cli.output import OutputHandler
from src.confluence_client.errors import SyncError
from src.file_mapper.models import ValidationIssue
from src.sync_engine.validation import validate_space

logger = logging.getLogger(__name__)


class ValidateCommand:
    """Runs push validation over a whole space directory without any remote call."""

    def __init__(self, output_handler: Optional[OutputHandler] = None, domain: str = ""):
        self.output_handler = output_handler or OutputHandler()
        self.domain = domain

    def run(self, space_dir: str, space_key: str) -> ExitCode:
        """Validate the space and print the issues found.

        Returns:
            ExitCode.SUCCESS when every file is valid, GENERAL_ERROR otherwise
        """
        try:
            issues = self.validate(space_dir, space_key)
        except SyncError as e:
            logger.error(f"Validation failed: {e}")
            self.output_handler.error(f"Validation failed: {e}")
            return ExitCode.GENERAL_ERROR
        except Exception as e:
            logger.exception("Unexpected error during validation")
            self.output_handler.error(f"Unexpected error: {e}")
            return ExitCode.GENERAL_ERROR

        if issues:
            self.output_handler.print_validation_issues(issues)
            count = sum(len(v) for v in issues.values())
            self.output_handler.error(f"{count} issue(s) in {len(issues)} file(s)")
            return ExitCode.GENERAL_ERROR

        self.output_handler.success(f"All files in {space_dir} are valid")
        return ExitCode.SUCCESS

    def validate(self, space_dir: str, space_key: str) -> Dict[str, List[ValidationIssue]]:
        if not os.path.isdir(space_dir):
            raise CLIError(f"Space directory not found: {space_dir}")
        state = StateManager.load(space_dir)
        return validate_space(space_dir, space_key, state, self.domain)

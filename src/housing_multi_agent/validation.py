"""
Input validation for the multi-agent housing system.
"""

import re
import logging
from typing import Optional
from pydantic import BaseModel

from .config import Config


class ValidationResult(BaseModel):
    """Result of input validation."""
    is_valid: bool
    error_message: Optional[str] = None
    sanitized_input: Optional[str] = None


SUSPICIOUS_PATTERNS = [
    r'<script[^>]*>.*?</script>',
    r'javascript:',
    r'data:text/html',
    r'vbscript:',
    r'on(load|error|click)\s*=',
    r'\b(eval|exec)\s*\(',
    r'__import__',
]


class InputValidator:
    """Validates and normalizes user queries before classification."""

    def __init__(self, config: Config, logger: logging.Logger):
        """Initialize input validator."""
        self.logger = logger
        self.max_length = config.validation.max_query_length
        self.min_length = config.validation.min_query_length

    def validate_query(self, query: Optional[str]) -> ValidationResult:
        """Validate and sanitize user query."""
        if not query or not query.strip():
            return ValidationResult(is_valid=False, error_message="Query cannot be empty")

        sanitized = self._sanitize_input(query)

        if not sanitized:
            return ValidationResult(is_valid=False, error_message="Query contains only invalid characters")

        if len(sanitized) < self.min_length:
            return ValidationResult(
                is_valid=False,
                error_message=f"Query must be at least {self.min_length} characters long"
            )

        if len(sanitized) > self.max_length:
            return ValidationResult(
                is_valid=False,
                error_message=f"Query cannot exceed {self.max_length} characters"
            )

        if self._contains_suspicious_patterns(sanitized):
            return ValidationResult(is_valid=False, error_message="Query contains potentially harmful content")

        self.logger.info(f"Query validation successful: {len(sanitized)} characters")
        return ValidationResult(is_valid=True, sanitized_input=sanitized)

    @staticmethod
    def _sanitize_input(query: str) -> str:
        # Control characters out, whitespace collapsed
        sanitized = re.sub(r'[\x00-\x08\x0b-\x0c\x0e-\x1f\x7f]', '', query)
        return re.sub(r'\s+', ' ', sanitized).strip()

    def _contains_suspicious_patterns(self, query: str) -> bool:
        for pattern in SUSPICIOUS_PATTERNS:
            if re.search(pattern, query, re.IGNORECASE):
                self.logger.warning(f"Suspicious pattern detected: {pattern}")
                return True
        return False

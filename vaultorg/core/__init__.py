"""vaultorg Core - Shared constants, errors and validation.

Import specific functions from submodules:
    from vaultorg.core.errors import InvalidPathError, categorize_error
    from vaultorg.core.validators import validate_path
    from vaultorg.core.regex_validation import validate_regex_pattern
    from vaultorg.core import constants
"""

# Re-export main module references for convenience
from vaultorg.core import (
    constants,
    errors,
    regex_validation,
    validators,
)

__all__ = [
    "constants",
    "errors",
    "regex_validation",
    "validators",
]

"""vaultorg - Rule-based reorganization of markdown vaults.

Notes are moved into folders chosen by the first rule whose frontmatter
condition matches. Moves are recorded so the latest one can be undone.

Packages:
    core: Constants, errors and path and regex validation
    infrastructure: Configuration, settings persistence and logging
    rules: Frontmatter rules, exclusion patterns and destination templates
    organizer: Vault access, scheduling, history and reports
"""

from vaultorg.core.constants import VAULTORG_VERSION

__version__ = VAULTORG_VERSION

__all__ = ["__version__"]

#!/usr/bin/env python3
"""Main entry point for vaultorg.

This module handles:
- Wiring the organizer components (rule engine, exclusions, history,
  scheduler, settings persistence)
- Loading and saving user settings, with debounced saves
- Running one CLI command against a local vault
- Watch mode with debounced change processing

Example:
    >>> store = YamlSettingsStore("~/Notes/.vaultorg.yaml")
    >>> organizer = VaultOrganizer(LocalVault("~/Notes"), store)
    >>> await organizer.load()
    >>> result = await organizer.reorganize_all()
"""

import argparse
import asyncio
from pathlib import Path
from typing import Any, Dict, List, Optional

from vaultorg.core.constants import DEFAULT_SETTINGS_FILENAME, ConfigKey, SettingsKey
from vaultorg.core.validators import validate_path
from vaultorg.infrastructure.config_manager import (
    ConfigError,
    ConfigManager,
    Settings,
    YamlSettingsStore,
)
from vaultorg.infrastructure.logger import Logger, get_logger
from vaultorg.organizer.debounce import Debouncer
from vaultorg.organizer.history import MoveHistoryEntry, MoveHistoryManager, UndoResult
from vaultorg.organizer.naming import UniqueNameResolver
from vaultorg.organizer.report import render_history, render_preview, render_result
from vaultorg.organizer.scheduler import PlannedMove, ReorganizationScheduler, ReorganizeResult
from vaultorg.organizer.vault import (
    Document,
    DocumentStore,
    LocalVault,
    LoggingNotifier,
    Notifier,
    SettingsStore,
)
from vaultorg.rules.engine import (
    Rule,
    RuleDeserializationError,
    RuleEngine,
    deserialize_rules,
    normalize_serialized_rule,
    serialize_rule,
)
from vaultorg.rules.patterns import ExclusionMatcher


class VaultOrganizer:
    """Facade over the organizer for one vault.

    Owns the user settings: rule and exclusion edits and every history
    change schedule a debounced save through the SettingsStore.
    """

    def __init__(
        self,
        store: DocumentStore,
        settings_store: SettingsStore,
        notifier: Optional[Notifier] = None,
        config: Optional[ConfigManager] = None,
        scheduler_options: Optional[Dict[str, Any]] = None,
    ):
        """Initialize organizer.

        Args:
            store: Vault storage
            settings_store: Settings persistence
            notifier: Sink for user-visible notices
            config: Engine tunables
            scheduler_options: Extra keyword arguments for ReorganizationScheduler
        """
        self.store = store
        self.settings_store = settings_store
        self.notifier = notifier or LoggingNotifier()
        self.config = config or ConfigManager()
        self.logger = get_logger()

        self._serialized_rules: List[Dict[str, Any]] = []
        self.rule_errors: List[RuleDeserializationError] = []
        self._dirty = False

        self.rule_engine = RuleEngine()
        self.exclusions = ExclusionMatcher()
        self.history = MoveHistoryManager(on_change=self._settings_changed)

        options = {
            "batch_size": int(self.config.get(ConfigKey.BATCH_SIZE)),
            "batch_delay": float(self.config.get(ConfigKey.BATCH_DELAY_MS)) / 1000,
            "resolver": UniqueNameResolver(
                store.exists, max_attempts=int(self.config.get(ConfigKey.MAX_UNIQUE_ATTEMPTS))
            ),
        }
        options.update(scheduler_options or {})
        self.scheduler = ReorganizationScheduler(
            store, self.rule_engine, self.exclusions, self.history, self.notifier, **options
        )

        self._save_debouncer = Debouncer(
            float(self.config.get(ConfigKey.SETTINGS_SAVE_MS)) / 1000, self.save_settings
        )

    async def load(self) -> None:
        """Load settings and build rules, exclusions and history from them.

        Raises:
            ConfigError: If the settings cannot be read
        """
        settings = await self.settings_store.load()
        self._serialized_rules = [normalize_serialized_rule(rule) for rule in settings.rules]
        self._refresh_rules()
        self.exclusions.set_patterns(settings.exclude_patterns)
        self.history.reset(
            (MoveHistoryEntry.from_dict(entry) for entry in settings.move_history),
            max_size=settings.max_history_size,
        )
        self._dirty = False
        self.logger.info(
            "Settings loaded",
            rules=len(self.rule_engine),
            exclusions=len(self.exclusions),
            history=len(self.history),
        )

    def _refresh_rules(self) -> None:
        successes, errors = deserialize_rules(self._serialized_rules)
        self.rule_engine.set_rules(success.rule for success in successes)
        self.rule_errors = errors
        for error in errors:
            key = error.rule.get(SettingsKey.RULE_KEY) or "(unnamed rule)"
            if error.regex_error:
                message = f'Failed to parse regular expression for rule "{key}": {error.message}'
            else:
                message = f'Invalid rule "{key}": {error.message}'
            self.notifier.notify(message)

    def build_settings(self) -> Settings:
        """Snapshot current state as persistable settings."""
        return Settings(
            rules=[dict(rule) for rule in self._serialized_rules],
            exclude_patterns=self.exclusions.patterns,
            move_history=self.history.to_dicts(),
            max_history_size=self.history.max_size,
        )

    async def save_settings(self) -> None:
        """Persist settings now."""
        self._save_debouncer.cancel()
        await self.settings_store.save(self.build_settings())
        self._dirty = False
        self.logger.debug("Settings saved")

    def _settings_changed(self) -> None:
        self._dirty = True
        try:
            self._save_debouncer.trigger()
        except RuntimeError:
            # No running loop; flush() will save
            pass

    async def flush(self) -> None:
        """Write any pending settings change immediately."""
        if self._dirty:
            await self.save_settings()

    # Rule and exclusion management

    @property
    def serialized_rules(self) -> List[Dict[str, Any]]:
        return [dict(rule) for rule in self._serialized_rules]

    def set_rules(self, rules: List[Dict[str, Any]]) -> List[RuleDeserializationError]:
        """Replace all rules with persisted-form rules.

        Returns:
            Rules that failed to load; they are kept in settings but inactive
        """
        self._serialized_rules = [normalize_serialized_rule(rule) for rule in rules]
        self._refresh_rules()
        self._settings_changed()
        return self.rule_errors

    def add_rule(self, rule: Rule) -> None:
        """Append a rule after the existing ones."""
        self._serialized_rules.append(serialize_rule(rule))
        self._refresh_rules()
        self._settings_changed()

    def remove_rule(self, index: int) -> Dict[str, Any]:
        """Remove the rule at index and return its persisted form.

        Raises:
            IndexError: If index is out of range
        """
        removed = self._serialized_rules.pop(index)
        self._refresh_rules()
        self._settings_changed()
        return removed

    def add_exclusion_pattern(self, pattern: str) -> None:
        """Add an exclusion pattern.

        Raises:
            ValueError: If the pattern is invalid
        """
        self.exclusions.add_pattern(pattern)
        self._settings_changed()

    def remove_exclusion_pattern(self, pattern: str) -> bool:
        removed = self.exclusions.remove_pattern(pattern)
        if removed:
            self._settings_changed()
        return removed

    def set_max_history_size(self, max_size: int) -> None:
        self.history.set_max_size(max_size)
        self._settings_changed()

    # Operations

    async def on_document_changed(self, document: Document) -> Optional[MoveHistoryEntry]:
        return await self.scheduler.on_document_changed(document)

    async def reorganize_all(self) -> ReorganizeResult:
        return await self.scheduler.reorganize_all()

    async def preview_all(self) -> List[PlannedMove]:
        return await self.scheduler.preview_all()

    async def undo_last_move(self) -> UndoResult:
        return await self.scheduler.undo_last_move()

    async def clear_history(self) -> None:
        await self.scheduler.clear_history()


class VaultOrgMain:
    """Runs one CLI command against a local vault."""

    def __init__(self, args: argparse.Namespace, config: ConfigManager, logger: Logger):
        """
        Initialize the command controller.

        Args:
            args: Parsed command-line arguments
            config: Configuration manager
            logger: Logger instance
        """
        self.args = args
        self.config = config
        self.logger = logger
        self.organizer: Optional[VaultOrganizer] = None
        self.vault: Optional[LocalVault] = None

    def _settings_path(self) -> Path:
        settings_file = self.args.settings or self.config.get(ConfigKey.SETTINGS_FILE)
        if settings_file:
            return Path(settings_file).expanduser()
        return Path(self.args.vault).expanduser() / DEFAULT_SETTINGS_FILENAME

    async def initialize_components(self) -> None:
        """Create the vault adapter and organizer and load settings."""
        self.logger.debug("Opening vault", path=self.args.vault)
        self.vault = LocalVault(self.args.vault)
        self.organizer = VaultOrganizer(
            self.vault, YamlSettingsStore(self._settings_path()), config=self.config
        )
        await self.organizer.load()

    async def cmd_reorganize(self) -> int:
        result = await self.organizer.reorganize_all()
        print(render_result(result), end="")
        return 0

    async def cmd_preview(self) -> int:
        print(render_preview(await self.organizer.preview_all()), end="")
        return 0

    async def cmd_undo(self) -> int:
        result = await self.organizer.undo_last_move()
        print(result.message)
        return 0 if result.success else 1

    async def cmd_history(self) -> int:
        print(render_history(self.organizer.history.entries, limit=self.args.limit), end="")
        return 0

    async def cmd_clear_history(self) -> int:
        await self.organizer.clear_history()
        print("Move history cleared.")
        return 0

    async def cmd_watch(self) -> int:
        """Poll the vault and apply rules to documents that change.

        Bursts of changes are coalesced by a debouncer before processing.
        Runs until interrupted.
        """
        pending: Dict[str, Document] = {}

        async def process_pending() -> None:
            documents = list(pending.values())
            pending.clear()
            for document in documents:
                if self.vault.get_document(document.path) is not None:
                    await self.organizer.on_document_changed(document)
            await self.organizer.flush()

        debouncer = Debouncer(
            float(self.config.get(ConfigKey.METADATA_REFRESH_MS)) / 1000, process_pending
        )
        snapshot = self.vault.snapshot()
        self.logger.info("Watching vault", path=str(self.vault.root), interval=self.args.interval)

        try:
            while True:
                await asyncio.sleep(self.args.interval)
                changed, snapshot = self.vault.changed_since(snapshot)
                if changed:
                    pending.update((document.path, document) for document in changed)
                    debouncer.trigger()
        finally:
            await debouncer.flush()

    async def run_command(self) -> int:
        await self.initialize_components()
        handler = getattr(self, f"cmd_{self.args.command.replace('-', '_')}")
        try:
            return await handler()
        finally:
            await self.organizer.flush()

    def run(self) -> int:
        """
        Run the selected command.

        Returns:
            Exit code (0 for success, non-zero for failure)
        """
        if self.args.command == "check-path":
            return check_path(self.args.path)

        try:
            return asyncio.run(self.run_command())

        except KeyboardInterrupt:
            self.logger.info("Interrupted by user")
            return 130

        except (ConfigError, OSError) as e:
            self.logger.error("Command failed", command=self.args.command, error=str(e))
            print(f"Error: {e}")
            return 1


def check_path(path: str) -> int:
    """Validate a destination path and print the outcome."""
    result = validate_path(path)
    if not result.valid:
        print(result.error.user_message())
        return 1

    print(result.sanitized_path)
    for warning in result.warnings:
        print(f"warning: {warning}")
    return 0


def run_vaultorg(args: argparse.Namespace, config: ConfigManager, logger: Logger) -> int:
    """
    Main entry point for running a vaultorg command.

    Args:
        args: Parsed command-line arguments
        config: Configuration manager
        logger: Logger instance

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    return VaultOrgMain(args, config, logger).run()

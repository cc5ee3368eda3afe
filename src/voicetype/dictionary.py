"""Personal dictionary and free-text edit rules for VoiceType."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
import json
import logging
from pathlib import Path
import uuid

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class DictionaryEntry:
    original: str
    replacement: str
    enabled: bool = True
    id: str = field(default_factory=_new_id)


@dataclass
class EditRule:
    description: str
    enabled: bool = True
    id: str = field(default_factory=_new_id)


class PersonalDictionary:
    """Literal replacements plus style rules, persisted as two JSON files.

    Replacements are plain substring substitutions applied in stored order,
    so a later entry may rewrite text produced by an earlier one.
    """

    def __init__(self, data_dir: Path | str | None = None):
        if data_dir is None:
            from .config import config

            data_dir = config.DATA_DIR
        self.data_dir = Path(data_dir)
        self.entries_path = self.data_dir / "dictionary.json"
        self.rules_path = self.data_dir / "edit_rules.json"
        self.entries: list[DictionaryEntry] = []
        self.edit_rules: list[EditRule] = []
        self._load()

    def apply_replacements(self, text: str) -> str:
        result = text
        for entry in self.entries:
            if entry.enabled and entry.original:
                result = result.replace(entry.original, entry.replacement)
        return result

    def active_rules_description(self) -> str:
        return "\n".join(rule.description for rule in self.edit_rules if rule.enabled)

    def add_entry(self, original: str, replacement: str) -> DictionaryEntry:
        entry = DictionaryEntry(original=original, replacement=replacement)
        self.entries.append(entry)
        self.save()
        return entry

    def remove_entry(self, entry_id: str) -> bool:
        before = len(self.entries)
        self.entries = [e for e in self.entries if e.id != entry_id]
        removed = len(self.entries) != before
        if removed:
            self.save()
        return removed

    def add_rule(self, description: str) -> EditRule:
        rule = EditRule(description=description)
        self.edit_rules.append(rule)
        self.save()
        return rule

    def remove_rule(self, rule_id: str) -> bool:
        before = len(self.edit_rules)
        self.edit_rules = [r for r in self.edit_rules if r.id != rule_id]
        removed = len(self.edit_rules) != before
        if removed:
            self.save()
        return removed

    def reload(self) -> None:
        self.entries = []
        self.edit_rules = []
        self._load()

    def save(self) -> None:
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            _write_json(self.entries_path, [asdict(e) for e in self.entries])
            _write_json(self.rules_path, [asdict(r) for r in self.edit_rules])
        except OSError as e:
            logger.warning("Could not save dictionary: %s", e)

    def _load(self) -> None:
        for item in _read_json_list(self.entries_path):
            try:
                self.entries.append(
                    DictionaryEntry(
                        original=str(item["original"]),
                        replacement=str(item["replacement"]),
                        enabled=bool(item.get("enabled", True)),
                        id=str(item.get("id") or _new_id()),
                    )
                )
            except (KeyError, TypeError):
                logger.debug("Skipping malformed dictionary entry: %r", item)

        for item in _read_json_list(self.rules_path):
            try:
                self.edit_rules.append(
                    EditRule(
                        description=str(item["description"]),
                        enabled=bool(item.get("enabled", True)),
                        id=str(item.get("id") or _new_id()),
                    )
                )
            except (KeyError, TypeError):
                logger.debug("Skipping malformed edit rule: %r", item)


def _read_json_list(path: Path) -> list:
    if not path.exists():
        return []
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Ignoring unreadable %s: %s", path.name, e)
        return []
    return data if isinstance(data, list) else []


def _write_json(path: Path, data: list) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)

import json

from voicetype.dictionary import DictionaryEntry, PersonalDictionary


def test_entries_and_rules_persist(tmp_path):
    d = PersonalDictionary(tmp_path)
    entry = d.add_entry("g p t", "GPT")
    rule = d.add_rule("数字用阿拉伯数字")

    reloaded = PersonalDictionary(tmp_path)
    assert [(e.original, e.replacement, e.id) for e in reloaded.entries] == [("g p t", "GPT", entry.id)]
    assert [r.id for r in reloaded.edit_rules] == [rule.id]
    assert (tmp_path / "dictionary.json").exists()
    assert (tmp_path / "edit_rules.json").exists()


def test_replacements_apply_in_order(tmp_path):
    d = PersonalDictionary(tmp_path)
    d.add_entry("a", "b")
    d.add_entry("b", "c")
    assert d.apply_replacements("a") == "c"


def test_disabled_and_empty_entries_are_skipped(tmp_path):
    d = PersonalDictionary(tmp_path)
    d.add_entry("cat", "dog").enabled = False
    d.entries.append(DictionaryEntry(original="", replacement="x"))
    assert d.apply_replacements("cat") == "cat"


def test_remove_entry_and_rule(tmp_path):
    d = PersonalDictionary(tmp_path)
    entry = d.add_entry("x", "y")
    rule = d.add_rule("r")

    assert d.remove_entry(entry.id)
    assert not d.remove_entry(entry.id)
    assert d.remove_rule(rule.id)
    assert PersonalDictionary(tmp_path).entries == []


def test_active_rules_description(tmp_path):
    d = PersonalDictionary(tmp_path)
    d.add_rule("one")
    d.add_rule("two").enabled = False
    d.add_rule("three")
    assert d.active_rules_description() == "one\nthree"


def test_unreadable_files_are_ignored(tmp_path):
    (tmp_path / "dictionary.json").write_text("{not json", encoding="utf-8")
    (tmp_path / "edit_rules.json").write_text(
        json.dumps([{"description": "ok"}, {"nope": 1}]), encoding="utf-8"
    )
    d = PersonalDictionary(tmp_path)
    assert d.entries == []
    assert [r.description for r in d.edit_rules] == ["ok"]


def test_reload_picks_up_external_changes(tmp_path):
    d = PersonalDictionary(tmp_path)
    other = PersonalDictionary(tmp_path)
    other.add_entry("foo", "bar")

    assert d.entries == []
    d.reload()
    assert d.apply_replacements("foo") == "bar"

from pathlib import Path

import pytest

from packsort.classify import MatchMode, RuleError, RuleSet, classify, derive_extension, is_bare_name
from packsort.config import FIXED_TABLE, builtin_rules


def test_longest_suffix_wins_over_shorter_match():
    rules = RuleSet.from_mapping({"json": "RP/x", "rc.json": "RP/render_controllers"})

    target = classify("foo/bar.rc.json", rules)

    assert target == Path("RP", "render_controllers", "foo", "bar.rc.json")


def test_match_order_does_not_depend_on_mapping_order():
    forward = RuleSet.from_mapping({"json": "RP/x", "rc.json": "RP/render_controllers"})
    backward = RuleSet.from_mapping({"rc.json": "RP/render_controllers", "json": "RP/x"})

    assert forward == backward
    assert classify("foo/bar.rc.json", forward) == classify("foo/bar.rc.json", backward)


def test_suffix_is_plain_string_match():
    rules = RuleSet.from_mapping({"json": "RP/x"})

    assert classify("foo.json", rules) == Path("RP", "x", "foo.json")
    assert classify("a/foo.rc.json", rules) == Path("RP", "x", "a", "foo.rc.json")


def test_classify_is_deterministic():
    rules = builtin_rules()
    results = {classify("a/b/c.bpe.json", rules) for _ in range(20)}

    assert results == {Path("BP", "entities", "a", "b", "c.bpe.json")}


@pytest.mark.parametrize("name", ["_bpe.json", "_.bpe.json", "bpe.json"])
def test_bare_file_takes_parent_directory_name(name):
    rules = RuleSet.from_mapping({"bpe.json": "BP/entities"})

    target = classify(f"entities/{name}", rules)

    assert target == Path("BP", "entities", "entities.bpe.json")


def test_bare_file_moves_up_one_level():
    rules = RuleSet.from_mapping({".bpe.json": "BP/entities"})

    target = classify("mobs/zombie/_.bpe.json", rules)

    assert target == Path("BP", "entities", "mobs", "zombie.bpe.json")


def test_bare_file_without_parent_is_unmapped():
    rules = RuleSet.from_mapping({"bpe.json": "BP/entities"})

    assert classify("_bpe.json", rules) is None


def test_unmapped_file_returns_none():
    rules = RuleSet.from_mapping({"lang": "RP/texts"})

    assert classify("readme.txt", rules) is None


def test_empty_path_is_unmapped():
    rules = RuleSet.from_mapping({"lang": "RP/texts"})

    assert classify("", rules) is None


def test_template_separators_become_native():
    rules = RuleSet.from_mapping({"geo.json": "RP/models/entity"})

    target = classify("foo.geo.json", rules)

    assert target.parts == ("RP", "models", "entity", "foo.geo.json")


def test_fixed_table_geometry():
    target = classify("models/foo.geo.json", builtin_rules())

    assert target == Path("RP", "models", "entity", "models", "foo.geo.json")


def test_fixed_table_plain_extension():
    assert classify("en_US.lang", builtin_rules()) == Path("RP", "texts", "en_US.lang")
    assert classify("sfx/hit.ogg", builtin_rules()) == Path("RP", "sounds", "sfx", "hit.ogg")


def test_fixed_table_needs_exact_extension():
    # "abr.json" derives the extension "abr.json", which is not "r.json".
    assert classify("abr.json", builtin_rules()) is None
    assert classify("data.json", builtin_rules()) is None


def test_fixed_table_bare_file_with_underscore():
    target = classify("zombie/_bpe.json", builtin_rules())

    assert target == Path("BP", "entities", "zombie.bpe.json")


@pytest.mark.parametrize(
    "path",
    ["a/b.i.json", "a/b.bpi.json", "x/y.fr.json", "x/_.rc.json", "models/foo.geo.json", "t/en_US.lang"],
)
def test_suffix_and_extension_modes_agree(path):
    suffix_rules = RuleSet.from_mapping(FIXED_TABLE, mode=MatchMode.suffix)

    assert classify(path, suffix_rules) == classify(path, builtin_rules())


def test_derive_extension():
    assert derive_extension("foo.rc.json") == "rc.json"
    assert derive_extension("foo.png") == "png"
    assert derive_extension("_.bpe.json") == "bpe.json"
    assert derive_extension("_bpe.json") == "bpe.json"
    assert derive_extension("lang") == "lang"


def test_is_bare_name():
    assert is_bare_name("_bpe.json", "bpe.json")
    assert is_bare_name("_.bpe.json", ".bpe.json")
    assert not is_bare_name("zombie.bpe.json", "bpe.json")


def test_rule_set_rejects_bad_rules():
    with pytest.raises(RuleError):
        RuleSet.from_mapping({"": "RP/texts"})
    with pytest.raises(RuleError):
        RuleSet.from_mapping({"lang": "/"})
    with pytest.raises(RuleError):
        RuleSet.from_mapping({"lang": 3})


def test_dotted_and_plain_suffixes_are_separate_rules():
    rules = RuleSet.from_mapping({"bpe.json": "BP/plain", ".bpe.json": "BP/dotted"})

    assert [rule.suffix for rule in rules.rules] == [".bpe.json", "bpe.json"]
    assert classify("a/zombie.bpe.json", rules) == Path("BP", "dotted", "a", "zombie.bpe.json")
    assert classify("a/_bpe.json", rules) == Path("BP", "plain", "a.bpe.json")

"""Tests for substitution rule resolution and application."""

import warnings

import pytest

from agentpack.errors import AmbiguousRuleWarning
from agentpack.mapping import MappingSpec
from agentpack.rules import Direction, MappingResolver, scope_matches


def _resolver(*groups):
    return MappingResolver(MappingSpec.from_dict({"map": list(groups)}))


# ── Scope matching ───────────────────────────────────────────────────

def test_whole_project_scope_covers_everything():
    assert scope_matches(".", "a/b/c.txt")
    assert scope_matches("", "README.md")


def test_directory_scope_respects_separator_boundary():
    assert scope_matches("src", "src/main.py")
    assert scope_matches("src", "src/pkg/mod.py")
    assert not scope_matches("src", "srcx/main.py")


def test_file_scope_is_exact():
    assert scope_matches("src/a.txt", "src/a.txt")
    assert not scope_matches("src/a.txt", "src/ab.txt")
    assert not scope_matches("src/a.txt", "src/a.txt.bak")


def test_matching_groups_keep_declaration_index():
    resolver = _resolver(
        {"scope": "docs", "list": [{"x": "y"}]},
        {"scope": ".", "list": [{"a": "b"}]},
        {"scope": "src", "list": [{"c": "d"}]},
    )

    assert [idx for idx, _ in resolver.matching_groups("src/main.py")] == [1, 2]


# ── Forward rules ────────────────────────────────────────────────────

def test_longer_source_wins_regardless_of_declaration_order():
    resolver = _resolver({"list": [{"a": "Y"}, {"ab": "X"}]})

    rules = resolver.forward_rules("file.txt")

    assert rules.pairs == (("ab", "X"), ("a", "Y"))
    assert rules.apply(b"ab a") == b"X Y"


def test_equal_length_sources_keep_declaration_order():
    resolver = _resolver({"list": [{"foo": "1"}, {"bar": "2"}, {"baz": "3"}]})
    assert [k for k, _ in resolver.forward_rules("f").pairs] == ["foo", "bar", "baz"]


def test_scoped_rules_only_apply_inside_scope():
    resolver = _resolver(
        {"scope": ".", "list": [{"Acme": "ANON"}]},
        {"scope": "src/a.txt", "list": [{"secret": "S"}]},
    )

    assert len(resolver.forward_rules("src/a.txt")) == 2
    assert len(resolver.forward_rules("src/ab.txt")) == 1


def test_exact_duplicates_are_collapsed():
    resolver = _resolver(
        {"scope": ".", "list": [{"Acme": "ANON"}]},
        {"scope": "src", "list": [{"Acme": "ANON"}]},
    )

    with warnings.catch_warnings():
        warnings.simplefilter("error")
        inverse = resolver.inverse_rules("src/main.py")

    assert resolver.forward_rules("src/main.py").pairs == (("Acme", "ANON"),)
    assert inverse.pairs == (("ANON", "Acme"),)


def test_forward_and_inverse_round_trip():
    resolver = _resolver({"list": [{"Acme": "ANON"}, {"acme.internal": "HOST_A"}]})
    original = b"client=AcmeAcme host=acme.internal"

    hidden = resolver.forward_rules("cfg.ini").apply(original)

    assert hidden == b"client=ANONANON host=HOST_A"
    assert resolver.inverse_rules("cfg.ini").apply(hidden) == original


def test_non_ascii_text_is_replaced_as_utf8():
    resolver = _resolver({"list": [{"Café Ltd": "CO"}]})
    data = "owner: Café Ltd\n".encode("utf-8")
    assert resolver.forward_rules("x").apply(data) == b"owner: CO\n"


# ── Inverse rules ────────────────────────────────────────────────────

def test_inverse_orders_by_placeholder_length():
    resolver = _resolver({"list": [{"alpha": "X"}, {"beta": "XY"}]})

    rules = resolver.inverse_rules("f")

    assert rules.direction is Direction.INVERSE
    assert rules.pairs == (("XY", "beta"), ("X", "alpha"))
    assert rules.apply(b"XY X") == b"beta alpha"


def test_shared_placeholder_keeps_first_declared_source_and_warns():
    resolver = _resolver(
        {"list": [{"Acme": "CORP"}]},
        {"list": [{"Globex": "CORP"}]},
    )

    with pytest.warns(AmbiguousRuleWarning) as record:
        rules = resolver.inverse_rules("README.md")

    assert rules.pairs == (("CORP", "Acme"),)
    assert record[0].message.kept == "Acme"
    assert record[0].message.dropped == ("Globex",)
    assert resolver.ambiguities("README.md") == {"CORP": ["Acme", "Globex"]}


def test_empty_placeholder_is_not_inverted():
    resolver = _resolver({"list": [{"token-123": ""}, {"Acme": "ANON"}]})

    assert resolver.forward_rules("f").apply(b"Acme token-123") == b"ANON "
    assert resolver.inverse_rules("f").pairs == (("ANON", "Acme"),)


def test_rules_for_dispatches_on_direction():
    resolver = _resolver({"list": [{"Acme": "ANON"}]})

    assert resolver.rules_for("f", Direction.FORWARD).pairs == (("Acme", "ANON"),)
    assert resolver.rules_for("f", Direction.INVERSE).pairs == (("ANON", "Acme"),)


def test_no_rules_is_falsy_and_identity():
    rules = _resolver().forward_rules("f")
    assert not rules
    assert rules.apply(b"unchanged") == b"unchanged"

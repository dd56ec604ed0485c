"""
Tests for Rails DSL vocabulary and call classification.
"""

import itertools

import pytest

from rubis.ast import nodes
from rubis.features import dsl
from rubis.features.dsl import DslKind, classify, classify_name


VOCABULARY_SETS = {
    "associations": dsl.ASSOCIATIONS,
    "callbacks": dsl.CALLBACKS,
    "validations": dsl.VALIDATIONS,
    "controller_routes": dsl.CONTROLLER_ROUTES,
}


def first_call(parse, source: str) -> nodes.CallNode:
    statement = parse(source).statements.body[0]
    assert isinstance(statement, nodes.CallNode)
    return statement


class TestVocabulary:
    @pytest.mark.parametrize(
        "left,right", list(itertools.combinations(sorted(VOCABULARY_SETS), 2))
    )
    def test_sets_are_disjoint(self, left, right):
        """Test no method belongs to two vocabularies."""
        assert not VOCABULARY_SETS[left] & VOCABULARY_SETS[right]

    def test_no_member_looks_like_a_route_helper(self):
        """Test no vocabulary member ends like a route helper."""
        for name in itertools.chain.from_iterable(VOCABULARY_SETS.values()):
            assert not name.endswith(("_path", "_url")), name

    def test_callbacks_cover_models_controllers_and_jobs(self):
        """Test callbacks include model, controller and job hooks."""
        assert {"before_save", "before_action", "around_perform"} <= dsl.CALLBACKS

    def test_vocabulary_maps_every_member(self):
        """Test the vocabulary maps each member to its kind."""
        for name in dsl.VALIDATIONS:
            assert dsl.VOCABULARY[name] is DslKind.VALIDATION
        for name in dsl.CALLBACKS:
            assert dsl.VOCABULARY[name] is DslKind.CALLBACK


class TestClassifyName:
    @pytest.mark.parametrize(
        "name,kind",
        [
            ("has_many", DslKind.ASSOCIATION),
            ("belongs_to", DslKind.ASSOCIATION),
            ("before_action", DslKind.CALLBACK),
            ("after_commit", DslKind.CALLBACK),
            ("validate", DslKind.VALIDATION),
            ("validates_presence_of", DslKind.VALIDATION),
            ("get", DslKind.CONTROLLER_ROUTE),
            ("root", DslKind.CONTROLLER_ROUTE),
            ("users_path", DslKind.ROUTE_HELPER),
            ("edit_user_url", DslKind.ROUTE_HELPER),
            ("namespace", DslKind.NONE),
            ("scope", DslKind.NONE),
            ("delegate", DslKind.NONE),
            ("", DslKind.NONE),
            (None, DslKind.NONE),
        ],
    )
    def test_classify_name(self, name, kind):
        """Test classification by method name."""
        assert classify_name(name) is kind


class TestClassify:
    def test_implicit_receiver(self, parse):
        """Test calls on the implicit receiver are classified."""
        assert classify(first_call(parse, "has_many :posts\n")) is DslKind.ASSOCIATION

    def test_self_receiver(self, parse):
        """Test calls on self are classified."""
        assert classify(first_call(parse, "self.before_save :x\n")) is DslKind.CALLBACK

    def test_explicit_receiver(self, parse):
        """Test calls on another object are not DSL."""
        assert classify(first_call(parse, "Foo.before_save :x\n")) is DslKind.NONE

    def test_helper_with_explicit_receiver(self, parse):
        """Test route helpers on another object are not DSL."""
        assert classify(first_call(parse, "helpers.users_path\n")) is DslKind.NONE

    def test_bare_helper(self, parse):
        """Test a bare identifier ending in _path is a route helper."""
        assert classify(first_call(parse, "users_path\n")) is DslKind.ROUTE_HELPER

    def test_none(self):
        """Test classifying no call."""
        assert classify(None) is DslKind.NONE

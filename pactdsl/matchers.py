# -*- coding: utf-8 -*-
"""
Matcher values that can be embedded anywhere in an expected request or
response, and the walk that turns such a value tree into an example value
plus its MatchingRuleSet.
"""

import copy
import re

from .exceptions import ValidationError
from .rules import (
    ROOT,
    DecimalRule,
    EqualityRule,
    IncludeRule,
    IntegerRule,
    MatchingRuleSet,
    MaxArrayLengthRule,
    MinArrayLengthRule,
    RegexRule,
    TypeRule,
    append_index,
    append_key,
)


class Matcher(object):
    """
        Base class of the matcher values.

        ``generate`` attaches the matcher's rules at ``path`` and returns the
        example value that stands in the contract for the matcher.
    """

    def generate(self, path, rules, derived=False):
        raise NotImplementedError


class Like(Matcher):
    """Match any value of the same type as ``example``."""

    def __init__(self, example):
        self.example = example

    def generate(self, path, rules, derived=False):
        rules.attach(path, TypeRule(), derived=derived)
        return _walk(self.example, path, rules, derived)


SomethingLike = Like


class EachLike(Matcher):
    """
        Match an array of at least ``minimum`` (and at most ``maximum``)
        elements, each of the same type as ``example``.
    """

    def __init__(self, example, minimum=1, maximum=None):
        if maximum is not None and maximum < minimum:
            raise ValidationError(
                'EachLike maximum %s is lower than its minimum %s' % (maximum, minimum))
        self.example = example
        self.minimum = minimum
        self.maximum = maximum

    def generate(self, path, rules, derived=False):
        rules.attach(path, TypeRule(), derived=derived)
        rules.attach(path, MinArrayLengthRule(self.minimum), derived=derived)
        if self.maximum is not None:
            rules.attach(path, MaxArrayLengthRule(self.maximum), derived=derived)
        item = _walk(self.example, append_index(path, '*'), rules, derived)
        return [copy.deepcopy(item) for _ in range(max(self.minimum, 1))]


class Term(Matcher):
    """Match a string against the regex ``matcher``, ``generate`` being the example."""

    def __init__(self, matcher, generate):
        self.rule = RegexRule(matcher)
        if not isinstance(generate, str) or not re.search(matcher, generate):
            raise ValidationError(
                'example %r does not match regex %r' % (generate, matcher))
        self.matcher = matcher
        self.example = generate

    def generate(self, path, rules, derived=False):
        rules.attach(path, self.rule, derived=derived)
        return self.example


class Integer(Matcher):
    def __init__(self, example=1):
        self.example = example

    def generate(self, path, rules, derived=False):
        rules.attach(path, IntegerRule(), derived=derived)
        return self.example


class Decimal(Matcher):
    def __init__(self, example=1.0):
        self.example = example

    def generate(self, path, rules, derived=False):
        rules.attach(path, DecimalRule(), derived=derived)
        return self.example


class Includes(Matcher):
    """Match a string containing ``value``."""

    def __init__(self, value, example=None):
        self.value = value
        self.example = value if example is None else example
        if value not in self.example:
            raise ValidationError('example %r does not include %r' % (self.example, value))

    def generate(self, path, rules, derived=False):
        rules.attach(path, IncludeRule(self.value), derived=derived)
        return self.example


class Equality(Matcher):
    """
        Match by equality, typically to stop a type rule cascading from a
        parent path.
    """

    def __init__(self, example):
        self.example = example

    def generate(self, path, rules, derived=False):
        rules.attach(path, EqualityRule(), derived=derived)
        return _walk(self.example, path, rules, derived)


def _walk(value, path, rules, derived):
    if isinstance(value, Matcher):
        return value.generate(path, rules, derived)
    if isinstance(value, dict):
        return dict(
            (key, _walk(child, append_key(path, key), rules, derived))
            for key, child in value.items())
    if isinstance(value, (list, tuple)):
        return [
            _walk(child, append_index(path, index), rules, derived)
            for index, child in enumerate(value)]
    return value


def extract_rules(value, rules=None, derived=False, path=ROOT):
    """
        Walk a value tree, replacing matchers by their example.

        Return: (example value, MatchingRuleSet)
    """
    rules = MatchingRuleSet() if rules is None else rules
    example = _walk(value, path, rules, derived)
    return example, rules


class Kind(object):
    """
        Schema leaf standing for "any value of kind ``name``".
    """
    EXAMPLES = {
        'string': 'string',
        'integer': 1,
        'decimal': 1.1,
        'number': 1,
        'boolean': True,
    }

    def __init__(self, name, example=None, regex=None):
        if name not in self.EXAMPLES:
            raise ValidationError('unknown schema kind %r' % (name,))
        if regex is not None and example is None:
            raise ValidationError('a %s kind with a regex needs an example' % name)
        self.name = name
        self.example = self.EXAMPLES[name] if example is None else example
        self.regex = regex

    def to_matcher(self):
        if self.regex is not None:
            return Term(self.regex, self.example)
        return Like(self.example)


class Many(object):
    """Schema node standing for an array of at least ``minimum`` ``node``."""

    def __init__(self, node, minimum=1):
        self.node = node
        self.minimum = minimum


def derive_matchers(schema):
    """
        Turn a schema description into a matcher value tree.

        Literals are left untouched and match by equality, ``Kind`` leaves
        become type (or regex) matchers and ``Many`` nodes become
        ``EachLike``.
    """
    if isinstance(schema, Kind):
        return schema.to_matcher()
    if isinstance(schema, Many):
        return EachLike(derive_matchers(schema.node), minimum=schema.minimum)
    if isinstance(schema, dict):
        return dict((key, derive_matchers(node)) for key, node in schema.items())
    if isinstance(schema, (list, tuple)):
        return [derive_matchers(node) for node in schema]
    return schema

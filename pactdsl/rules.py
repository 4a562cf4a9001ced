# -*- coding: utf-8 -*-

import logging
import re
from collections import OrderedDict

from .exceptions import (
    ConflictingRuleKind,
    DanglingMatcherPath,
    InvalidPath,
    InvalidPattern,
    OutOfSequence,
    UnsupportedMatcherForVersion,
    ValidationError,
)
from .specification import SpecificationVersion


logger = logging.getLogger(__name__)


ROOT = '$'
IDENTIFIER_RE = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')
SIMPLE_NAME_RE = re.compile(r"^\$(?:\.(?P<dot>[^.\[\]'*]+)|\['(?P<bracket>[^'\]]+)'\])$")

# Category prefixes of the flat v2 matchingRules mapping.
V2_PREFIXES = OrderedDict([
    ('path', '$.path'),
    ('query', '$.query'),
    ('header', '$.headers'),
    ('body', '$.body'),
])


class MatchRule(object):
    """
        Base class for PACT rules.

        A rule is identified by its kind and its parameter; it never depends
        on the example value it was generated from.
    """
    kind = None
    minimum_version = SpecificationVersion.V2

    def __init__(self, param=None):
        self.param = param

    def to_dict(self):
        return {'match': self.kind}

    def __eq__(self, other):
        return (
            isinstance(other, MatchRule)
            and (self.kind, self.param) == (other.kind, other.param))

    def __ne__(self, other):
        return not self == other

    def __hash__(self):
        return hash((self.kind, self.param))

    def __repr__(self):
        if self.param is None:
            return '%s()' % self.__class__.__name__
        return '%s(%r)' % (self.__class__.__name__, self.param)


class EqualityRule(MatchRule):
    kind = 'equality'
    minimum_version = SpecificationVersion.V3


class TypeRule(MatchRule):
    kind = 'type'


class RegexRule(MatchRule):
    kind = 'regex'

    def __init__(self, pattern):
        try:
            re.compile(pattern)
        except (re.error, TypeError) as e:
            raise InvalidPattern(pattern, e)
        super(RegexRule, self).__init__(pattern)

    @property
    def pattern(self):
        return self.param

    def to_dict(self):
        return {'match': self.kind, 'regex': self.param}


class MinArrayLengthRule(MatchRule):
    kind = 'min'

    def __init__(self, minimum):
        if isinstance(minimum, bool) or not isinstance(minimum, int) or minimum < 0:
            raise ValidationError('array length bound must be a positive integer, got %r' % (minimum,))
        super(MinArrayLengthRule, self).__init__(minimum)

    def to_dict(self):
        return {self.kind: self.param}


class MaxArrayLengthRule(MinArrayLengthRule):
    kind = 'max'


class IntegerRule(MatchRule):
    kind = 'integer'
    minimum_version = SpecificationVersion.V3


class DecimalRule(MatchRule):
    kind = 'decimal'
    minimum_version = SpecificationVersion.V3


class IncludeRule(MatchRule):
    kind = 'include'
    minimum_version = SpecificationVersion.V3

    def to_dict(self):
        return {'match': self.kind, 'value': self.param}


BOUND_KINDS = (MinArrayLengthRule.kind, MaxArrayLengthRule.kind)


def encode_rules(rules):
    """
        Serialize the rules of one path as a list of matcher entries.

        Array bounds are folded into the type rule when there is one, which
        is how ``EachLike`` style matchers are written in pact files.
    """
    bounds = dict((rule.kind, rule.param) for rule in rules if rule.kind in BOUND_KINDS)
    entries = []
    for rule in rules:
        if rule.kind in BOUND_KINDS:
            continue
        entry = rule.to_dict()
        if rule.kind == TypeRule.kind and bounds:
            entry.update(bounds)
            bounds = {}
        entries.append(entry)
    if bounds:
        entries.append(bounds)
    return entries


def decode_entry(entry):
    """Build the list of MatchRule described by one matcher entry."""
    rules = []
    match = entry.get('match')
    if match == 'regex':
        rules.append(RegexRule(entry['regex']))
    elif match == 'type':
        rules.append(TypeRule())
    elif match == 'integer':
        rules.append(IntegerRule())
    elif match == 'decimal':
        rules.append(DecimalRule())
    elif match == 'include':
        rules.append(IncludeRule(entry['value']))
    elif match == 'equality':
        rules.append(EqualityRule())
    elif match is not None:
        logger.debug('Unrecognised matcher %s, defaulting to equality matching', entry)
        rules.append(EqualityRule())
    if entry.get('min') is not None:
        rules.append(MinArrayLengthRule(entry['min']))
    if entry.get('max') is not None:
        rules.append(MaxArrayLengthRule(entry['max']))
    if not rules:
        logger.debug('Unrecognised matcher %s, defaulting to equality matching', entry)
        rules.append(EqualityRule())
    return rules


def append_key(path, key):
    if IDENTIFIER_RE.match(key):
        return '%s.%s' % (path, key)
    return "%s['%s']" % (path, key)


def append_index(path, index):
    return '%s[%s]' % (path, index)


def concrete_paths(value, path="['$']"):
    """
        Yield the bracket path of every node of a value tree, root included.
    """
    yield path
    if isinstance(value, dict):
        for key, child in value.items():
            for sub_path in concrete_paths(child, "%s['%s']" % (path, key)):
                yield sub_path
    elif isinstance(value, (list, tuple)):
        for index, child in enumerate(value):
            for sub_path in concrete_paths(child, '%s[%s]' % (path, index)):
                yield sub_path


class PathMatcher(object):
    """
        Stores a json_path as a regex.

        It enables to quickly determine if a given path inside a tree structure
        matches the json_path.
    """
    def __init__(self, regex):
        self._regex = re.compile(regex)

    def match(self, path):
        return bool(re.match(self._regex, path))

    @classmethod
    def from_jsonpath(cls, jsonpath):
        """
            Use some regex to build a regex from a jsonpath… inception

            Some rules applying to ``jsonpath``:
              it must start with a dollar sign
              ] and ' characters are not allowed in keys between brackets
              [ and ] characters are not allowed in keys between dots
              [] and [*] match any list index
        """
        if not isinstance(jsonpath, str) or not jsonpath.startswith(ROOT):
            raise InvalidPath(jsonpath)
        jsonpath = '.%s' % jsonpath  # pre-process so that the $ character can be handled like any other

        match_dot_re = r"(?<=\.)(?P<dot>[^.\[\]]*)"
        match_bracket_re = r"(?<=\[)(?P<bracket>(?P<quote>')?[^'\]]*(?(quote)')\])"
        jsonpath_re = re.compile(r"%s|%s" % (match_dot_re, match_bracket_re))

        regex = r''
        split = re.findall(jsonpath_re, jsonpath)
        if not split or split[0][0] != ROOT:
            raise InvalidPath(jsonpath[1:])
        for i, (dot_match, bracket_match, _quote) in enumerate(split):
            if bracket_match:
                # We kept the final bracket in the group to distinguish between
                # a dot match and a bracket match. Otherwise both could be
                # equal to the empty string. Now it's time to remove it.
                bracket_match = bracket_match[:-1]
                if bracket_match in ('*', ''):
                    regex += r"\[[0-9]+\]"
                elif bracket_match.startswith("'"):
                    regex += r"\[%s\]" % re.escape(bracket_match)
                else:
                    try:
                        int(bracket_match)
                    except ValueError:
                        raise InvalidPath(jsonpath[1:])
                    regex += r"\[%s\]" % re.escape(bracket_match)
            elif not dot_match:
                regex += r"\[\'[^']*\'\]"
            elif dot_match == '*':
                if i == len(split) - 1:  # ending star
                    regex += r".*"
                else:
                    regex += r"\[\'.*\'\]"
            else:
                regex += r"\[\'%s\'\]" % re.escape(dot_match)
        regex += r"$"
        return cls(regex)


class MatchingRuleSet(object):
    """
        Matching rules of one category (body, header, query or path), keyed
        by json path.

        A path holds at most one rule of each kind. Rules attached with
        ``derived=True`` may be replaced by a later manual rule of the same
        kind.
    """

    def __init__(self):
        self._rules = OrderedDict()
        self._path_matchers = {}
        self._derived = set()
        self.frozen = False

    def attach(self, path, rule, derived=False):
        if self.frozen:
            raise OutOfSequence('attach', 'finalized')
        if path not in self._path_matchers:
            self._path_matchers[path] = PathMatcher.from_jsonpath(path)
        at_path = self._rules.get(path, OrderedDict())
        existing = at_path.get(rule.kind)
        if existing is not None and existing != rule:
            overridable = self.is_derived(path, rule.kind) and not derived
            if not overridable:
                raise ConflictingRuleKind(path, existing, rule)
            logger.debug('Manual rule %r overrides derived rule %r at %s', rule, existing, path)
        at_path[rule.kind] = rule
        self._rules[path] = at_path
        if derived and existing is None:
            self._derived.add((path, rule.kind))
        elif not derived:
            self._derived.discard((path, rule.kind))
        return self

    def is_derived(self, path, kind):
        return (path, kind) in self._derived

    def rules_at(self, path):
        return list(self._rules.get(path, {}).values())

    def paths(self):
        return list(self._rules)

    def detach(self, path):
        """Drop the rules at ``path`` and at every path below it."""
        if self.frozen:
            raise OutOfSequence('detach', 'finalized')
        for known in self.paths():
            if known == path or known.startswith((path + '[', path + '.')):
                del self._rules[known]
                del self._path_matchers[known]
                self._derived = set(item for item in self._derived if item[0] != known)
        return self

    def collapse_values(self, values):
        """
            Rules of a ``key -> [value, ...]`` mapping as pact files write
            them: rules shared by every value of a key are set on the key,
            the others stay on the index of their value.
        """
        collapsed = MatchingRuleSet()
        seen = set()
        for key, key_values in values.items():
            key_path = append_key(ROOT, key)
            indexed = [append_index(key_path, index) for index in range(len(key_values))]
            seen.update(indexed)
            per_value = [self.rules_at(path) for path in indexed]
            if per_value and per_value[0] and all(set(rules) == set(per_value[0]) for rules in per_value):
                for rule in per_value[0]:
                    collapsed.attach(key_path, rule)
                continue
            for path, rules in zip(indexed, per_value):
                for rule in rules:
                    collapsed.attach(path, rule)
        for path, rule in self:
            if path not in seen:
                collapsed.attach(path, rule)
        return collapsed

    def expand_values(self, values):
        """Inverse of ``collapse_values``: key rules go to every value of the key."""
        expanded = MatchingRuleSet()
        for path, rule in self:
            match = SIMPLE_NAME_RE.match(path)
            key = match and (match.group('dot') or match.group('bracket'))
            if key in values:
                for index in range(len(values[key])):
                    expanded.attach(append_index(path, index), rule)
            else:
                expanded.attach(path, rule)
        return expanded

    def resolve(self, value):
        """
            Check that every path designates at least one node of ``value``.
        """
        nodes = list(concrete_paths(value))
        for path, matcher in self._path_matchers.items():
            if path in self._rules and not any(matcher.match(node) for node in nodes):
                raise DanglingMatcherPath(path)
        return self

    def validate(self, version):
        version = SpecificationVersion.parse(version)
        for path, at_path in self._rules.items():
            for rule in at_path.values():
                if version < rule.minimum_version:
                    raise UnsupportedMatcherForVersion(path, rule.kind, version)
            if version == SpecificationVersion.V2:
                matching = [kind for kind in at_path if kind not in BOUND_KINDS]
                if len(matching) > 1:
                    raise UnsupportedMatcherForVersion(
                        path, matching[1], version, 'only one match kind per path')
        return self

    def freeze(self):
        self.frozen = True
        return self

    def to_v2(self, category):
        prefix = V2_PREFIXES[category]
        rules = OrderedDict()
        for path, at_path in self._rules.items():
            merged = {}
            for entry in encode_rules(list(at_path.values())):
                if 'match' in entry and 'match' in merged:
                    raise UnsupportedMatcherForVersion(
                        path, entry['match'], SpecificationVersion.V2, 'only one match kind per path')
                merged.update(entry)
            rules[prefix + path[len(ROOT):]] = merged
        return rules

    def to_v3(self, category):
        if category == 'path':
            rules = self.rules_at(ROOT)
            return {'matchers': encode_rules(rules), 'combine': 'AND'} if rules else {}
        serialized = OrderedDict()
        for path, at_path in self._rules.items():
            key = path
            if category != 'body':
                match = SIMPLE_NAME_RE.match(path)
                if match:
                    key = match.group('dot') or match.group('bracket')
            serialized[key] = {'matchers': encode_rules(list(at_path.values())), 'combine': 'AND'}
        return serialized

    @classmethod
    def from_v2(cls, matching_rules, category):
        prefix = V2_PREFIXES[category]
        rule_set = cls()
        for key, entry in (matching_rules or {}).items():
            rest = key[len(prefix):]
            if not key.startswith(prefix) or (rest and rest[0] not in '.['):
                continue
            for rule in decode_entry(entry):
                rule_set.attach(ROOT + rest, rule)
        return rule_set

    @classmethod
    def from_v3(cls, matching_rules, category):
        rule_set = cls()
        if category == 'path':
            entries = (matching_rules or {}).get('matchers', [])
            for entry in entries:
                for rule in decode_entry(entry):
                    rule_set.attach(ROOT, rule)
            return rule_set
        for key, value in (matching_rules or {}).items():
            path = key if key.startswith(ROOT) else append_key(ROOT, key)
            for entry in value.get('matchers', []):
                for rule in decode_entry(entry):
                    rule_set.attach(path, rule)
        return rule_set

    def __iter__(self):
        for path, at_path in self._rules.items():
            for rule in at_path.values():
                yield path, rule

    def __len__(self):
        return sum(len(at_path) for at_path in self._rules.values())

    def __eq__(self, other):
        if not isinstance(other, MatchingRuleSet):
            return NotImplemented
        return (
            dict((path, dict(at_path)) for path, at_path in self._rules.items())
            == dict((path, dict(at_path)) for path, at_path in other._rules.items()))

    def __ne__(self, other):
        result = self.__eq__(other)
        return result if result is NotImplemented else not result

    def __repr__(self):
        return 'MatchingRuleSet(%r)' % list(self)

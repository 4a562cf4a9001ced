import pytest

from ..exceptions import (
    ConflictingRuleKind,
    DanglingMatcherPath,
    InvalidPath,
    InvalidPattern,
    OutOfSequence,
    UnsupportedMatcherForVersion,
    ValidationError,
)
from ..rules import (
    EqualityRule,
    IncludeRule,
    IntegerRule,
    MatchingRuleSet,
    MaxArrayLengthRule,
    MinArrayLengthRule,
    PathMatcher,
    RegexRule,
    TypeRule,
    decode_entry,
    encode_rules,
)
from ..specification import SpecificationVersion


def json_path_testcases():
    return [
        {
            "json_path": "$.toto",
            "match": ["['$']['toto']"],
            "not_match": ["['$']['atoto']"]
        },
        {
            "json_path": "$[0]",
            "match": ["['$'][0]"],
            "not_match": ["['$']['0']", "['$'][1]"]
        },
        {
            "json_path": "$['Content-Type']",
            "match": ["['$']['Content-Type']"],
            "not_match": ["['$']['Content-Length']"]
        },
        {
            "json_path": "$.tag[*][0]",
            "match": ["['$']['tag'][0][0]", "['$']['tag'][3][0]"],
            "not_match": ["['$']['tag'][0][1]", "['$']['tag']['x'][0]"]
        },
        {
            "json_path": "$.toto.titi[*].*",
            "match": ["['$']['toto']['titi'][2]['cucu']['kiki']"],
            "not_match": ["['$']['toto']['titi']['tata']['cucu']['kiki']"]
        },
        {
            "json_path": "$",
            "match": ["['$']"],
            "not_match": ["['$']['toto']"]
        },
    ]


@pytest.fixture(params=json_path_testcases())
def json_path_testcase(request):
    return request.param


def test_json_path_to_regex(json_path_testcase):
    regex = PathMatcher.from_jsonpath(json_path_testcase['json_path'])
    for path in json_path_testcase['match']:
        assert regex.match(path)
    for path in json_path_testcase['not_match']:
        assert not regex.match(path)


@pytest.mark.parametrize("json_path", ['tag', '$tag', "$.tag[x]", 12])
def test_invalid_json_path(json_path):
    with pytest.raises(InvalidPath):
        PathMatcher.from_jsonpath(json_path)


@pytest.fixture
def rules():
    return MatchingRuleSet()


def test_attach_same_rule_twice_is_idempotent(rules):
    rules.attach('$.colour', RegexRule('red|green'))
    rules.attach('$.colour', RegexRule('red|green'))

    assert len(rules) == 1
    assert rules.rules_at('$.colour') == [RegexRule('red|green')]


def test_attach_conflicting_parameter(rules):
    rules.attach('$.colour', RegexRule('red|green'))

    with pytest.raises(ConflictingRuleKind) as error:
        rules.attach('$.colour', RegexRule('blue'))

    assert error.value.path == '$.colour'
    assert rules.rules_at('$.colour') == [RegexRule('red|green')]


def test_attach_different_kinds_on_one_path(rules):
    rules.attach('$.tag', TypeRule())
    rules.attach('$.tag', MinArrayLengthRule(2))

    assert rules.rules_at('$.tag') == [TypeRule(), MinArrayLengthRule(2)]
    assert list(rules) == [('$.tag', TypeRule()), ('$.tag', MinArrayLengthRule(2))]


def test_manual_rule_overrides_derived_rule(rules):
    rules.attach('$.tag', MinArrayLengthRule(1), derived=True)
    rules.attach('$.tag', MinArrayLengthRule(3))

    assert rules.rules_at('$.tag') == [MinArrayLengthRule(3)]
    assert not rules.is_derived('$.tag', 'min')


def test_derived_rule_does_not_override_manual_rule(rules):
    rules.attach('$.tag', MinArrayLengthRule(3))

    with pytest.raises(ConflictingRuleKind):
        rules.attach('$.tag', MinArrayLengthRule(1), derived=True)


def test_attach_to_frozen_rule_set(rules):
    rules.freeze()

    with pytest.raises(OutOfSequence):
        rules.attach('$.tag', TypeRule())


def test_regex_rule_must_compile():
    with pytest.raises(InvalidPattern):
        RegexRule('[a-z')


def test_array_length_must_be_positive():
    with pytest.raises(ValidationError):
        MinArrayLengthRule(-1)


def test_resolve_dangling_path(rules):
    rules.attach('$.colour', TypeRule())

    with pytest.raises(DanglingMatcherPath) as error:
        rules.resolve({'size': 10})

    assert error.value.path == '$.colour'


def test_resolve_wildcards(rules):
    rules.attach('$.tag', MinArrayLengthRule(1))
    rules.attach('$.tag[*][0]', RegexRule('jumper|shirt'))
    rules.attach('$.tag[*].*', TypeRule())

    assert rules.resolve({'tag': [['jumper', 'shirt']]}) is rules


def test_resolve_empty_array_has_no_element(rules):
    rules.attach('$.items[*]', TypeRule())

    with pytest.raises(DanglingMatcherPath):
        rules.resolve({'items': []})


def test_validate_v1_rejects_every_rule(rules):
    rules.attach('$.name', TypeRule())

    with pytest.raises(UnsupportedMatcherForVersion) as error:
        rules.validate(SpecificationVersion.V1)

    assert error.value.path == '$.name'
    assert error.value.version == SpecificationVersion.V1


@pytest.mark.parametrize("rule", [IntegerRule(), EqualityRule(), IncludeRule('a')])
def test_validate_v3_rules_on_v2(rules, rule):
    rules.attach('$.name', rule)

    with pytest.raises(UnsupportedMatcherForVersion):
        rules.validate(SpecificationVersion.V2)
    assert rules.validate(SpecificationVersion.V3) is rules


def test_validate_v2_allows_one_match_kind_per_path(rules):
    rules.attach('$.name', TypeRule())
    rules.attach('$.name', MinArrayLengthRule(1))
    rules.validate(SpecificationVersion.V2)

    rules.attach('$.name', RegexRule('.*'))
    with pytest.raises(UnsupportedMatcherForVersion):
        rules.validate(SpecificationVersion.V2)


def test_encode_rules_folds_bounds_into_type():
    assert encode_rules([TypeRule(), MinArrayLengthRule(2)]) == [{'match': 'type', 'min': 2}]
    assert encode_rules([MinArrayLengthRule(2), MaxArrayLengthRule(4)]) == [{'min': 2, 'max': 4}]
    assert encode_rules([RegexRule('a+'), MinArrayLengthRule(2)]) == [
        {'match': 'regex', 'regex': 'a+'}, {'min': 2}]


def test_decode_entry():
    assert decode_entry({'match': 'type', 'min': 2}) == [TypeRule(), MinArrayLengthRule(2)]
    assert decode_entry({'min': 1}) == [MinArrayLengthRule(1)]
    assert decode_entry({'match': 'include', 'value': 'ab'}) == [IncludeRule('ab')]
    assert decode_entry({'match': 'nonsense'}) == [EqualityRule()]


def test_v2_serialization(rules):
    rules.attach('$.tag', TypeRule())
    rules.attach('$.tag', MinArrayLengthRule(2))
    rules.attach('$.tag[*][0]', RegexRule('jumper|shirt'))

    serialized = rules.to_v2('body')

    assert serialized == {
        '$.body.tag': {'match': 'type', 'min': 2},
        '$.body.tag[*][0]': {'match': 'regex', 'regex': 'jumper|shirt'},
    }
    assert MatchingRuleSet.from_v2(serialized, 'body') == rules
    assert len(MatchingRuleSet.from_v2(serialized, 'header')) == 0


def test_v2_serialization_of_headers(rules):
    rules.attach("$['Content-Type']", RegexRule('application/.*json'))

    serialized = rules.to_v2('header')

    assert serialized == {"$.headers['Content-Type']": {'match': 'regex', 'regex': 'application/.*json'}}
    assert MatchingRuleSet.from_v2(serialized, 'header') == rules


def test_v3_serialization(rules):
    rules.attach("$['Content-Type']", RegexRule('application/.*json'))
    rules.attach('$.Accept', TypeRule())

    serialized = rules.to_v3('header')

    assert serialized == {
        'Content-Type': {'matchers': [{'match': 'regex', 'regex': 'application/.*json'}], 'combine': 'AND'},
        'Accept': {'matchers': [{'match': 'type'}], 'combine': 'AND'},
    }
    assert MatchingRuleSet.from_v3(serialized, 'header') == rules


def test_v3_serialization_of_path(rules):
    rules.attach('$', RegexRule('/items/[0-9]+'))

    serialized = rules.to_v3('path')

    assert serialized == {'matchers': [{'match': 'regex', 'regex': '/items/[0-9]+'}], 'combine': 'AND'}
    assert MatchingRuleSet.from_v3(serialized, 'path') == rules


def test_detach_drops_path_and_children(rules):
    rules.attach("$['content-type'][0]", RegexRule('text/.*'))
    rules.attach("$['content-type']", TypeRule())
    rules.attach('$.Accept[0]', TypeRule())

    rules.detach("$['content-type']")

    assert rules.paths() == ['$.Accept[0]']
    assert rules.resolve({'Accept': ['text/plain']}) is rules


def test_collapse_values_shared_by_every_value(rules):
    rules.attach('$.Accept[0]', RegexRule('.*json'))
    rules.attach('$.Accept[1]', RegexRule('.*json'))

    collapsed = rules.collapse_values({'Accept': ['application/json', 'text/json']})

    assert collapsed.paths() == ['$.Accept']
    assert collapsed.expand_values({'Accept': ['application/json', 'text/json']}) == rules


def test_collapse_values_keeps_distinct_rules_per_value(rules):
    rules.attach('$.id[1]', RegexRule('[a-z]+'))
    rules.attach('$.id[2]', RegexRule('[0-9]+'))
    values = {'id': ['literal', 'a', '1']}

    collapsed = rules.collapse_values(values)

    assert collapsed == rules
    assert collapsed.to_v2('query') == {
        '$.query.id[1]': {'match': 'regex', 'regex': '[a-z]+'},
        '$.query.id[2]': {'match': 'regex', 'regex': '[0-9]+'},
    }
    assert MatchingRuleSet.from_v3(collapsed.to_v3('query'), 'query').expand_values(values) == rules


def test_expand_values_of_unknown_key(rules):
    rules.attach('$.Accept', TypeRule())

    assert rules.expand_values({}).paths() == ['$.Accept']

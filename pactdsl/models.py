"""
Immutable records produced by the interaction builder, and their
serialization for each pact specification version.
"""
import base64
import binascii
import copy
import logging
from collections import OrderedDict, namedtuple
from types import MappingProxyType
from urllib.parse import parse_qsl, urlencode

from .rules import MatchingRuleSet
from .specification import SpecificationVersion


logger = logging.getLogger(__name__)


METHODS = ('GET', 'HEAD', 'POST', 'PUT', 'PATCH', 'DELETE', 'OPTIONS', 'TRACE', 'CONNECT')
JSON_CONTENT_TYPE = 'application/json'
TEXT_CONTENT_TYPES = ('text/', 'application/x-www-form-urlencoded')
V4_INTERACTION_TYPE = 'Synchronous/HTTP'

# Headers whose values may hold a comma, never split when read from a pact.
SINGLE_VALUE_HEADERS = (
    'date', 'accept-datetime', 'if-modified-since', 'if-unmodified-since',
    'expires', 'retry-after', 'last-modified', 'set-cookie')


def is_json_content_type(content_type):
    content_type = (content_type or '').split(';')[0].strip().lower()
    return content_type == JSON_CONTENT_TYPE or content_type.endswith('+json')


def is_text_content_type(content_type):
    content_type = (content_type or '').split(';')[0].strip().lower()
    return (
        is_json_content_type(content_type)
        or content_type.startswith(TEXT_CONTENT_TYPES)
        or content_type.endswith('xml'))


class ProviderState(namedtuple('ProviderState', ['name', 'params'])):
    """A precondition the provider arranges before replaying an interaction."""

    def __new__(cls, name, params=None):
        return super(ProviderState, cls).__new__(cls, name, MappingProxyType(OrderedDict(params or {})))

    def to_dict(self):
        state = {'name': self.name}
        if self.params:
            state['params'] = dict(self.params)
        return state


def _read_only(mapping):
    return MappingProxyType(OrderedDict((key, tuple(values)) for key, values in mapping.items()))


class _Frozen(object):
    """Refuses attribute assignment once sealed."""
    _frozen = False

    def __setattr__(self, name, value):
        if self._frozen:
            raise AttributeError('cannot set %s on a finalized %s' % (name, type(self).__name__))
        super(_Frozen, self).__setattr__(name, value)

    def _seal(self):
        super(_Frozen, self).__setattr__('_frozen', True)


class JsonBody(_Frozen):
    kind = 'json'
    content_type = JSON_CONTENT_TYPE

    def __init__(self, value, rules=None):
        self._value = value
        self.rules = MatchingRuleSet() if rules is None else rules

    @property
    def value(self):
        """The example value; a copy once the body is frozen."""
        if self._frozen:
            return copy.deepcopy(self._value)
        return self._value

    def freeze(self):
        self.rules.freeze()
        self._value = copy.deepcopy(self._value)
        self._seal()

    def content(self):
        return self.value, False


class RawBody(_Frozen):
    kind = 'binary'

    def __init__(self, content_type, data):
        if isinstance(data, str):
            data = data.encode('utf-8')
        self.content_type = content_type
        self.data = data
        self.rules = MatchingRuleSet()

    def freeze(self):
        self.rules.freeze()
        self._seal()

    def content(self):
        """Return: (serialized content, whether it is base64 encoded)"""
        if is_text_content_type(self.content_type):
            try:
                return self.data.decode('utf-8'), False
            except UnicodeDecodeError:
                pass
        return base64.b64encode(self.data).decode('ascii'), True


class MultipartBody(RawBody):
    """A file sent as one part of a multipart/form-data body."""
    kind = 'multipart'

    def __init__(self, content_type, data, filename, part_name, part_content_type):
        super(MultipartBody, self).__init__(content_type, data)
        self.filename = filename
        self.part_name = part_name
        self.part_content_type = part_content_type


def _body_to_dict(body, version):
    content, encoded = body.content()
    if version >= SpecificationVersion.V4:
        return {
            'content': content,
            'contentType': body.content_type,
            'encoded': 'base64' if encoded else False,
        }
    return content


def _body_from_dict(body, headers, rules, version):
    content_type = None
    for key, values in headers.items():
        if key.lower() == 'content-type' and values:
            content_type = values[0]
    if version >= SpecificationVersion.V4 and isinstance(body, dict) and 'content' in body:
        content_type = body.get('contentType', content_type)
        encoded = body.get('encoded')
        body = body['content']
        if encoded:
            return RawBody(content_type, base64.b64decode(body))
    if content_type is None or is_json_content_type(content_type) or not isinstance(body, str):
        return JsonBody(body, rules)
    if is_text_content_type(content_type):
        return RawBody(content_type, body)
    try:
        return RawBody(content_type, base64.b64decode(body, validate=True))
    except (binascii.Error, ValueError):
        return RawBody(content_type, body)


def _headers_to_dict(headers, version):
    if version >= SpecificationVersion.V4:
        return dict((key, list(values)) for key, values in headers.items())
    return dict((key, ', '.join(str(value) for value in values)) for key, values in headers.items())


def _multi_dict(mapping):
    result = OrderedDict()
    for key, values in (mapping or {}).items():
        result[key] = list(values) if isinstance(values, (list, tuple)) else [values]
    return result


def _headers_from_dict(headers, version):
    """
        Before v4 the values of a header are joined with commas, split them
        back unless the header is known to hold a single value.
    """
    if version >= SpecificationVersion.V4:
        return _multi_dict(headers)
    result = OrderedDict()
    for key, value in (headers or {}).items():
        if isinstance(value, str) and key.lower() not in SINGLE_VALUE_HEADERS:
            result[key] = [part.strip() for part in value.split(',')]
        else:
            result[key] = list(value) if isinstance(value, (list, tuple)) else [value]
    return result


def _rules_to_dict(categories, version):
    if version == SpecificationVersion.V2:
        matching_rules = OrderedDict()
        for category, rules in categories:
            matching_rules.update(rules.to_v2(category))
        return matching_rules
    matching_rules = OrderedDict()
    for category, rules in categories:
        if len(rules):
            matching_rules[category] = rules.to_v3(category)
    return matching_rules


def _rules_from_dict(matching_rules, category, version):
    if version == SpecificationVersion.V1:
        return MatchingRuleSet()
    if version == SpecificationVersion.V2:
        return MatchingRuleSet.from_v2(matching_rules, category)
    return MatchingRuleSet.from_v3((matching_rules or {}).get(category), category)


class _MessageSpec(_Frozen):
    """
        Headers, body and rules shared by requests and responses.

        Header and query rules are held per value (``$.Accept[1]``) and
        only collapsed onto the key when written to a pact.
    """
    categories = ('header',)

    def __init__(self, headers=None, body=None, rules=None):
        self.headers = _multi_dict(headers)
        self.body = body
        self.rules = rules or OrderedDict((category, MatchingRuleSet()) for category in self.categories)

    def _values_of(self, category):
        return {'header': self.headers}.get(category)

    def freeze(self):
        for rules in self.rules.values():
            rules.freeze()
        if self.body is not None:
            self.body.freeze()
        self.headers = _read_only(self.headers)
        self.rules = MappingProxyType(self.rules)
        self._seal()
        return self

    def _expand_value_rules(self):
        for category in self.categories:
            values = self._values_of(category)
            if values is not None:
                self.rules[category] = self.rules[category].expand_values(values)

    def _serialize_into(self, data, version):
        headers = OrderedDict(self.headers)
        if self.body is not None:
            if not any(key.lower() == 'content-type' for key in headers):
                headers['Content-Type'] = [self.body.content_type]
        if headers:
            data['headers'] = _headers_to_dict(headers, version)
        if self.body is not None:
            data['body'] = _body_to_dict(self.body, version)
        if version >= SpecificationVersion.V2:
            categories = []
            for category in self.categories:
                rules = self.rules[category]
                values = self._values_of(category)
                if values is not None:
                    rules = rules.collapse_values(values)
                categories.append((category, rules))
            if self.body is not None:
                categories.append(('body', self.body.rules))
            matching_rules = _rules_to_dict(categories, version)
            if matching_rules:
                data['matchingRules'] = matching_rules
        return data

    @classmethod
    def _parse_common(cls, data, version):
        headers = _headers_from_dict(data.get('headers'), version)
        matching_rules = data.get('matchingRules')
        rules = OrderedDict(
            (category, _rules_from_dict(matching_rules, category, version))
            for category in cls.categories)
        body = None
        if 'body' in data:
            body_rules = _rules_from_dict(matching_rules, 'body', version)
            body = _body_from_dict(data['body'], headers, body_rules, version)
        return headers, body, rules


class RequestSpec(_MessageSpec):
    categories = ('path', 'query', 'header')

    def __init__(self, method, path, query=None, headers=None, body=None, rules=None):
        super(RequestSpec, self).__init__(headers=headers, body=body, rules=rules)
        self.method = method.upper()
        self.path = path
        self.query = _multi_dict(query)

    def _values_of(self, category):
        if category == 'query':
            return self.query
        return super(RequestSpec, self)._values_of(category)

    def freeze(self):
        self.query = _read_only(self.query)
        return super(RequestSpec, self).freeze()

    def to_dict(self, version):
        version = SpecificationVersion.parse(version)
        data = OrderedDict([
            ('method', self.method.lower() if version == SpecificationVersion.V1 else self.method),
            ('path', self.path),
        ])
        if self.query:
            if version >= SpecificationVersion.V3:
                data['query'] = dict((key, list(values)) for key, values in self.query.items())
            else:
                data['query'] = urlencode(
                    [(key, value) for key, values in self.query.items() for value in values])
        return self._serialize_into(data, version)

    @classmethod
    def from_dict(cls, data, version):
        version = SpecificationVersion.parse(version)
        headers, body, rules = cls._parse_common(data, version)
        query = data.get('query')
        if isinstance(query, str):
            parsed = OrderedDict()
            for key, value in parse_qsl(query, keep_blank_values=True):
                parsed.setdefault(key, []).append(value)
            query = parsed
        spec = cls(data['method'], data['path'], query=query, headers=headers, body=body, rules=rules)
        spec._expand_value_rules()
        return spec.freeze()


class ResponseSpec(_MessageSpec):

    def __init__(self, status, headers=None, body=None, rules=None):
        super(ResponseSpec, self).__init__(headers=headers, body=body, rules=rules)
        self.status = status

    def to_dict(self, version):
        version = SpecificationVersion.parse(version)
        return self._serialize_into(OrderedDict([('status', self.status)]), version)

    @classmethod
    def from_dict(cls, data, version):
        version = SpecificationVersion.parse(version)
        headers, body, rules = cls._parse_common(data, version)
        spec = cls(data.get('status', 200), headers=headers, body=body, rules=rules)
        spec._expand_value_rules()
        return spec.freeze()


class Interaction(namedtuple('Interaction', ['description', 'provider_states', 'request', 'response'])):
    """One request/response pair, identified by its description."""

    def to_dict(self, version):
        version = SpecificationVersion.parse(version)
        data = OrderedDict()
        if version >= SpecificationVersion.V4:
            data['type'] = V4_INTERACTION_TYPE
        data['description'] = self.description
        if version >= SpecificationVersion.V3:
            if self.provider_states:
                data['providerStates'] = [state.to_dict() for state in self.provider_states]
        elif self.provider_states:
            if len(self.provider_states) > 1 or self.provider_states[0].params:
                logger.warning(
                    'Pact specification %s only supports one provider state without parameters, '
                    'only %r is kept for %r', version, self.provider_states[0].name, self.description)
            data['providerState'] = self.provider_states[0].name
        data['request'] = self.request.to_dict(version)
        data['response'] = self.response.to_dict(version)
        return data

    @classmethod
    def from_dict(cls, data, version):
        if 'providerStates' in data:
            states = [
                ProviderState(state['name'], state.get('params'))
                for state in data['providerStates'] or []]
        else:
            name = data.get('providerState', data.get('provider_state'))
            states = [ProviderState(name)] if name else []
        return cls(
            data['description'],
            tuple(states),
            RequestSpec.from_dict(data['request'], version),
            ResponseSpec.from_dict(data['response'], version))

import functools
import json
import logging
import os

from urllib3 import encode_multipart_formdata

from .exceptions import ConflictingBodyKind, OutOfSequence, ValidationError
from .matchers import Matcher, derive_matchers, extract_rules
from .models import (
    METHODS,
    Interaction,
    JsonBody,
    MultipartBody,
    ProviderState,
    RawBody,
    RequestSpec,
    ResponseSpec,
)
from .rules import ROOT, MatchRule, RegexRule, append_index, append_key
from .specification import SpecificationVersion


logger = logging.getLogger(__name__)


UNCONFIGURED = 'unconfigured'
HAS_DESCRIPTION = 'described'
HAS_REQUEST = 'requested'
FINALIZED = 'finalized'

MULTIPART_BOUNDARY = 'pactdsl-multipart-boundary'
MULTIPART_CONTENT_TYPE_REGEX = r'multipart/form-data;(\s*charset=[^;]*;)?\s*boundary=.*'


def requires(*states):
    """Refuse the decorated builder operation outside of ``states``."""
    def decorator(method):
        @functools.wraps(method)
        def wrapper(self, *args, **kwargs):
            if self.state not in states:
                raise OutOfSequence(method.__name__, self.state)
            return method(self, *args, **kwargs)
        return wrapper
    return decorator


def _looks_like_json_object(body):
    if isinstance(body, bytes):
        try:
            body = body.decode('utf-8')
        except UnicodeDecodeError:
            return False
    try:
        return isinstance(json.loads(body), dict)
    except ValueError:
        return False


class _MessageBuilder(object):
    """
        Operations shared by the request and response builders.

        Body setters share a single slot: the last call wins unless the
        contract was created with ``strict_bodies``.
    """
    side = None

    def __init__(self, spec, specification_version, strict_bodies=False):
        self.spec = spec
        self.specification_version = specification_version
        self.strict_bodies = strict_bodies
        self.state = HAS_DESCRIPTION

    @requires(HAS_DESCRIPTION)
    def header(self, key, *values):
        self._add_values(self.spec.headers, 'header', key, values)
        return self

    @requires(HAS_DESCRIPTION)
    def headers(self, headers):
        for key, values in headers.items():
            if not isinstance(values, (list, tuple)):
                values = [values]
            self._add_values(self.spec.headers, 'header', key, values)
        return self

    @requires(HAS_DESCRIPTION)
    def json_body(self, body):
        if isinstance(body, (str, bytes)) and _looks_like_json_object(body):
            logger.warning(
                '%s body appears to be a JSON formatted object, no matching will occur. '
                'Pass the object itself to json_body() instead', self.side)
        example, rules = extract_rules(body)
        rules.validate(self.specification_version)
        self._set_body(JsonBody(example, rules))
        return self

    @requires(HAS_DESCRIPTION)
    def binary_body(self, data, content_type='application/octet-stream'):
        self._set_body(RawBody(content_type, data))
        return self

    @requires(HAS_DESCRIPTION)
    def body(self, content_type, data):
        if _looks_like_json_object(data):
            logger.warning(
                '%s body appears to be a JSON formatted object, no matching will occur. '
                'Use json_body() instead', self.side)
        self._set_body(RawBody(content_type, data))
        return self

    @requires(HAS_DESCRIPTION)
    def multipart_body(self, content_type, filename, part_name):
        try:
            with open(filename, 'rb') as f:
                data = f.read()
        except OSError as e:
            raise ValidationError('cannot read multipart file %s: %s' % (filename, e))
        content, body_content_type = encode_multipart_formdata(
            {part_name: (os.path.basename(filename), data, content_type)},
            boundary=MULTIPART_BOUNDARY)
        for key in [key for key in self.spec.headers if key.lower() == 'content-type']:
            del self.spec.headers[key]
            self.spec.rules['header'].detach(append_key(ROOT, key))
        self.spec.headers['Content-Type'] = [body_content_type]
        if self.specification_version >= SpecificationVersion.V2:
            self.spec.rules['header'].attach(
                append_index(append_key(ROOT, 'Content-Type'), 0), RegexRule(MULTIPART_CONTENT_TYPE_REGEX))
        self._set_body(MultipartBody(body_content_type, content, filename, part_name, content_type))
        return self

    @requires(HAS_DESCRIPTION)
    def body_match(self, schema):
        example, rules = extract_rules(derive_matchers(schema), derived=True)
        rules.validate(self.specification_version)
        self._set_body(JsonBody(example, rules))
        return self

    @requires(HAS_DESCRIPTION)
    def body_rule(self, path, rule):
        """Attach a rule to the JSON body, overriding a derived one."""
        if not isinstance(self.spec.body, JsonBody):
            raise ValidationError('body_rule() needs a JSON body to be set first')
        if not isinstance(rule, MatchRule):
            raise ValidationError('%r is not a matching rule' % (rule,))
        self.spec.body.rules.attach(path, rule)
        return self

    def _add_values(self, target, category, key, values):
        path = append_key(ROOT, key)
        for value in values:
            index = len(target.get(key, []))
            example, _ = extract_rules(
                value, rules=self.spec.rules[category], path=append_index(path, index))
            target.setdefault(key, []).append(example)

    def _set_body(self, body):
        existing = self.spec.body
        if existing is not None:
            if self.strict_bodies:
                raise ConflictingBodyKind(existing.kind, body.kind)
            logger.warning('Replacing %s %s body with a %s body', self.side, existing.kind, body.kind)
        self.spec.body = body

    def _trees(self):
        return {'header': self.spec.headers}

    def build(self):
        """
            Check every rule against the specification version and the
            example values, then freeze the spec.
        """
        trees = self._trees()
        for category, rules in self.spec.rules.items():
            rules.validate(self.specification_version)
            rules.resolve(trees[category])
        if self.spec.body is not None:
            self.spec.body.rules.validate(self.specification_version)
            if isinstance(self.spec.body, JsonBody):
                self.spec.body.rules.resolve(self.spec.body.value)
        self.spec.freeze()
        self.state = FINALIZED
        return self.spec


class RequestBuilder(_MessageBuilder):
    side = 'request'

    def __init__(self, method, path, specification_version, strict_bodies=False):
        if not isinstance(method, str) or method.upper() not in METHODS:
            raise ValidationError('unsupported HTTP method %r' % (method,))
        spec = RequestSpec(method, None)
        if isinstance(path, Matcher):
            path, _ = extract_rules(path, rules=spec.rules['path'])
        if not isinstance(path, str):
            raise ValidationError('request path must be a string, got %r' % (path,))
        spec.path = path
        super(RequestBuilder, self).__init__(spec, specification_version, strict_bodies)

    @requires(HAS_DESCRIPTION)
    def query(self, key, *values):
        self._add_values(self.spec.query, 'query', key, values)
        return self

    def _trees(self):
        return {'path': self.spec.path, 'query': self.spec.query, 'header': self.spec.headers}


class ResponseBuilder(_MessageBuilder):
    side = 'response'

    def __init__(self, status, specification_version, strict_bodies=False):
        if isinstance(status, bool) or not isinstance(status, int) or not 100 <= status <= 599:
            raise ValidationError('response status must be an integer in 100-599, got %r' % (status,))
        super(ResponseBuilder, self).__init__(ResponseSpec(status), specification_version, strict_bodies)


class InteractionBuilder(object):
    """
    Builder for interactions.

    The calls must follow the order given/upon_receiving, with_request,
    will_respond_with; anything else raises OutOfSequence. Validation errors
    met while building the request or response are latched in ``error``:
    the rest of the chain is skipped and the error is handed to
    ``error_method`` instead of an interaction to ``add_method``.

    Not thread safe.
    """

    def __init__(self, add_method, specification_version=SpecificationVersion.V3,
                 strict_bodies=False, error_method=None, execute_method=None):
        self.add_method = add_method
        self.error_method = error_method
        self.execute_method = execute_method
        self.specification_version = SpecificationVersion.parse(specification_version)
        self.strict_bodies = strict_bodies

        self.state = UNCONFIGURED
        self.provider_states = []
        self.description = None
        self.request = None
        self.response = None
        self.error = None
        self.interaction = None

    @requires(UNCONFIGURED)
    def given(self, provider_state):
        if not isinstance(provider_state, ProviderState):
            provider_state = ProviderState(provider_state)
        self.provider_states.append(provider_state)
        return self

    @requires(UNCONFIGURED)
    def given_with_parameter(self, name, params):
        self.provider_states.append(ProviderState(name, params))
        return self

    @requires(UNCONFIGURED)
    def upon_receiving(self, description):
        if not isinstance(description, str) or not description:
            raise ValidationError('an interaction needs a non empty description')
        self.description = description
        self.state = HAS_DESCRIPTION
        return self

    @requires(HAS_DESCRIPTION)
    def with_request(self, method, path, *builders, query=None, headers=None, body=None):
        self.state = HAS_REQUEST
        try:
            builder = RequestBuilder(method, path, self.specification_version, self.strict_bodies)
            for key, values in (query or {}).items():
                builder.query(key, *(values if isinstance(values, (list, tuple)) else [values]))
            if headers is not None:
                builder.headers(headers)
            if body is not None:
                builder.json_body(body)
            for build in builders:
                build(builder)
            self.request = builder.build()
        except ValidationError as e:
            self._latch(e)
        return self

    @requires(HAS_REQUEST)
    def will_respond_with(self, status, *builders, headers=None, body=None):
        self.state = FINALIZED
        if self.error is None:
            try:
                builder = ResponseBuilder(status, self.specification_version, self.strict_bodies)
                if headers is not None:
                    builder.headers(headers)
                if body is not None:
                    builder.json_body(body)
                for build in builders:
                    build(builder)
                self.response = builder.build()
            except ValidationError as e:
                self._latch(e)

        if self.error is not None:
            if self.error_method is None:
                raise self.error
            self.error_method(self.error)
            return self

        self.add_interaction()
        return self

    def add_interaction(self):
        self.interaction = Interaction(
            self.description, tuple(self.provider_states), self.request, self.response)
        logger.debug('Adding interaction %r', self.description)
        self.add_method(self.interaction)

    @requires(FINALIZED)
    def execute_test(self, test):
        """Run ``test`` against the mock service owning this interaction."""
        if self.execute_method is None:
            raise OutOfSequence('execute_test', 'not attached to a mock service')
        return self.execute_method(test)

    def _latch(self, error):
        if self.error is None:
            logger.debug('Interaction %r is invalid: %s', self.description, error)
            self.error = error

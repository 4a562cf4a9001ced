"""
pactdsl exception classes
"""


class PactDslException(Exception):
    """
    Base pactdsl exception.
    """
    pass


class MockServiceException(PactDslException):
    """
    Raised by MockService.
    """
    pass


class SequencingError(PactDslException):
    """
    Programmer errors in the order of contract construction calls.
    """
    pass


class OutOfSequence(SequencingError):
    """
    An operation was called from a state where it is not legal.
    """
    def __init__(self, operation, state):
        self.operation = operation
        self.state = state
        super(OutOfSequence, self).__init__(
            '{}() cannot be called when the interaction is {}'.format(operation, state))


class DuplicateDescription(SequencingError):
    def __init__(self, description):
        self.description = description
        super(DuplicateDescription, self).__init__(
            'an interaction described as {!r} already exists in this contract'.format(description))


class ValidationError(PactDslException):
    """
    The interaction being built is malformed.
    """
    pass


class UnsupportedMatcherForVersion(ValidationError):
    def __init__(self, path, kind, version, reason=None):
        self.path = path
        self.kind = kind
        self.version = version
        message = 'matcher {!r} at {} is not supported by pact specification {}'.format(
            kind, path, version)
        if reason:
            message = '%s: %s' % (message, reason)
        super(UnsupportedMatcherForVersion, self).__init__(message)


class DanglingMatcherPath(ValidationError):
    def __init__(self, path):
        self.path = path
        super(DanglingMatcherPath, self).__init__(
            'matching rule path {} does not resolve to any value'.format(path))


class ConflictingRuleKind(ValidationError):
    def __init__(self, path, existing, new):
        self.path = path
        self.existing = existing
        self.new = new
        super(ConflictingRuleKind, self).__init__(
            'cannot attach {!r} at {}, {!r} is already set'.format(new, path, existing))


class InvalidPattern(ValidationError):
    def __init__(self, pattern, error):
        self.pattern = pattern
        super(InvalidPattern, self).__init__('invalid regex {!r}: {}'.format(pattern, error))


class InvalidPath(ValidationError):
    def __init__(self, path):
        self.path = path
        super(InvalidPath, self).__init__('invalid matching rule path {!r}'.format(path))


class ConflictingBodyKind(ValidationError):
    def __init__(self, existing, new):
        self.existing = existing
        self.new = new
        super(ConflictingBodyKind, self).__init__(
            'a {} body is already set, refusing to replace it with a {} body'.format(existing, new))


class BrokerError(PactDslException):
    """
    Raised when published contracts cannot be resolved from a broker.
    """
    pass


class BrokerUnreachable(BrokerError):
    pass


class MalformedListing(BrokerError):
    pass


class ContractNotFound(BrokerError):
    def __init__(self, provider, version, consumer=None):
        self.provider = provider
        self.version = version
        self.consumer = consumer
        super(ContractNotFound, self).__init__(
            'no contract for provider {} at consumer version {}{}'.format(
                provider, version, ' of {}'.format(consumer) if consumer else ''))

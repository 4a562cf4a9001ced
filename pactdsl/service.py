import logging
from collections import namedtuple

from .client import MockServerClient
from .contract import ContractDocument
from .exceptions import MockServiceException
from .specification import SpecificationVersion


logger = logging.getLogger(__name__)


MockServerConfig = namedtuple('MockServerConfig', ['host', 'port', 'base_uri'])


class MockService(object):
    """
    Interface to interact with pact mock server.

    Interactions can only be declared while the service is stopped; they are
    registered with the mock server by ``start`` and verified by ``end``.
    """

    def __init__(self, consumer, provider, port, host='localhost',
                 specification_version=SpecificationVersion.V3, pact_dir=None,
                 strict_bodies=False, client_cls=MockServerClient):
        self.consumer = consumer
        self.provider = provider
        self.port = port
        self.host = host
        self.pact_dir = pact_dir
        self.config = MockServerConfig(host, port, 'http://{}:{}'.format(host, port))
        self.client = client_cls(self.config.base_uri)
        self.document = ContractDocument(
            consumer.name, provider.name,
            specification_version=specification_version,
            strict_bodies=strict_bodies)

        self.stopped = True

    @property
    def interactions(self):
        return self.document.interactions

    def new_interaction(self):
        if not self.stopped:
            raise MockServiceException(
                "Cannot add interactions to a started MockService.")
        return self.document.new_interaction(execute_method=self.execute_test)

    def given(self, state):
        return self.new_interaction().given(state)

    def given_with_parameter(self, name, params):
        return self.new_interaction().given_with_parameter(name, params)

    def upon_receiving(self, description):
        return self.new_interaction().upon_receiving(description)

    def add_interaction(self, interaction):
        """
        Add a new interaction to the mock service.
        """
        if not self.stopped:
            raise MockServiceException(
                "Cannot add interactions to a started MockService.")
        self.document.add_interaction(interaction)

    def start(self):
        """
        Start the mock service, loading the interactions into the pact server.
        """
        if not self.stopped:
            raise MockServiceException(
                "Cannot start already started MockService.")

        self.document.finalize()
        version = self.document.specification_version
        self.client.put_interactions(
            [interaction.to_dict(version) for interaction in self.document.interactions])
        self.stopped = False

    def end(self):
        """
        End the mock service, verifing the interactions with the pact server.
        """
        if self.stopped:
            raise MockServiceException(
                "Cannot end already ended MockService.")

        self.stopped = True
        try:
            self.verify()
        finally:
            self.client.delete_interactions()
            self.document.reset()

    def verify(self):
        verification = self.client.get_verification()
        logger.debug('Mock service verification: %s', verification)
        self.publish()
        return verification

    def publish(self):
        """Ask the mock server to write the pact file."""
        details = {
            'consumer': {'name': self.document.consumer},
            'provider': {'name': self.document.provider},
            'pactfile_write_mode': 'merge',
        }
        if self.pact_dir is not None:
            details['pact_dir'] = self.pact_dir
        return self.client.post_pact(details)

    def execute_test(self, test):
        """
        Run ``test(config)`` with the declared interactions registered, then
        verify them. The interactions are cleared whatever the outcome.
        """
        with self:
            return test(self.config)

    def _abort(self):
        self.stopped = True
        try:
            self.client.delete_interactions()
        finally:
            self.document.reset()

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, type, value, traceback):
        if type is None:
            self.end()
        else:
            self._abort()

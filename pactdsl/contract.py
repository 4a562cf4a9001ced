import json
import logging
from collections import OrderedDict

from .exceptions import DuplicateDescription, OutOfSequence
from .interaction import InteractionBuilder
from .models import Interaction
from .specification import SpecificationVersion


logger = logging.getLogger(__name__)


PACTDSL_VERSION = '0.1.0'


class ContractDocument(object):
    """
    The interactions a consumer expects from a provider, in pact order.

    Not thread safe: build one document from a single thread.
    """

    def __init__(self, consumer, provider, specification_version=SpecificationVersion.V3,
                 strict_bodies=False):
        self.consumer = consumer
        self.provider = provider
        self.specification_version = SpecificationVersion.parse(specification_version)
        self.strict_bodies = strict_bodies

        self.finalized = False
        self.errors = []
        self._interactions = []
        self._descriptions = set()

    @property
    def interactions(self):
        return tuple(self._interactions)

    def new_interaction(self, execute_method=None):
        logger.debug('pact add %s interaction', self.specification_version)
        return InteractionBuilder(
            self.add_interaction,
            specification_version=self.specification_version,
            strict_bodies=self.strict_bodies,
            error_method=self.add_error,
            execute_method=execute_method)

    def add_interaction(self, interaction):
        if self.finalized:
            raise OutOfSequence('add_interaction', 'finalized')
        if interaction.description in self._descriptions:
            raise DuplicateDescription(interaction.description)
        self._descriptions.add(interaction.description)
        self._interactions.append(interaction)

    def add_error(self, error):
        """Record a validation error latched while building an interaction."""
        if self.finalized:
            raise OutOfSequence('add_error', 'finalized')
        self.errors.append(error)

    def finalize(self):
        """
        Freeze the interaction list, raising the first recorded validation
        error so that an invalid contract never reaches a mock server.
        """
        if self.errors:
            raise self.errors[0]
        self.finalized = True
        return self

    def reset(self):
        """Forget the interactions, for a document reused across tests."""
        self.finalized = False
        self.errors = []
        self._interactions = []
        self._descriptions = set()

    def to_dict(self):
        version = self.specification_version
        return OrderedDict([
            ('consumer', {'name': self.consumer}),
            ('provider', {'name': self.provider}),
            ('interactions', [interaction.to_dict(version) for interaction in self._interactions]),
            ('metadata', {
                'pactSpecification': {
                    'version': version.value,
                },
                'pactdsl': {
                    'version': PACTDSL_VERSION,
                },
            }),
        ])

    def to_json(self, **kwargs):
        return json.dumps(self.to_dict(), **kwargs)

    def write(self, filename):
        pact = self.to_json(indent=2)
        with open(filename, 'w+') as f:
            f.write(pact)
        return pact

    @classmethod
    def from_dict(cls, data):
        metadata = data.get('metadata') or {}
        version = (
            (metadata.get('pactSpecification') or {}).get('version')
            or metadata.get('pactSpecificationVersion')
            or (metadata.get('pact-specification') or {}).get('version')
            or SpecificationVersion.V2.value)
        document = cls(
            data['consumer']['name'],
            data['provider']['name'],
            specification_version=SpecificationVersion.parse(version))
        # Published pacts are only unique on description and provider states.
        for interaction in data.get('interactions', []):
            document._interactions.append(
                Interaction.from_dict(interaction, document.specification_version))
            document._descriptions.add(interaction['description'])
        return document.finalize()

    @classmethod
    def from_json(cls, text):
        return cls.from_dict(json.loads(text))

    def __len__(self):
        return len(self._interactions)

    def __repr__(self):
        return '<ContractDocument %s -> %s (%s, %d interactions)>' % (
            self.consumer, self.provider, self.specification_version, len(self))

"""
pactdsl

A consumer driven contract testing library.
"""

from .broker import BrokerClient, BrokerResolver, ContractReference, Selector
from .consumer import Consumer
from .contract import ContractDocument
from .interaction import InteractionBuilder
from .matchers import Decimal, EachLike, Equality, Includes, Integer, Kind, Like, Many, SomethingLike, Term
from .models import Interaction, ProviderState
from .provider import Provider
from .specification import SpecificationVersion


__all__ = [
    'BrokerClient',
    'BrokerResolver',
    'Consumer',
    'ContractDocument',
    'ContractReference',
    'Decimal',
    'EachLike',
    'Equality',
    'Includes',
    'Integer',
    'Interaction',
    'InteractionBuilder',
    'Kind',
    'Like',
    'Many',
    'Provider',
    'ProviderState',
    'Selector',
    'SomethingLike',
    'SpecificationVersion',
    'Term',
]

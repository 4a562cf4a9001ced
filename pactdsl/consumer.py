"""Provides API for managing service consumers"""
from .service import MockService
from .specification import SpecificationVersion


class Consumer(object):

    def __init__(self, name, service_cls=MockService):
        self.name = name
        self.service_cls = service_cls

    def has_pact_with(self, provider, port, host='localhost',
                      specification_version=SpecificationVersion.V3, pact_dir=None,
                      strict_bodies=False):
        return self.service_cls(
            consumer=self,
            provider=provider,
            port=port,
            host=host,
            specification_version=specification_version,
            pact_dir=pact_dir,
            strict_bodies=strict_bodies)

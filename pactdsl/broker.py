"""
Resolve the published contracts a provider has to honour.

``BrokerClient`` is the HTTP transport against a pact broker;
``BrokerResolver`` turns a set of selectors into the ordered, de-duplicated
list of contracts to verify.
"""
import logging
import os
import re
from collections import OrderedDict, namedtuple
from concurrent.futures import ThreadPoolExecutor

import requests
from requests.utils import quote

from .contract import ContractDocument
from .exceptions import BrokerError, BrokerUnreachable, ContractNotFound, MalformedListing


logger = logging.getLogger(__name__)


BROKER_HEADERS = {
    'Accept': 'application/hal+json, application/json',
}

LATEST = 'latest'
TAG = 'tag'
VERSION = 'version'

# Results of the selector kinds are merged in this order.
SELECTOR_PRECEDENCE = {LATEST: 0, TAG: 1, VERSION: 2}

CONSUMER_HREF_RE = re.compile(r'/consumer/(?P<consumer>[^/]+)/')
VERSION_HREF_RE = re.compile(r'/version/(?P<version>[^/]+)/?$')
VERSION_TITLE_RE = re.compile(r'\(v(?P<version>[^)]+)\)')


class Selector(namedtuple('Selector', ['kind', 'value', 'consumer'])):
    """Which contracts of a provider to verify."""

    @classmethod
    def latest(cls):
        return cls(LATEST, None, None)

    @classmethod
    def for_tag(cls, tag):
        return cls(TAG, tag, None)

    @classmethod
    def for_version(cls, version, consumer=None):
        return cls(VERSION, version, consumer)


class ContractReference(namedtuple('ContractReference', ['consumer', 'version', 'tags', 'href'])):

    @property
    def key(self):
        return self.consumer, self.version


class BrokerClient(requests.Session):
    """
    Read only HTTP transport against a pact broker.

    Does not retry: a connection error, a timeout or a 5xx answer raises
    BrokerUnreachable and the caller decides what to do.
    """

    def __init__(self, base_uri, username=None, password=None, token=None, timeout=None,
                 *args, **kwargs):
        super(BrokerClient, self).__init__(*args, **kwargs)

        self.base_uri = base_uri.rstrip('/')
        self.timeout = timeout
        self.headers.update(BROKER_HEADERS)
        if token:
            self.headers['Authorization'] = 'Bearer {}'.format(token)
        elif username:
            self.auth = (username, password or '')

    @classmethod
    def from_env(cls, environ=None, **kwargs):
        environ = os.environ if environ is None else environ
        if not environ.get('PACT_BROKER_BASE_URL'):
            raise BrokerError('PACT_BROKER_BASE_URL is not set')
        return cls(
            environ['PACT_BROKER_BASE_URL'],
            username=environ.get('PACT_BROKER_USERNAME'),
            password=environ.get('PACT_BROKER_PASSWORD'),
            token=environ.get('PACT_BROKER_TOKEN'),
            **kwargs)

    def get_json(self, href):
        """
        GET ``href`` (absolute, or relative to the broker) as JSON, or None
        when the broker answers 404.
        """
        url = href if re.match(r'^[a-z][a-z0-9+.-]*://', href) else '{}{}'.format(self.base_uri, href)
        logger.debug('GET %s', url)
        try:
            response = self.get(url, timeout=self.timeout)
        except (requests.ConnectionError, requests.Timeout) as e:
            raise BrokerUnreachable('broker at {} is unreachable: {}'.format(self.base_uri, e))
        if response.status_code == 404:
            return None
        if response.status_code >= 500:
            raise BrokerUnreachable(
                'broker answered {} for {}'.format(response.status_code, url))
        if response.status_code >= 300:
            raise BrokerError('broker answered {} for {}: {}'.format(
                response.status_code, url, response.text))
        try:
            return response.json()
        except ValueError:
            raise MalformedListing('{} did not return JSON'.format(url))

    def latest(self, provider, tag=None):
        path = '/pacts/provider/{}/latest'.format(quote(provider, safe=''))
        if tag is not None:
            path = '{}/{}'.format(path, quote(tag, safe=''))
        return self.get_json(path)

    def pact(self, provider, consumer, version):
        return self.get_json('/pacts/provider/{}/consumer/{}/version/{}'.format(
            quote(provider, safe=''), quote(consumer, safe=''), quote(version, safe='')))


def parse_listing(listing, tag=None):
    """
        Extract one ContractReference per consumer from a broker listing.

        The broker lists the most recent pact of each consumer first, later
        entries for an already seen consumer are ignored.
    """
    if listing is None:
        return []
    links = listing.get('_links') if isinstance(listing, dict) else None
    if not isinstance(links, dict) or not isinstance(links.get('pacts'), list):
        raise MalformedListing('listing has no _links.pacts list')
    references = OrderedDict()
    for link in links['pacts']:
        if not isinstance(link, dict) or not isinstance(link.get('href'), str):
            raise MalformedListing('pact link without href: {!r}'.format(link))
        href = link['href']
        consumer = link.get('name')
        if not consumer:
            match = CONSUMER_HREF_RE.search(href)
            consumer = match and match.group('consumer')
        match = VERSION_HREF_RE.search(href) or VERSION_TITLE_RE.search(link.get('title') or '')
        if not consumer or not match:
            raise MalformedListing('cannot find consumer and version of pact {}'.format(href))
        if consumer in references:
            continue
        tags = frozenset([tag]) if tag is not None else frozenset()
        references[consumer] = ContractReference(consumer, match.group('version'), tags, href)
    return list(references.values())


def _self_href(pact):
    try:
        return pact['_links']['self']['href']
    except (KeyError, TypeError):
        raise MalformedListing('pact has no _links.self.href')


class BrokerResolver(object):
    """
    Decide which published contracts a provider must be verified against.

    Selector fetches run concurrently; merging them is sequential so the
    output order only depends on the selectors.
    """

    def __init__(self, transport, max_workers=4):
        self.transport = transport
        self.max_workers = max_workers

    def resolve(self, provider, *selectors):
        selectors = selectors or (Selector.latest(),)
        for selector in selectors:
            if selector.kind not in SELECTOR_PRECEDENCE:
                raise ValueError('unknown selector kind %r' % (selector.kind,))
        ordered = [
            selector for _, selector in sorted(
                enumerate(selectors),
                key=lambda item: (SELECTOR_PRECEDENCE[item[1].kind], item[0]))]
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [executor.submit(self._fetch, provider, selector) for selector in ordered]
            results = [future.result() for future in futures]

        merged = OrderedDict()
        for references in results:
            for reference in references:
                if reference.key in merged:
                    known = merged[reference.key]
                    merged[reference.key] = known._replace(tags=known.tags | reference.tags)
                else:
                    merged[reference.key] = reference
        logger.debug('Resolved %d contracts for provider %s', len(merged), provider)
        return list(merged.values())

    def resolve_contracts(self, provider, *selectors):
        """Resolve the selectors and fetch every resulting contract document."""
        references = self.resolve(provider, *selectors)
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            return list(executor.map(self.fetch, references))

    def fetch(self, reference):
        pact = self.transport.get_json(reference.href)
        if pact is None:
            raise BrokerError('pact {} is no longer published'.format(reference.href))
        return ContractDocument.from_dict(pact)

    def _fetch(self, provider, selector):
        if selector.kind == LATEST:
            logger.debug('get latest pacts for provider %r', provider)
            return parse_listing(self.transport.latest(provider))
        if selector.kind == TAG:
            logger.debug('get latest pacts for provider %r with tag %r', provider, selector.value)
            return parse_listing(self.transport.latest(provider, selector.value), tag=selector.value)
        return self._fetch_version(provider, selector.value, selector.consumer)

    def _fetch_version(self, provider, version, consumer):
        if consumer is not None:
            consumers = [consumer]
        else:
            consumers = [reference.consumer for reference in parse_listing(self.transport.latest(provider))]
        references = []
        for name in consumers:
            logger.debug('get pact for provider %r, consumer %r at version %r', provider, name, version)
            pact = self.transport.pact(provider, name, version)
            if pact is not None:
                references.append(ContractReference(name, version, frozenset(), _self_href(pact)))
        if not references:
            raise ContractNotFound(provider, version, consumer)
        return references

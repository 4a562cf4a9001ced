import json
import logging

import requests

from .exceptions import MockServiceException


logger = logging.getLogger(__name__)


CLIENT_HEADERS = {
    'X-Pact-Mock-Service': 'true',
    'Content-Type': 'application/json'
}


class MockServerClient(requests.Session):
    """
    Administration API of a pact mock service.
    """

    def __init__(self, base_uri, timeout=None, *args, **kwargs):
        super(MockServerClient, self).__init__(*args, **kwargs)

        self.base_uri = base_uri
        self.timeout = timeout
        self.headers.update(CLIENT_HEADERS)

    def _call(self, method, path, payload=None):
        url = '{}{}'.format(self.base_uri, path)
        data = json.dumps(payload) if payload is not None else None
        try:
            response = self.request(method, url, data=data, timeout=self.timeout)
        except requests.RequestException as e:
            raise MockServiceException('mock service at {} is unreachable: {}'.format(self.base_uri, e))
        if response.status_code >= 300:
            raise MockServiceException(
                '{} {} failed with status {}: {}'.format(method, path, response.status_code, response.text))
        return response

    def get_verification(self):
        return self._call('GET', '/interactions/verification').text

    def put_interactions(self, interactions):
        logger.debug('Registering %d interactions on %s', len(interactions), self.base_uri)
        self._call('PUT', '/interactions', {'interactions': interactions})

    def delete_interactions(self):
        self._call('DELETE', '/interactions')

    def post_interaction(self, interaction):
        self._call('POST', '/interactions', interaction)

    def post_pact(self, pact_details):
        return self._call('POST', '/pact', pact_details).text

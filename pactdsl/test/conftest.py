import copy

import pytest

from ..specification import SpecificationVersion


BROKER_URI = 'http://broker.test'

# A pact as published on a broker, in the pact specification 2 format.
BILLY_PACT = {
    "consumer": {"name": "billy"},
    "provider": {"name": "bobby"},
    "interactions": [
        {
            "description": "Some name for the test",
            "provider_state": "Some state",
            "request": {"method": "GET", "path": "/foobar"},
            "response": {"status": 200, "headers": {"Content-Type": "application/json"}}
        },
        {
            "description": "Some name for the test",
            "provider_state": "Some state2",
            "request": {"method": "GET", "path": "/bazbat"},
            "response": {
                "status": 200,
                "headers": {},
                "body": [[{"colour": "red", "size": 10, "tag": [["jumper", "shirt"], ["jumper", "shirt"]]}]],
                "matchingRules": {
                    "$.body": {"min": 1},
                    "$.body[*].*": {"match": "type"},
                    "$.body[*]": {"min": 1},
                    "$.body[*][*].*": {"match": "type"},
                    "$.body[*][*].colour": {"match": "regex", "regex": "red|green|blue"},
                    "$.body[*][*].size": {"match": "type"},
                    "$.body[*][*].tag": {"min": 2},
                    "$.body[*][*].tag[*].*": {"match": "type"},
                    "$.body[*][*].tag[*][0]": {"match": "type"},
                    "$.body[*][*].tag[*][1]": {"match": "type"}
                }
            }
        }
    ],
    "metadata": {"pactSpecificationVersion": "2.0.0"},
    "_links": {
        "self": {
            "title": "Pact",
            "name": "Pact between billy (v1.0.0) and bobby",
            "href": BROKER_URI + "/pacts/provider/bobby/consumer/billy/version/1.0.0"
        }
    }
}


def listing(provider, pacts, tag=None):
    """Broker answer listing the latest pact of each consumer."""
    self_href = '{}/pacts/provider/{}/latest'.format(BROKER_URI, provider)
    if tag is not None:
        self_href = '{}/{}'.format(self_href, tag)
    return {
        "_links": {
            "self": {"href": self_href},
            "provider": {"href": '{}/pacticipants/{}'.format(BROKER_URI, provider), "title": provider},
            "pacts": [
                {
                    "href": '{}/pacts/provider/{}/consumer/{}/version/{}'.format(
                        BROKER_URI, provider, consumer, version),
                    "title": "Pact between {} (v{}) and {}".format(consumer, version, provider),
                    "name": consumer,
                }
                for consumer, version in pacts
            ]
        }
    }


@pytest.fixture
def billy_pact():
    return copy.deepcopy(BILLY_PACT)


def pytest_generate_tests(metafunc):
    if 'matching_version' in metafunc.fixturenames:
        metafunc.parametrize("matching_version", [
            SpecificationVersion.V2, SpecificationVersion.V3, SpecificationVersion.V4])

import mock
import pytest

from ..consumer import Consumer
from ..exceptions import MockServiceException, UnsupportedMatcherForVersion
from ..interaction import InteractionBuilder
from ..matchers import Like
from ..provider import Provider
from ..service import MockServerConfig, MockService
from ..specification import SpecificationVersion


TEST_STATE = "an alligator exists"
TEST_DESCRIPTION = "a request for an alligator"


@pytest.fixture
def mock_client_cls():
    return mock.Mock()


@pytest.fixture
def mock_client(mock_client_cls):
    return mock_client_cls.return_value


@pytest.fixture
def mock_service(mock_client_cls):
    return MockService(
        consumer=Consumer('billy'),
        provider=Provider('bobby'),
        port=1234,
        client_cls=mock_client_cls)


def declare(service, description=TEST_DESCRIPTION, body=None):
    return (service
            .given(TEST_STATE)
            .upon_receiving(description)
            .with_request('GET', '/alligators')
            .will_respond_with(200, body=body))


def test_mock_service_creation(mock_service, mock_client_cls):
    assert mock_service.consumer.name == 'billy'
    assert mock_service.provider.name == 'bobby'
    assert mock_service.port == 1234
    assert mock_service.config == MockServerConfig('localhost', 1234, 'http://localhost:1234')
    mock_client_cls.assert_called_once_with('http://localhost:1234')
    assert mock_service.document.specification_version == SpecificationVersion.V3


def test_mock_service_is_stopped_on_creation(mock_service):
    assert mock_service.stopped


def test_mock_service_start_registers_interactions(mock_service, mock_client):
    declare(mock_service)

    mock_service.start()

    assert not mock_service.stopped
    interactions = mock_client.put_interactions.call_args[0][0]
    assert [i['description'] for i in interactions] == [TEST_DESCRIPTION]
    assert interactions[0]['providerStates'] == [{'name': TEST_STATE}]


def test_mock_service_is_stopped_on_end(mock_service, mock_client):
    mock_service.start()
    mock_service.end()

    assert mock_service.stopped
    assert mock_client.get_verification.call_count == 1
    assert mock_client.post_pact.call_count == 1
    assert mock_client.delete_interactions.call_count == 1


def test_mock_service_cannot_start_while_started(mock_service):
    mock_service.start()
    with pytest.raises(MockServiceException):
        mock_service.start()


def test_mock_service_cannot_end_while_stopped(mock_service):
    with pytest.raises(MockServiceException):
        mock_service.end()


def test_mock_service_starts_and_stops_with_with(mock_service):
    with mock_service:
        assert not mock_service.stopped
    assert mock_service.stopped


def test_mock_service_returns_interaction_builder(mock_service):
    builder = mock_service.given(TEST_STATE)

    assert isinstance(builder, InteractionBuilder)
    assert builder.execute_method == mock_service.execute_test


def test_mock_service_when_started_refuses_given(mock_service):
    mock_service.start()

    with pytest.raises(MockServiceException):
        mock_service.given(TEST_STATE)


def test_mock_service_when_started_refuses_upon_receiving(mock_service):
    mock_service.start()

    with pytest.raises(MockServiceException):
        mock_service.upon_receiving(TEST_DESCRIPTION)


def test_mock_service_accepts_a_new_interaction(mock_service):
    declare(mock_service)
    assert len(mock_service.interactions) == 1


def test_mock_service_when_started_refuses_a_new_interaction(mock_service):
    mock_service.start()

    with pytest.raises(MockServiceException):
        mock_service.add_interaction(mock.Mock())


def test_execute_test(mock_service, mock_client):
    test = mock.Mock()

    result = declare(mock_service).execute_test(test)

    test.assert_called_once_with(mock_service.config)
    assert result == test.return_value
    assert mock_client.get_verification.call_count == 1
    assert mock_service.stopped
    assert len(mock_service.interactions) == 0


def test_execute_test_failure_clears_interactions(mock_service, mock_client):
    test = mock.Mock(side_effect=AssertionError('boom'))

    with pytest.raises(AssertionError):
        declare(mock_service).execute_test(test)

    assert mock_service.stopped
    assert mock_client.get_verification.call_count == 0
    assert mock_client.delete_interactions.call_count == 1
    assert len(mock_service.interactions) == 0


def test_invalid_contract_never_reaches_the_mock_server(mock_client_cls, mock_client):
    service = MockService(
        consumer=Consumer('billy'),
        provider=Provider('bobby'),
        port=1234,
        specification_version=SpecificationVersion.V1,
        client_cls=mock_client_cls)
    test = mock.Mock()

    with pytest.raises(UnsupportedMatcherForVersion):
        declare(service, body={'name': Like('Betty')}).execute_test(test)

    assert test.call_count == 0
    assert mock_client.put_interactions.call_count == 0

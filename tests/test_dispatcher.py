from filesender.protocol.dispatcher import ControlDispatcher
from filesender.protocol.messages import AuthAccepted, FileListUpdate, FileShareAccept

from fakes import envelope


def accepted_payload():
    return {'receivedClientId': 5, 'clientName': 'me', 'serverInfo': {'serverName': 'srv'}}


def test_routes_to_registered_handler():
    dispatcher = ControlDispatcher()
    seen = []
    dispatcher.set_handler(AuthAccepted, seen.append)

    dispatcher.dispatch(envelope('auth-accepted', accepted_payload()))

    assert len(seen) == 1
    assert seen[0].received_client_id == 5


def test_decorator_registration():
    dispatcher = ControlDispatcher()
    seen = []

    @dispatcher.on_message(FileListUpdate)
    def handle(message):
        seen.append(message)

    dispatcher.dispatch(envelope('file-list-update', {'files': {}}))
    assert len(seen) == 1


def test_unknown_type_touches_nothing():
    dispatcher = ControlDispatcher()
    seen = []
    dispatcher.set_handler(AuthAccepted, seen.append)
    dispatcher.set_handler(FileListUpdate, seen.append)

    result = dispatcher.dispatch(envelope('unknown.msg', {'files': {}}))

    assert result is None
    assert seen == []
    assert dispatcher.messages_dropped == 1


def test_malformed_messages_are_dropped_not_raised(caplog):
    dispatcher = ControlDispatcher()
    seen = []
    dispatcher.set_handler(AuthAccepted, seen.append)

    assert dispatcher.dispatch('{{{') is None
    assert dispatcher.dispatch(envelope('auth-accepted', {'clientName': 'x'})) is None

    assert seen == []
    assert dispatcher.messages_dropped == 2
    assert 'Dropping control message' in caplog.text


def test_known_type_without_handler_is_noop():
    dispatcher = ControlDispatcher()
    message = dispatcher.dispatch(envelope('file-share-accept', {'fileHandleId': 1}))
    assert isinstance(message, FileShareAccept)
    assert dispatcher.messages_dispatched == 0


def test_handler_exception_does_not_escape():
    dispatcher = ControlDispatcher()

    def broken(message):
        raise RuntimeError("boom")

    dispatcher.set_handler(AuthAccepted, broken)
    assert dispatcher.dispatch(envelope('auth-accepted', accepted_payload())) is not None

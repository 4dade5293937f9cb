""" Exercise the server's request handling directly, without a background
    thread or any client sockets in the way.
"""

import pytest
import registadb

from registadb.protocol import entry
from registadb.protocol import legacy
from registadb.protocol import message
from registadb.protocol import wire
from registadb.protocol import Request, Status


@pytest.fixture
def idle_server(configuration):

    server = registadb.RegistaServer(configuration=configuration)

    yield server

    server.stop()


def query(server, request):

    transid = message._id_next()
    reply = server.handle_query(wire.pack_request(request, transid))
    return wire.unpack_response(reply, transid)


def test_ports(idle_server):

    assert idle_server.ingest_port != idle_server.query_port
    assert idle_server.thread is None


def test_create_allocates(idle_server):

    before = None

    for count in range(3):
        response = query(idle_server, message.create(entry.build(count)))

        assert response.status == Status.OK
        assert response.entry.id != 0
        assert response.entry.value == count
        assert response.entry.created_at is not None

        if before is not None:
            assert response.entry.id > before

        before = response.entry.id


def test_ids_exhausted(idle_server):

    largest = query(idle_server, message.create(entry.build('last', id=entry.UINT64_MAX)))
    assert largest.status == Status.OK

    written = idle_server.storage.stats()['writes']

    response = query(idle_server, message.create(entry.build('one too many')))
    assert response.status == Status.INTERNAL_ERROR
    assert response.entry is None
    assert idle_server.storage.stats()['writes'] == written

    reply = idle_server.handle_query(wire.pack_object_request(legacy.store(legacy.string_object('also too many'))))
    assert wire.unpack_object_reply(reply) == legacy.INTERNAL_ERROR
    assert idle_server.storage.stats()['writes'] == written

    # Caller-chosen ids still work.

    assert query(idle_server, message.create(entry.build('chosen', id=7))).status == Status.OK


def test_timestamps(idle_server):

    supplied = registadb.protocol.Entry(id=5, data=registadb.protocol.value.encode('x'), created_at=1.0)
    created = query(idle_server, message.create(supplied))

    # The server's clock wins.

    assert created.entry.created_at > 1.0

    updated = query(idle_server, message.update(5, entry.build('y')))

    assert updated.status == Status.OK
    assert updated.entry.value == 'y'
    assert updated.entry.created_at == created.entry.created_at

    missing = query(idle_server, message.update(6, entry.build('z')))
    assert missing.status == Status.NOT_FOUND


def test_delete(idle_server):

    created = query(idle_server, message.create(entry.build(b'blob')))
    id = created.entry.id

    assert query(idle_server, message.delete(id)).status == Status.OK
    assert query(idle_server, message.read(id)).status == Status.NOT_FOUND
    assert query(idle_server, message.read(id)).entry is None
    assert query(idle_server, message.delete(id)).status == Status.NOT_FOUND

    recreated = query(idle_server, message.create(entry.build(b'blob')))
    assert recreated.entry.id > id


def test_bad_requests(idle_server):

    response = query(idle_server, Request(op='MERGE', id=1))
    assert response.status == Status.UNKNOWN_OPERATION

    response = query(idle_server, Request(op='CREATE'))
    assert response.status == Status.INVALID_ARGUMENT

    # Garbage in a well-formed frame is still answered, with the transaction
    # id of the request.

    reply = idle_server.handle_query((message.version, b'00000042', b'{"op": '))
    response = wire.unpack_response(reply, b'00000042')
    assert response.status == Status.INVALID_ARGUMENT

    # An unrecognized protocol version gets a current-generation answer.

    reply = idle_server.handle_query((b'9', b'00000043', b'{}'))
    assert reply[0] == message.version
    response = wire.unpack_response(reply, b'00000043')
    assert response.status == Status.INVALID_ARGUMENT


def test_internal_error(idle_server, monkeypatch):

    def broken(id):
        raise OSError('disk on fire')

    monkeypatch.setattr(idle_server.storage, 'get_entry', broken)
    monkeypatch.setattr(idle_server.storage, 'get_object', broken)

    response = query(idle_server, message.read(1))
    assert response.status == Status.INTERNAL_ERROR
    assert 'disk on fire' in response.message

    reply = idle_server.handle_query(wire.pack_object_request(legacy.fetch(1)))
    assert wire.unpack_object_reply(reply) == legacy.INTERNAL_ERROR


def test_legacy(idle_server):

    stored = legacy.json_object({'a': 1}, id=20)
    reply = idle_server.handle_query(wire.pack_object_request(legacy.store(stored)))
    assert wire.unpack_object_reply(reply) == legacy.OK

    reply = idle_server.handle_query(wire.pack_object_request(legacy.fetch(20)))
    fetched = wire.unpack_object_reply(reply)

    assert fetched.as_json() == {'a': 1}
    assert fetched.timestamp is not None

    mismatched = registadb.protocol.RegistaObject(type='VECTOR', id=21, blob=b'1, 2, 3')
    reply = idle_server.handle_query(wire.pack_object_request(legacy.store(mismatched)))
    assert wire.unpack_object_reply(reply) == legacy.TYPE_MISMATCH

    reply = idle_server.handle_query(wire.pack_object_request(legacy.fetch(21)))
    assert wire.unpack_object_reply(reply) == legacy.NOT_FOUND

    reply = idle_server.handle_query((legacy.version, b'{}'))
    assert wire.unpack_object_reply(reply) == legacy.UNKNOWN_CMD

    reply = idle_server.handle_query((legacy.version, b'not json'))
    assert wire.unpack_object_reply(reply) == legacy.UNKNOWN_CMD

    reply = idle_server.handle_query(wire.pack_object_request(legacy.delete(20)))
    assert wire.unpack_object_reply(reply) == legacy.OK

    reply = idle_server.handle_query(wire.pack_object_request(legacy.delete(20)))
    assert wire.unpack_object_reply(reply) == legacy.NOT_FOUND


def test_ingest(idle_server):

    idle_server.handle_ingest(wire.pack_entry(entry.build('pushed', id=30)))
    assert idle_server.storage.get_entry(30).value == 'pushed'

    idle_server.handle_ingest(wire.pack_object(legacy.list_object([b'x'], id=31)))
    assert idle_server.storage.get_object(31).items == [b'x']

    # None of these raise; they are logged and dropped.

    idle_server.handle_ingest((message.version, b'{"id": '))
    idle_server.handle_ingest((b'9', b'{}'))
    idle_server.handle_ingest(())

    mismatched = registadb.protocol.RegistaObject(type='HASH', id=32, items=[b'x'])
    idle_server.handle_ingest(wire.pack_object(mismatched))
    assert idle_server.storage.get_object(32) is None


def test_reject_policy(configuration):

    server = registadb.RegistaServer(policy='reject', configuration=configuration)

    try:
        first = query(server, message.create(entry.build('first', id=50)))
        second = query(server, message.create(entry.build('second', id=50)))

        assert first.status == Status.OK
        assert second.status == Status.ALREADY_EXISTS
        assert query(server, message.read(50)).entry.value == 'first'

        reply = server.handle_query(wire.pack_object_request(legacy.store(legacy.string_object('a', id=51))))
        assert wire.unpack_object_reply(reply) == legacy.OK

        reply = server.handle_query(wire.pack_object_request(legacy.store(legacy.string_object('b', id=51))))
        assert wire.unpack_object_reply(reply) == legacy.ALREADY_EXISTS
    finally:
        server.stop()


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

import pytest
import registadb
import time

from registadb.protocol import legacy
from registadb.protocol import value
from registadb.protocol import Request, Status
from registadb.transport import TransportTimeout


def wait_for(client, id, timeout=5):
    """ The fast lane offers no confirmation; poll the verified lane until
        the entry shows up, or give up.
    """

    expiration = time.time() + timeout

    while True:
        response = client.read(id)

        if response.status == Status.OK or time.time() > expiration:
            return response

        time.sleep(0.05)


def test_round_trip(client):

    originals = ('text', -12, 0.0, True, [], ['a'], [1, 2], {}, {'k': 'v'}, b'\x00\x01')

    for original in originals:
        created = client.create(original, metadata={'test': 'round trip'})
        assert created.status == Status.OK

        id = created.entry.id
        read = client.read(id)

        assert read.ok
        assert read.value == original
        assert read.entry.metadata == {'test': 'round trip'}


def test_distinct_ids(client):

    count = 20
    ids = set()

    for number in range(count):
        response = client.create(number)
        ids.add(response.entry.id)

    assert len(ids) == count
    assert 0 not in ids

    for id in ids:
        assert client.read(id).status == Status.OK


def test_concurrent_clients(server, connector):
    """ Zero-id creates from different connections never collide.
    """

    first = connector(server)
    second = connector(server)

    try:
        ids = list()
        for number in range(10):
            ids.append(first.create(number).entry.id)
            ids.append(second.create(number).entry.id)

        assert len(set(ids)) == len(ids)
    finally:
        first.close()
        second.close()


def test_tombstone(client):

    id = client.create('doomed').entry.id

    assert client.delete(id).status == Status.OK
    assert client.read(id).status == Status.NOT_FOUND
    assert client.delete(id).status == Status.NOT_FOUND

    assert client.create('replacement').entry.id != id


def test_update(client):

    created = client.create('before', metadata={'rev': '1'})
    id = created.entry.id

    updated = client.update(id, 'after')
    assert updated.ok

    read = client.read(id)
    assert read.value == 'after'
    assert read.entry.metadata is None
    assert read.entry.created_at == created.entry.created_at

    assert client.update(id + 1000, 'nowhere').status == Status.NOT_FOUND


def test_explicit_id_overwrite(client):

    assert client.create('first', id=500).ok
    assert client.create('second', id=500).ok
    assert client.read(500).value == 'second'


def test_explicit_kind(client):

    id = client.create(value.of_double_list([])).entry.id
    read = client.read(id)

    assert value.kind(read.entry.data) == 'double_list'
    assert read.value == []


def test_unknown_operation(client):

    response = client.send_request(Request(op='MERGE', id=1))
    assert response.status == Status.UNKNOWN_OPERATION


def test_fast_lane(client):

    assert client.create_no_reply('pushed', id=700, metadata={'lane': 'fast'}) is None

    response = wait_for(client, 700)

    assert response.status == Status.OK
    assert response.value == 'pushed'
    assert response.entry.metadata == {'lane': 'fast'}


def test_legacy_objects(client):

    assert client.store_object(legacy.string_object('hello', id=800)) == legacy.OK

    fetched = client.fetch_by_id(800)
    assert fetched.blob == b'hello'
    assert fetched.timestamp is not None

    mismatched = registadb.protocol.RegistaObject(type='STRING', id=801, items=[b'hello'])
    assert client.store_object(mismatched) == legacy.TYPE_MISMATCH
    assert client.fetch_by_id(801) is None

    assert client.delete_by_id(800) == legacy.OK
    assert client.fetch_by_id(800) is None
    assert client.delete_by_id(800) == legacy.NOT_FOUND

    client.push_object(legacy.vector_object([1, 2], id=802))

    expiration = time.time() + 5
    while client.fetch_by_id(802) is None and time.time() < expiration:
        time.sleep(0.05)

    assert client.fetch_by_id(802).vector == [1.0, 2.0]


def test_persistence(configuration, connector):

    server = registadb.RegistaServer(configuration=configuration)
    server.start()

    client = connector(server)
    id = client.create({'survives': 'restart'}).entry.id
    client.close()
    server.stop()

    server = registadb.RegistaServer(configuration=configuration)
    server.start()

    client = connector(server)

    try:
        read = client.read(id)
        assert read.status == Status.OK
        assert read.value == {'survives': 'restart'}

        assert client.create('after restart').entry.id > id
    finally:
        client.close()
        server.stop()


def test_reject_policy(configuration, connector):

    server = registadb.RegistaServer(policy='reject', configuration=configuration)

    with server:
        client = connector(server)

        try:
            assert client.create('first', id=900).ok
            assert client.create('second', id=900).status == Status.ALREADY_EXISTS
            assert client.read(900).value == 'first'
        finally:
            client.close()


def test_no_server():
    """ With nothing listening, the fast lane still returns without error;
        the verified lane times out.
    """

    configuration = registadb.config.Configuration()
    client = registadb.RegistaClient('localhost', 13678, 13679, timeout=0.2, linger=0, configuration=configuration)

    try:
        assert client.create_no_reply('lost') is None
        client.push_object(legacy.string_object('lost'))

        with pytest.raises(TransportTimeout):
            client.read(1)

        # The connection is still usable after a timeout.

        with pytest.raises(TransportTimeout):
            client.create('also lost')
    finally:
        client.close()


def test_closed(server, connector):

    client = connector(server)
    client.close()

    with pytest.raises(registadb.transport.TransportConnectionError):
        client.read(1)

    # Pushing on a closed lane is still silent.

    assert client.create_no_reply('dropped') is None


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

""" The reference RegistaDB server. A :class:`RegistaServer` binds the two
    lanes, a PULL socket for fast-lane ingestion and a REP socket for
    verified requests, and services both from a single background thread.
    Id allocation goes through the storage lock, so ids stay collision-free
    when the optional HTTP front end (see :mod:`registadb.rest`) executes
    requests from other threads.

    The :func:`main` function is the ``registadbd`` command-line entry point.
"""

import argparse
import logging
import signal
import threading
import time

from msgspec import structs
import zmq

from . import config
from .protocol import legacy
from .protocol import message
from .protocol import wire
from .protocol.entry import Entry
from .protocol.message import Operation, Status
from .protocol.value import DecodeError
from .storage import ENTRIES, OBJECTS, ExhaustedError, StorageManager
from .transport.zmq import push
from .transport.zmq import request


logger = logging.getLogger(__name__)


class RegistaServer:
    """ Serve a RegistaDB store. Unless overridden by the *path*,
        *ingest_port*, *query_port*, and *policy* arguments, the settings
        come from *configuration*, which defaults to :func:`config.load`.
        A port number of 0 selects the first available port in the default
        range; the ports actually bound are available afterwards as
        :attr:`ingest_port` and :attr:`query_port`.

        The server does nothing until :func:`start` is called, or until it
        is used as a context manager.
    """

    poll_interval = 0.1

    def __init__(self, path=None, ingest_port=None, query_port=None, policy=None, address='*', configuration=None):

        if configuration is None:
            configuration = config.load()

        settings = dict()
        settings['store'] = path
        settings['ingest_port'] = ingest_port
        settings['query_port'] = query_port
        settings['policy'] = policy

        configuration = configuration.derive(settings)
        self.config = configuration

        self.storage = StorageManager(configuration.store_path(), configuration.policy)

        ingest_port = configuration.ingest_port or None
        query_port = configuration.query_port or None

        self.ingest = push.Server(address, ingest_port)

        try:
            self.query = request.Server(address, query_port, avoid=(self.ingest.port,))
        except Exception:
            self.ingest.close()
            raise

        self.ingest_port = self.ingest.port
        self.query_port = self.query.port

        self.shutdown = False
        self.thread = None


    def __enter__(self):
        self.start()
        return self


    def __exit__(self, *exc_info):
        self.stop()


    def start(self):
        """ Begin servicing both lanes in a background thread.
        """

        if self.thread is not None:
            raise RuntimeError('server already started')

        self.thread = threading.Thread(target=self.run, name='registadb.server')
        self.thread.daemon = True
        self.thread.start()

        logger.info("serving ingest on port %d, queries on port %d", self.ingest_port, self.query_port)


    def stop(self, timeout=5):
        """ Stop servicing requests, close both sockets, and close the store.
        """

        self.shutdown = True

        if self.thread is None:
            self._close()
            return

        self.thread.join(timeout)


    def _close(self):
        self.ingest.close()
        self.query.close()
        self.storage.close()


    def run(self):
        """ The main loop: poll both sockets, and handle whatever arrives.
            Every verified request gets exactly one reply.
        """

        poller = zmq.Poller()
        poller.register(self.ingest.socket, zmq.POLLIN)
        poller.register(self.query.socket, zmq.POLLIN)

        try:
            while self.shutdown == False:
                sockets = poller.poll(int(self.poll_interval * 1000))

                for active, flag in sockets:
                    if active == self.ingest.socket:
                        self.handle_ingest(self.ingest.recv())

                    elif active == self.query.socket:
                        parts = self.query.recv()
                        self.query.send(self.handle_query(parts))
        finally:
            self._close()
            logger.info('server loop stopped')


    def handle_ingest(self, parts):
        """ Store a fast-lane record. Nothing is ever sent back; failures are
            logged and the record is dropped.
        """

        try:
            record = wire.unpack_push(parts)
        except DecodeError as e:
            logger.warning('dropped malformed fast-lane message: %s', e)
            return

        try:
            if isinstance(record, Entry):
                response = self.create_entry(record)
                status = response.status
            else:
                status, record = self.create_object(record)
        except Exception:
            logger.exception('fast-lane ingestion failed')
            return

        if status == Status.OK:
            logger.debug('fast-lane record stored')
        else:
            logger.warning('dropped fast-lane record: %s', status.value)


    def handle_query(self, parts):
        """ Return the reply frames for one verified-lane request.
        """

        try:
            their_version = wire.generation(parts)
        except DecodeError as e:
            logger.warning('rejected request: %s', e)
            transid = parts[1] if len(parts) > 1 else b''
            response = message.reply(Status.INVALID_ARGUMENT, str(e))
            return wire.pack_response(response, transid)

        if their_version == legacy.version:
            return self._handle_object_request(parts)

        return self._handle_request(parts)


    def _handle_request(self, parts):

        transid = parts[1] if len(parts) > 1 else b''

        try:
            transid, request = wire.unpack_request(parts)
        except DecodeError as e:
            logger.warning('malformed request: %s', e)
            response = message.reply(Status.INVALID_ARGUMENT, 'malformed request: ' + str(e))
            return wire.pack_response(response, transid)

        try:
            response = self.execute(request)
        except Exception as e:
            logger.exception('%s request failed', request.op)
            response = message.reply(Status.INTERNAL_ERROR, '%s: %s' % (type(e).__name__, e))

        logger.debug('%s %d: %s', request.op, request.id, response.status.value)
        return wire.pack_response(response, transid)


    def _handle_object_request(self, parts):

        try:
            request = wire.unpack_object_request(parts)
        except DecodeError as e:
            logger.warning('malformed object request: %s', e)
            return wire.pack_token(legacy.UNKNOWN_CMD)

        try:
            return self.execute_object(request)
        except Exception:
            logger.exception('object request failed')
            return wire.pack_token(legacy.INTERNAL_ERROR)


    def execute(self, request):
        """ Carry out a verified-lane :class:`Request`, returning the
            :class:`Response`.
        """

        invalid = message.validate(request)
        if invalid is not None:
            return invalid

        operation = request.operation

        if operation == Operation.CREATE:
            return self.create_entry(request.entry)

        if operation == Operation.READ:
            entry = self.storage.get_entry(request.id)
            if entry is None:
                return message.reply(Status.NOT_FOUND, 'no entry with id %d' % (request.id))
            return message.reply(Status.OK, entry=entry)

        if operation == Operation.UPDATE:
            return self.update_entry(request.id, request.entry)

        if operation == Operation.DELETE:
            if self.storage.delete(ENTRIES, request.id):
                return message.reply(Status.OK)
            return message.reply(Status.NOT_FOUND, 'no entry with id %d' % (request.id))

        return message.reply(Status.UNKNOWN_OPERATION, 'unhandled operation: ' + request.op)


    def prepare_entry(self, entry):
        """ Stamp the creation time on *entry*, and allocate an id if the
            caller left it at zero.
        """

        id = entry.id

        if id == 0:
            id = self.storage.next_id()

        return structs.replace(entry, id=id, created_at=time.time())


    def create_entry(self, entry):

        try:
            entry = self.prepare_entry(entry)
        except ExhaustedError as e:
            logger.error(str(e))
            return message.reply(Status.INTERNAL_ERROR, str(e))

        with self.storage.lock:
            if self.storage.put(ENTRIES, entry.id, entry):
                return message.reply(Status.OK, entry=entry)

        return message.reply(Status.ALREADY_EXISTS, 'an entry with id %d already exists' % (entry.id))


    def update_entry(self, id, entry):

        with self.storage.lock:
            existing = self.storage.get_entry(id)

            if existing is None:
                return message.reply(Status.NOT_FOUND, 'no entry with id %d' % (id))

            updated = structs.replace(entry, id=id, created_at=existing.created_at)
            self.storage.replace(ENTRIES, id, updated)

        return message.reply(Status.OK, entry=updated)


    def prepare_object(self, obj):
        """ Validate a typed object, then stamp it and assign an id. Returns
            a (status, object) tuple; the object is only stamped if the
            status is OK.
        """

        if obj.coherent():
            pass
        else:
            return Status.TYPE_MISMATCH, obj

        id = obj.id

        if id == 0:
            id = self.storage.next_id()

        obj = structs.replace(obj, id=id, timestamp=time.time())
        return Status.OK, obj


    def create_object(self, obj):

        try:
            status, obj = self.prepare_object(obj)
        except ExhaustedError as e:
            logger.error(str(e))
            return Status.INTERNAL_ERROR, obj

        if status != Status.OK:
            return status, obj

        if self.storage.put(OBJECTS, obj.id, obj):
            return Status.OK, obj

        return Status.ALREADY_EXISTS, obj


    def execute_object(self, request):
        """ Carry out a legacy :class:`ObjectRequest`, returning the reply
            frames: a status token, or the object itself for a fetch.
        """

        command = request.command()

        if command == 'store_request':
            status, obj = self.create_object(request.store_request)
            return wire.pack_token(legacy.token(status))

        if command == 'fetch_id':
            obj = self.storage.get_object(request.fetch_id)
            if obj is None:
                return wire.pack_token(legacy.NOT_FOUND)
            return wire.pack_object_reply(obj)

        if command == 'delete_id':
            if self.storage.delete(OBJECTS, request.delete_id):
                return wire.pack_token(legacy.OK)
            return wire.pack_token(legacy.NOT_FOUND)

        return wire.pack_token(legacy.UNKNOWN_CMD)


# end of class RegistaServer



def main(argv=None):

    parser = argparse.ArgumentParser(description='Serve a RegistaDB store over its fast and verified lanes.')
    parser.add_argument('--config', help='JSON configuration file (default: registadb.json in the configuration directory)')
    parser.add_argument('--path', help='directory holding the persistent store')
    parser.add_argument('--ingest-port', type=int, help='fast lane (PULL) port')
    parser.add_argument('--query-port', type=int, help='verified lane (REP) port')
    parser.add_argument('--http-port', type=int, help='also serve entries over HTTP on this port (needs aiohttp)')
    parser.add_argument('--policy', choices=config.policies, help='what to do when creating an id that already exists')
    parser.add_argument('-v', '--verbose', action='store_true', help='log every request')

    arguments = parser.parse_args(argv)

    if arguments.verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    logging.basicConfig(level=level, format='%(asctime)s %(levelname)s %(name)s: %(message)s')

    configuration = config.load(arguments.config)

    server = RegistaServer(arguments.path, arguments.ingest_port, arguments.query_port, arguments.policy, configuration=configuration)

    http_port = arguments.http_port or configuration.http_port

    if http_port:
        from . import rest

        # aiohttp handles the signals, and returns once interrupted.

        server.start()

        try:
            rest.serve(server, http_port)
        finally:
            server.stop()

        return 0

    def stop(signum, frame):
        logger.info('signal %d received, shutting down', signum)
        server.shutdown = True

    signal.signal(signal.SIGINT, stop)
    signal.signal(signal.SIGTERM, stop)

    server.start()

    while server.thread.is_alive():
        server.thread.join(1)

    return 0


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

""" The dual-lane RegistaDB client. A :class:`RegistaClient` holds two
    connections to the same server: a fast lane for fire-and-forget writes,
    and a verified lane for synchronous request/reply operations.

    Nothing sent on the fast lane is ever confirmed; a caller that needs to
    know whether a fast-lane write landed must poll with :func:`read`.
    Protocol statuses are returned as part of the :class:`Response`, never
    raised; only transport failures and malformed replies raise.
"""

import logging

from . import config
from .protocol import entry as envelope
from .protocol import legacy
from .protocol import message
from .protocol import wire
from .protocol.entry import Entry
from .protocol.value import DecodeError
from .transport.zmq import push
from .transport.zmq import request


logger = logging.getLogger(__name__)


class RegistaClient:
    """ Connect to a RegistaDB server on *host*. The fast lane targets
        *ingest_port*, the verified lane *query_port*; *timeout* is the
        number of seconds to wait for a verified-lane reply, and *linger*
        the number of seconds queued fast-lane messages are given to drain
        when the client is closed. Any argument left as None is taken from
        *configuration*, which defaults to :func:`config.load`.

        The verified lane carries one request at a time; concurrent callers
        sharing a client are serialized. Open additional clients for
        concurrent verified-lane traffic.
    """

    def __init__(self, host=None, ingest_port=None, query_port=None, timeout=None, linger=None, configuration=None):

        if configuration is None:
            configuration = config.load()

        settings = dict()
        settings['host'] = host
        settings['ingest_port'] = ingest_port
        settings['query_port'] = query_port
        settings['timeout'] = timeout
        settings['linger'] = linger

        configuration = configuration.derive(settings)
        self.config = configuration
        self.host = configuration.host

        self.fast = push.Client(configuration.host, configuration.ingest_port, configuration.linger)
        self.verified = request.Client(configuration.host, configuration.query_port, configuration.timeout)


    def __enter__(self):
        return self


    def __exit__(self, *exc_info):
        self.close()


    def __repr__(self):
        return "RegistaClient(%s, ingest=%d, query=%d)" % (self.host, self.fast.port, self.verified.port)


    def close(self):
        """ Close both lanes. An in-flight verified request is abandoned; any
            side effect it already had on the server is not undone.
        """

        self.fast.close()
        self.verified.close()


    @staticmethod
    def _entry(value, id, metadata):

        if isinstance(value, Entry):
            if id or metadata:
                raise ValueError('id and metadata cannot be specified alongside a prebuilt Entry')
            return value

        return envelope.build(value, id, metadata)


    def send_request(self, request):
        """ Send a :class:`Request` on the verified lane and return the
            corresponding :class:`Response`. Raises :class:`TransportTimeout`
            if no reply arrives in time; there is no automatic retry.
        """

        transid = message._id_next()
        frames = wire.pack_request(request, transid)

        reply = self.verified.send(frames)
        response = wire.unpack_response(reply, transid)

        logger.debug("%s %d: %s", request.op, request.id, response.status.value)
        return response


    def create(self, value, id=0, metadata=None):
        """ Store *value* and wait for confirmation. With an *id* of zero
            the server allocates one; the stored :class:`Entry`, with its
            id, is returned as part of a successful :class:`Response`.
            *value* can be a Python-native value, an explicit value kind
            from :mod:`registadb.protocol.value`, or a prebuilt
            :class:`Entry`.
        """

        entry = self._entry(value, id, metadata)
        return self.send_request(message.create(entry))


    def create_no_reply(self, value, id=0, metadata=None):
        """ Push *value* on the fast lane. Returns immediately, and reports
            nothing about whether the server received or stored it.
        """

        entry = self._entry(value, id, metadata)
        self.fast.send(wire.pack_entry(entry))


    def read(self, id):
        return self.send_request(message.read(id))


    def update(self, id, value, metadata=None):
        """ Replace the value and metadata of an existing entry. The
            response status is NOT_FOUND if there is no such entry.
        """

        entry = envelope.build(value, id, metadata)
        return self.send_request(message.update(id, entry))


    def delete(self, id):
        return self.send_request(message.delete(id))


    def _send_object_request(self, request):

        reply = self.verified.send(wire.pack_object_request(request))
        return wire.unpack_object_reply(reply)


    def _token(self, result):

        if isinstance(result, str):
            return result

        raise DecodeError('expected a status token, received an object')


    def push_object(self, obj):
        """ Push a typed :class:`RegistaObject` on the fast lane. As with
            :func:`create_no_reply`, nothing is reported back.
        """

        self.fast.send(wire.pack_object(obj))


    def store_object(self, obj):
        """ Store a typed :class:`RegistaObject` and return the status token,
            one of ``OK``, ``TYPE_MISMATCH``, ``ALREADY_EXISTS``, or
            ``INTERNAL_ERROR``.
        """

        result = self._send_object_request(legacy.store(obj))
        return self._token(result)


    def fetch_by_id(self, id):
        """ Return the :class:`RegistaObject` stored under *id*, or None if
            there is no such object. Any other outcome is returned as the
            status token.
        """

        result = self._send_object_request(legacy.fetch(id))

        if result == legacy.NOT_FOUND:
            return None

        return result


    def delete_by_id(self, id):
        result = self._send_object_request(legacy.delete(id))
        return self._token(result)


# end of class RegistaClient


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

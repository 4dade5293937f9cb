""" An HTTP front end for a :class:`RegistaServer`. The entry operations of
    the verified lane are mapped onto REST routes, and handled by the very
    same :func:`RegistaServer.execute` method; request and response bodies
    are entries in their JSON wire encoding.

    ======  ==============  ===========================================
    Method  Path            Operation
    ======  ==============  ===========================================
    POST    /entries        CREATE, answered with 201 and the entry
    GET     /entries/{id}   READ
    PUT     /entries/{id}   UPDATE; the id in the path wins over the body
    DELETE  /entries/{id}   DELETE, answered with 204 and no body
    GET     /metrics        storage activity counters, as a JSON object
    ======  ==============  ===========================================

    Errors are answered with a plain-text diagnostic.
"""

import asyncio
import logging

from aiohttp import web

from .protocol import message
from .protocol import wire
from .protocol.entry import UINT64_MAX
from .protocol.message import Status
from .protocol.value import DecodeError


logger = logging.getLogger(__name__)

content_type = 'application/json'
server_key = web.AppKey('server')

http_status = dict()
http_status[Status.OK] = 200
http_status[Status.NOT_FOUND] = 404
http_status[Status.TYPE_MISMATCH] = 400
http_status[Status.INVALID_ARGUMENT] = 400
http_status[Status.UNKNOWN_OPERATION] = 400
http_status[Status.ALREADY_EXISTS] = 409
http_status[Status.INTERNAL_ERROR] = 500


def create_app(server):
    """ Return an :class:`aiohttp.web.Application` serving the entries held
        by *server*.
    """

    app = web.Application(middlewares=[error_middleware])
    app[server_key] = server

    app.router.add_post('/entries', handle_create)
    app.router.add_get(r'/entries/{id:\d+}', handle_read)
    app.router.add_put(r'/entries/{id:\d+}', handle_update)
    app.router.add_delete(r'/entries/{id:\d+}', handle_delete)
    app.router.add_get('/metrics', handle_metrics)

    return app


@web.middleware
async def error_middleware(request, handler):

    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except Exception as e:
        logger.error('%s %s failed: %s', request.method, request.path, e, exc_info=True)
        return error(500, '%s: %s' % (type(e).__name__, e))


def error(status, text):
    return web.Response(status=status, text=text + '\n')


def path_id(request):

    id = int(request.match_info['id'])

    if id > UINT64_MAX:
        raise web.HTTPBadRequest(text='id does not fit in 64 bits\n')

    return id


async def body_entry(request):

    raw = await request.read()

    try:
        return wire.decode_entry(raw)
    except DecodeError as e:
        raise web.HTTPBadRequest(text='Invalid JSON body: %s\n' % (e))


async def execute(request, operation):
    """ Run a verified-lane request through the server, off the event loop;
        storage access blocks.
    """

    server = request.app[server_key]
    loop = asyncio.get_running_loop()
    response = await loop.run_in_executor(None, server.execute, operation)

    logger.debug('HTTP %s %s: %s', request.method, request.path, response.status.value)
    return response


def respond(response, success=200):

    if response.status != Status.OK:
        return error(http_status.get(response.status, 500), response.message)

    if response.entry is None:
        return web.Response(status=success)

    return web.Response(status=success, body=wire.encode(response.entry), content_type=content_type)


async def handle_create(request):

    entry = await body_entry(request)
    response = await execute(request, message.create(entry))
    return respond(response, 201)


async def handle_read(request):

    response = await execute(request, message.read(path_id(request)))

    if response.status == Status.NOT_FOUND:
        return error(404, 'Entry not found')

    return respond(response)


async def handle_update(request):

    id = path_id(request)
    entry = await body_entry(request)
    response = await execute(request, message.update(id, entry))
    return respond(response)


async def handle_delete(request):

    response = await execute(request, message.delete(path_id(request)))

    if response.status == Status.OK:
        return web.Response(status=204)

    return respond(response)


async def handle_metrics(request):

    server = request.app[server_key]
    return web.json_response(server.storage.stats())


def serve(server, port, host='0.0.0.0'):
    """ Serve the HTTP front end for *server* on *port*, blocking until the
        process is interrupted.
    """

    logger.info("serving HTTP on %s:%d", host, port)
    web.run_app(create_app(server), host=host, port=port, print=None)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

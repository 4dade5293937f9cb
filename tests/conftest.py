import pytest
import registadb


@pytest.fixture
def configuration(tmp_path):
    """ A configuration that never looks at the user's home directory: the
        store lives in a temporary directory, and a port number of 0 lets the
        server pick whatever ports are free.
    """

    settings = dict()
    settings['store'] = str(tmp_path / 'store')
    settings['ingest_port'] = 0
    settings['query_port'] = 0
    settings['timeout'] = 5
    settings['linger'] = 0

    return registadb.config.Configuration(settings)


@pytest.fixture
def server(configuration):

    server = registadb.RegistaServer(configuration=configuration)
    server.start()

    yield server

    server.stop()


@pytest.fixture
def client(server):

    client = connect(server)

    yield client

    client.close()


def connect(server, timeout=5):
    """ Return a client connected to both lanes of *server*.
    """

    return registadb.RegistaClient('localhost', server.ingest_port, server.query_port, timeout=timeout, configuration=server.config)


@pytest.fixture
def connector():
    """ For tests that restart the server, or need more than one client.
    """

    return connect


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

""" Configuration handling for RegistaDB clients and servers. The defaults
    defined here are the well-known port assignments for the two lanes, the
    verified-lane timeout, and the server's overwrite policy; any of them can
    be overridden by a JSON file in the RegistaDB configuration directory,
    and again by explicit arguments to the client or server.
"""

import os
import threading

from . import json


# Two fixed, distinct ports: one for the fast lane (push target), one for
# the verified lane (request target).

ingest_port = 5555
query_port = 5556

OVERWRITE = 'overwrite'
REJECT = 'reject'
policies = (OVERWRITE, REJECT)

defaults = dict()
defaults['host'] = 'localhost'
defaults['ingest_port'] = ingest_port
defaults['query_port'] = query_port
defaults['timeout'] = 5.0
defaults['linger'] = 1.0
defaults['policy'] = OVERWRITE
defaults['store'] = None

# The HTTP entry API is only served when a port is configured.

defaults['http_port'] = None

filename = 'registadb.json'

_cache = dict()
_cache_lock = threading.Lock()


class Configuration:
    """ A convenience class to represent RegistaDB configuration data. An
        instance behaves like a read-only dictionary of the settings in
        :data:`defaults`, with the values loaded from disk (if any) layered
        on top. The settings are also available as attributes.
    """

    def __init__(self, settings=None):

        self._settings = dict(defaults)

        if settings:
            self.update(settings)


    def __contains__(self, key):
        return key in self._settings


    def __getattr__(self, name):

        # __getattr__ is only invoked when normal attribute lookup fails;
        # guard against recursion before _settings exists.

        if name.startswith('_'):
            raise AttributeError(name)

        try:
            return self._settings[name]
        except KeyError:
            raise AttributeError(name)


    def __getitem__(self, key):
        return self._settings[key]


    def __repr__(self):
        return 'config.Configuration: ' + repr(self._settings)


    def derive(self, settings):
        """ Return a new :class:`Configuration` with *settings* applied on
            top of this one; this instance is left unchanged.
        """

        derived = Configuration()
        derived._settings = dict(self._settings)
        derived.update(settings)
        return derived


    def keys(self):
        return self._settings.keys()


    def store_path(self):
        """ Return the directory where the server's persistent store lives.
            This defaults to a ``store`` directory inside the configuration
            :func:`directory`.
        """

        path = self._settings['store']

        if path is None:
            path = os.path.join(directory(), 'store')

        return os.path.expanduser(os.path.expandvars(path))


    def update(self, settings):
        """ Apply the contents of the *settings* dictionary. Only the keys
            present in :data:`defaults` are recognized; a value of None for
            any key leaves the existing setting in place.
        """

        for key, value in settings.items():
            if key not in defaults:
                raise KeyError('unrecognized configuration key: ' + repr(key))

            if value is None:
                continue

            if key == 'policy' and value not in policies:
                raise ValueError("policy must be one of %s, not %s" % (repr(policies), repr(value)))

            if key in ('ingest_port', 'query_port', 'http_port'):
                value = int(value)
            elif key in ('timeout', 'linger'):
                value = float(value)

            self._settings[key] = value


# end of class Configuration



def directory(default=None):
    """ Return the directory location where we should be loading and/or saving
        configuration files. This defaults to ``$HOME/.registadb``, but can be
        overridden by calling this method with a valid path, or by setting
        the ``REGISTADB_HOME`` environment variable. Note that changes to the
        environment variable will be ignored unless it is set prior to the
        first invocation of this method.
    """

    if default is not None:
        default = os.path.expandvars(str(default))

        if os.path.isabs(default) == False:
            raise ValueError('the default directory must be an absolute path')

        os.makedirs(default, mode=0o775, exist_ok=True)
        os.environ['REGISTADB_HOME'] = default
        directory.found = default

        with _cache_lock:
            _cache.clear()

    if directory.found is None:
        try:
            directory.found = os.environ['REGISTADB_HOME']
        except KeyError:
            directory.found = os.path.join(os.path.expanduser('~'), '.registadb')

    return directory.found

directory.found = None



def load(target=None):
    """ Return a :class:`Configuration` for the JSON file *target*, which
        defaults to ``registadb.json`` in the configuration :func:`directory`.
        A missing file is not an error; the defaults are returned instead.
        Results for the default location are cached.
    """

    if target is None:
        target = os.path.join(directory(), filename)
        cached = True
    else:
        cached = False

    if cached:
        with _cache_lock:
            try:
                return _cache[target]
            except KeyError:
                pass

    try:
        raw_json = open(target, 'rb').read()
    except FileNotFoundError:
        settings = None
    else:
        settings = json.loads(raw_json)

        if isinstance(settings, dict):
            pass
        else:
            raise ValueError('configuration file must contain a JSON object: ' + target)

    configuration = Configuration(settings)

    if cached:
        with _cache_lock:
            _cache[target] = configuration

    return configuration


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

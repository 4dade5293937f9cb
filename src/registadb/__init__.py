""" Python implementation of the RegistaDB client protocol. This includes the
    dual-lane client, which writes and reads entries in a RegistaDB object
    store, and a reference server, which persists them.
"""

# Utility components.

from . import json

# Submodules used by multiple other components.

from . import protocol
from . import config
home = config.directory

from . import transport

# Primary public-facing interfaces.

from .client import RegistaClient
from .daemon import RegistaServer

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

""" Persistent storage for the reference RegistaDB server. Every record is
    kept in its own file, named by its id, in one directory per protocol
    generation; entries and typed objects share a single id sequence.

    Deleting a record leaves an empty file behind as a tombstone. The id
    sequence only ever moves forward, and is saved to disk, so a deleted id
    is never handed out again by the allocator, not even after a restart.
"""

import logging
import os
import threading

from . import config
from .protocol import wire
from .protocol.entry import UINT64_MAX


logger = logging.getLogger(__name__)

ENTRIES = 'entries'
OBJECTS = 'objects'


class ExhaustedError(RuntimeError):
    """ Every id up to the 64-bit limit has been used.
    """


class StorageManager:
    """ Manages all interactions with the on-disk store rooted at *path*.
        The *policy* determines what happens when a record is created with
        an id that already exists: :data:`config.OVERWRITE` replaces the old
        record, :data:`config.REJECT` leaves it untouched.
    """

    def __init__(self, path, policy=config.OVERWRITE):

        if policy not in config.policies:
            raise ValueError("policy must be one of %s, not %s" % (repr(config.policies), repr(policy)))

        self.path = path
        self.policy = policy
        self.lock = threading.RLock()

        self.statistics = dict.fromkeys(('reads', 'writes', 'deletes', 'bytes_read', 'bytes_written'), 0)

        for name in (ENTRIES, OBJECTS):
            directory = os.path.join(path, name)

            if os.path.exists(directory):
                if os.access(directory, os.W_OK) != True:
                    raise OSError('cannot write to store directory: ' + directory)
            else:
                os.makedirs(directory, mode=0o775)

        self.counter_filename = os.path.join(path, 'last_id')
        self.last_id = self._load_last_id()

        logger.info("store at %s opened, last allocated id %d", path, self.last_id)


    def _filename(self, kind, id):
        return os.path.join(self.path, kind, str(id))


    def _load_last_id(self):
        """ Recover the id sequence. The saved counter is authoritative, but
            any record with a higher id (say, written just before a crash,
            ahead of the counter) also counts.
        """

        try:
            last_id = open(self.counter_filename, 'r').read()
        except FileNotFoundError:
            last_id = 0
        else:
            last_id = last_id.strip()
            last_id = int(last_id) if last_id else 0

        for kind in (ENTRIES, OBJECTS):
            for name in os.listdir(os.path.join(self.path, kind)):
                try:
                    id = int(name)
                except ValueError:
                    continue

                if id > last_id:
                    last_id = id

        return last_id


    def _write(self, filename, contents):

        # Write to a temporary file first; the rename is atomic, so a record
        # is never observed half-written.

        temporary = filename + '.tmp'

        try:
            with open(temporary, 'wb') as file:
                file.write(contents)
                file.flush()
                os.fsync(file.fileno())

            os.replace(temporary, filename)
        except BaseException:
            if os.path.exists(temporary):
                os.remove(temporary)
            raise

        self.statistics['bytes_written'] += len(contents)


    def _save_last_id(self):
        self._write(self.counter_filename, (str(self.last_id) + '\n').encode())


    def next_id(self):
        """ Allocate and return a fresh, never before used id.
        """

        with self.lock:
            if self.last_id >= UINT64_MAX:
                raise ExhaustedError('no ids left to allocate, the last one issued was %d' % (self.last_id))

            self.last_id += 1
            self._save_last_id()
            return self.last_id


    def reserve(self, id):
        """ Note that *id* was chosen by a caller, so that the allocator never
            hands it out.
        """

        with self.lock:
            if id > self.last_id:
                self.last_id = id
                self._save_last_id()


    def _read(self, kind, id):
        """ Return the raw bytes of a record, or None if the record does not
            exist or has been deleted.
        """

        try:
            with open(self._filename(kind, id), 'rb') as file:
                contents = file.read()
        except FileNotFoundError:
            return None

        # An empty file is a tombstone.

        if len(contents) == 0:
            return None

        self.statistics['reads'] += 1
        self.statistics['bytes_read'] += len(contents)
        return contents


    def exists(self, kind, id):
        with self.lock:
            return self._read(kind, id) is not None


    def put(self, kind, id, record):
        """ Write *record* under *id*. Returns False, without writing, if the
            id is already taken and the policy is to reject duplicates.
        """

        with self.lock:
            if self.policy == config.REJECT and self._read(kind, id) is not None:
                return False

            self.reserve(id)
            self._write(self._filename(kind, id), wire.encode(record))
            self.statistics['writes'] += 1
            return True


    def replace(self, kind, id, record):
        """ Overwrite an existing record regardless of policy. Returns False
            if there is no live record to replace.
        """

        with self.lock:
            if self._read(kind, id) is None:
                return False

            self._write(self._filename(kind, id), wire.encode(record))
            self.statistics['writes'] += 1
            return True


    def delete(self, kind, id):
        """ Replace the record with a tombstone. Returns False if there was
            no live record to delete.
        """

        with self.lock:
            if self._read(kind, id) is None:
                return False

            self._write(self._filename(kind, id), b'')
            self.statistics['deletes'] += 1
            return True


    def get_entry(self, id):
        """ Return the :class:`Entry` stored under *id*, or None.
        """

        with self.lock:
            raw = self._read(ENTRIES, id)

        if raw is None:
            return None

        return wire.decode_entry(raw)


    def get_object(self, id):
        """ Return the :class:`RegistaObject` stored under *id*, or None.
        """

        with self.lock:
            raw = self._read(OBJECTS, id)

        if raw is None:
            return None

        return wire.decode_object(raw)


    def stats(self):
        """ Return a snapshot of the activity counters since the store was
            opened, along with the last allocated id.
        """

        with self.lock:
            snapshot = dict(self.statistics)
            snapshot['last_id'] = self.last_id

        return snapshot


    def close(self):
        with self.lock:
            self._save_last_id()


# end of class StorageManager


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

"""File and directory operations on a mounted FAT32 volume, and a table that binds them."""

from dataclasses import replace
from functools import partial

from renkernel.fat import ROOT_CLUSTER, FatError, FatFile
from renkernel.layout import DELETED_MARK, Attr, DirEntry

_DOT_NAME = b".       "
_DOTDOT_NAME = b"..      "
_BLANK_EXT = b"   "


def _path_bytes(path):
    if isinstance(path, str):
        return path.encode("latin-1")
    return bytes(path)


def _is_root(path):
    return _path_bytes(path) == b"/"


def _dir_sector(fs, path):
    """First sector of the directory at ``path``."""
    if _is_root(path):
        return fs.cluster_sector(ROOT_CLUSTER)
    directory = fs.find(path)
    if directory is None:
        raise FatError(f"no such directory: {path!r}")
    if not directory.entry.is_directory:
        raise FatError(f"not a directory: {path!r}")
    return fs.cluster_sector(directory.entry.start_cluster)


def list_dir(fs, path):
    """Return the live entries of a directory, skipping deleted and volume-label slots."""
    entries = []
    for _sector, _offset, raw in fs.walk_dir(_dir_sector(fs, path)):
        if raw[0] == 0:
            break
        if raw[0] != DELETED_MARK and not raw[11] & Attr.VOLUME_ID:
            entries.append(DirEntry.from_bytes(raw))
    return entries


def _delete(fs, path):
    file = fs.open(path)
    file.entry.name = bytes([DELETED_MARK]) + bytes(file.entry.name[1:])
    cluster = file.entry.start_cluster
    while cluster != 0 and cluster <= fs.last_cluster:
        following = fs.fat_entry(cluster)
        fs.set_fat_entry(cluster, 0)
        cluster = following
    fs.close(file)


def remove(fs, path):
    """Delete a file: mark its entry deleted and free its cluster chain."""
    _delete(fs, path)


def remove_dir(fs, path):
    """Delete a directory entry and free its cluster chain."""
    _delete(fs, path)


def copy(fs, src, dest):
    """Copy a file's contents and attribute into a new file; return the bytes copied."""
    source = fs.open(src)
    fs.create(dest, source.entry.attr)
    target = fs.open(dest)
    data = fs.read(source, source.entry.size)
    written = fs.write(target, data)
    fs.close(target)
    fs.close(source)
    return written


def move(fs, src, dest):
    """Copy ``src`` to ``dest`` and then remove ``src``."""
    if _path_bytes(src) == _path_bytes(dest):
        raise FatError("source and destination are the same")
    copy(fs, src, dest)
    remove(fs, src)


def cat(fs, path):
    """Return the whole contents of a file."""
    file = fs.open(path)
    data = fs.read(file, file.entry.size)
    fs.close(file)
    return data


def _parent_cluster(fs, path):
    raw = _path_bytes(path)
    slash = raw.rfind(b"/")
    if slash <= 0:
        return 0
    return fs.open(raw[:slash]).entry.start_cluster


def make_dir(fs, path):
    """Create a directory holding its '.' and '..' entries."""
    fs.create(path, Attr.DIRECTORY)
    directory = fs.open(path)
    # The first write gives the directory its own cluster.
    fs.write(directory, bytes(32))
    directory.seek(0)

    dot = DirEntry(name=_DOT_NAME, ext=_BLANK_EXT, attr=Attr.DIRECTORY)
    dot.start_cluster = directory.entry.start_cluster
    dotdot = DirEntry(name=_DOTDOT_NAME, ext=_BLANK_EXT, attr=Attr.DIRECTORY)
    dotdot.start_cluster = _parent_cluster(fs, path)

    fs.write(directory, dot.to_bytes() + dotdot.to_bytes())
    directory.entry.size = 0
    fs.close(directory)


def link(fs, src, dest):
    """Make ``dest`` a second entry sharing ``src``'s data clusters."""
    source = fs.open(src)
    fs.create(dest, source.entry.attr)
    target = fs.open(dest)
    target.entry = replace(source.entry, name=target.entry.name, ext=target.entry.ext)
    fs.close(target)
    fs.close(source)


def touch(fs, path):
    """Create an empty file that already owns one data cluster."""
    fs.create(path, Attr.ARCHIVE)
    file = fs.open(path)
    if file.entry.start_cluster == 0:
        file.entry.start_cluster = fs.alloc_cluster()
    file.entry.size = 0
    fs.close(file)


class FileOperations:
    """The file-system operations of one mounted volume, bound by name."""

    def __init__(self, fs):
        self.fs = fs
        self.create = fs.create
        self.open = fs.open
        self.close = fs.close
        self.read = fs.read
        self.write = fs.write
        self.fflush = fs.flush
        self.find = fs.find
        self.lseek = FatFile.seek
        self.rm = partial(remove, fs)
        self.rmdir = partial(remove_dir, fs)
        self.mkdir = partial(make_dir, fs)
        self.mv = partial(move, fs)
        self.cp = partial(copy, fs)
        self.cat = partial(cat, fs)
        self.ln = partial(link, fs)
        self.touch = partial(touch, fs)
        self.list_dir = partial(list_dir, fs)
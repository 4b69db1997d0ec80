# Copyright Red Hat
#
# snapgrub/snapshot.py - Snapgrub snapshot catalog
#
# This file is part of the snapgrub project.
#
# SPDX-License-Identifier: GPL-2.0-only
"""The ``snapgrub.snapshot`` module turns the raw output of the btrfs
subvolume listing and the optional snapper metadata listing into an
ordered list of ``Snapshot`` objects.

Raw listing lines are parsed once into ``SubvolumeRecord`` and
``ManagerRecord`` objects with named fields: all later processing
(filtering, metadata correlation and sorting) operates on these
records.
"""
from os.path import isdir, join as path_join
import logging
import re

from snapgrub import *

# Module logging configuration
_log = logging.getLogger(__name__)
_log.set_debug_mask(SNAPGRUB_DEBUG_CATALOG)

_log_debug = _log.debug
_log_debug_catalog = _log.debug_masked
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error

#: Path value reported by btrfs for subvolumes pending deletion.
DELETED_PATH = "DELETED"

#: Marker for the top-level tree in ``btrfs subvolume list -a`` output.
FS_TREE_MARKER = "<FS_TREE>"

#: Separator used between columns of formatted snapshot lines.
COLUMN_SEPARATOR = " | "

#: A regular expression matching one line of ``btrfs subvolume list -sa``
_SUBVOLUME_RE = re.compile(
    r"^ID (?P<subvol_id>\d+) gen (?P<gen>\d+)"
    r"(?: cgen (?P<cgen>\d+))?"
    r" top level (?P<top_level>\d+)"
    r"(?: otime (?P<otime>-|\S+ \S+))?"
    r" path (?P<path>.*)$"
)

#: Sort fields understood by ``sort_records()``.
SORT_ROOTID = "rootid"
SORT_GEN = "gen"
SORT_OGEN = "ogen"
SORT_PATH = "path"

_sort_attrs = {
    SORT_ROOTID: "subvol_id",
    SORT_GEN: "gen",
    SORT_OGEN: "cgen",
    SORT_PATH: "path",
}

# Snapper list column headings
_SNAPPER_COL_ID = "#"
_SNAPPER_COL_TYPE = "Type"
_SNAPPER_COL_DESC = "Description"

#: Column positions used when no snapper heading line is present.
_snapper_default_columns = {
    _SNAPPER_COL_ID: 0,
    _SNAPPER_COL_TYPE: 1,
    _SNAPPER_COL_DESC: 6,
}


class SubvolumeRecord(object):
    """One parsed line of btrfs subvolume list output."""

    subvol_id = 0
    gen = 0
    cgen = 0
    top_level = 0
    otime = ""
    path = ""

    def __init__(self, subvol_id, gen, cgen, top_level, otime, path):
        self.subvol_id = subvol_id
        self.gen = gen
        self.cgen = cgen
        self.top_level = top_level
        self.otime = otime
        self.path = path

    def __repr__(self):
        return (
            'SubvolumeRecord(subvol_id=%d, gen=%d, cgen=%d, top_level=%d, '
            'otime="%s", path="%s")'
            % (self.subvol_id, self.gen, self.cgen, self.top_level, self.otime, self.path)
        )


class ManagerRecord(object):
    """One parsed row of snapshot manager (snapper) metadata."""

    snapshot_id = None
    snapshot_type = ""
    description = ""

    def __init__(self, snapshot_id, snapshot_type="", description=""):
        self.snapshot_id = snapshot_id
        self.snapshot_type = snapshot_type
        self.description = description

    def __repr__(self):
        return 'ManagerRecord(snapshot_id=%d, snapshot_type="%s", description="%s")' % (
            self.snapshot_id,
            self.snapshot_type,
            self.description,
        )


class Snapshot(object):
    """A bootable snapshot of the root file system.

    ``Snapshot`` objects are created by ``list_snapshots()`` and are
    not modified after construction: all attributes are exposed as
    read-only properties.
    """

    def __init__(self, record, path, snapshot_type="", description=""):
        """Initialise a new ``Snapshot`` from a parsed subvolume record.

        :param record: The ``SubvolumeRecord`` for this snapshot.
        :param path: The snapshot path relative to the volume root.
        :param snapshot_type: The snapshot manager type, if known.
        :param description: The snapshot manager description, if known.
        """
        self._record = record
        self._path = path
        self._snapshot_type = snapshot_type
        self._description = description

    def __str__(self):
        return "%s%s%s" % (self.timestamp, COLUMN_SEPARATOR, self.path)

    def __repr__(self):
        return 'Snapshot(path="%s", timestamp="%s", snapshot_type="%s", description="%s")' % (
            self.path,
            self.timestamp,
            self.snapshot_type,
            self.description,
        )

    @property
    def snapshot_id(self):
        """The numeric identifier derived from this snapshot's path, or
        ``None`` if the path contains no digits.

        The identifier is only used to correlate snapshot manager
        metadata: it is not guaranteed to be unique.
        """
        return snapshot_id_from_path(self._path)

    @property
    def path(self):
        """The path of this snapshot relative to the volume root."""
        return self._path

    @property
    def timestamp(self):
        """The creation time of this snapshot as reported by btrfs."""
        return self._record.otime

    @property
    def subvol_id(self):
        return self._record.subvol_id

    @property
    def gen(self):
        return self._record.gen

    @property
    def cgen(self):
        return self._record.cgen

    @property
    def top_level(self):
        return self._record.top_level

    @property
    def snapshot_type(self):
        """The snapshot manager type of this snapshot, or ``""``."""
        return self._snapshot_type

    @property
    def description(self):
        """The snapshot manager description of this snapshot, or ``""``."""
        return self._description

    def display_name(self, full_path=True):
        """Return the name of this snapshot for display in menu titles.

        :param full_path: ``True`` to return the full path, or ``False``
                          to strip the leading path segment.
        :rtype: str
        """
        if full_path or "/" not in self._path:
            return self._path
        return self._path.split("/", 1)[1]


def snapshot_id_from_path(path):
    """Derive a numeric snapshot identifier from ``path`` by removing
    every non-digit character.

    :param path: A snapshot path.
    :returns: The derived identifier or ``None``.
    :rtype: int
    """
    digits = strip_non_digits(path)
    return int(digits) if digits else None


def parse_subvolume_line(line):
    """Parse one line of ``btrfs subvolume list -sa`` output.

    :param line: The line to parse.
    :returns: A ``SubvolumeRecord``, or ``None`` if the line is not a
              subvolume record.
    """
    match = _SUBVOLUME_RE.match(line.strip())
    if not match:
        return None
    otime = match.group("otime") or ""
    return SubvolumeRecord(
        int(match.group("subvol_id")),
        int(match.group("gen")),
        int(match.group("cgen") or 0),
        int(match.group("top_level")),
        otime if otime != "-" else "",
        match.group("path").strip(),
    )


def parse_subvolume_list(lines):
    """Parse ``btrfs subvolume list -sa`` output lines into a list of
    ``SubvolumeRecord`` objects. Lines that cannot be parsed are logged
    and skipped.

    :param lines: An iterable of output lines.
    :rtype: list
    """
    records = []
    for line in lines:
        if not line.strip():
            continue
        record = parse_subvolume_line(line)
        if not record:
            _log_warn("Ignoring malformed subvolume line: '%s'", line.strip())
            continue
        records.append(record)
    return records


def _snapper_columns(cols):
    """Return a map of column headings to positions for a snapper
    heading row, or ``None`` if ``cols`` is not a heading.
    """
    names = [col.strip() for col in cols]
    if _SNAPPER_COL_ID not in names or _SNAPPER_COL_DESC not in names:
        return None
    return {
        _SNAPPER_COL_ID: names.index(_SNAPPER_COL_ID),
        _SNAPPER_COL_TYPE: names.index(_SNAPPER_COL_TYPE),
        _SNAPPER_COL_DESC: names.index(_SNAPPER_COL_DESC),
    }


def parse_manager_list(lines):
    """Parse ``snapper list`` table output into ``ManagerRecord``
    objects.

    Column positions are taken from the heading row when present.
    Identifier fields are reduced to their digits so that snapper's
    status markers (e.g. ``"42*"``) are ignored.

    :param lines: An iterable of output lines.
    :rtype: list
    """
    columns = dict(_snapper_default_columns)
    records = []
    for line in lines:
        if "|" not in line:
            continue
        cols = line.split("|")
        heading = _snapper_columns(cols)
        if heading:
            columns = heading
            continue
        if len(cols) <= max(columns.values()):
            continue
        digits = strip_non_digits(cols[columns[_SNAPPER_COL_ID]])
        if not digits:
            continue
        records.append(
            ManagerRecord(
                int(digits),
                cols[columns[_SNAPPER_COL_TYPE]].strip(),
                cols[columns[_SNAPPER_COL_DESC]].strip(),
            )
        )
    return records


def is_ignored(path, config):
    """Test whether ``path`` is excluded by the configured ignore lists.

    :param path: A snapshot path relative to the volume root.
    :param config: The active ``SnapgrubConfig``.
    :rtype: bool
    """
    if any(path == isp for isp in config.ignore_specific_path if isp):
        return True
    return any(path.startswith(ipp) for ipp in config.ignore_prefix_path if ipp)


def parse_sort_key(sort):
    """Parse a sort specification into an ``(attribute, reverse)``
    tuple.

    :param sort: ``"descending"``, ``"ascending"`` or a btrfs style
                 ``[+|-]field`` specification.
    :raises: SnapgrubConfigError if ``sort`` is not understood.
    """
    if sort == "descending":
        return (_sort_attrs[SORT_ROOTID], True)
    if sort == "ascending":
        return (_sort_attrs[SORT_ROOTID], False)

    reverse = sort.startswith("-")
    field = sort.lstrip("+-")
    if field not in _sort_attrs:
        raise SnapgrubConfigError("Invalid snapshot sort order: '%s'" % sort)
    return (_sort_attrs[field], reverse)


def sort_records(records, sort):
    """Return ``records`` sorted according to ``sort``.

    :param records: A list of ``SubvolumeRecord`` objects.
    :param sort: A sort specification accepted by ``parse_sort_key()``.
    :rtype: list
    """
    (attr, reverse) = parse_sort_key(sort)
    return sorted(records, key=lambda r: getattr(r, attr), reverse=reverse)


def _record_path(record):
    path = record.path
    if path.startswith(FS_TREE_MARKER + "/"):
        path = path[len(FS_TREE_MARKER) + 1:]
    return path


def list_snapshots(lines, manager_records=None, config=None, snapshot_root="/"):
    """Return the ordered list of bootable snapshots.

    Records for deleted subvolumes, ignored paths and snapshots with no
    boot directory under ``snapshot_root`` are discarded. Manager
    metadata is attached by derived numeric identifier.

    :param lines: ``btrfs subvolume list -sa`` output lines.
    :param manager_records: An optional list of ``ManagerRecord``.
    :param config: The ``SnapgrubConfig`` to use, or ``None`` for the
                   active configuration.
    :param snapshot_root: The mount point of the btrfs top level.
    :returns: A list of ``Snapshot`` objects.
    :rtype: list
    """
    config = config or get_snapgrub_config()
    boot_subdir = config.boot_dirname.strip("/")

    metadata = {}
    for mr in manager_records or []:
        metadata.setdefault(mr.snapshot_id, mr)

    snapshots = []
    seen = set()
    for record in sort_records(parse_subvolume_list(lines), config.sort):
        if record.path == DELETED_PATH:
            continue

        path = _record_path(record)
        if path in seen:
            continue

        if is_ignored(path, config):
            _log_debug_catalog("Ignoring snapshot path '%s'", path)
            continue

        if not isdir(path_join(snapshot_root, path, boot_subdir)):
            _log_debug_catalog("Skipping '%s': no boot directory", path)
            continue

        snapshot_type = description = ""
        mr = metadata.get(snapshot_id_from_path(path))
        if mr:
            snapshot_type = mr.snapshot_type
            description = mr.description

        seen.add(path)
        snapshots.append(Snapshot(record, path, snapshot_type, description))

    _log_debug_catalog("Found %d bootable snapshots", len(snapshots))
    return snapshots


def format_snapshot_lines(snapshots):
    """Format snapshots as aligned ``entry | type | description`` lines.

    The entry (``timestamp | path``) and type columns are padded to the
    widest value across all of ``snapshots``.

    :param snapshots: A list of ``Snapshot`` objects.
    :returns: A list of strings in the same order as ``snapshots``.
    :rtype: list
    """
    if not snapshots:
        return []

    entry_width = max(len(str(s)) for s in snapshots)
    type_width = max(len(s.snapshot_type) for s in snapshots)

    lines = []
    for s in snapshots:
        line = "%-*s%s%-*s%s%s" % (
            entry_width,
            str(s),
            COLUMN_SEPARATOR,
            type_width,
            s.snapshot_type,
            COLUMN_SEPARATOR,
            s.description,
        )
        lines.append(line.rstrip())
    return lines


__all__ = [
    "DELETED_PATH",
    "FS_TREE_MARKER",
    "SubvolumeRecord",
    "ManagerRecord",
    "Snapshot",
    "snapshot_id_from_path",
    "parse_subvolume_line",
    "parse_subvolume_list",
    "parse_manager_list",
    "is_ignored",
    "parse_sort_key",
    "sort_records",
    "list_snapshots",
    "format_snapshot_lines",
]

# vim: set et ts=4 sw=4 :

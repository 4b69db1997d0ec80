# Copyright Red Hat
#
# snapgrub/menu.py - Snapgrub GRUB menu rendering
#
# This file is part of the snapgrub project.
#
# SPDX-License-Identifier: GPL-2.0-only
"""The ``snapgrub.menu`` module renders snapshots and their matched
boot images as GRUB configuration script text.

Each snapshot is rendered as a ``submenu`` titled according to the
configured title format, containing an inert separator entry and one
``menuentry`` for each matched (kernel, initramfs, microcode) triple.
A short registration ``submenu`` that loads the generated file is
produced by ``render_registration()``.
"""
import logging

from snapgrub import *
from snapgrub.artifacts import NO_MICROCODE

# Module logging configuration
_log = logging.getLogger(__name__)
_log.set_debug_mask(SNAPGRUB_DEBUG_MENU)

_log_debug = _log.debug
_log_debug_menu = _log.debug_masked
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error

#: Indentation used for nested GRUB blocks.
INDENT = " " * 4

#: Menu entry classes for snapshot entries.
ENTRY_CLASSES = ["snapshots", "gnu-linux", "gnu", "os"]

#: Format for snapshot menu entry identifiers.
ENTRY_ID_FMT = "gnulinux-snapshots-%s"

#: Format for the separator entry heading each snapshot submenu.
SEPARATOR_FMT = "---> %s <---"

_REGISTRATION_FMT = (
    "submenu %s %s{\n"
    + INDENT
    + 'configfile "${prefix}/%s"\n'
    + "}\n"
)


def grub_single_quote(value):
    """Quote ``value`` for use as a single quoted GRUB word.

    :param value: The string to quote.
    :rtype: str
    """
    return "'%s'" % value.replace("'", "'\\''")


def grub_double_quote(value):
    """Quote ``value`` for use as a double quoted GRUB word.

    :param value: The string to quote.
    :rtype: str
    """
    for char in ("\\", '"', "$"):
        value = value.replace(char, "\\" + char)
    return '"%s"' % value


def snapshot_title(snapshot, config=None):
    """Return the menu title of ``snapshot``.

    The title is built from the configured entry prefix, the snapshot
    timestamp and the snapshot display name in the order selected by
    ``config.title_format``.

    :param snapshot: The ``Snapshot`` to title.
    :param config: The ``SnapgrubConfig`` to use, or ``None`` for the
                   active configuration.
    :rtype: str
    :raises: SnapgrubConfigError if the title format is unknown.
    """
    config = config or get_snapgrub_config()
    if config.title_format not in TITLE_FORMATS:
        raise SnapgrubConfigError(f"Unknown title format: '{config.title_format}'")

    values = {
        "prefix": config.prefix_entry,
        "date": snapshot.timestamp,
        "name": snapshot.display_name(full_path=config.display_path_snapshot),
    }
    parts = [values[part] for part in TITLE_FORMATS[config.title_format]]
    return " ".join(part for part in parts if part)


def _grub_path(boot_path, name):
    return "%s/%s" % (boot_path.rstrip("/"), name)


def _search_lines(device_info):
    search = "search --no-floppy --fs-uuid --set=root"
    if not device_info.boot_hints:
        return ["%s %s" % (search, device_info.boot_uuid)]
    return [
        "if [ x$feature_platform_search_hint = xy ]; then",
        INDENT + "%s %s %s" % (search, device_info.boot_hints, device_info.boot_uuid),
        "else",
        INDENT + "%s %s" % (search, device_info.boot_uuid),
        "fi",
    ]


def _linux_args(ctx, snapshot):
    config = ctx.config
    args = []
    if ctx.linux_root:
        args.append("root=%s" % ctx.linux_root)
    if ctx.kernel_parameters:
        args.append(ctx.kernel_parameters)
    rootflags = "subvol=%s" % grub_double_quote(snapshot.path)
    if config.rootflags:
        rootflags = "%s,%s" % (config.rootflags, rootflags)
    args.append("rootflags=%s" % rootflags)
    return " ".join(args)


def render_entry(ctx, entry, boot_path):
    """Render one ``MatchedEntry`` as a GRUB ``menuentry``.

    :param ctx: The ``RunContext`` of this run.
    :param entry: The ``MatchedEntry`` to render.
    :param boot_path: The GRUB path of the directory containing the
                      entry's boot images.
    :returns: The menu entry text, without trailing newline.
    :rtype: str
    """
    snapshot = entry.snapshot
    info = ctx.device_info
    has_microcode = entry.microcode is not NO_MICROCODE

    label_parts = [entry.kernel, entry.initramfs]
    if has_microcode:
        label_parts.append(entry.microcode)
    label = "  " + " & ".join(label_parts)

    classes = " ".join("--class %s" % c for c in ENTRY_CLASSES)
    entry_id = ENTRY_ID_FMT % info.boot_uuid

    body = [
        "if [ x$feature_all_video_module = xy ]; then",
        INDENT + "insmod all_video",
        "fi",
        "set gfxpayload=keep",
    ]
    if info.boot_fs:
        body.append("insmod %s" % info.boot_fs)
    body.extend(_search_lines(info))
    body.append(
        "echo %s"
        % grub_single_quote(
            "Loading Snapshot: %s %s" % (snapshot.timestamp, snapshot.path)
        )
    )
    body.append("echo %s" % grub_single_quote("Loading Kernel: %s ..." % entry.kernel))
    body.append(
        "linux %s %s"
        % (
            grub_double_quote(_grub_path(boot_path, entry.kernel)),
            _linux_args(ctx, snapshot),
        )
    )

    initrds = [entry.initramfs]
    if has_microcode:
        initrds.insert(0, entry.microcode)
        message = "Loading Microcode & Initramfs: %s ..." % " ".join(initrds)
    else:
        message = "Loading Initramfs: %s ..." % entry.initramfs
    body.append("echo %s" % grub_single_quote(message))
    body.append(
        "initrd %s"
        % " ".join(grub_double_quote(_grub_path(boot_path, i)) for i in initrds)
    )

    lines = [
        "menuentry %s %s $menuentry_id_option %s {"
        % (grub_single_quote(label), classes, grub_single_quote(entry_id))
    ]
    lines.extend(INDENT + line for line in body)
    lines.append("}")
    _log_debug_menu("Rendered entry %s for %s", label.strip(), snapshot.path)
    return "\n".join(lines)


def render_snapshot(ctx, snapshot, entries, boot_path):
    """Render the submenu for ``snapshot`` containing one menu entry for
    each of ``entries``.

    :param ctx: The ``RunContext`` of this run.
    :param snapshot: The ``Snapshot`` being rendered.
    :param entries: A list of ``MatchedEntry`` objects for ``snapshot``.
    :param boot_path: The GRUB path of the boot image directory.
    :returns: The submenu text, terminated by a newline.
    :rtype: str
    """
    title = snapshot_title(snapshot, ctx.config)
    lines = [
        "submenu %s {" % grub_single_quote(title),
        INDENT + "submenu %s { echo }" % grub_single_quote(SEPARATOR_FMT % title),
    ]
    for entry in entries:
        for line in render_entry(ctx, entry, boot_path).splitlines():
            lines.append(INDENT + line)
    lines.append("}")
    return "\n".join(lines) + "\n"


def render_registration(config=None):
    """Render the submenu stanza that makes GRUB load the generated
    snapshot menu file.

    :param config: The ``SnapgrubConfig`` to use, or ``None`` for the
                   active configuration.
    :rtype: str
    """
    config = config or get_snapgrub_config()
    # An unrestricted submenu is open to all users.
    protection = ""
    if config.unrestricted:
        protection = "--unrestricted "
    elif config.authorized_users:
        protection = "--users %s " % config.authorized_users
    return _REGISTRATION_FMT % (
        grub_single_quote(config.submenu_name),
        protection,
        SNAPGRUB_CFG_FILE,
    )


__all__ = [
    "grub_single_quote",
    "grub_double_quote",
    "snapshot_title",
    "render_entry",
    "render_snapshot",
    "render_registration",
]

# vim: set et ts=4 sw=4 :

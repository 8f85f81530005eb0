#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: GPL-2.0-or-later
# Copyright (C) 2020 by the Linux Foundation
#
import argparse
import logging
import shutil
import sys

import cu
import cu.ops

from cu.state import RepoContext

logger = cu.logger


class CuArgumentParser(argparse.ArgumentParser):
    def error(self, message):
        # Every failure exits with 1, including bad command lines
        self.print_help(sys.stderr)
        self.exit(1, '%s: error: %s\n' % (self.prog, message))


def setup_parser() -> argparse.ArgumentParser:
    # noinspection PyTypeChecker
    parser = CuArgumentParser(
        prog='cu',
        description='Work on patch series for mailing list review, with patchwork lookups',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument('--version', action='version', version=cu.__VERSION__)
    parser.add_argument('-d', '--debug', action='store_true', default=False,
                        help='Add more debugging info to the output')
    parser.add_argument('-q', '--quiet', action='store_true', default=False,
                        help='Output critical information only')
    parser.add_argument('--dry-run', dest='dryrun', action='store_true', default=False,
                        help='Pass --dry-run to git-send-email and leave the revision alone (use with -x)')

    ops_g = parser.add_mutually_exclusive_group()
    ops_g.add_argument('-n', '--new', dest='new_name', metavar='NAME',
                       help='Create and check out a new tracked branch named %sNAME' % cu.BRANCH_PREFIX)
    ops_g.add_argument('-a', '--archive', dest='archive_branch', metavar='BRANCH',
                       help='Archive the state of a tracked branch and delete it')
    ops_g.add_argument('-p', '--apply-patch', dest='patch_id', metavar='ID',
                       help='Fetch a patch from patchwork and apply it')
    ops_g.add_argument('-s', '--apply-series', dest='series_id', metavar='ID',
                       help='Fetch a series from patchwork and apply it')
    ops_g.add_argument('-e', '--edit-cover', action='store_true', default=False,
                       help='Edit the cover letter (branch description) in your editor')
    ops_g.add_argument('-v', '--revision', dest='force_revision', metavar='N',
                       help='Force series revision to be this number')
    ops_g.add_argument('-x', '--send', action='store_true', default=False,
                       help='Generate the series and send it with git-send-email')
    ops_g.add_argument('-l', '--list', dest='list_branches', action='store_true', default=False,
                       help='List tracked branches and their revisions')
    ops_g.add_argument('-i', '--info', dest='show_info', action='store_true', default=False,
                       help='Show current branch state in a column-parseable format')

    return parser


def has_operation(cmdargs: argparse.Namespace) -> bool:
    for opt in ('new_name', 'archive_branch', 'patch_id', 'series_id', 'force_revision'):
        if getattr(cmdargs, opt) is not None:
            return True
    return cmdargs.edit_cover or cmdargs.send or cmdargs.list_branches or cmdargs.show_info


def dispatch(ctx: RepoContext, cmdargs: argparse.Namespace) -> None:
    if cmdargs.new_name is not None:
        return cu.ops.new(ctx, cmdargs.new_name)
    if cmdargs.archive_branch is not None:
        return cu.ops.archive(ctx, cmdargs.archive_branch)
    if cmdargs.patch_id is not None:
        return cu.ops.apply_patch(ctx, cmdargs.patch_id)
    if cmdargs.series_id is not None:
        return cu.ops.apply_series(ctx, cmdargs.series_id)
    if cmdargs.edit_cover:
        return cu.ops.edit_cover(ctx)
    if cmdargs.force_revision is not None:
        return cu.ops.revision(ctx, cmdargs.force_revision)
    if cmdargs.send:
        return cu.ops.send(ctx, dryrun=cmdargs.dryrun)
    if cmdargs.list_branches:
        return cu.ops.list_branches(ctx)
    if cmdargs.show_info:
        return cu.ops.show_info(ctx)


def cmd(argv=None):
    if argv is None:
        argv = sys.argv[1:]
    parser = setup_parser()
    cmdargs, unknown = parser.parse_known_args(argv)
    logger.setLevel(logging.DEBUG)

    ch = logging.StreamHandler()
    formatter = logging.Formatter('%(message)s')
    ch.setFormatter(formatter)

    if cmdargs.quiet:
        ch.setLevel(logging.CRITICAL)
    elif cmdargs.debug:
        ch.setLevel(logging.DEBUG)
    else:
        ch.setLevel(logging.INFO)

    logger.addHandler(ch)

    if shutil.which('git') is None:
        logger.critical('CRITICAL: git is required')
        sys.exit(1)

    try:
        ctx = RepoContext.discover()
    except RuntimeError as ex:
        logger.critical('CRITICAL: %s', ex)
        sys.exit(1)
    ctx.ensure_dirs()

    if not argv:
        parser.print_help()
        sys.exit(1)

    if unknown:
        logger.debug('Unrecognized arguments: %s', ' '.join(unknown))
        parser.print_help()
        sys.exit(0)

    if not has_operation(cmdargs):
        parser.print_help()
        sys.exit(0)

    dispatch(ctx, cmdargs)


if __name__ == '__main__':
    cmd()

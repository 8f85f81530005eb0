# SPDX-License-Identifier: GPL-2.0-or-later
# Copyright (C) 2020 by the Linux Foundation
#
import os
import sys
import shutil
import tarfile

import cu
import cu.pw

from cu.state import RepoContext, BranchState, set_revision, increment_revision

from typing import Optional, List

logger = cu.logger


def get_tracked_branch(ctx: RepoContext, mustmsg: Optional[str] = None) -> str:
    mybranch = ctx.current_branch()
    if mybranch is None or not BranchState.exists(ctx, mybranch):
        if mustmsg is None:
            mustmsg = 'CRITICAL: This is not a cu-managed branch.'
        logger.critical(mustmsg)
        sys.exit(1)
    return mybranch


def new(ctx: RepoContext, name: str) -> None:
    name = name.strip() if name else ''
    if not name:
        logger.critical('Please provide a branch name')
        sys.exit(1)
    if '/' in name:
        logger.critical('CRITICAL: branch names with "/" are not supported: %s', name)
        sys.exit(1)
    branchname = cu.BRANCH_PREFIX + name
    args = ['checkout', '-b', branchname]
    ecode, out = cu.git_run_command(None, args, logstderr=True)
    if ecode > 0:
        logger.critical('CRITICAL: Failed to create a new branch %s', branchname)
        logger.critical(out.strip())
        sys.exit(1)
    logger.info('Created new branch %s', branchname)

    state = BranchState.create(ctx, branchname)
    logger.info('  patches: %s', state.patches_dir)
    logger.info('  base: %s', state.base_commit)
    logger.info('  revision: v%s', state.revision)


def archive(ctx: RepoContext, branch: str) -> None:
    if not branch:
        logger.critical('Please provide a branch name')
        sys.exit(1)
    # Refuse to clean up the currently checked out branch
    if branch == ctx.current_branch():
        logger.critical("can't cleanup the branch you're inside")
        sys.exit(1)
    if not cu.git_branch_exists(None, branch):
        logger.critical('Not a known branch: %s', branch)
        sys.exit(1)
    if not BranchState.exists(ctx, branch):
        logger.critical('CRITICAL: %s is not a cu-managed branch', branch)
        sys.exit(1)

    # No rollback past this point: a failure after the tarball is written
    # leaves both the archive and the live state behind for manual cleanup.
    branchdir = ctx.branch_dir(branch)
    archfile = ctx.archive_file(branch)
    logger.info('Archiving %s', branch)
    with tarfile.open(archfile, mode='w:gz') as tfh:
        tfh.add(branchdir, arcname=branch)
    logger.info('  %s', archfile)

    shutil.rmtree(branchdir)
    ecode, out = cu.git_run_command(None, ['branch', '--delete', '--force', branch], logstderr=True)
    if ecode > 0:
        logger.critical('CRITICAL: Failed to delete branch %s', branch)
        logger.critical(out.strip())
        sys.exit(1)
    logger.info('Deleted branch %s', branch)


def edit_cover(ctx: RepoContext) -> None:
    mybranch = ctx.current_branch()
    if mybranch is None:
        logger.critical('CRITICAL: Not on any branch')
        sys.exit(1)
    if mybranch in cu.git_get_main_branches():
        logger.critical('No cover letter on %s, switch to a branch created with new', mybranch)
        sys.exit(1)

    ecode = cu.git_run_interactive(['branch', '--edit-description', mybranch])
    if ecode > 0:
        logger.critical('CRITICAL: Editing the cover letter failed')
        sys.exit(1)
    logger.info('Cover letter updated.')


def revision(ctx: RepoContext, value: str) -> None:
    mybranch = get_tracked_branch(ctx)
    try:
        state = set_revision(ctx, mybranch, value)
    except ValueError as ex:
        logger.critical(str(ex))
        sys.exit(1)
    logger.info('Forced revision to v%s', state.revision)


def apply_patch(ctx: RepoContext, obj_id: Optional[str]) -> None:
    get_tracked_branch(ctx)
    cu.pw.apply('patch', obj_id)


def apply_series(ctx: RepoContext, obj_id: Optional[str]) -> None:
    get_tracked_branch(ctx)
    cu.pw.apply('series', obj_id)


def get_cover_file(patches: List[str]) -> str:
    for patch in patches:
        if patch.endswith('-0000-cover-letter.patch'):
            return patch
    return patches[0]


def format_patches(state: BranchState) -> List[str]:
    state.clear_patches()
    gitargs = ['format-patch', '--signoff', '--cover-letter', '--cover-from-description=subject',
               f'-v{state.revision}', '-o', state.patches_dir, f'{state.base_commit}..HEAD']
    ecode, out = cu.git_run_command(None, gitargs, logstderr=True)
    if ecode > 0:
        raise RuntimeError(out.strip())
    return state.get_patch_files()


def send(ctx: RepoContext, dryrun: bool = False) -> None:
    mybranch = get_tracked_branch(ctx, mustmsg="can't send from a normal branch, create one with new")
    if not cu.git_get_branch_description(None, mybranch):
        logger.critical('use edit-cover before sending')
        sys.exit(1)

    state = BranchState.load(ctx, mybranch)
    try:
        patches = format_patches(state)
    except RuntimeError as ex:
        logger.critical(str(ex))
        sys.exit(1)
    if not patches:
        logger.critical('no patches to send')
        sys.exit(1)
    logger.info('Generated %s files in %s', len(patches), state.patches_dir)

    cover = get_cover_file(patches)
    if cu.edit_file(cover) > 0:
        logger.critical('CRITICAL: Editor exited with an error, not sending')
        sys.exit(1)

    sendargs = ['send-email', '--to-cover', '--cc-cover']
    if dryrun:
        sendargs.append('--dry-run')
    sendargs += patches
    if cu.git_run_interactive(sendargs) > 0:
        logger.critical('CRITICAL: git send-email failed')
        sys.exit(1)

    if dryrun:
        logger.info('Dry run of v%s done, revision unchanged', state.revision)
        return

    logger.info('Sent v%s', state.revision)
    try:
        answer = input('increment it? (y/n) ')
    except (KeyboardInterrupt, EOFError):
        logger.info('')
        answer = ''
    if answer.strip().lower() in ('y', 'yes'):
        state = increment_revision(ctx, mybranch)
        logger.info('Revision is now v%s', state.revision)


def list_branches(ctx: RepoContext) -> None:
    mybranches = ctx.tracked_branches()
    if not mybranches:
        logger.info('No cu-tracked branches found')
        return
    curbranch = ctx.current_branch()
    for branch in mybranches:
        marker = '*' if branch == curbranch else ' '
        try:
            state = BranchState.load(ctx, branch)
            revstr = 'v%s' % state.revision
        except (FileNotFoundError, ValueError) as ex:
            logger.debug('Unreadable state for %s: %s', branch, ex)
            revstr = '(broken state)'
        if not cu.git_branch_exists(None, branch):
            revstr += ' (branch missing)'
        logger.info('%s %s %s', marker, branch, revstr)


def show_info(ctx: RepoContext) -> None:
    mybranch = get_tracked_branch(ctx)
    state = BranchState.load(ctx, mybranch)
    print('branch: %s' % mybranch)
    print('revision: %s' % state.revision)
    print('base-commit: %s' % state.base_commit)
    print('patches-dir: %s' % state.patches_dir)
    description = cu.git_get_branch_description(None, mybranch)
    if description:
        print('cover-subject: %s' % description.split('\n', 1)[0])
    lines = cu.git_get_command_lines(None, ['log', '--oneline', '--no-decorate', f'{state.base_commit}..HEAD'])
    print('commits: %s' % len(lines))
    for line in lines:
        short, _, subject = line.partition(' ')
        print('commit-%s: %s' % (short, subject))
    generated = [os.path.basename(x) for x in state.get_patch_files()]
    if generated:
        print('patches: %s' % ' '.join(generated))

# SPDX-License-Identifier: GPL-2.0-or-later
# Copyright (C) 2020 by the Linux Foundation
#
import os
import re
import datetime
import pathlib

import cu

from typing import Optional, List

logger = cu.logger

REVISION_RE = re.compile(r'^[0-9]+$')


class RepoContext:
    """Where a repository keeps its cu metadata.

    Everything lives under the git dir, so each worktree's git dir (and
    each repository) has its own independent set of tracked branches:

        <gitdir>/x-cu/<branch>/revision
        <gitdir>/x-cu/<branch>/base-commit
        <gitdir>/x-cu/<branch>/patches/
        <gitdir>/x-cu/archived/
    """
    gitdir: str
    statedir: str
    archivedir: str

    def __init__(self, gitdir: str):
        self.gitdir = gitdir
        self.statedir = os.path.join(gitdir, cu.STATE_DIRNAME)
        self.archivedir = os.path.join(self.statedir, cu.ARCHIVE_DIRNAME)

    @classmethod
    def discover(cls) -> 'RepoContext':
        ecode, out = cu.git_run_command(None, ['rev-parse', '--absolute-git-dir'], logstderr=True)
        if ecode > 0:
            raise RuntimeError('not inside a git repository')
        return cls(out.strip())

    def ensure_dirs(self) -> None:
        pathlib.Path(self.archivedir).mkdir(parents=True, exist_ok=True)

    def branch_dir(self, branch: str) -> str:
        return os.path.join(self.statedir, branch)

    def revision_file(self, branch: str) -> str:
        return os.path.join(self.branch_dir(branch), 'revision')

    def base_commit_file(self, branch: str) -> str:
        return os.path.join(self.branch_dir(branch), 'base-commit')

    def patches_dir(self, branch: str) -> str:
        return os.path.join(self.branch_dir(branch), 'patches')

    def archive_file(self, branch: str, when: Optional[datetime.datetime] = None) -> str:
        if when is None:
            when = datetime.datetime.now()
        # Branch names may contain slashes, archives live in one flat directory
        flatname = branch.replace('/', '_')
        return os.path.join(self.archivedir, '%s-%s.tar.gz' % (when.strftime('%Y-%m-%d-%H_%M_%S'), flatname))

    def current_branch(self) -> Optional[str]:
        return cu.git_get_current_branch()

    def tracked_branches(self) -> List[str]:
        branches = list()
        for entry in sorted(os.listdir(self.statedir)):
            if not is_tracked_name(entry):
                continue
            if os.path.isdir(os.path.join(self.statedir, entry)):
                branches.append(entry)
        return branches

    def __repr__(self):
        return 'RepoContext(gitdir=%r)' % self.gitdir


def is_tracked_name(branch: str) -> bool:
    if not branch.startswith(cu.BRANCH_PREFIX) or branch == cu.ARCHIVE_DIRNAME:
        return False
    return '/' not in branch


def _read_value(fpath: str) -> str:
    with open(fpath, 'r') as fh:
        return fh.read().strip()


def _write_value(fpath: str, value: str) -> None:
    with open(fpath, 'w') as fh:
        fh.write(value)


class BranchState:
    branch: str
    revision: int
    base_commit: str
    patches_dir: str

    def __init__(self, ctx: RepoContext, branch: str, revision: int, base_commit: str):
        self.ctx = ctx
        self.branch = branch
        self.revision = revision
        self.base_commit = base_commit
        self.patches_dir = ctx.patches_dir(branch)

    @staticmethod
    def exists(ctx: RepoContext, branch: str) -> bool:
        if not is_tracked_name(branch):
            return False
        return os.path.isdir(ctx.branch_dir(branch))

    @classmethod
    def create(cls, ctx: RepoContext, branch: str) -> 'BranchState':
        pathlib.Path(ctx.patches_dir(branch)).mkdir(parents=True, exist_ok=True)
        revfile = ctx.revision_file(branch)
        # Don't reset the counter if we're re-entering an existing state dir
        if not os.path.exists(revfile):
            _write_value(revfile, '1')
        base_commit = cu.git_revparse_obj('HEAD')
        _write_value(ctx.base_commit_file(branch), base_commit)
        logger.debug('Created state for %s in %s', branch, ctx.branch_dir(branch))
        return cls.load(ctx, branch)

    @classmethod
    def load(cls, ctx: RepoContext, branch: str) -> 'BranchState':
        revision = int(_read_value(ctx.revision_file(branch)))
        base_commit = _read_value(ctx.base_commit_file(branch))
        return cls(ctx, branch, revision, base_commit)

    def save(self) -> None:
        _write_value(self.ctx.revision_file(self.branch), str(self.revision))
        _write_value(self.ctx.base_commit_file(self.branch), self.base_commit)

    def get_patch_files(self) -> List[str]:
        if not os.path.isdir(self.patches_dir):
            return list()
        return [os.path.join(self.patches_dir, x) for x in sorted(os.listdir(self.patches_dir))]

    def clear_patches(self) -> None:
        pathlib.Path(self.patches_dir).mkdir(parents=True, exist_ok=True)
        for fpath in self.get_patch_files():
            os.unlink(fpath)

    def __repr__(self):
        out = list()
        out.append('  branch: %s' % self.branch)
        out.append('  revision: %s' % self.revision)
        out.append('  base_commit: %s' % self.base_commit)
        out.append('  patches_dir: %s' % self.patches_dir)
        return '\n'.join(out)


def set_revision(ctx: RepoContext, branch: str, value: str) -> BranchState:
    if not REVISION_RE.fullmatch(value):
        raise ValueError('Revision must be an integer number')
    state = BranchState.load(ctx, branch)
    state.revision = int(value)
    state.save()
    return state


def increment_revision(ctx: RepoContext, branch: str) -> BranchState:
    state = BranchState.load(ctx, branch)
    state.revision += 1
    state.save()
    return state

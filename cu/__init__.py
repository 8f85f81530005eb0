# SPDX-License-Identifier: GPL-2.0-or-later
# Copyright (C) 2020 by the Linux Foundation
#
import subprocess
import logging
import re
import os
import copy
import shlex

import requests

from typing import Optional, Tuple, List, Union

__VERSION__ = '0.1.0'

logger = logging.getLogger('cu')

# Tracked branches carry this prefix
BRANCH_PREFIX = 'cu-'
# Name of our metadata directory inside the git dir
STATE_DIRNAME = 'x-cu'
ARCHIVE_DIRNAME = 'archived'

DEFAULT_CONFIG = {
    # Base URL of the patchwork instance to pull patches and series from
    'patchwork-url': 'https://patchwork.kernel.org',
}

# This is where we store actual config
MAIN_CONFIG = None

# Used for storing our requests session
REQSESSION = None


def _run_command(cmdargs: List[str], stdin: Optional[bytes] = None) -> Tuple[int, bytes, bytes]:
    logger.debug('Running %s' % ' '.join(cmdargs))
    sp = subprocess.Popen(cmdargs, stdout=subprocess.PIPE, stdin=subprocess.PIPE, stderr=subprocess.PIPE)
    (output, error) = sp.communicate(input=stdin)

    return sp.returncode, output, error


def _run_interactive(cmdargs: List[str]) -> int:
    # Inherits our tty, so editors and send-email prompts work
    logger.debug('Running %s' % ' '.join(cmdargs))
    sp = subprocess.Popen(cmdargs)
    sp.wait()
    return sp.returncode


def git_run_command(gitdir: Optional[str], args: List[str], stdin: Optional[bytes] = None,
                    logstderr: bool = False, decode: bool = True) -> Tuple[int, Union[str, bytes]]:
    cmdargs = ['git', '--no-pager']
    if gitdir:
        cmdargs += ['--git-dir', gitdir]
    cmdargs += args

    ecode, out, err = _run_command(cmdargs, stdin=stdin)

    if decode:
        out = out.decode(errors='replace')

    if logstderr and len(err.strip()):
        if decode:
            err = err.decode(errors='replace')
        logger.debug('Stderr: %s', err)
        out += err

    return ecode, out


def git_run_interactive(args: List[str]) -> int:
    return _run_interactive(['git'] + args)


def git_get_command_lines(gitdir: Optional[str], args: list) -> List[str]:
    ecode, out = git_run_command(gitdir, args)
    lines = list()
    if out:
        for line in out.split('\n'):
            if line == '':
                continue
            lines.append(line)

    return lines


def get_config_from_git(regexp: str, defaults: Optional[dict] = None) -> dict:
    args = ['config', '-z', '--get-regexp', regexp]
    ecode, out = git_run_command(None, args)
    gitconfig = defaults
    if not gitconfig:
        gitconfig = dict()
    if not out:
        return gitconfig

    for line in out.split('\x00'):
        if not line:
            continue
        try:
            key, value = line.split('\n', 1)
        except ValueError:
            logger.debug('Ignoring git config entry %s', line)
            continue
        cfgkey = key.split('.')[-1].lower()
        gitconfig[cfgkey] = value

    return gitconfig


def get_main_config() -> dict:
    global MAIN_CONFIG
    if MAIN_CONFIG is None:
        defcfg = copy.deepcopy(DEFAULT_CONFIG)
        config = get_config_from_git(r'cu\..*', defaults=defcfg)
        config['patchwork-url'] = config['patchwork-url'].rstrip('/')
        MAIN_CONFIG = config

    return MAIN_CONFIG


def get_editor_cmd() -> List[str]:
    # What's our editor? And yes, the default is vi, bite me.
    corecfg = get_config_from_git(r'core\..*', {'editor': os.environ.get('EDITOR', 'vi')})
    editor = corecfg.get('editor')
    logger.debug('editor=%s', editor)
    sp = shlex.shlex(editor, posix=True)
    sp.whitespace_split = True
    return list(sp)


def edit_file(fpath: str) -> int:
    return _run_interactive(get_editor_cmd() + [fpath])


def get_requests_session():
    global REQSESSION
    if REQSESSION is None:
        REQSESSION = requests.session()
        REQSESSION.headers.update({'User-Agent': 'cu/%s' % __VERSION__})
    return REQSESSION


def git_get_current_branch(gitdir: Optional[str] = None, short: bool = True) -> Optional[str]:
    gitargs = ['symbolic-ref', '-q', 'HEAD']
    ecode, out = git_run_command(gitdir, gitargs)
    if ecode > 0:
        logger.debug('Not able to get current branch (git symbolic-ref HEAD)')
        return None
    mybranch = out.strip()
    if short:
        return re.sub(r'^refs/heads/', '', mybranch)
    return mybranch


def git_branch_exists(gitdir: Optional[str], branch_name: str) -> bool:
    gitargs = ['show-ref', '--verify', '--quiet', f'refs/heads/{branch_name}']
    ecode, out = git_run_command(gitdir, gitargs)
    return ecode == 0


def git_get_branch_description(gitdir: Optional[str], branch_name: str) -> str:
    gitargs = ['config', '--get', f'branch.{branch_name}.description']
    ecode, out = git_run_command(gitdir, gitargs)
    if ecode > 0:
        return ''
    return out.strip()


def git_get_main_branches(gitdir: Optional[str] = None) -> List[str]:
    mains = ['master', 'main']
    ecode, out = git_run_command(gitdir, ['symbolic-ref', '-q', '--short', 'refs/remotes/origin/HEAD'])
    if ecode == 0 and out.strip():
        remote_head = re.sub(r'^origin/', '', out.strip())
        if remote_head not in mains:
            mains.append(remote_head)
    return mains


def git_revparse_obj(gitobj: str, gitdir: Optional[str] = None) -> str:
    ecode, out = git_run_command(gitdir, ['rev-parse', '--verify', gitobj])
    if ecode > 0:
        raise RuntimeError('No such object: %s' % gitobj)
    return out.strip()

# SPDX-License-Identifier: GPL-2.0-or-later
# Copyright (C) 2020 by the Linux Foundation
#
import sys

import requests

import cu

from typing import Optional

logger = cu.logger

PW_KINDS = ('patch', 'series')


def get_api_url(kind: str, obj_id: str) -> str:
    config = cu.get_main_config()
    return '/'.join((config['patchwork-url'], 'api', kind, obj_id, ''))


def get_mbox_url(kind: str, obj_id: str) -> str:
    """Look up a patch or series and return the link to its raw mbox.

    Patchwork answers errors (unknown IDs, bad requests) with a JSON object
    carrying a "detail" field, which we raise as-is.
    """
    url = get_api_url(kind, obj_id)
    logger.debug('pw url=%s', url)
    ses = cu.get_requests_session()
    rsp = ses.get(url)
    try:
        pdata = rsp.json()
    except ValueError:
        rsp.raise_for_status()
        raise RuntimeError('Odd response from patchwork: %s' % rsp.text.strip())

    if not isinstance(pdata, dict):
        raise RuntimeError('Odd response from patchwork: %s' % rsp.text.strip())
    detail = pdata.get('detail')
    if detail is not None:
        raise RuntimeError(detail)
    mbox_url: Optional[str] = pdata.get('mbox')
    if not mbox_url:
        raise RuntimeError('no mbox link in patchwork reply')
    return mbox_url


def get_mbox(mbox_url: str) -> bytes:
    ses = cu.get_requests_session()
    logger.debug('Downloading %s', mbox_url)
    rsp = ses.get(mbox_url)
    rsp.raise_for_status()
    return rsp.content


def apply(kind: str, obj_id: Optional[str]) -> None:
    if kind not in PW_KINDS:
        logger.critical('CRITICAL: unknown patchwork object type: %s', kind)
        sys.exit(1)
    if not obj_id:
        logger.critical('Please provide an ID')
        sys.exit(1)
    obj_id = obj_id.strip()
    if not obj_id.isdigit():
        logger.critical('ID must be a number: %s', obj_id)
        sys.exit(1)

    try:
        mbox_url = get_mbox_url(kind, obj_id)
        bmbox = get_mbox(mbox_url)
    except requests.exceptions.RequestException as ex:
        logger.critical('CRITICAL: patchwork request failed')
        logger.critical('          %s', ex)
        sys.exit(1)
    except RuntimeError as ex:
        logger.critical(str(ex))
        sys.exit(1)

    logger.info('Applying %s %s', kind, obj_id)
    ecode, out = cu.git_run_command(None, ['am'], stdin=bmbox, logstderr=True)
    if ecode > 0:
        logger.critical(out.strip())
        sys.exit(1)
    logger.info(out.strip())

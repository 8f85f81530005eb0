import pytest  # noqa
import cu
import os

from cu.state import RepoContext


@pytest.fixture(scope="function", autouse=True)
def settestdefaults(tmp_path, monkeypatch):
    cu.MAIN_CONFIG = dict(cu.DEFAULT_CONFIG)
    cu.REQSESSION = None
    # Keep the user's own git config out of the way
    monkeypatch.setenv('HOME', str(tmp_path))
    monkeypatch.setenv('GIT_CONFIG_NOSYSTEM', '1')
    monkeypatch.delenv('GIT_DIR', raising=False)
    monkeypatch.delenv('GIT_WORK_TREE', raising=False)


def git(*args, stdin=None):
    ecode, out = cu.git_run_command(None, list(args), stdin=stdin, logstderr=True)
    assert ecode == 0, out
    return out


@pytest.fixture(scope="function")
def commit():
    def _commit(fname, content, subject):
        with open(fname, 'w') as fh:
            fh.write(content)
        git('add', fname)
        git('commit', '-q', '-m', subject)
        return git('rev-parse', 'HEAD').strip()
    return _commit


@pytest.fixture(scope="function")
def gitdir(tmp_path, commit):
    dest = os.path.join(tmp_path, 'repo')
    os.mkdir(dest)
    olddir = os.getcwd()
    os.chdir(dest)
    git('init', '-q')
    git('symbolic-ref', 'HEAD', 'refs/heads/master')
    git('config', 'user.name', 'Test User')
    git('config', 'user.email', 'test@example.com')
    git('config', 'core.editor', 'true')
    commit('README', 'Initial contents\n', 'Initial commit')
    yield dest
    os.chdir(olddir)


@pytest.fixture(scope="function")
def ctx(gitdir):
    repoctx = RepoContext.discover()
    repoctx.ensure_dirs()
    return repoctx

import pytest  # noqa
import cu
import datetime
import os

from cu.state import RepoContext, BranchState, set_revision, increment_revision, is_tracked_name


def test_discover_outside_repo(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv('GIT_CEILING_DIRECTORIES', str(tmp_path))
    with pytest.raises(RuntimeError):
        RepoContext.discover()


def test_layout(ctx, gitdir):
    assert ctx.statedir == os.path.join(ctx.gitdir, 'x-cu')
    assert os.path.isdir(ctx.statedir)
    assert os.path.isdir(ctx.archivedir)
    assert ctx.revision_file('cu-foo') == os.path.join(ctx.statedir, 'cu-foo', 'revision')
    assert ctx.base_commit_file('cu-foo') == os.path.join(ctx.statedir, 'cu-foo', 'base-commit')
    assert ctx.patches_dir('cu-foo') == os.path.join(ctx.statedir, 'cu-foo', 'patches')
    when = datetime.datetime(2024, 3, 5, 7, 8, 9)
    assert ctx.archive_file('cu-foo', when) == os.path.join(ctx.archivedir, '2024-03-05-07_08_09-cu-foo.tar.gz')
    assert ctx.archive_file('cu-foo/bar', when) == os.path.join(ctx.archivedir,
                                                                '2024-03-05-07_08_09-cu-foo_bar.tar.gz')
    # idempotent
    ctx.ensure_dirs()


@pytest.mark.parametrize('branch,expected', [
    ('cu-foo', True),
    ('cu-foo-bar', True),
    ('foo', False),
    ('archived', False),
    ('cu-foo/bar', False),
    ('master', False),
])
def test_is_tracked_name(branch, expected):
    assert is_tracked_name(branch) == expected


def test_exists_ignores_archive_root(ctx):
    assert os.path.isdir(ctx.branch_dir(cu.ARCHIVE_DIRNAME))
    assert not BranchState.exists(ctx, cu.ARCHIVE_DIRNAME)


def test_create_and_load(ctx, commit):
    head = cu.git_revparse_obj('HEAD')
    state = BranchState.create(ctx, 'cu-foo')
    assert state.revision == 1
    assert state.base_commit == head
    assert os.path.isdir(state.patches_dir)
    with open(ctx.revision_file('cu-foo')) as fh:
        assert fh.read() == '1'
    with open(ctx.base_commit_file('cu-foo')) as fh:
        assert fh.read() == head

    # base commit stays put while HEAD moves on
    commit('file.txt', 'more\n', 'Move HEAD')
    state = BranchState.load(ctx, 'cu-foo')
    assert state.base_commit == head
    assert state.base_commit != cu.git_revparse_obj('HEAD')


def test_create_keeps_revision(ctx):
    BranchState.create(ctx, 'cu-foo')
    set_revision(ctx, 'cu-foo', '4')
    state = BranchState.create(ctx, 'cu-foo')
    assert state.revision == 4


def test_load_missing_state(ctx):
    assert not BranchState.exists(ctx, 'cu-nope')
    with pytest.raises(FileNotFoundError):
        BranchState.load(ctx, 'cu-nope')


@pytest.mark.parametrize('value,expected', [
    ('2', 2),
    ('0', 0),
    ('17', 17),
    ('007', 7),
])
def test_set_revision(ctx, value, expected):
    BranchState.create(ctx, 'cu-foo')
    state = set_revision(ctx, 'cu-foo', value)
    assert state.revision == expected
    assert BranchState.load(ctx, 'cu-foo').revision == expected


@pytest.mark.parametrize('value', ['v2', '-1', '1.5', '', ' 3', '3\n', 'three'])
def test_set_revision_rejects(ctx, value):
    BranchState.create(ctx, 'cu-foo')
    with pytest.raises(ValueError, match='Revision must be an integer number'):
        set_revision(ctx, 'cu-foo', value)
    assert BranchState.load(ctx, 'cu-foo').revision == 1


def test_increment_revision(ctx):
    BranchState.create(ctx, 'cu-foo')
    assert increment_revision(ctx, 'cu-foo').revision == 2
    assert increment_revision(ctx, 'cu-foo').revision == 3
    with open(ctx.revision_file('cu-foo')) as fh:
        assert fh.read() == '3'
    set_revision(ctx, 'cu-foo', '9')
    assert increment_revision(ctx, 'cu-foo').revision == 10


def test_tracked_branches(ctx):
    assert ctx.tracked_branches() == []
    BranchState.create(ctx, 'cu-b')
    BranchState.create(ctx, 'cu-a')
    os.mkdir(os.path.join(ctx.statedir, 'notes'))
    assert ctx.tracked_branches() == ['cu-a', 'cu-b']


def test_clear_patches(ctx):
    state = BranchState.create(ctx, 'cu-foo')
    with open(os.path.join(state.patches_dir, 'v1-0001-old.patch'), 'w') as fh:
        fh.write('stale')
    assert len(state.get_patch_files()) == 1
    state.clear_patches()
    assert state.get_patch_files() == []
    assert os.path.isdir(state.patches_dir)

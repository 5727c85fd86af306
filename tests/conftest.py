"""
Shared fixtures: an in-memory stand-in for the GitHub Git API.

FakeGitHub implements the same methods as GitHubClient over a dict of
commits and trees, so services can be exercised end to end without HTTP.
"""

import base64
import hashlib
import itertools
from datetime import datetime, timedelta, timezone

import pytest

from configrepo.config import StoreSettings
from configrepo.exit_codes import MergeConflictError, RemoteNotFoundError
from configrepo.infra import branch_name


EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FakeGitHub:
    """In-memory Git object store speaking the GitHubClient interface."""

    def __init__(self, branch='main', files=None):
        self._counter = itertools.count()
        self.trees = {}
        self.commits = {}
        self.refs = {}
        self.calls = []
        # Exceptions to raise from the next merge() calls, in order.
        self.merge_errors = []
        # Callables run just before merge() does its work.
        self.before_merge = []

        tree = self._put_tree(dict(files or {'README.md': 'configuration\n'}))
        self.refs[branch] = self._put_commit(tree, [], 'Initial commit')

    def _sha(self, *parts):
        n = next(self._counter)
        digest = hashlib.sha1(repr((n,) + parts).encode()).hexdigest()
        return digest, n

    def _put_tree(self, files):
        sha, _ = self._sha('tree', sorted(files.items()))
        self.trees[sha] = files
        return sha

    def _put_commit(self, tree, parents, message):
        sha, n = self._sha('commit', tree, tuple(parents), message)
        date = (EPOCH + timedelta(minutes=n)).strftime('%Y-%m-%dT%H:%M:%SZ')
        self.commits[sha] = {
            'sha': sha,
            'tree': {'sha': tree},
            'parents': [{'sha': p} for p in parents],
            'message': message,
            'committer': {'name': 'configrepo', 'date': date},
            'order': n,
        }
        return sha

    def _resolve(self, ref):
        if ref in self.commits:
            return ref
        name = branch_name(ref)
        if name in self.refs:
            return self.refs[name]
        raise RemoteNotFoundError(f"ref {ref!r} not found", status=404)

    def files_at(self, ref):
        return self.trees[self.commits[self._resolve(ref)]['tree']['sha']]

    # GitHubClient interface

    def get_ref(self, owner, repo, ref):
        self.calls.append('get_ref')
        sha = self._resolve(branch_name(ref))
        return {'ref': f"refs/heads/{branch_name(ref)}", 'object': {'sha': sha, 'type': 'commit'}}

    def get_commit(self, owner, repo, sha):
        self.calls.append('get_commit')
        if sha not in self.commits:
            raise RemoteNotFoundError(f"commit {sha!r} not found", status=404)
        return dict(self.commits[sha])

    def create_tree(self, owner, repo, base_tree, entries):
        self.calls.append('create_tree')
        files = dict(self.trees[base_tree])
        for entry in entries:
            if entry.is_deletion:
                files.pop(entry.path, None)
            else:
                files[entry.path] = entry.content
        return {'sha': self._put_tree(files)}

    def create_commit(self, owner, repo, message, tree_sha, parents):
        self.calls.append('create_commit')
        sha = self._put_commit(tree_sha, list(parents), message)
        return dict(self.commits[sha])

    def merge(self, owner, repo, base, head, commit_message=None):
        self.calls.append('merge')
        for hook in self.before_merge:
            hook()
        if self.merge_errors:
            raise self.merge_errors.pop(0)

        tip = self.refs[base]
        head_commit = self.commits[head]
        parents = [p['sha'] for p in head_commit['parents']]
        if tip in parents and len(parents) == 1:
            self.refs[base] = head
            return dict(head_commit)

        # Three-way merge against the head's parent.
        ancestor = self.files_at(parents[0])
        ours = self.files_at(tip)
        theirs = self.files_at(head)
        merged = dict(ours)
        for path in set(theirs) | set(ancestor):
            if theirs.get(path) == ancestor.get(path):
                continue
            if ours.get(path) != ancestor.get(path) and ours.get(path) != theirs.get(path):
                raise MergeConflictError(f"merging {head!r} into {base!r}: Merge conflict", status=409)
            if path in theirs:
                merged[path] = theirs[path]
            else:
                merged.pop(path, None)
        tree = self._put_tree(merged)
        sha = self._put_commit(tree, [tip, head], commit_message or f"Merge {head} into {base}")
        self.refs[base] = sha
        return dict(self.commits[sha])

    def list_commits(self, owner, repo, sha, path=None, per_page=100, max_pages=None):
        self.calls.append('list_commits')
        seen = set()
        stack = [self._resolve(sha)]
        found = []
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            commit = self.commits[current]
            parents = [p['sha'] for p in commit['parents']]
            stack.extend(parents)
            if len(parents) > 1:
                continue  # merge commits are simplified away
            before = self.files_at(parents[0]).get(path) if parents else None
            if path is None or self.files_at(current).get(path) != before:
                found.append(commit)

        found.sort(key=lambda c: c['order'], reverse=True)
        if max_pages is not None:
            found = found[:per_page * max_pages]
        return [
            {
                'sha': c['sha'],
                'commit': {'message': c['message'], 'committer': c['committer']},
            }
            for c in found
        ]

    def get_contents(self, owner, repo, path, ref):
        self.calls.append('get_contents')
        files = self.files_at(ref)
        if path in files:
            return {
                'type': 'file',
                'name': path.rsplit('/', 1)[-1],
                'path': path,
                'encoding': 'base64',
                'content': base64.b64encode(files[path].encode()).decode(),
            }

        prefix = path.rstrip('/') + '/'
        children = {}
        for file_path in files:
            if file_path.startswith(prefix):
                rest = file_path[len(prefix):]
                name, sep, _ = rest.partition('/')
                children[name] = 'dir' if sep else 'file'
        if not children:
            raise RemoteNotFoundError(f"get contents of {path!r}: Not Found", status=404)
        return [
            {'name': name, 'path': prefix + name, 'type': kind, 'sha': ''}
            for name, kind in sorted(children.items())
        ]


@pytest.fixture
def github():
    return FakeGitHub()


@pytest.fixture
def settings():
    return StoreSettings(owner='acme', repo='config', ref='main', base_path='base')


@pytest.fixture
def make_github():
    """Factory for FakeGitHub instances seeded with files."""
    return FakeGitHub

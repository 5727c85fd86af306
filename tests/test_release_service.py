"""Tests for publishing and reading releases."""

from dataclasses import replace
from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from configrepo.domain import App, Image, ReleasesQuery
from configrepo.exit_codes import (
    APIError, EncodeError, MergeConflictError, NotFoundError, RefMovedError,
)
from configrepo.services import ReleaseService
from configrepo.services.release_service import parse_timestamp


@pytest.fixture
def service(settings, github):
    return ReleaseService(settings, github)


class TestCreate:
    """Tests for ReleaseService.create()."""

    def test_first_release(self, service, github):
        app = App(name="web", environment={"FOO": "bar"})
        release = service.create(app, "Set FOO")

        assert app.version == 1
        assert release.version == 1
        assert release.app is app
        assert release.description == "Set FOO"

        files = github.files_at('main')
        assert files['base/web/VERSION'] == 'v1'
        assert files['base/web/app.env'] == 'FOO=bar\n'
        assert 'base/web/image.txt' not in files
        assert 'base/web/services.json' not in files
        assert files['README.md'] == 'configuration\n'

    def test_call_sequence(self, service, github):
        service.create(App(name="web"), "Initial")
        assert github.calls == [
            'get_ref', 'get_commit', 'get_contents', 'create_tree', 'create_commit', 'merge',
        ]

    def test_commit_parent_is_previous_tip(self, service, github):
        tip = github.refs['main']
        service.create(App(name="web"), "Initial")
        head = github.commits[github.refs['main']]
        assert [p['sha'] for p in head['parents']] == [tip]
        assert head['message'] == "Initial"

    def test_created_at_from_commit(self, service, github):
        release = service.create(App(name="web"), "Initial")
        date = github.commits[github.refs['main']]['committer']['date']
        assert release.created_at == parse_timestamp(date)
        assert release.created_at.tzinfo is not None

    def test_versions_increase_by_one(self, service):
        app = App(name="web", version=0)
        versions = []
        for n in range(4):
            app.environment = {"N": str(n)}
            versions.append(service.create(app, f"Release {n}").version)
        assert versions == [1, 2, 3, 4]
        assert app.version == 4

    def test_encode_error_sends_nothing(self, service, github):
        app = App(name="web", environment={"BAD KEY": "x"})
        with pytest.raises(EncodeError):
            service.create(app, "Broken")
        assert github.calls == []
        assert app.version == 0

    def test_failure_restores_version(self, service, github):
        github.merge_errors.append(APIError("merging: 502 Bad Gateway", status=502))
        app = App(name="web", environment={"FOO": "bar"})
        with pytest.raises(APIError):
            service.create(app, "Set FOO")
        assert app.version == 0
        assert 'base/web/VERSION' not in github.files_at('main')

    def test_retry_after_failure_does_not_double_increment(self, service, github):
        github.merge_errors.append(APIError("merging: 502 Bad Gateway", status=502))
        app = App(name="web", environment={"FOO": "bar"})
        with pytest.raises(APIError):
            service.create(app, "Set FOO")

        release = service.create(app, "Set FOO")
        assert release.version == 1
        assert github.files_at('main')['base/web/VERSION'] == 'v1'
        history = service.history(ReleasesQuery(app=app))
        assert [r.version for r in history] == [1]

    def test_clearing_a_field_removes_its_file(self, service, github):
        app = App(name="web", environment={"FOO": "bar"}, image=Image.parse("acme/web:v1"))
        service.create(app, "Deploy")
        app.image = None
        service.create(app, "Drop image")

        files = github.files_at('main')
        assert 'base/web/image.txt' not in files
        assert files['base/web/app.env'] == 'FOO=bar\n'
        assert service.history(ReleasesQuery(app=app, limit=1))[0].app.image is None

    def test_dot_name_is_stored_under_base(self, service, github):
        service.create(App(name=".."), "Odd name")
        files = github.files_at('main')
        assert files['base/%2E%2E/VERSION'] == 'v1'
        assert 'VERSION' not in files

    def test_concurrent_releases_of_other_apps_merge(self, settings, github):
        service = ReleaseService(settings, github)
        other = ReleaseService(settings, github)

        def publish_worker():
            github.before_merge.clear()
            other.create(App(name="worker", image=Image.parse("acme/worker:v1")), "Deploy worker")

        github.before_merge.append(publish_worker)
        service.create(App(name="web", environment={"FOO": "bar"}), "Set FOO")

        files = github.files_at('main')
        assert files['base/web/VERSION'] == 'v1'
        assert files['base/worker/VERSION'] == 'v1'
        assert files['base/worker/image.txt'] == 'acme/worker:v1'

    def test_concurrent_release_of_same_app_conflicts(self, settings, github):
        service = ReleaseService(settings, github)
        other = ReleaseService(settings, github)

        def publish_web():
            github.before_merge.clear()
            other.create(App(name="web", environment={"FOO": "theirs"}), "Theirs")

        github.before_merge.append(publish_web)
        app = App(name="web", environment={"FOO": "ours"})
        with pytest.raises(MergeConflictError):
            service.create(app, "Ours")
        assert app.version == 0
        assert github.files_at('main')['base/web/app.env'] == 'FOO=theirs\n'


class TestConsistency:
    """Tests for ref verification and retries."""

    def move_ref_after_commit(self, github, times=1):
        original = github.create_commit
        remaining = [times]

        def create_commit(*args, **kwargs):
            result = original(*args, **kwargs)
            if remaining[0] > 0:
                remaining[0] -= 1
                tip = github.refs['main']
                tree = github.commits[tip]['tree']['sha']
                github.refs['main'] = github._put_commit(tree, [tip], 'Concurrent change')
            return result

        github.create_commit = create_commit

    def test_moved_ref_is_detected(self, settings, github):
        settings = replace(settings, verify_ref=True)
        service = ReleaseService(settings, github)
        self.move_ref_after_commit(github)

        app = App(name="web")
        with pytest.raises(RefMovedError) as exc_info:
            service.create(app, "Initial")
        assert exc_info.value.ref == 'main'
        assert app.version == 0
        assert 'merge' not in github.calls

    def test_unverified_ref_still_merges(self, settings, github):
        service = ReleaseService(settings, github)
        self.move_ref_after_commit(github)
        service.create(App(name="web"), "Initial")
        assert github.files_at('main')['base/web/VERSION'] == 'v1'

    def test_retry_after_moved_ref(self, settings, github):
        settings = replace(settings, verify_ref=True, max_retries=3, base_delay=0.5)
        service = ReleaseService(settings, github)
        self.move_ref_after_commit(github, times=2)

        app = App(name="web")
        with patch('configrepo.services.release_service.time.sleep') as mock_sleep:
            release = service.create(app, "Initial")

        assert release.version == 1
        assert [c[0][0] for c in mock_sleep.call_args_list] == [0.5, 1.0]
        assert github.files_at('main')['base/web/VERSION'] == 'v1'

    def test_retry_after_merge_conflict(self, settings, github):
        settings = replace(settings, max_retries=1)
        service = ReleaseService(settings, github)
        github.merge_errors.append(MergeConflictError("merging: Merge conflict", status=409))

        app = App(name="web")
        with patch('configrepo.services.release_service.time.sleep') as mock_sleep:
            release = service.create(app, "Initial")

        assert release.version == 1
        mock_sleep.assert_called_once_with(1.0)

    def test_retries_exhausted(self, settings, github):
        settings = replace(settings, max_retries=1)
        service = ReleaseService(settings, github)
        github.merge_errors.extend([
            MergeConflictError("merging: Merge conflict", status=409),
            MergeConflictError("merging: Merge conflict", status=409),
        ])

        app = App(name="web")
        with patch('configrepo.services.release_service.time.sleep') as mock_sleep:
            with pytest.raises(MergeConflictError):
                service.create(app, "Initial")
        assert mock_sleep.call_count == 1
        assert app.version == 0

    def test_backoff_is_capped(self, settings, github):
        settings = replace(settings, max_retries=3, base_delay=10.0, max_delay=15.0)
        service = ReleaseService(settings, github)
        github.merge_errors.extend(
            MergeConflictError("merging: Merge conflict", status=409) for _ in range(3)
        )
        with patch('configrepo.services.release_service.time.sleep') as mock_sleep:
            service.create(App(name="web"), "Initial")
        assert [c[0][0] for c in mock_sleep.call_args_list] == [10.0, 15.0, 15.0]

    def test_other_errors_are_not_retried(self, settings, github):
        settings = replace(settings, max_retries=3)
        service = ReleaseService(settings, github)
        github.merge_errors.append(APIError("merging: 500", status=500))
        with patch('configrepo.services.release_service.time.sleep') as mock_sleep:
            with pytest.raises(APIError):
                service.create(App(name="web"), "Initial")
        mock_sleep.assert_not_called()


class TestHistory:
    """Tests for ReleaseService.history()."""

    @pytest.fixture
    def published(self, service):
        app = App(name="web")
        for n in range(1, 4):
            app.environment = {"N": str(n)}
            app.image = Image.parse(f"acme/web:v{n}")
            service.create(app, f"Release {n}")
        service.create(App(name="worker"), "Unrelated")
        return app

    def test_newest_first(self, service, published):
        releases = service.history(ReleasesQuery(app=published))
        assert [r.version for r in releases] == [3, 2, 1]
        assert [r.description for r in releases] == ["Release 3", "Release 2", "Release 1"]

    def test_each_release_is_a_snapshot(self, service, published):
        releases = service.history(ReleasesQuery(app=published))
        assert [r.app.environment for r in releases] == [{"N": "3"}, {"N": "2"}, {"N": "1"}]
        assert [str(r.app.image) for r in releases] == ["acme/web:v3", "acme/web:v2", "acme/web:v1"]

    def test_created_at_is_ordered(self, service, published):
        releases = service.history(ReleasesQuery(app=published))
        dates = [r.created_at for r in releases]
        assert dates == sorted(dates, reverse=True)
        assert dates[0] > datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_limit(self, service, published):
        releases = service.history(ReleasesQuery(app=published, limit=2))
        assert [r.version for r in releases] == [3, 2]

    def test_zero_limit(self, service, github, published):
        github.calls.clear()
        assert service.history(ReleasesQuery(app=published, limit=0)) == []
        assert github.calls == []

    def test_unknown_app(self, service, published):
        assert service.history(ReleasesQuery(app=App(name="db"))) == []

    def test_find(self, service, published):
        release = service.find(published, 2)
        assert release.version == 2
        assert release.app.environment == {"N": "2"}

    def test_find_missing(self, service, published):
        with pytest.raises(NotFoundError, match="v9"):
            service.find(published, 9)


class TestRollback:
    """Tests for ReleaseService.rollback()."""

    def test_rollback_publishes_old_configuration(self, service, github):
        app = App(name="web")
        app.environment = {"FOO": "1"}
        service.create(app, "One")
        app.environment = {"FOO": "2"}
        app.image = Image.parse("acme/web:v2")
        service.create(app, "Two")

        release = service.rollback(app, 1)

        assert release.version == 3
        assert release.description == "Rollback to v1"
        assert release.app.environment == {"FOO": "1"}
        assert release.app.image is None
        # The caller's app is untouched.
        assert app.version == 2
        assert app.environment == {"FOO": "2"}
        assert github.files_at('main')['base/web/VERSION'] == 'v3'
        assert github.files_at('main')['base/web/app.env'] == 'FOO=1\n'
        assert 'base/web/image.txt' not in github.files_at('main')

        latest = service.history(ReleasesQuery(app=app))[0]
        assert latest.version == 3
        assert latest.app.environment == {"FOO": "1"}
        assert latest.app.image is None

    def test_rollback_description(self, service):
        app = App(name="web", environment={"FOO": "1"})
        service.create(app, "One")
        release = service.rollback(app, 1, "Back to the start")
        assert release.description == "Back to the start"

    def test_rollback_to_missing_version(self, service):
        app = App(name="web")
        service.create(app, "One")
        with pytest.raises(NotFoundError):
            service.rollback(app, 5)


class TestParseTimestamp:
    """Tests for parse_timestamp()."""

    def test_utc(self):
        assert parse_timestamp("2024-05-01T12:00:00Z") == datetime(2024, 5, 1, 12, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", [None, "", "yesterday"])
    def test_missing_or_invalid(self, value):
        assert parse_timestamp(value) is None

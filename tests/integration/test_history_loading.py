"""End-to-end tests: real repository in, queryable store out."""

from collections import defaultdict

import pytest

from gitsql.errors import ReaderError, ReaderErrorKind
from gitsql.session import QuerySession

pytestmark = pytest.mark.integration


@pytest.fixture
def session(history_repo):
    with QuerySession.initialize(history_repo.path) as session:
        yield session


def _rows(session, sql):
    return session.run_query(sql).rows


class TestInitializeStore:
    """Loading the three-commit repository."""

    def test_commits_loaded(self, session, history_repo):
        rows = _rows(session, "SELECT id, author, date, message FROM commits ORDER BY date")

        assert rows == [
            (history_repo.c1[:7], "Test User", "2023-01-01 00:00:00 UTC", "first commit\n"),
            (history_repo.c2[:7], "Test User", "2023-01-02 00:00:00 UTC", "second commit\n"),
            (history_repo.c3[:7], "Test User", "2023-01-03 00:00:00 UTC", "third commit\n"),
        ]

    def test_annotated_tag_row(self, session, history_repo):
        rows = _rows(
            session,
            "SELECT id, target_id, target_type, tagger, date, message FROM tags WHERE name = 'v1'",
        )

        assert rows == [
            (
                history_repo.v1_tag[:7],
                history_repo.c2[:7],
                "commit",
                "Test User",
                "2023-01-04 00:00:00 UTC",
                "release",
            )
        ]
        assert rows[0][0] != rows[0][1]

    def test_lightweight_tag_row(self, session, history_repo):
        rows = _rows(
            session,
            "SELECT id, target_id, target_type, tagger, date, message FROM tags WHERE name = 'v0'",
        )

        assert rows == [
            (history_repo.c1[:7], history_repo.c1[:7], "commit", None, None, None)
        ]

    def test_branch_row(self, session, history_repo):
        rows = _rows(session, "SELECT * FROM branches")

        assert rows == [("main", "local", history_repo.c3[:7], "2023-01-03 00:00:00 UTC")]

    def test_latest_commit_query(self, session, history_repo):
        result = session.run_query("SELECT * FROM commits ORDER BY date DESC LIMIT 1")

        assert result.columns == ["id", "author", "date", "message"]
        assert [row[0] for row in result.rows] == [history_repo.c3[:7]]

    def test_every_stored_id_is_truncated(self, session):
        ids = _rows(
            session,
            "SELECT id FROM commits UNION ALL SELECT id FROM tags "
            "UNION ALL SELECT target_id FROM tags UNION ALL SELECT head_commit_id FROM branches",
        )

        assert ids
        assert all(len(value) == 7 for (value,) in ids if value is not None)

    def test_branches_off_the_walk_are_still_listed(self, history_repo):
        history_repo.builder.git("checkout", "-q", "-b", "side", history_repo.c1)
        side = history_repo.builder.commit("side work", 1672531200 + 3600)
        history_repo.builder.git("checkout", "-q", "main")

        with QuerySession.initialize(history_repo.path) as session:
            commit_ids = {row[0] for row in _rows(session, "SELECT id FROM commits")}
            branches = _rows(session, "SELECT name, head_commit_id FROM branches ORDER BY name")

        assert side[:7] not in commit_ids
        assert branches == [("main", history_repo.c3[:7]), ("side", side[:7])]

    def test_unreadable_repository_path(self, tmp_path):
        with pytest.raises(ReaderError) as exc_info:
            QuerySession.initialize(tmp_path / "nothing-here")

        assert exc_info.value.kind is ReaderErrorKind.INVALID_PATH


class TestExtendHistory:
    """Traversing from commits outside the initial walk."""

    def test_overlapping_walk_keeps_one_row_per_commit(self, history_repo):
        builder = history_repo.builder
        builder.git("checkout", "-q", "-b", "side", history_repo.c2)
        side = builder.commit("side work", 1672531200 + 3600)
        builder.git("checkout", "-q", "main")

        with QuerySession.initialize(history_repo.path) as session:
            walked = session.extend(side[:7])
            rows = _rows(session, "SELECT id, COUNT(*) FROM commits GROUP BY id")

        assert walked == 3
        assert len(rows) == 4
        assert all(count == 1 for _, count in rows)
        assert side[:7] in {commit_id for commit_id, _ in rows}

    def test_first_seen_values_preserved(self, session, history_repo):
        session.run_query(
            f"UPDATE commits SET message = 'edited' WHERE id = '{history_repo.c1[:7]}'"
        )

        session.extend(history_repo.c2)

        assert _rows(
            session, f"SELECT message FROM commits WHERE id = '{history_repo.c1[:7]}'"
        ) == [("edited",)]

    def test_missing_commit_fails_without_changes(self, session, history_repo):
        prefix = "0000000"
        if any(oid.startswith(prefix) for oid in (history_repo.c1, history_repo.c2, history_repo.c3)):
            pytest.skip("prefix collides with a test commit")

        with pytest.raises(ReaderError) as exc_info:
            session.extend(prefix)

        assert exc_info.value.kind is ReaderErrorKind.NOT_FOUND
        assert _rows(session, "SELECT COUNT(*) FROM commits") == [(3,)]

    def test_hex_branch_name_is_not_traversed(self, history_repo):
        history_repo.builder.branch("beefcafe", history_repo.c1)

        with QuerySession.initialize(history_repo.path) as session:
            session.run_query("DELETE FROM commits")
            with pytest.raises(ReaderError) as exc_info:
                session.extend("beefcafe")

            assert exc_info.value.kind is ReaderErrorKind.NOT_FOUND
            assert _rows(session, "SELECT COUNT(*) FROM commits") == [(0,)]

    def test_traverse_walks_from_commit_not_same_named_branch(self, history_repo):
        history_repo.builder.branch(history_repo.c3[:7], history_repo.c1)

        with QuerySession.initialize(history_repo.path) as session:
            session.run_query("DELETE FROM commits")
            walked = session.extend(history_repo.c3[:7])
            commit_ids = {row[0] for row in _rows(session, "SELECT id FROM commits")}

        assert walked == 3
        assert commit_ids == {history_repo.c1[:7], history_repo.c2[:7], history_repo.c3[:7]}

    def test_ambiguous_prefix_fails_without_changes(self, history_repo):
        oids = history_repo.builder.write_blobs(2000)
        by_prefix = defaultdict(list)
        for oid in oids:
            by_prefix[oid[:4]].append(oid)
        prefix = next(p for p, matches in by_prefix.items() if len(matches) > 1)

        with QuerySession.initialize(history_repo.path) as session:
            with pytest.raises(ReaderError) as exc_info:
                session.extend(prefix)

            assert exc_info.value.kind is ReaderErrorKind.AMBIGUOUS
            assert _rows(session, "SELECT COUNT(*) FROM commits") == [(3,)]

    def test_session_continues_after_failed_extend(self, session, history_repo):
        with pytest.raises(ReaderError):
            session.extend("not-hex")

        assert _rows(session, "SELECT COUNT(*) FROM tags") == [(2,)]

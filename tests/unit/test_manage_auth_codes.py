"""Tests for the auth code management CLI."""

from __future__ import annotations

import argparse
from datetime import UTC, datetime
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.exc import IntegrityError
from scripts.manage_auth_codes import deactivate, generate, list_codes

from gatekeeper.storage.orm import AuthCode


@pytest.fixture()
def mock_session() -> MagicMock:
    """Create a mock sync Session."""
    session = MagicMock()
    session.__enter__ = MagicMock(return_value=session)
    session.__exit__ = MagicMock(return_value=False)
    return session


@pytest.fixture()
def _patch_session(mock_session: MagicMock) -> MagicMock:
    """Patch get_sync_session to return mock."""
    with patch(
        "scripts.manage_auth_codes.get_sync_session", return_value=mock_session
    ):
        yield mock_session


def _deactivate_args(
    code: str | None = None,
    tenant: str | None = None,
    username: str | None = None,
) -> argparse.Namespace:
    return argparse.Namespace(code=code, tenant=tenant, username=username)


def _row(**overrides: object) -> AuthCode:
    fields: dict[str, object] = {
        "auth_code": "tupleap_AbCdEfGhIjKl",
        "tenant_id": "demo001",
        "username": "alice",
        "created_at": datetime(2026, 1, 1, tzinfo=UTC),
        "is_active": True,
        "usage_count": 3,
        "created_by": "cli",
        "expires_at": None,
    }
    fields.update(overrides)
    return AuthCode(**fields)


class TestGenerate:
    def test_generate_outputs_full_code(
        self,
        _patch_session: MagicMock,
        mock_session: MagicMock,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        """generate stores the row and prints the code once."""
        args = argparse.Namespace(
            tenant="demo001", username="alice", created_by="cli", expires_at=None
        )

        with patch("scripts.manage_auth_codes.generate_auth_code") as mock_gen:
            mock_gen.return_value = "tupleap_full123"
            generate(args)

        row: AuthCode = mock_session.add.call_args[0][0]
        assert isinstance(row, AuthCode)
        assert row.auth_code == "tupleap_full123"
        assert row.tenant_id == "demo001"
        assert row.is_active is True
        assert row.usage_count == 0
        assert row.expires_at is None
        mock_session.commit.assert_called_once()

        out = capsys.readouterr().out
        assert "tupleap_full123" in out
        assert "never" in out

    def test_generate_naive_expiry_is_utc(
        self, _patch_session: MagicMock, mock_session: MagicMock
    ) -> None:
        args = argparse.Namespace(
            tenant="demo001",
            username="alice",
            created_by="cli",
            expires_at="2030-01-01T00:00:00.123456",
        )
        generate(args)

        row: AuthCode = mock_session.add.call_args[0][0]
        assert row.expires_at == datetime(2030, 1, 1, 0, 0, 0, 123000, tzinfo=UTC)
        assert row.created_at <= row.expires_at

    def test_generate_past_expiry_clamps_created_at(
        self, _patch_session: MagicMock, mock_session: MagicMock
    ) -> None:
        args = argparse.Namespace(
            tenant="demo001",
            username="alice",
            created_by="cli",
            expires_at="2020-01-01T00:00:00+00:00",
        )
        generate(args)

        row: AuthCode = mock_session.add.call_args[0][0]
        assert row.created_at == row.expires_at

    @pytest.mark.parametrize(
        ("tenant", "username", "created_by", "expires_at"),
        [
            ("  ", "alice", "cli", None),
            ("demo001", "", "cli", None),
            ("demo001", "alice", " ", None),
            ("demo001", "alice", "cli", "soon"),
        ],
    )
    def test_generate_rejects_bad_input(
        self,
        _patch_session: MagicMock,
        mock_session: MagicMock,
        tenant: str,
        username: str,
        created_by: str,
        expires_at: str | None,
    ) -> None:
        args = argparse.Namespace(
            tenant=tenant,
            username=username,
            created_by=created_by,
            expires_at=expires_at,
        )
        with pytest.raises(SystemExit):
            generate(args)
        mock_session.add.assert_not_called()


class TestListCodes:
    def test_list_masks_codes(
        self,
        _patch_session: MagicMock,
        mock_session: MagicMock,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        mock_session.execute.return_value.scalars.return_value.all.return_value = [
            _row(),
            _row(auth_code="tupleap_ZyXwVuTs", is_active=False, usage_count=0),
        ]

        list_codes(argparse.Namespace(tenant="demo001"))

        out = capsys.readouterr().out
        assert "demo001/alice tupleap_…IjKl active usage=3" in out
        assert "tupleap_…VuTs inactive usage=0" in out
        assert "AbCdEfGh" not in out

    def test_list_empty(
        self,
        _patch_session: MagicMock,
        mock_session: MagicMock,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        mock_session.execute.return_value.scalars.return_value.all.return_value = []
        list_codes(argparse.Namespace(tenant=None))
        assert "No auth codes found." in capsys.readouterr().out


class TestGenerateCollisions:
    def test_retries_on_duplicate_code(
        self,
        _patch_session: MagicMock,
        mock_session: MagicMock,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        mock_session.commit.side_effect = [
            IntegrityError("INSERT", {}, Exception("dup")),
            None,
        ]
        args = argparse.Namespace(
            tenant="demo001", username="alice", created_by="cli", expires_at=None
        )

        with patch("scripts.manage_auth_codes.generate_auth_code") as mock_gen:
            mock_gen.side_effect = ["tupleap_taken", "tupleap_fresh"]
            generate(args)

        mock_session.rollback.assert_called_once()
        assert mock_session.commit.call_count == 2
        out = capsys.readouterr().out
        assert "tupleap_fresh" in out
        assert "tupleap_taken" not in out

    def test_gives_up_after_max_attempts(
        self, _patch_session: MagicMock, mock_session: MagicMock
    ) -> None:
        mock_session.commit.side_effect = IntegrityError(
            "INSERT", {}, Exception("dup")
        )
        args = argparse.Namespace(
            tenant="demo001", username="alice", created_by="cli", expires_at=None
        )

        with pytest.raises(SystemExit):
            generate(args)

        assert mock_session.commit.call_count == 3


class TestDeactivate:
    def test_deactivate(
        self,
        _patch_session: MagicMock,
        mock_session: MagicMock,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        row = _row()
        mock_session.execute.return_value.scalars.return_value.all.return_value = [row]

        deactivate(_deactivate_args(code=row.auth_code))

        assert row.is_active is False
        mock_session.commit.assert_called_once()
        assert "Auth code deactivated: tupleap_…IjKl" in capsys.readouterr().out

    def test_deactivate_not_found(
        self, _patch_session: MagicMock, mock_session: MagicMock
    ) -> None:
        mock_session.execute.return_value.scalars.return_value.all.return_value = []
        with pytest.raises(SystemExit):
            deactivate(_deactivate_args(code="tupleap_missing"))
        mock_session.commit.assert_not_called()

    def test_deactivate_already_inactive_succeeds(
        self, _patch_session: MagicMock, mock_session: MagicMock
    ) -> None:
        row = _row(is_active=False)
        mock_session.execute.return_value.scalars.return_value.all.return_value = [row]

        deactivate(_deactivate_args(code=row.auth_code))

        assert row.is_active is False

    def test_deactivate_holder(
        self,
        _patch_session: MagicMock,
        mock_session: MagicMock,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        rows = [_row(), _row(auth_code="tupleap_ZyXwVuTs")]
        mock_session.execute.return_value.scalars.return_value.all.return_value = rows

        deactivate(_deactivate_args(tenant="demo001", username="alice"))

        assert all(r.is_active is False for r in rows)
        stmt = str(mock_session.execute.call_args[0][0])
        assert "auth_codes.tenant_id = :tenant_id_1" in stmt
        assert "auth_codes.username = :username_1" in stmt
        out = capsys.readouterr().out
        assert "demo001/alice (2 code(s))" in out
        assert "ZyXwVuTs" not in out

    def test_deactivate_needs_a_target(
        self, _patch_session: MagicMock, mock_session: MagicMock
    ) -> None:
        with pytest.raises(SystemExit):
            deactivate(_deactivate_args(tenant="demo001"))
        mock_session.execute.assert_not_called()

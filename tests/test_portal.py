"""
Integration tests wiring the portal together, plus notifications,
configuration and the command line entry point.
"""

import asyncio
from pathlib import Path
from unittest.mock import patch

import pytest

from conftest import CANDIDATE_RECORD, make_job
from jobportal.api import BackendClient
from jobportal.cli import build_parser, main
from jobportal.config import DEFAULT_API_URL, Settings, load_settings
from jobportal.errors import BackendError, SessionError
from jobportal.notifications import ERROR, INFO, SUCCESS, Notifier
from jobportal.profile import normalise_profile
from jobportal.route_guard import CANDIDATE_LOGIN
from jobportal.status import APPLICATION_STATUSES, INTERVIEW_STATUSES


class TestPortal:
    """Test the composed client."""

    @pytest.mark.asyncio
    async def test_sign_in_resumes_intended_page(self, portal):
        portal.navigator.navigate("/candidate/interviews")
        assert portal.navigator.current_path == CANDIDATE_LOGIN

        destination = await portal.sign_in("candidate", "ada@example.com", "pw")

        assert destination == "/candidate/interviews"
        assert portal.sessions.session.email == "ada@example.com"
        assert portal.store.get_token() == "tok-123"

    @pytest.mark.asyncio
    async def test_sign_in_with_explicit_next_path(self, portal):
        destination = await portal.sign_in("candidate", "ada@example.com", "pw", "/candidate/jobs")

        assert destination == "/candidate/jobs"
        assert portal.navigator.current_path == "/candidate/jobs"

    @pytest.mark.asyncio
    async def test_requests_use_current_token(self, portal, client):
        await portal.sign_in("candidate", "ada@example.com", "pw")

        assert portal.client is client
        assert portal.sessions.token == "tok-123"

    @pytest.mark.asyncio
    async def test_expired_token_during_load_logs_out(self, portal, client, notifier, expired):
        await portal.sign_in("candidate", "ada@example.com", "pw")
        portal.navigator.navigate("/candidate/jobs")
        client.failures["get_saved_jobs"] = expired

        assert await portal.saved_jobs.load() is False

        assert portal.sessions.session is None
        assert portal.store.get_token() is None
        assert portal.navigator.current_path == CANDIDATE_LOGIN
        assert notifier.latest(ERROR).message == "Your session has expired. Please log in again."

    @pytest.mark.asyncio
    async def test_refresh_profile_merges_server_copy(self, portal):
        await portal.sign_in("candidate", "ada@example.com", "pw")

        await portal.refresh_profile()

        assert portal.sessions.session.profile_completeness == 95
        assert portal.sessions.token == "tok-123"

    @pytest.mark.asyncio
    async def test_refresh_profile_failure_keeps_session(self, portal, client, notifier):
        await portal.sign_in("candidate", "ada@example.com", "pw")
        client.failures["get_profile"] = BackendError("down")

        await portal.refresh_profile()

        assert portal.sessions.session.profile_completeness == 80
        assert notifier.latest(ERROR).message == "Could not refresh your profile."

    @pytest.mark.asyncio
    async def test_update_profile_saves_then_merges(self, portal, client, notifier):
        await portal.sign_in("candidate", "ada@example.com", "pw")

        assert await portal.update_profile({"firstName": "Grace"}) is True

        assert ("update_profile", "candidate") in client.calls
        assert portal.sessions.session.first_name == "Grace"
        assert portal.sessions.token == "tok-123"
        assert portal.store.get_user()["first_name"] == "Grace"
        assert notifier.latest(SUCCESS).message == "Profile updated"

    @pytest.mark.asyncio
    async def test_update_profile_failure_keeps_session(self, portal, client, notifier):
        await portal.sign_in("candidate", "ada@example.com", "pw")
        client.failures["update_profile"] = BackendError("Email already in use", status_code=400)

        assert await portal.update_profile({"firstName": "Grace"}) is False

        assert portal.sessions.session.first_name == "Ada"
        assert notifier.latest(ERROR).message == "Could not update your profile."

    @pytest.mark.asyncio
    async def test_update_profile_requires_session(self, portal, client):
        with pytest.raises(SessionError):
            await portal.update_profile({"firstName": "Grace"})

        assert client.count("update_profile") == 0

    @pytest.mark.asyncio
    async def test_dashboard_summary(self, portal, client):
        await portal.sign_in("candidate", "ada@example.com", "pw")
        client.saved = ["A", "B"]
        await portal.applications.apply("j1")

        summary = await portal.dashboard()

        assert summary.applications_sent == 1
        assert summary.saved_jobs == 2
        assert summary.errors == []
        assert [app.job_id for app in summary.recent_applications] == ["j1"]

    @pytest.mark.asyncio
    async def test_dashboard_reports_partial_failure(self, portal, client):
        await portal.sign_in("candidate", "ada@example.com", "pw")
        client.failures["get_candidate_interviews"] = BackendError("down")

        summary = await portal.dashboard()

        assert summary.errors == ["interviews: down"]

    def test_sign_out(self, portal):
        portal.sessions.login(CANDIDATE_RECORD, "tok")

        portal.sign_out()

        assert portal.sessions.session is None
        assert portal.navigator.current_path == "/"

    @pytest.mark.asyncio
    async def test_save_from_job_board(self, portal, client):
        await portal.sign_in("candidate", "ada@example.com", "pw")
        client.job_list = [make_job("A"), make_job("B")]
        client.saved = ["A"]
        await asyncio.gather(portal.job_board.load(), portal.saved_jobs.load())

        await portal.saved_jobs.save(portal.job_board.get("B"))

        visible = portal.job_board.visible(saved_ids=portal.saved_jobs.saved_ids)
        assert {job.id for job in visible} == {"A", "B"}
        assert portal.saved_jobs.saved_ids == {"A", "B"}


class TestNotifier:
    """Test the notice channel."""

    def test_delivers_synchronously_without_loop(self):
        notifier = Notifier()
        seen = []
        notifier.subscribe(seen.append)

        notifier.info("hello")

        assert [notice.message for notice in seen] == ["hello"]

    @pytest.mark.asyncio
    async def test_defers_delivery_inside_loop(self):
        notifier = Notifier()
        seen = []
        notifier.subscribe(seen.append)

        notifier.error("boom")
        assert seen == []

        await asyncio.sleep(0)
        assert [notice.level for notice in seen] == [ERROR]

    def test_failing_subscriber_does_not_break_others(self):
        notifier = Notifier()
        seen = []

        def broken(notice):
            raise RuntimeError("subscriber bug")

        notifier.subscribe(broken)
        notifier.subscribe(seen.append)

        notifier.success("ok")

        assert len(seen) == 1

    def test_unsubscribe_and_history(self):
        notifier = Notifier(history=2)
        seen = []
        unsubscribe = notifier.subscribe(seen.append)
        unsubscribe()

        notifier.info("one")
        notifier.info("two")
        notifier.error("three")

        assert seen == []
        assert [notice.message for notice in notifier.history] == ["two", "three"]
        assert notifier.latest(INFO).message == "two"


class TestSettings:
    """Test environment-driven configuration."""

    def test_defaults(self, monkeypatch):
        for key in ("JOBPORTAL_API_URL", "JOBPORTAL_TIMEOUT", "JOBPORTAL_CREDENTIALS", "JOBPORTAL_PAGE_SIZE"):
            monkeypatch.delenv(key, raising=False)

        settings = load_settings(dotenv=False)

        assert settings.api_url == DEFAULT_API_URL
        assert settings.timeout == 30.0
        assert settings.page_size == 10

    def test_environment_values(self, monkeypatch, tmp_path):
        monkeypatch.setenv("JOBPORTAL_API_URL", "https://jobs.example.com/api/")
        monkeypatch.setenv("JOBPORTAL_TIMEOUT", "12.5")
        monkeypatch.setenv("JOBPORTAL_CREDENTIALS", str(tmp_path / "c.json"))
        monkeypatch.setenv("JOBPORTAL_PAGE_SIZE", "oops")

        settings = load_settings(dotenv=False)

        assert settings.api_url == "https://jobs.example.com/api"
        assert settings.timeout == 12.5
        assert settings.credentials_path == tmp_path / "c.json"
        assert settings.page_size == 10

    def test_override_ignores_missing_values(self):
        settings = Settings().override(api_url=None, timeout=5, credentials_path="x.json")

        assert settings.api_url == DEFAULT_API_URL
        assert settings.timeout == 5.0
        assert settings.credentials_path == Path("x.json")


class TestCli:
    """Test the command line entry point without a backend."""

    def test_parser_defaults(self):
        args = build_parser().parse_args(["jobs", "--search", "python"])

        assert args.search == "python"
        assert args.sort == "saved-first"
        assert args.pages == 1

    def test_status_filters_cover_every_known_status(self):
        parser = build_parser()

        assert parser.parse_args(["interviews", "--status", "no-show"]).status == "no-show"
        assert parser.parse_args(["applications", "--status", "under-review", "--pages", "2"]).pages == 2
        for status in ("all",) + INTERVIEW_STATUSES:
            assert parser.parse_args(["interviews", "--status", status]).status == status
        for status in ("all",) + APPLICATION_STATUSES:
            assert parser.parse_args(["applications", "--status", status]).status == status

    def test_unknown_status_is_refused(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["interviews", "--status", "postponed"])

    def test_profile_requires_login(self, tmp_path):
        with pytest.raises(SystemExit) as excinfo:
            main(["--credentials", str(tmp_path / "c.json"), "profile", "--first-name", "Grace"])

        assert "Not logged in." in str(excinfo.value.code)

    def test_open_reports_redirect(self, tmp_path, capsys):
        main(["--credentials", str(tmp_path / "c.json"), "open", "/candidate/jobs"])

        out = capsys.readouterr().out
        assert "Decision: denied" in out
        assert "Redirect: /candidate/login" in out
        assert "Resume after login: /candidate/jobs" in out

    def test_protected_command_requires_login(self, tmp_path):
        with pytest.raises(SystemExit) as excinfo:
            main(["--credentials", str(tmp_path / "c.json"), "applications"])

        assert "/candidate/login" in str(excinfo.value.code)

    def test_whoami_anonymous(self, tmp_path, capsys):
        main(["--credentials", str(tmp_path / "c.json"), "whoami"])

        assert "Not logged in." in capsys.readouterr().out

    def test_login_prompts_and_persists(self, tmp_path, capsys):
        credentials = str(tmp_path / "c.json")
        profile = normalise_profile(CANDIDATE_RECORD, role="candidate")

        with patch("jobportal.cli.getpass.getpass", return_value="pw") as prompt, patch.object(
            BackendClient, "login", return_value=(profile, "tok")
        ) as login:
            main(["--credentials", credentials, "login", "--email", "ada@example.com"])

        prompt.assert_called_once()
        login.assert_called_once_with("candidate", "ada@example.com", "pw")
        assert "Continue at /candidate/dashboard" in capsys.readouterr().out

        main(["--credentials", credentials, "whoami"])
        out = capsys.readouterr().out
        assert "Name: Ada Lovelace" in out
        assert "Role: candidate" in out

    def test_failed_login_exits(self, tmp_path):
        with patch.object(BackendClient, "login", side_effect=BackendError("Invalid credentials", status_code=401)):
            with pytest.raises(SystemExit) as excinfo:
                main(["--credentials", str(tmp_path / "c.json"), "login", "--email", "a@b.c", "--password", "x"])

        assert "Invalid credentials" in str(excinfo.value.code)

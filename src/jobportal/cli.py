"""Command line client for the job board."""
from __future__ import annotations

import argparse
import asyncio
import getpass
import sys
from typing import List, Optional

from .config import load_settings
from .errors import AuthPersistError, BackendError, FetchError
from .listing import JOB_TYPES, SORT_OPTIONS, Job, JobFilters
from .notifications import ERROR, Notice
from .portal import CANDIDATE_SCREENS, Portal
from .profile import ROLES
from .route_guard import ALLOWED, LOADING, normalise_path, required_role_for
from .status import APPLICATION_STATUSES, INTERVIEW_STATUSES


def _print_notice(notice: Notice) -> None:
    prefix = "!" if notice.level == ERROR else "*"
    print(f"{prefix} {notice.message}", file=sys.stderr)


def build_portal(args: argparse.Namespace) -> Portal:
    settings = load_settings().override(
        api_url=args.api_url,
        timeout=args.timeout,
        credentials_path=args.credentials,
    )
    portal = Portal(settings)
    portal.notifier.subscribe(_print_notice)
    return portal.start()


def open_screen(portal: Portal, path: str) -> None:
    """Navigate to a protected screen or exit with the guard's redirect."""

    decision = portal.navigator.navigate(path)
    if decision.state == ALLOWED:
        return
    if decision.state == LOADING:
        raise SystemExit("Session is still loading; try again.")
    message = f"Access to {path} denied; redirected to {decision.redirect_to}."
    if decision.intended_path:
        message += " Log in first with `jobportal login`."
    raise SystemExit(message)


def _format_job(job: Job, saved: bool) -> str:
    marker = "*" if saved else " "
    company = job.company.name or "Company"
    return (
        f"{marker} [{job.id}] {job.title} @ {company} | {job.location.display()}"
        f" | {job.type or 'n/a'} | {job.salary.display()}"
    )


def cmd_login(args: argparse.Namespace) -> None:
    portal = build_portal(args)
    password = args.password or getpass.getpass("Password: ")
    try:
        destination = asyncio.run(portal.sign_in(args.role, args.email, password, args.next))
    except AuthPersistError as exc:
        raise SystemExit(f"Login succeeded but credentials could not be saved: {exc}") from exc
    except (BackendError, FetchError, asyncio.TimeoutError) as exc:
        raise SystemExit(f"Login failed: {str(exc) or 'timed out'}") from exc
    session = portal.sessions.session
    print(f"Logged in as {session.display_name or session.email} ({session.role}).")
    print(f"Continue at {destination}")


def cmd_logout(args: argparse.Namespace) -> None:
    portal = build_portal(args)
    portal.sign_out()
    print("Logged out.")


def cmd_whoami(args: argparse.Namespace) -> None:
    portal = build_portal(args)
    if args.refresh:
        asyncio.run(portal.refresh_profile())
    session = portal.sessions.session
    if session is None:
        print("Not logged in.")
        return
    print(f"Name: {session.display_name}")
    print(f"Email: {session.email}")
    print(f"Role: {session.role}")
    print(f"Profile completeness: {session.profile_completeness}%")
    print(f"Email verified: {'yes' if session.email_verified else 'no'}")
    if session.company_verified is not None:
        print(f"Company verified: {'yes' if session.company_verified else 'no'}")


def cmd_profile(args: argparse.Namespace) -> None:
    portal = build_portal(args)
    if portal.sessions.session is None:
        raise SystemExit("Not logged in.")
    changes = {
        key: value
        for key, value in (("firstName", args.first_name), ("lastName", args.last_name), ("position", args.position))
        if value is not None
    }
    if not changes:
        raise SystemExit("Nothing to update; pass --first-name, --last-name or --position.")
    if not asyncio.run(portal.update_profile(changes)):
        raise SystemExit(1)
    print(f"Profile saved for {portal.sessions.session.display_name or portal.sessions.session.email}.")


def cmd_open(args: argparse.Namespace) -> None:
    portal = build_portal(args)
    path = normalise_path(args.path)
    decision = portal.navigator.decide(path)
    required = required_role_for(path)
    print(f"Path: {path}")
    print(f"Requires: {required or 'nothing'}")
    print(f"Decision: {decision.state}")
    if decision.redirect_to:
        print(f"Redirect: {decision.redirect_to}")
    if decision.intended_path:
        print(f"Resume after login: {decision.intended_path}")


async def _browse_jobs(portal: Portal, args: argparse.Namespace) -> None:
    filters = JobFilters(
        term=args.search or "",
        location=args.location or "",
        job_type=args.type,
        salary=args.salary,
    )
    results = await asyncio.gather(portal.job_board.load(filters), portal.saved_jobs.load())
    if not results[0]:
        raise SystemExit(f"Could not load jobs: {portal.job_board.error}")
    pages = 1
    while pages < args.pages and portal.job_board.has_more:
        if not await portal.job_board.load_more():
            break
        pages += 1

    visible = portal.job_board.visible(args.sort, portal.saved_jobs.saved_ids)
    total = portal.job_board.total or len(portal.job_board.items)
    print(f"Showing {len(visible)} of {total} jobs (page {portal.job_board.page}/{portal.job_board.total_pages})")
    for job in visible:
        print(_format_job(job, portal.saved_jobs.is_saved(job)))
    if portal.job_board.has_more:
        print("More jobs available; pass --pages to load further pages.")


def cmd_jobs(args: argparse.Namespace) -> None:
    portal = build_portal(args)
    open_screen(portal, CANDIDATE_SCREENS["jobs"])
    asyncio.run(_browse_jobs(portal, args))


async def _change_saved(portal: Portal, job_id: str, save: bool) -> bool:
    await portal.saved_jobs.load()
    if save:
        return await portal.saved_jobs.save(job_id)
    return await portal.saved_jobs.unsave(job_id)


def cmd_save(args: argparse.Namespace) -> None:
    portal = build_portal(args)
    open_screen(portal, CANDIDATE_SCREENS["jobs"])
    if not asyncio.run(_change_saved(portal, args.job_id, True)):
        raise SystemExit(1)


def cmd_unsave(args: argparse.Namespace) -> None:
    portal = build_portal(args)
    open_screen(portal, CANDIDATE_SCREENS["jobs"])
    if not asyncio.run(_change_saved(portal, args.job_id, False)):
        raise SystemExit(1)


async def _apply(portal: Portal, job_id: str, cover_letter: Optional[str]) -> bool:
    await portal.applications.load()
    details = {"coverLetter": cover_letter} if cover_letter else {}
    return await portal.applications.apply(job_id, details)


def cmd_apply(args: argparse.Namespace) -> None:
    portal = build_portal(args)
    open_screen(portal, CANDIDATE_SCREENS["jobs"])
    if not asyncio.run(_apply(portal, args.job_id, args.cover_letter)):
        raise SystemExit(1)


async def _load_applications(portal: Portal, status: str, pages: int) -> bool:
    if not await portal.applications.load(status=status):
        return False
    for _ in range(max(pages, 1) - 1):
        if not portal.applications.has_more:
            break
        await portal.applications.load_more()
    return True


def cmd_applications(args: argparse.Namespace) -> None:
    portal = build_portal(args)
    open_screen(portal, CANDIDATE_SCREENS["applications"])
    if not asyncio.run(_load_applications(portal, args.status, args.pages)):
        raise SystemExit(f"Could not load applications: {portal.applications.error}")

    stats = portal.applications.stats
    print(
        "Total: {total}  Applied: {applied}  Interviewed: {interviewed}  Hired: {hired}  Rejected: {rejected}".format(
            total=stats.get("total", len(portal.applications.items)),
            applied=stats.get("applied", 0),
            interviewed=stats.get("interviewed", 0),
            hired=stats.get("hired", 0),
            rejected=stats.get("rejected", 0),
        )
    )
    for application in portal.applications.items:
        applied = application.applied_date.date().isoformat() if application.applied_date else "unknown"
        print(
            f"[{application.id}] {application.position} @ {application.company}"
            f" | {application.projection.label} | applied {applied}"
        )


def cmd_interviews(args: argparse.Namespace) -> None:
    portal = build_portal(args)
    open_screen(portal, CANDIDATE_SCREENS["interviews"])
    if not asyncio.run(portal.interviews.load(status=args.status)):
        raise SystemExit(f"Could not load interviews: {portal.interviews.error}")

    print(f"Interviews ({len(portal.interviews.items)})")
    for interview in portal.interviews.items:
        when = interview.scheduled_at.isoformat(timespec="minutes") if interview.scheduled_at else "unscheduled"
        upcoming = " (upcoming)" if interview.is_upcoming() else ""
        print(f"[{interview.id}] {interview.title} | {interview.type} | {interview.projection.label} | {when}{upcoming}")
        if interview.notes.candidate_notes:
            print(f"    notes: {interview.notes.candidate_notes}")


def cmd_notes(args: argparse.Namespace) -> None:
    portal = build_portal(args)
    open_screen(portal, CANDIDATE_SCREENS["interviews"])

    async def run() -> bool:
        await portal.interviews.load()
        return await portal.interviews.update_notes(args.interview_id, args.text)

    if not asyncio.run(run()):
        raise SystemExit(1)


def cmd_dashboard(args: argparse.Namespace) -> None:
    portal = build_portal(args)
    open_screen(portal, CANDIDATE_SCREENS["dashboard"])
    summary = asyncio.run(portal.dashboard())
    session = portal.sessions.session
    print(f"Welcome back, {session.first_name or session.display_name or session.email}!")
    print(f"  Applications sent: {summary.applications_sent}")
    print(f"  Interviews: {summary.interviews}")
    print(f"  Saved jobs: {summary.saved_jobs}")
    if summary.recent_applications:
        print("Recent applications:")
        for application in summary.recent_applications:
            print(f"  - {application.position} @ {application.company}: {application.projection.label}")
    if summary.upcoming_interviews:
        print("Upcoming interviews:")
        for interview in summary.upcoming_interviews:
            print(f"  - {interview.title} at {interview.scheduled_at.isoformat(timespec='minutes')}")
    for error in summary.errors:
        print(f"  (could not load {error})")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Job board client")
    parser.add_argument("--api-url", help="Backend base URL (default: $JOBPORTAL_API_URL)")
    parser.add_argument("--credentials", help="Credential file (default: $JOBPORTAL_CREDENTIALS)")
    parser.add_argument("--timeout", type=float, help="Seconds before a backend call counts as failed")

    subparsers = parser.add_subparsers(dest="command", required=True)

    login = subparsers.add_parser("login", help="Log in as a candidate or recruiter")
    login.add_argument("--role", choices=ROLES, default="candidate")
    login.add_argument("--email", required=True)
    login.add_argument("--password", help="Prompted for when omitted")
    login.add_argument("--next", help="Page to continue on after logging in")
    login.set_defaults(func=cmd_login)

    logout = subparsers.add_parser("logout", help="Forget the stored credentials")
    logout.set_defaults(func=cmd_logout)

    whoami = subparsers.add_parser("whoami", help="Show the current session")
    whoami.add_argument("--refresh", action="store_true", help="Reload the profile from the backend first")
    whoami.set_defaults(func=cmd_whoami)

    profile = subparsers.add_parser("profile", help="Edit your profile")
    profile.add_argument("--first-name", dest="first_name")
    profile.add_argument("--last-name", dest="last_name")
    profile.add_argument("--position")
    profile.set_defaults(func=cmd_profile)

    open_cmd = subparsers.add_parser("open", help="Show the access decision for a path")
    open_cmd.add_argument("path")
    open_cmd.set_defaults(func=cmd_open)

    jobs = subparsers.add_parser("jobs", help="Browse the job board")
    jobs.add_argument("--search")
    jobs.add_argument("--location")
    jobs.add_argument("--type", choices=("all",) + JOB_TYPES, default="all")
    jobs.add_argument("--salary", help="Salary range such as 50000-90000")
    jobs.add_argument("--sort", choices=SORT_OPTIONS, default=SORT_OPTIONS[0])
    jobs.add_argument("--pages", type=int, default=1, help="Number of pages to load")
    jobs.set_defaults(func=cmd_jobs)

    save = subparsers.add_parser("save", help="Save a job to your list")
    save.add_argument("job_id")
    save.set_defaults(func=cmd_save)

    unsave = subparsers.add_parser("unsave", help="Remove a job from your list")
    unsave.add_argument("job_id")
    unsave.set_defaults(func=cmd_unsave)

    apply_cmd = subparsers.add_parser("apply", help="Apply to a job")
    apply_cmd.add_argument("job_id")
    apply_cmd.add_argument("--cover-letter", dest="cover_letter")
    apply_cmd.set_defaults(func=cmd_apply)

    applications = subparsers.add_parser("applications", help="Track your applications")
    applications.add_argument(
        "--status",
        choices=("all",) + APPLICATION_STATUSES,
        default="all",
    )
    applications.add_argument("--pages", type=int, default=1, help="Number of pages to load")
    applications.set_defaults(func=cmd_applications)

    interviews = subparsers.add_parser("interviews", help="List your interviews")
    interviews.add_argument(
        "--status",
        choices=("all",) + INTERVIEW_STATUSES,
        default="all",
    )
    interviews.set_defaults(func=cmd_interviews)

    notes = subparsers.add_parser("notes", help="Save your notes for an interview")
    notes.add_argument("interview_id")
    notes.add_argument("text")
    notes.set_defaults(func=cmd_notes)

    dashboard = subparsers.add_parser("dashboard", help="Show the candidate dashboard")
    dashboard.set_defaults(func=cmd_dashboard)

    return parser


def main(argv: List[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    args.func(args)


if __name__ == "__main__":
    main()

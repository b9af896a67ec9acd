import argparse
import asyncio
import getpass

import config
from api_client import ApiClient, ApiError, remember_token
from cache import QueryCache
from notifications import Notifier
from schemas import LoginIn
from validation_middleware import LOGIN_SCHEMA
from version import __version__
from workflows.attendance import AttendanceSheet
from workflows.base import SubmitOutcome
from workflows.group_detail import GroupDetailScreen
from workflows.new_students import NewStudentsScreen
from workflows.payments import PaymentsScreen

EXIT_OK = 0
EXIT_API_ERROR = 1
EXIT_INPUT_ERROR = 2


def _print_notification(item):
    print(f"[{item.kind}] {item.title}" + (f": {item.message}" if item.message else ""))


def _print_errors(errors):
    for field, message in sorted(errors.items()):
        print(f"- {field}: {message}")


def _exit_code(outcome):
    if outcome in (SubmitOutcome.SUCCEEDED, SubmitOutcome.UNCHANGED, SubmitOutcome.CANCELLED):
        return EXIT_OK
    if outcome == SubmitOutcome.INVALID:
        return EXIT_INPUT_ERROR
    return EXIT_API_ERROR


def _confirm(assume_yes):
    def confirm(text):
        if assume_yes:
            return True
        return input(f"{text} [y/N] ").strip().lower() in ("y", "yes")
    return confirm


async def cmd_login(api, query_cache, notifier, args):
    values = {"phone": (args.phone or "").strip(), "password": args.password or getpass.getpass("Password: ")}
    result = LOGIN_SCHEMA.validate(values)
    if not result.ok:
        _print_errors(result.errors)
        return EXIT_INPUT_ERROR
    token = await api.login(LoginIn(**values))
    remember_token(token.access_token)
    notifier.success("Signed in", f"Token stored for role {token.role or 'unknown'}")
    return EXIT_OK


async def cmd_new_students(api, query_cache, notifier, args):
    screen = NewStudentsScreen(api, query_cache, notifier=notifier)
    await screen.load()
    print(f"New students ({len(screen.new_students)}):")
    for student in screen.new_students:
        print(f"- #{student.id} {student.full_name} {student.phone}")
    print(f"Students without group ({len(screen.students_without_group)}):")
    for student in screen.students_without_group:
        print(f"- #{student.id} {student.full_name} {student.phone}")
    return EXIT_OK


async def cmd_activate(api, query_cache, notifier, args):
    screen = NewStudentsScreen(api, query_cache, notifier=notifier)
    await screen.load()
    student = next((s for s in screen.new_students if s.id == args.student_id), None)
    if student is None:
        print(f"Input error: student #{args.student_id} is not waiting for activation")
        return EXIT_INPUT_ERROR

    workflow = screen.activation()
    await workflow.load_groups()
    workflow.open(student)
    workflow.select_group(args.group_id)
    outcome = await workflow.submit()
    if outcome == SubmitOutcome.INVALID:
        _print_errors(workflow.validation.errors)
    return _exit_code(outcome)


async def cmd_add_to_group(api, query_cache, notifier, args):
    workflow = GroupDetailScreen(api, query_cache, notifier=notifier, group_id=args.group_id).add_students()
    await workflow.open()
    for student_id in args.student_ids:
        if student_id not in workflow.selected:
            workflow.toggle(student_id)
    outcome = await workflow.submit()
    if outcome == SubmitOutcome.INVALID:
        print(f"Input error: {workflow.selection_error}")
    return _exit_code(outcome)


async def cmd_remove_from_group(api, query_cache, notifier, args):
    screen = GroupDetailScreen(api, query_cache, notifier=notifier, group_id=args.group_id)
    outcome = await screen.remove_student(args.student_id, _confirm(args.yes))
    if outcome == SubmitOutcome.CANCELLED:
        print("Cancelled")
    return _exit_code(outcome)


async def cmd_payment_period(api, query_cache, notifier, args):
    screen = PaymentsScreen(api, query_cache, notifier=notifier)
    payments = await screen.load()
    payment = next((p for p in payments if p.id == args.payment_id), None)
    if payment is None:
        print(f"Input error: payment #{args.payment_id} not found")
        return EXIT_INPUT_ERROR

    workflow = screen.edit_period(payment)
    workflow.set_dates(start_date=args.start, end_date=args.end)
    outcome = await workflow.submit()
    if outcome == SubmitOutcome.INVALID:
        _print_errors(workflow.form.errors)
    return _exit_code(outcome)


async def cmd_attendance(api, query_cache, notifier, args):
    sheet = AttendanceSheet(api, query_cache, notifier=notifier)
    sheet.select_group(args.group_id)
    if args.date:
        sheet.select_date(args.date)
    await sheet.load_students()
    for student_id in args.absent:
        sheet.set_presence(student_id, False)
    outcome = await sheet.submit()
    if outcome == SubmitOutcome.SUCCEEDED:
        print(f"present={sheet.present_count} absent={sheet.absent_count}")
    return _exit_code(outcome)


COMMANDS = {
    "login": cmd_login,
    "new-students": cmd_new_students,
    "activate": cmd_activate,
    "add-to-group": cmd_add_to_group,
    "remove-from-group": cmd_remove_from_group,
    "payment-period": cmd_payment_period,
    "attendance": cmd_attendance,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="LMS admin tasks against the LMS API")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--base-url", default=None, help="API base URL (defaults to API_BASE_URL)")
    sub = parser.add_subparsers(dest="command", required=True)

    login = sub.add_parser("login", help="Sign in and keep the token in the OS keyring")
    login.add_argument("--phone", required=True)
    login.add_argument("--password", default=None, help="Prompted when omitted")

    sub.add_parser("new-students", help="List students waiting for activation or a group")

    activate = sub.add_parser("activate", help="Activate a new student into a group")
    activate.add_argument("--student-id", type=int, required=True)
    activate.add_argument("--group-id", type=int, required=True)

    add = sub.add_parser("add-to-group", help="Add students to a group")
    add.add_argument("--group-id", type=int, required=True)
    add.add_argument("--student-ids", type=int, nargs="+", required=True)

    remove = sub.add_parser("remove-from-group", help="Remove one student from a group")
    remove.add_argument("--group-id", type=int, required=True)
    remove.add_argument("--student-id", type=int, required=True)
    remove.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")

    period = sub.add_parser("payment-period", help="Change a payment's start and end dates")
    period.add_argument("--payment-id", type=int, required=True)
    period.add_argument("--start", required=True, help="YYYY-MM-DD")
    period.add_argument("--end", required=True, help="YYYY-MM-DD")

    attendance = sub.add_parser("attendance", help="Save attendance for a group")
    attendance.add_argument("--group-id", type=int, required=True)
    attendance.add_argument("--date", default=None, help="YYYY-MM-DD, defaults to today")
    attendance.add_argument("--absent", type=int, nargs="*", default=[], help="Student ids marked absent")
    return parser


def main(argv=None, api=None) -> int:
    args = build_parser().parse_args(argv)
    config.configure_logging()

    if api is None:
        try:
            config.validate_client_settings(base_url=args.base_url)
        except RuntimeError as exc:
            print(f"Input error: {exc}")
            return EXIT_INPUT_ERROR
        api = ApiClient(base_url=args.base_url)

    notifier = Notifier(listener=_print_notification)
    try:
        return asyncio.run(COMMANDS[args.command](api, QueryCache(), notifier, args))
    except ValueError as exc:
        print(f"Input error: {exc}")
        return EXIT_INPUT_ERROR
    except ApiError as exc:
        print(f"API error: {exc.message()}")
        return EXIT_API_ERROR


if __name__ == "__main__":
    raise SystemExit(main())

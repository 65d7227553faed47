# SMB Advisor - Financial ratios & recommendations for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Command-Line Interface (CLI) for SMB Advisor.

This module wires together the main building blocks of SMB Advisor:

- global configuration (database, object store, extraction, display),
- authentication (users and session tokens),
- the service layer (financial records, profile, dashboard,
  recommendations, document analysis),
- view helpers (tabular and text rendering).

The CLI is intentionally thin: it does not implement any financial logic
itself. It parses arguments, resolves the signed-in user and delegates to
services.py, then renders the results as console tables and/or CSV files.


Configuration
-------------

By default, the CLI reads ``smb_advisor_config.toml`` in the current working
directory (built-in defaults apply when it does not exist). Use:

    --config PATH

to point to another file. A ``.env`` file next to the configuration can hold
the OpenAI API key (``OPENAI_API_KEY`` by default).


Commands
--------

Account:

    smb-advisor signup --email me@example.com
    smb-advisor signin --email me@example.com
    smb-advisor whoami
    smb-advisor signout

Passwords are prompted for when ``--password`` is omitted. The token of the
active session is stored in the configured session file.

Company profile:

    smb-advisor profile set --company-name "Ma PME" --sector Services \\
        --employees 8 --revenue 500000 --fiscal-regime "Réel simplifié"
    smb-advisor profile show

Financial data:

    smb-advisor data add --year 2024 --revenue 500000 --fixed-costs 100000 \\
        --variable-costs 200000 --payroll 150000 --cash-flow 50000
    smb-advisor data list
    smb-advisor data import-pdf liasse_2024.pdf [--save]

``data import-pdf`` stores the document and shows the figures extracted by
the AI adapter. Nothing is saved unless ``--save`` is given; individual
figures can be corrected with the same options as ``data add``.

Analysis:

    smb-advisor dashboard
    smb-advisor recommendations [--format text|table]


Display options
---------------

``--display-mode`` overrides ``display.mode`` from the configuration:
'table' prints to stdout, 'csv' writes timestamped CSV files to ``--output``
(``data/output`` by default), 'both' does both.
"""

import argparse
import getpass
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

import pandas as pd

from . import __version__
from .auth import (
    AuthError,
    User,
    clear_session_token,
    current_user,
    load_session_token,
    save_session_token,
    sign_in,
    sign_out,
    sign_up,
)
from .config import AppConfig, load_app_config
from .db import DataStoreError, init_database, wrap_data_store_errors
from .extraction import ExtractionInProgressError
from .formatting import format_currency
from .models import AMOUNT_FIELDS, FISCAL_REGIMES, SECTORS, InvalidInputError
from .ratios import ratios_as_results
from .services import (
    StorageError,
    build_dashboard,
    build_recommendations,
    get_company_profile,
    list_financial_history,
    save_company_profile,
    submit_financial_record,
    upload_and_analyze_document,
)
from .views import (
    chart_series_to_display,
    format_profile,
    format_recommendation,
    format_summary,
    ratios_to_dataframe,
    records_to_dataframe,
    recommendations_to_dataframe,
)

logger = logging.getLogger(__name__)

DOMAIN_ERRORS = (
    AuthError,
    DataStoreError,
    ExtractionInProgressError,
    InvalidInputError,
    StorageError,
)


def _add_record_arguments(p: argparse.ArgumentParser, required: bool) -> None:
    p.add_argument("--year", type=int, help="Fiscal year (defaults to the current year).")
    p.add_argument("--revenue", type=float, required=required, help="Revenue (CA HT), in euros.")
    p.add_argument(
        "--fixed-costs",
        dest="fixed_costs",
        type=float,
        required=required,
        help="Fixed costs (rent, insurance, depreciation), in euros.",
    )
    p.add_argument(
        "--variable-costs",
        dest="variable_costs",
        type=float,
        required=required,
        help="Variable costs (purchases, subcontracting), in euros.",
    )
    p.add_argument(
        "--payroll",
        type=float,
        required=required,
        help="Payroll including social charges, in euros.",
    )
    p.add_argument(
        "--cash-flow",
        dest="cash_flow",
        type=float,
        required=required,
        help="Available net cash position, in euros.",
    )
    p.add_argument("--notes", help="Free text notes.")


def _build_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for the CLI."""
    ap = argparse.ArgumentParser(
        prog="smb-advisor",
        description=(
            "SMB Advisor - Financial ratios & recommendations for SMBs. "
            "Stores annual financial figures, computes ratios, compares them "
            "with sector benchmarks and prints prioritized recommendations."
        ),
    )

    # Generic options
    ap.add_argument(
        "--version",
        action="store_true",
        help="Show the installed version of smb_advisor and exit.",
    )
    ap.add_argument(
        "--config",
        dest="config_path",
        help=(
            "Path to the main TOML configuration file. "
            "If omitted, 'smb_advisor_config.toml' in the current directory is used."
        ),
    )
    ap.add_argument(
        "--log-level",
        dest="log_level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Logging level for diagnostic messages (default: WARNING).",
    )

    # Display options
    ap.add_argument(
        "--display-mode",
        dest="display_mode",
        choices=["table", "csv", "both"],
        help=(
            "Override the display.mode setting from the configuration file. "
            "'table' prints results to stdout, "
            "'csv' writes CSV files only, "
            "'both' does both."
        ),
    )
    ap.add_argument(
        "--output",
        dest="output_dir",
        help=(
            "Output directory where CSV files will be written when display "
            "mode includes 'csv'. If omitted, 'data/output' is used."
        ),
    )

    subparsers = ap.add_subparsers(dest="command", metavar="command")

    # ------------------------------------------------------------------
    # Account
    # ------------------------------------------------------------------
    signup = subparsers.add_parser("signup", help="Create an account.")
    signup.add_argument("--email", required=True)
    signup.add_argument("--password", help="Password (prompted if omitted).")

    signin = subparsers.add_parser("signin", help="Sign in and open a session.")
    signin.add_argument("--email", required=True)
    signin.add_argument("--password", help="Password (prompted if omitted).")

    subparsers.add_parser("signout", help="Close the active session.")
    subparsers.add_parser("whoami", help="Show the signed-in user.")

    # ------------------------------------------------------------------
    # Company profile
    # ------------------------------------------------------------------
    profile_parser = subparsers.add_parser("profile", help="Manage the company profile.")
    profile_subparsers = profile_parser.add_subparsers(
        dest="profile_command",
        metavar="profile-command",
    )
    profile_set = profile_subparsers.add_parser("set", help="Create or update the profile.")
    profile_set.add_argument("--company-name", dest="company_name", required=True)
    profile_set.add_argument("--sector", choices=SECTORS, required=True)
    profile_set.add_argument("--employees", dest="employee_count", type=int, default=0)
    profile_set.add_argument("--revenue", type=float, default=0.0)
    profile_set.add_argument(
        "--fiscal-regime",
        dest="fiscal_regime",
        choices=FISCAL_REGIMES,
        required=True,
    )
    profile_subparsers.add_parser("show", help="Show the company profile.")

    # ------------------------------------------------------------------
    # Financial data
    # ------------------------------------------------------------------
    data_parser = subparsers.add_parser("data", help="Manage annual financial data.")
    data_subparsers = data_parser.add_subparsers(dest="data_command", metavar="data-command")

    data_add = data_subparsers.add_parser("add", help="Add one year of financial figures.")
    _add_record_arguments(data_add, required=True)

    data_subparsers.add_parser("list", help="List stored financial records.")

    data_import = data_subparsers.add_parser(
        "import-pdf",
        help="Analyze a tax return PDF and pre-fill financial figures.",
    )
    data_import.add_argument("pdf_path", help="Path to the PDF document.")
    data_import.add_argument(
        "--save",
        action="store_true",
        help="Store the (optionally corrected) extracted figures.",
    )
    _add_record_arguments(data_import, required=False)

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------
    subparsers.add_parser("dashboard", help="Show the latest ratios and yearly series.")

    recos = subparsers.add_parser("recommendations", help="Show prioritized recommendations.")
    recos.add_argument(
        "--format",
        dest="reco_format",
        choices=["text", "table"],
        default="text",
        help="'text' shows descriptions and actions; 'table' shows one row each.",
    )

    return ap


def _read_password(args: argparse.Namespace, confirm: bool) -> tuple[str, Optional[str]]:
    if args.password is not None:
        return args.password, None
    password = getpass.getpass("Password: ")
    if not confirm:
        return password, None
    return password, getpass.getpass("Confirm password: ")


def _require_user(parser: argparse.ArgumentParser, config: AppConfig) -> User:
    token = load_session_token(config.auth.session_file)
    user = current_user(config.database, token)
    if user is None:
        parser.error("Not signed in. Use 'signin' (or 'signup') first.")
    return user


def _render(
    df: pd.DataFrame,
    title: str,
    csv_name: str,
    display_mode: str,
    output_dir: Path,
) -> None:
    """Print a DataFrame and/or write it to a timestamped CSV file."""
    if display_mode in {"table", "both"}:
        print()
        print(f"=== {title} ===")
        print(df.to_string(index=False))

    if display_mode in {"csv", "both"}:
        output_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y-%m-%d-%H-%M-%S")
        path = output_dir / f"{csv_name}_{timestamp}.csv"
        df.to_csv(path, index=False)
        print(f"Wrote {path} ({len(df)} rows)")


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def _handle_signup(args: argparse.Namespace, config: AppConfig) -> None:
    password, confirm = _read_password(args, confirm=True)
    user = sign_up(config.database, args.email, password, confirm)
    session = sign_in(config.database, user.email, password)
    save_session_token(config.auth.session_file, session.token)
    print(f"Account created. Signed in as {user.email}.")


def _handle_signin(args: argparse.Namespace, config: AppConfig) -> None:
    password, _ = _read_password(args, confirm=False)
    session = sign_in(config.database, args.email, password)
    save_session_token(config.auth.session_file, session.token)
    print(f"Signed in as {session.user.email}.")


def _handle_signout(args: argparse.Namespace, config: AppConfig) -> None:
    token = load_session_token(config.auth.session_file)
    if token is None:
        print("No active session.")
        return
    sign_out(config.database, token)
    clear_session_token(config.auth.session_file)
    print("Signed out.")


def _handle_whoami(args: argparse.Namespace, config: AppConfig) -> None:
    user = current_user(config.database, load_session_token(config.auth.session_file))
    if user is None:
        print("Not signed in.")
    else:
        print(f"Signed in as {user.email} (id {user.id}).")


def _handle_profile(args, config, parser, user: User) -> None:
    subcmd = getattr(args, "profile_command", None)
    if subcmd == "set":
        profile = save_company_profile(
            config,
            user.id,
            {
                "company_name": args.company_name,
                "sector": args.sector,
                "employee_count": args.employee_count,
                "revenue": args.revenue,
                "fiscal_regime": args.fiscal_regime,
            },
        )
        print("Company profile saved.")
        print(format_profile(profile, config.currency))
    elif subcmd == "show":
        profile = get_company_profile(config, user.id)
        if profile is None:
            print("No company profile yet. Use 'profile set' to create one.")
        else:
            print(format_profile(profile, config.currency))
    else:
        parser.error("No profile subcommand specified. Available: 'set', 'show'.")


def _record_overrides(args: argparse.Namespace) -> dict[str, object]:
    values: dict[str, object] = {}
    for field in ("year", *AMOUNT_FIELDS, "notes"):
        value = getattr(args, field, None)
        if value is not None:
            values[field] = value
    return values


def _handle_data_import_pdf(args, config, parser, user: User) -> None:
    pdf_path = Path(args.pdf_path)
    if not pdf_path.is_file():
        parser.error(f"PDF file not found: {pdf_path}")

    print(f"Analyzing {pdf_path.name}...")
    analysis = upload_and_analyze_document(
        config,
        user.id,
        pdf_path.name,
        pdf_path.read_bytes(),
    )
    result = analysis.result
    print(result.message)

    data = {
        "year": result.data.year,
        "revenue": result.data.revenue,
        "fixed_costs": result.data.fixed_costs,
        "variable_costs": result.data.variable_costs,
        "payroll": result.data.payroll,
        "cash_flow": result.data.cash_flow,
        "notes": result.data.notes,
    }
    data.update(_record_overrides(args))

    print()
    for key, value in data.items():
        if key in AMOUNT_FIELDS:
            value = format_currency(float(value), config.currency)
        print(f"  {key:<15}: {value}")

    if not args.save:
        print()
        print("Nothing saved. Re-run with --save (and corrections if needed) to store these figures.")
        return

    stored = submit_financial_record(config, user.id, data)
    print(f"Saved financial record #{stored.id} for {stored.record.year}.")


def _handle_data(args, config, parser, user: User, display_mode: str, output_dir: Path) -> None:
    subcmd = getattr(args, "data_command", None)
    if subcmd == "add":
        stored = submit_financial_record(config, user.id, _record_overrides(args))
        print(f"Saved financial record #{stored.id} for {stored.record.year}.")
    elif subcmd == "list":
        records = list_financial_history(config, user.id)
        if not records:
            print("No financial data yet. Use 'data add' or 'data import-pdf'.")
            return
        _render(records_to_dataframe(records), "Financial data", "financial_data", display_mode, output_dir)
    elif subcmd == "import-pdf":
        _handle_data_import_pdf(args, config, parser, user)
    else:
        parser.error("No data subcommand specified. Available: 'add', 'list', 'import-pdf'.")


def _handle_dashboard(config, user: User, display_mode: str, output_dir: Path) -> None:
    dashboard = build_dashboard(config, user.id)
    if dashboard is None:
        print("No financial data yet. Use 'data add' or 'data import-pdf'.")
        return

    print(f"Latest fiscal year: {dashboard.latest.record.year}")
    ratios_df = ratios_to_dataframe(
        ratios_as_results(dashboard.ratios),
        decimals=config.ratio_decimals,
        currency=config.currency,
    )
    _render(ratios_df, "Ratios & KPIs", "ratios", display_mode, output_dir)

    series = dashboard.history
    if display_mode in {"table", "both"}:
        _render(chart_series_to_display(series, config.currency), "Yearly series", "series", "table", output_dir)
    if display_mode in {"csv", "both"}:
        _render(series, "Yearly series", "series", "csv", output_dir)


def _handle_recommendations(args, config, user: User, display_mode: str, output_dir: Path) -> None:
    report = build_recommendations(config, user.id)
    if report.record is None:
        print("No financial data yet. Add figures to get recommendations.")
        return

    print(
        f"Fiscal year {report.record.record.year} compared with: {report.benchmark.label}"
    )
    print(format_summary(report.summary, config.currency))

    if args.reco_format == "text" and display_mode in {"table", "both"}:
        for rank, rec in enumerate(report.recommendations, start=1):
            print()
            print(format_recommendation(rec, rank, config.currency))
        if display_mode == "both":
            _render(
                recommendations_to_dataframe(report.recommendations),
                "Recommendations",
                "recommendations",
                "csv",
                output_dir,
            )
        return

    _render(
        recommendations_to_dataframe(report.recommendations),
        "Recommendations",
        "recommendations",
        display_mode,
        output_dir,
    )


def _dispatch(args, config, parser, display_mode: str, output_dir: Path) -> None:
    command = args.command

    if command == "signup":
        _handle_signup(args, config)
    elif command == "signin":
        _handle_signin(args, config)
    elif command == "signout":
        _handle_signout(args, config)
    elif command == "whoami":
        _handle_whoami(args, config)
    else:
        user = _require_user(parser, config)
        if command == "profile":
            _handle_profile(args, config, parser, user)
        elif command == "data":
            _handle_data(args, config, parser, user, display_mode, output_dir)
        elif command == "dashboard":
            _handle_dashboard(config, user, display_mode, output_dir)
        elif command == "recommendations":
            _handle_recommendations(args, config, user, display_mode, output_dir)


def main(argv: Optional[list[str]] = None) -> None:
    """Entry point for the SMB Advisor CLI.

    This function parses command-line arguments, configures logging, loads
    the application configuration, initializes the database, resolves the
    signed-in user and runs the requested command. Domain errors (invalid
    input, authentication, storage) are reported through ``parser.error``.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    # --version: short-circuit and exit early.
    if args.version:
        print(f"smb_advisor version {__version__}")
        return

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return

    try:
        config = load_app_config(args.config_path) if args.config_path else load_app_config()
    except (FileNotFoundError, ValueError) as exc:
        parser.error(str(exc))

    display_mode = args.display_mode or config.display_mode
    output_dir = Path(args.output_dir) if args.output_dir else Path("data/output")

    try:
        with wrap_data_store_errors():
            init_database(config.database)
        _dispatch(args, config, parser, display_mode, output_dir)
    except DOMAIN_ERRORS as exc:
        logger.debug("Command %s failed", args.command, exc_info=True)
        parser.error(str(exc))


if __name__ == "__main__":
    main()

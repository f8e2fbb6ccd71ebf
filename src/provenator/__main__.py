# Copyright (c) 2022 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This is the main entrypoint to run Provenator."""

import argparse
import json
import logging
import os
import sys
import zipfile
from importlib import metadata as importlib_metadata

from provenator.config.defaults import create_defaults, defaults, load_defaults
from provenator.config.service_config import ServiceConfig
from provenator.errors import ConfigurationError, ProvenatorError
from provenator.intoto.dsse import PAYLOAD_TYPE, pae
from provenator.monitor.build_monitor import MonitorOptions
from provenator.package_registry.release import classify
from provenator.rebuild.archive_normalizer import normalize_archive
from provenator.service.factory import create_build_monitor, create_policy_store

logger: logging.Logger = logging.getLogger(__name__)


def show_policy(args: argparse.Namespace, config: ServiceConfig) -> int:
    """Print one policy, or all policies, with their digests."""
    store = create_policy_store(config, args.policy_repo_path)
    if args.action == "policy":
        policies = [store.fetch_policy(args.scope, args.package, args.ref or None)]
    else:
        policies = store.fetch_all_policies(args.ref or None)

    for policy in policies:
        print(f"{policy.scope}/{policy.package}\t{policy.digest}\t{policy.repo}")
    return os.EX_OK


def monitor(args: argparse.Namespace, config: ServiceConfig) -> int:
    """Print the unsigned provenance statement of the CI run that built a release."""
    policy = create_policy_store(config, args.policy_repo_path).fetch_policy(args.scope, args.package, args.ref or None)
    if policy.build_monitor is None:
        logger.error("The policy of %s/%s does not define build_monitor.", args.scope, args.package)
        return os.EX_DATAERR

    statement = create_build_monitor(config).monitor_build(
        args.package,
        policy.repo,
        MonitorOptions(github_actions=policy.build_monitor.github_actions, version=args.version),
    )
    if statement is None:
        logger.error("No build found.")
        return os.EX_UNAVAILABLE

    print(json.dumps(statement, indent=2))
    return os.EX_OK


def print_pae(args: argparse.Namespace) -> int:
    """Print the pre-authentication encoding of a payload file."""
    try:
        with open(args.payload_file, "rb") as payload_file:
            payload = payload_file.read()
    except OSError as error:
        logger.error(error)
        return os.EX_NOINPUT

    sys.stdout.buffer.write(pae(args.payload_type, payload) + b"\n")
    return os.EX_OK


def perform_action(action_args: argparse.Namespace) -> None:
    """Perform the indicated action of Provenator."""
    match action_args.action:
        case "dump-defaults":
            # Create the defaults.ini file in the current dir and exit.
            if create_defaults(os.getcwd()) is None:
                sys.exit(os.EX_CANTCREAT)
            sys.exit(os.EX_OK)

        case "classify":
            for filename in action_args.files:
                print(f"{filename}\t{classify(filename).value}")
            sys.exit(os.EX_OK)

        case "pae":
            sys.exit(print_pae(action_args))

        case "normalize-archive":
            try:
                normalize_archive(action_args.source, action_args.dest)
            except (OSError, zipfile.BadZipFile) as error:
                logger.error(error)
                sys.exit(os.EX_DATAERR)
            sys.exit(os.EX_OK)

        case "policy" | "policies" | "monitor":
            try:
                config = ServiceConfig.from_defaults(
                    defaults,
                    gh_token=os.environ.get("GITHUB_TOKEN", ""),
                    executor_version=os.environ.get(defaults.get("service", "executor_version_env", fallback=""), ""),
                )
            except ConfigurationError as error:
                logger.error(error)
                sys.exit(os.EX_USAGE)

            try:
                if action_args.action == "monitor":
                    sys.exit(monitor(action_args, config))
                sys.exit(show_policy(action_args, config))
            except ProvenatorError as error:
                logger.error("%s: %s", error.code, error)
                sys.exit(os.EX_SOFTWARE if error.kind.status_code >= 500 else os.EX_DATAERR)

        case _:
            logger.error("Provenator does not support command option %s.", action_args.action)
            sys.exit(os.EX_USAGE)


def main(argv: list[str] | None = None) -> None:
    """Execute Provenator as a standalone command-line tool.

    Parameters
    ----------
    argv: list[str] | None
        Command-line arguments.
        If ``argv`` is ``None``, argparse automatically looks at ``sys.argv``.
        Hence, we set ``argv = None`` by default.
    """
    main_parser = argparse.ArgumentParser(prog="provenator")

    main_parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"%(prog)s {importlib_metadata.version('provenator')}",
        help="Show Provenator's version number and exit",
    )

    main_parser.add_argument(
        "-v",
        "--verbose",
        help="Run Provenator with more debug logs",
        action="store_true",
    )

    main_parser.add_argument(
        "-dp",
        "--defaults-path",
        default="",
        help="The path to the defaults configuration file.",
    )

    # Add sub parsers for each action.
    sub_parser = main_parser.add_subparsers(dest="action", help="Run provenator <action> --help for help")

    sub_parser.add_parser(name="dump-defaults", description="Dumps the defaults.ini file to the current directory.")

    classify_parser = sub_parser.add_parser(name="classify", description="Print the release type of file names.")
    classify_parser.add_argument("files", nargs="+", help="Release file names.")

    pae_parser = sub_parser.add_parser(name="pae", description="Print the DSSE pre-authentication encoding.")
    pae_parser.add_argument("--payload-file", required=True, help="Path to the payload.")
    pae_parser.add_argument("--payload-type", default=PAYLOAD_TYPE, help="The payload type.")

    normalize_parser = sub_parser.add_parser(
        name="normalize-archive",
        description="Copy entry timestamps, modes and order from the SOURCE zip archive to the DEST zip archive.",
    )
    normalize_parser.add_argument("source", help="The reference archive.")
    normalize_parser.add_argument("dest", help="The archive to rewrite.")

    for name, description in (
        ("policy", "Print the digest of the policy of a package."),
        ("policies", "Print the digests of all policies."),
        ("monitor", "Print the provenance of the CI run that built a release, without signing it."),
    ):
        policy_parser = sub_parser.add_parser(name=name, description=description)
        policy_parser.add_argument("--ref", default="", help="The revision of the policy repository.")
        policy_parser.add_argument(
            "--policy-repo-path",
            default="",
            help="Read policies from this local clone instead of the configured GitHub repository.",
        )
        if name != "policies":
            policy_parser.add_argument("--scope", required=True, help="The scope of the package, e.g. pypi.")
            policy_parser.add_argument("--package", required=True, help="The package name.")
        if name == "monitor":
            policy_parser.add_argument("--version", default="", help="The release version. The latest by default.")

    args = main_parser.parse_args(argv)

    if not args.action:
        main_parser.print_help()
        sys.exit(os.EX_USAGE)

    if args.verbose:
        log_level = logging.DEBUG
        log_format = "%(asctime)s [%(name)s:%(funcName)s:%(lineno)d] [%(levelname)s] %(message)s"
    else:
        log_level = logging.INFO
        log_format = "%(asctime)s [%(levelname)s] %(message)s"

    # Logs go to stderr so that command output on stdout stays machine-readable.
    logging.basicConfig(format=log_format, handlers=[logging.StreamHandler(sys.stderr)], force=True, level=log_level)

    # Load the default values from defaults.ini files.
    if not load_defaults(args.defaults_path):
        logger.error("Exiting because the defaults configuration could not be loaded.")
        sys.exit(os.EX_NOINPUT)

    perform_action(args)


if __name__ == "__main__":
    main()

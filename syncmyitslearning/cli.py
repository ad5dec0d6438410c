import asyncio
import getpass
import json
import logging
import os
import sys
from argparse import ArgumentParser
from pathlib import Path
from typing import Any, Dict

import httpx
import keyring
from dotenv import load_dotenv

from syncmyitslearning.config import SyncConfig
from syncmyitslearning.exceptions import AuthenticationError, ItslearningError
from syncmyitslearning.sync import SyncMyItslearning

ENVIRONMENT = {
    "school": "ITSLEARNING_SCHOOL",
    "session_id": "ITSLEARNING_SESSION",
    "user": "ITSLEARNING_USER",
    "password": "ITSLEARNING_PASSWORD",
}

logger = logging.getLogger(__name__)


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(
        prog="python3 -m syncmyitslearning",
        description="Synchronization client for itslearning course resources. All optional arguments override those in config.json.",
    )
    parser.add_argument(
        "--school", default=None, help="Your school, as in <school>.itslearning.com"
    )
    parser.add_argument("--user", default=None, help="Your itslearning username")
    parser.add_argument("--password", default=None, help="Your itslearning password")
    parser.add_argument(
        "--session",
        default=None,
        help="An existing ASP.NET_SessionId to use instead of logging in",
    )
    parser.add_argument(
        "--secretservice",
        action="store_true",
        help="Use the system's keyring for storing and retrieving your password",
    )
    parser.add_argument("--config", default=None, help="The path to the config file")
    parser.add_argument(
        "--courses",
        default=None,
        help="Only these courses will be synced (comma seperated course ids) (if empty, all courses will be synced)",
    )
    parser.add_argument(
        "--skipcourses",
        default=None,
        help="These courses will NOT be synced (comma seperated course ids)",
    )
    parser.add_argument(
        "--basedir",
        default=None,
        help="The base directory where all files will be synced to",
    )
    parser.add_argument(
        "--redownload",
        action="store_true",
        help="Download files again even if they already exist locally",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="How many files are resolved and downloaded at the same time (default 4)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Timeout in seconds for every single request (default 30)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_const",
        dest="loglevel",
        const=logging.INFO,
        default=logging.WARNING,
        help="show information about every synced folder and file",
    )
    parser.add_argument(
        "--debug",
        action="store_const",
        dest="loglevel",
        const=logging.DEBUG,
        help="show information useful for debugging",
    )
    return parser


def load_config(args) -> Dict[str, Any]:
    if args.config:
        config = {}
        overwrite_config = Path(args.config)
        if overwrite_config.is_file():
            with overwrite_config.open() as f:
                config = json.load(f)
    else:
        config = {}

        global_config = (
            Path(os.environ.get("XDG_CONFIG_HOME", Path("~/.config").expanduser()))
            / "syncmyitslearning"
            / "config.json"
        )
        if global_config.is_file():
            with global_config.open() as f:
                config.update(json.load(f))

        local_config = Path("config.json")
        if local_config.is_file():
            with local_config.open() as f:
                config.update(json.load(f))

    for key, variable in ENVIRONMENT.items():
        config[key] = config.get(key) or os.environ.get(variable)

    config["school"] = args.school or config.get("school")
    config["user"] = args.user or config.get("user")
    config["password"] = args.password or config.get("password")
    config["session_id"] = args.session or config.get("session_id")
    config["use_secret_service"] = args.secretservice or config.get(
        "use_secret_service"
    )
    config["selected_courses"] = (
        args.courses.split(",") if args.courses else config.get("selected_courses", [])
    )
    config["skip_courses"] = (
        args.skipcourses.split(",")
        if args.skipcourses
        else config.get("skip_courses", [])
    )
    config["basedir"] = args.basedir or config.get("basedir", "./data")
    config["skip_existing"] = not args.redownload and config.get("skip_existing", True)
    config["max_concurrent_files"] = args.concurrency or config.get(
        "max_concurrent_files", 4
    )
    config["timeout"] = args.timeout or config.get("timeout", 30.0)
    return config


def use_secret_service(config: Dict[str, Any], args) -> None:
    if config.get("password") and not args.password:
        logger.critical("You need to remove your password from your config file!")
        sys.exit(1)
    if not config.get("user"):
        logger.critical(
            "You need to provide your username in the config file or through --user!"
        )
        sys.exit(1)

    config["password"] = keyring.get_password("syncmyitslearning", config["user"])
    if config["password"] is None:
        password = args.password or getpass.getpass("Password:")
        keyring.set_password("syncmyitslearning", config["user"], password)
        config["password"] = password


async def login_and_sync(smi: SyncMyItslearning) -> None:
    logger.info("Logging in...")
    try:
        await smi.login()
    except AuthenticationError as e:
        logger.critical(f"Failed to login! Maybe your login-info was wrong: {e}")
        sys.exit(1)
    except (ItslearningError, httpx.HTTPError) as e:
        logger.critical(f"Failed to login: {e!r}")
        sys.exit(1)

    logger.info("Syncing courses...")
    try:
        await smi.sync()
    except (ItslearningError, httpx.HTTPError) as e:
        logger.critical(f"Failed to sync courses: {e!r}")
        sys.exit(1)


async def main() -> None:
    load_dotenv()
    args = build_parser().parse_args()
    config = load_config(args)

    logging.basicConfig(level=args.loglevel, format="%(levelname)s: %(message)s")

    if not config.get("school"):
        logger.critical(
            "You need to specify your school in the config file or as an argument!"
        )
        sys.exit(1)

    if config.get("use_secret_service") and not config.get("session_id"):
        use_secret_service(config, args)

    if not config.get("session_id") and (
        not config.get("user") or not config.get("password")
    ):
        logger.critical(
            "You need to specify your username and password (or a session id) in the config file or as an argument!"
        )
        sys.exit(1)

    async with SyncMyItslearning(SyncConfig.from_dict(config)) as smi:
        await login_and_sync(smi)


def run() -> None:
    asyncio.run(main())

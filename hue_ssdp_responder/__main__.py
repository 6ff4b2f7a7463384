#!/usr/bin/env python3

# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

from __future__ import annotations

import sys
import argparse
import json
import asyncio
import logging
from signal import SIGINT, SIGTERM

from hue_ssdp_responder.internal_types import *

from hue_ssdp_responder import (
    __version__ as pkg_version,
    HueSsdpResponder,
    SsdpSearchClient,
    Target,
    DEFAULT_RESPONSE_WAIT_TIME,
    DEFAULT_REFRESH_INTERVAL,
    SSDP_MULTICAST_ADDRESS,
    SSDP_PORT,
  )
from hue_ssdp_responder.constants import DEFAULT_FETCH_TIMEOUT
from hue_ssdp_responder.client import DEFAULT_SEARCH_TARGET, DEFAULT_MX

PROG_NAME = "hue-ssdp-responder"

class CmdExitError(RuntimeError):
    exit_code: int

    def __init__(self, exit_code: int, msg: Optional[str]=None):
        if msg is None:
            msg = f"Command exited with return code {exit_code}"
        super().__init__(msg)
        self.exit_code = exit_code

class ArgparseExitError(CmdExitError):
    pass

class NoExitArgumentParser(argparse.ArgumentParser):
    def exit(self, status=0, message=None):
        if message:
            self._print_message(message, sys.stderr)
        raise ArgparseExitError(status, message)

class CommandHandler:
    _argv: Optional[Sequence[str]]
    _parser: argparse.ArgumentParser
    _args: argparse.Namespace
    _provide_traceback: bool = True

    def __init__(self, argv: Optional[Sequence[str]]=None):
        self._argv = argv

    async def cmd_bare(self) -> int:
        print("A command is required", file=sys.stderr)
        return 1

    async def cmd_serve(self) -> int:
        interface_addresses: Optional[List[str]] = self._args.interface_addresses
        if not interface_addresses is None and len(interface_addresses) == 0:
            interface_addresses = None
        # Parsing the target here reports a bad target before any socket is opened
        target = Target.parse(self._args.target)
        responder = HueSsdpResponder(
            target,
            refresh_interval=self._args.refresh_interval,
            fetch_timeout=self._args.fetch_timeout,
            interface_addresses=interface_addresses,
            all_interfaces=self._args.all_interfaces,
          )
        await responder.start()
        loop = asyncio.get_running_loop()

        def on_signal() -> None:
            logging.debug("Detected SIGINT/SIGTERM, stopping responder")
            responder.set_final_exception(CmdExitError(0, "Responder terminated with SIGINT or SIGTERM"))

        for signal in (SIGINT, SIGTERM):
            loop.add_signal_handler(signal, on_signal)
        try:
            await responder.wait_for_done()
        except CmdExitError as ex:
            if ex.exit_code != 0:
                raise
            logging.info(str(ex))
        finally:
            for signal in (SIGINT, SIGTERM):
                loop.remove_signal_handler(signal)
        return 0

    async def cmd_search(self) -> int:
        destination: Optional[HostAndPort] = None
        if self._args.address is not None:
            destination = (self._args.address, self._args.port)
        async with SsdpSearchClient(response_wait_time=self._args.wait_time, destination=destination) as client:
            async for info in client.search(
                    search_target=self._args.search_target,
                    mx=self._args.mx,
                    max_responses=self._args.max_responses,
                  ):
                summary: JsonableDict = {
                    "http_version": info.http_version,
                    "status_code": info.status_code,
                    "status": info.status,
                    "src_addr": f"{info.src_addr[0]}:{info.src_addr[1]}",
                    "headers": dict(info.datagram.headers),
                    "monotonic_time": info.monotonic_time,
                    "utc_time": info.utc_time.isoformat(),
                }
                print(json.dumps(summary, indent=2, sort_keys=True))
                sys.stdout.flush()
        return 0

    async def cmd_version(self) -> int:
        print(pkg_version)
        return 0

    async def arun(self) -> int:
        """Run the hue-ssdp-responder command-line tool with provided arguments

        Args:
            argv (Optional[Sequence[str]], optional):
                A list of commandline arguments (NOT including the program as argv[0]!),
                or None to use sys.argv[1:]. Defaults to None.

        Returns:
            int: The exit code that would be returned if this were run as a standalone command.
        """
        parser = NoExitArgumentParser(
            prog=PROG_NAME,
            description="Answer SSDP discovery requests on behalf of a Philips Hue bridge (or emulator) "
                        "that cannot receive multicast itself.")


        # ======================= Main command

        self._parser = parser
        parser.add_argument('--traceback', "--tb", action='store_true', default=False,
                            help='Display detailed exception information')
        parser.add_argument('--log-level', dest='log_level', default='warning',
                            choices=['debug', 'info', 'warning', 'error', 'critical'],
                            help='''The logging level to use. Default: warning''')
        parser.set_defaults(func=self.cmd_bare)

        subparsers = parser.add_subparsers(
                            title='Commands',
                            description='Valid commands',
                            help='Additional help available with "<command-name> -h"')


        # ======================= serve

        parser_serve = subparsers.add_parser('serve', description="Run the SSDP responder")
        parser_serve.add_argument('target',
                            help='''The HTTP endpoint of the Hue bridge, in the form "<host>:<port>"; e.g., "my-hue.local:80"''')
        parser_serve.add_argument('--refresh-interval', dest='refresh_interval', default=DEFAULT_REFRESH_INTERVAL, type=float,
                            help=f'''The minimum interval between fetches of description.xml from the bridge, in seconds. Default: {DEFAULT_REFRESH_INTERVAL}''')
        parser_serve.add_argument('--fetch-timeout', dest='fetch_timeout', default=DEFAULT_FETCH_TIMEOUT, type=float,
                            help=f'''The HTTP timeout for fetching description.xml, in seconds. Default: {DEFAULT_FETCH_TIMEOUT}''')
        parser_serve.add_argument('-i', '--interface', dest="interface_addresses", action='append', default=[],
                            help='''The local IPv4 address of an interface on which to join the SSDP multicast group. May be repeated. Default: the default interface''')
        parser_serve.add_argument('--all-interfaces', dest='all_interfaces', action='store_true', default=False,
                            help='''Join the SSDP multicast group on every non-loopback IPv4 interface''')
        parser_serve.set_defaults(func=self.cmd_serve)

        # ======================= search

        parser_search = subparsers.add_parser('search', description="Send an SSDP M-SEARCH and print the responses")
        parser_search.add_argument('--st', dest='search_target', default=DEFAULT_SEARCH_TARGET,
                            help=f'''The search target (ST header). Default: "{DEFAULT_SEARCH_TARGET}"''')
        parser_search.add_argument('--mx', type=int, default=DEFAULT_MX,
                            help=f'''The maximum response delay (MX header), in seconds. Default: {DEFAULT_MX}''')
        parser_search.add_argument('--wait-time', dest='wait_time', type=float, default=DEFAULT_RESPONSE_WAIT_TIME,
                            help=f'''The amount of time to wait for responses, in seconds. Default: {DEFAULT_RESPONSE_WAIT_TIME}''')
        parser_search.add_argument('--max-responses', dest='max_responses', type=int, default=0,
                            help='The maximum number of responses to return. Default: 0 (no limit)')
        parser_search.add_argument('--address', default=None,
                            help=f'''Send the request to this unicast address instead of {SSDP_MULTICAST_ADDRESS}''')
        parser_search.add_argument('--port', type=int, default=SSDP_PORT,
                            help=f'''The destination port. Default: {SSDP_PORT}''')
        parser_search.set_defaults(func=self.cmd_search)

        # ======================= version

        parser_version = subparsers.add_parser('version',
                                description='''Display version information.''')
        parser_version.set_defaults(func=self.cmd_version)

        # =========================================================

        try:
            args = parser.parse_args(self._argv)
        except ArgparseExitError as ex:
            return ex.exit_code
        traceback: bool = args.traceback
        self._provide_traceback = traceback

        try:
            logging.basicConfig(
                level=logging.getLevelName(args.log_level.upper()),
            )
            self._args = args
            func: Callable[[], Awaitable[int]] = args.func
            logging.debug(f"Running command {func.__name__}, tb = {traceback}")
            rc = await func()
            logging.debug(f"Command {func.__name__} returned {rc}")
        except Exception as ex:
            if isinstance(ex, CmdExitError):
                rc = ex.exit_code
            else:
                rc = 1
            if rc != 0:
                if traceback:
                    raise
            print(f"{PROG_NAME}: error: {ex}", file=sys.stderr)
        except BaseException as ex:
            print(f"{PROG_NAME}: Unhandled exception: {ex}", file=sys.stderr)
            raise

        return rc

    def run(self) -> int:
        loop = asyncio.new_event_loop()
        try:
            asyncio.set_event_loop(loop)
            rc = loop.run_until_complete(self.arun())
        finally:
            loop.close()
        return rc

def run(argv: Optional[Sequence[str]]=None) -> int:
    try:
        rc = CommandHandler(argv).run()
    except CmdExitError as ex:
        rc = ex.exit_code
    return rc

async def arun(argv: Optional[Sequence[str]]=None) -> int:
    try:
        rc = await CommandHandler(argv).arun()
    except CmdExitError as ex:
        rc = ex.exit_code
    return rc

def main() -> None:
    sys.exit(run())

# allow running with "python3 -m", or as a standalone script
if __name__ == "__main__":
    main()

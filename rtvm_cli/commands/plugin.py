"""
rtvm plugin commands.

Add, list, remove and update plugin checkouts.
"""

import sys
from typing import Any

from rtvm.config import Config
from rtvm.errors import PluginAlreadyExists
from rtvm.plugin import registry


def add_command(args: Any, conf: Config) -> int:
    """
    Execute `rtvm plugin add`.

    Adding a plugin that is already present is reported but is not a failure.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    if not args.name:
        print("usage: rtvm plugin add <name> [<git-url>]", file=sys.stderr)
        return 1

    try:
        plugin = registry.add(conf, args.name, args.git_url)
    except PluginAlreadyExists as e:
        print(e, file=sys.stderr)
        return 0

    if args.verbose:
        print(f"Added {plugin.name} at {plugin.dir}")
    return 0


def format_listing(listing: registry.PluginListing, urls: bool, refs: bool) -> str:
    if urls and refs:
        return f"{listing.name}\t\t{listing.url}\t{listing.ref}"
    if refs:
        return f"{listing.name}\t\t{listing.ref}"
    if urls:
        return f"{listing.name}\t\t{listing.url}"
    return listing.name


def list_command(args: Any, conf: Config) -> int:
    """Execute `rtvm plugin list`."""
    listings = registry.list_plugins(conf, args.urls, args.refs)

    if not listings:
        print("No plugins installed", file=sys.stderr)
        return 0

    for listing in listings:
        print(format_listing(listing, args.urls, args.refs))

    return 0


def remove_command(args: Any, conf: Config) -> int:
    """Execute `rtvm plugin remove`."""
    registry.remove(conf, args.name, purge=args.purge)
    return 0


def format_update_result(result: registry.UpdateResult) -> str:
    if result.ok:
        return f"updated {result.name} to ref {result.ref}"
    return f"failed to update {result.name} due to error: {result.error}"


def update_command(args: Any, conf: Config) -> int:
    """
    Execute `rtvm plugin update`.

    With --all every plugin is updated; one failing plugin does not stop the
    others, and the exit code is 1 if any of them failed.
    """
    if not args.all and not args.name:
        print("usage: rtvm plugin update {<name> [git-ref] | --all}", file=sys.stderr)
        return 1

    if args.all:
        results = registry.update_all(conf, max_workers=args.jobs)
    else:
        try:
            ref = registry.update(conf, args.name, args.ref)
        except Exception as e:
            results = [registry.UpdateResult(name=args.name, error=e)]
        else:
            results = [registry.UpdateResult(name=args.name, ref=ref)]

    for result in results:
        stream = sys.stdout if result.ok else sys.stderr
        print(format_update_result(result), file=stream)

    return 0 if all(result.ok for result in results) else 1

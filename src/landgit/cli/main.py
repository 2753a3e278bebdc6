"""The git-remote-proland command.

git runs `git-remote-proland REMOTE URL` with GIT_DIR set whenever it
needs to talk to a `proland://` remote.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

from ..blobs import BlobDownloader, BundlerProvider, GatewayProvider, UploadChain
from ..bridge import Bridge
from ..cache import CacheStore, ensure_working_directory
from ..config import LEDGER_CACHE_DIR_NAME, RemoteConfig, load_config, working_dir_for_git_dir
from ..exceptions import Interceptor
from ..ledger import HTTPMetadataClient, RepositoryDescriptor, repo_id_from_url
from ..pricing import Pricing
from ..sync import SyncOrchestrator, UploadOutcome
from ..telemetry import Telemetry
from ..wallet import Wallet, is_owner_or_contributor, load_wallet, wallet_setup_hint
from .logger import configure_logging, verbose_from_env

log = logging.getLogger("landgit/main")

brief_help_message = "hint: git runs this command for proland:// remotes.\n"

long_help_message = r"""
Usage

    git-remote-proland REMOTE URL

Description

    Git remote helper for ledger-backed repositories. You do not run
    this command directly: git runs it when a remote URL starts with
    `proland://`, for example:

        git clone proland://6ace6247-d267-463d-b5bd-7e50d98c3693

    GIT_DIR must be set in the environment.

Configuration

    proland.keyfile         path to the wallet JWK (required to push)
    proland.thresholdCost   upload without asking below this cost
    proland.ledgerUrl       ledger gateway base URL
    proland.gatewayUrl      blob gateway base URL
    proland.bundlerUrl      bundling service base URL
    proland.freeTierBytes   bundler free-tier size in bytes
    proland.telemetryUrl    usage events endpoint (disabled if unset)

    Set LANDGIT_VERBOSE=1 for debug logging.

Exit Code

    Zero on success, `1` on failure, `2` on command line usage error.

"""


def build_store(working_dir: Path) -> CacheStore:
    """Return the CacheStore for a remote working directory."""
    return CacheStore(working_dir, reserved=frozenset({LEDGER_CACHE_DIR_NAME}))


def build_orchestrator(
    config: RemoteConfig,
    store: CacheStore,
    wallet: Wallet | None,
) -> SyncOrchestrator:
    """Wire the orchestrator with the HTTP collaborators described by config."""
    providers = [
        BundlerProvider(config.bundler_url, free_tier_bytes=config.free_tier_bytes, wallet=wallet),
        GatewayProvider(config.gateway_url, wallet=wallet),
    ]
    return SyncOrchestrator(
        store=store,
        ledger=HTTPMetadataClient(config.ledger_url, wallet=wallet),
        downloader=BlobDownloader(config.gateway_url),
        uploads=UploadChain(providers),
        pricing=Pricing(config.gateway_url),
        wallet=wallet,
        threshold_cost=config.threshold_cost,
    )


def _authorize_push(descriptor: RepositoryDescriptor, wallet: Wallet | None) -> bool:
    if wallet is None:
        log.error("you need an owner or contributor wallet to push to this repo")
        log.error("%s", wallet_setup_hint())
        return False
    if not is_owner_or_contributor(descriptor, wallet):
        log.error("you are not the repo owner nor a contributor: you can't push to this repo")
        return False
    return True


def _hint_fetch(descriptor: RepositoryDescriptor, wallet: Wallet | None) -> None:
    if wallet is None:
        log.info("if you need to push to the repo, set up the path to your wallet JWK")
        log.info("%s", wallet_setup_hint())
    elif not is_owner_or_contributor(descriptor, wallet):
        log.info("you are not the repo owner nor a contributor: you will not be able to push")


def stdio_bridge(**kwargs) -> Bridge:
    """Return a Bridge talking to git over the process standard streams."""
    # The unbuffered stdin lets the input pump block on a read without
    # holding the lock of sys.stdin.buffer, which git keeps open after a fetch.
    return Bridge(sys.stdin.buffer.raw, sys.stdout.buffer, sys.stderr.buffer, **kwargs)


def serve(url: str, git_dir: str) -> int:
    """Sync the cache for url and run the protocol bridge on stdio."""
    config = load_config()
    store = build_store(ensure_working_directory(working_dir_for_git_dir(git_dir)))
    wallet = load_wallet(config.keyfile)
    orchestrator = build_orchestrator(config, store, wallet)
    telemetry = Telemetry(config.telemetry_url, wallet=wallet)

    descriptor = orchestrator.download_repo(repo_id_from_url(url))
    _hint_fetch(descriptor, wallet)
    bare_path = store.entry_path(descriptor.snapshot_id)

    def on_push() -> UploadOutcome:
        outcome = orchestrator.upload_repo(bare_path, descriptor)
        if not outcome.cancelled:
            event = {"repo_name": descriptor.name, "repo_id": descriptor.id}
            if outcome.success:
                event["result"] = "SUCCESS"
            else:
                event["result"] = "FAILED"
                event["error"] = str(outcome.error)
            telemetry.repository_updated(event)
        return outcome

    def on_fetch() -> None:
        telemetry.repository_cloned(
            {"repo_name": descriptor.name, "repo_id": descriptor.id, "result": "SUCCESS"}
        )

    bridge = stdio_bridge(
        bare_path=bare_path,
        on_push=on_push,
        on_fetch=on_fetch,
        authorize_push=lambda: _authorize_push(descriptor, wallet),
    )
    return bridge.run()


def run(args: list[str]) -> int:
    # handle request for help
    if any(arg in ("-h", "--help") for arg in args):
        sys.stdout.write(long_help_message)
        return 0

    if len(args) < 2:
        sys.stderr.write("error: expected REMOTE and URL arguments\n")
        sys.stderr.write(brief_help_message)
        return 2

    git_dir = os.environ.get("GIT_DIR")
    if not git_dir:
        sys.stderr.write("error: missing GIT_DIR environment variable\n")
        sys.stderr.write(brief_help_message)
        return 2

    configure_logging(verbose_from_env())

    code = 0
    interceptor = Interceptor()
    with interceptor:
        code = serve(args[1], git_dir)
    if interceptor.failed:
        return interceptor.exitcode()
    return code


def main() -> None:
    sys.exit(run(sys.argv[1:]))

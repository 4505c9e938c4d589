"""
Command line entry points.

    churn-test   [duration_minutes] [churn_rate_percent]
    churn-verify [address_file] [duration_minutes] [churn_rate_percent]
    upgrade-test [--target-version V]

Exit codes:
    0  success (churn-test always, unless misconfigured)
    1  churn-verify had failed verification cycles / upgrade-test timed out
    2  configuration error (raised before any remote action)
"""

import argparse
import asyncio
import random
import signal
from collections.abc import Sequence
from pathlib import Path

from pydantic import ValidationError

from fleet_harness import __version__
from fleet_harness.churn import ChurnController
from fleet_harness.config import Settings, get_settings
from fleet_harness.errors import ConfigError, RolloutTimeout
from fleet_harness.fleet import FleetTopology, load_topology
from fleet_harness.interfaces import VerificationProbe
from fleet_harness.lifecycle import NodeLifecycleController
from fleet_harness.logging import get_in_memory_logs, get_logger, set_run_id, setup_logging
from fleet_harness.remote import CommandSet, SSHExecutor, SSHNodeProbe
from fleet_harness.rollout import (
    GitHubReleaseSource,
    RolloutMonitor,
    RolloutPlan,
    UpgradeTest,
)
from fleet_harness.runtime import RunLedger, Ticker, generate_run_id
from fleet_harness.scheduler import ChurnPlan, CycleScheduler
from fleet_harness.verification import (
    CommandVerificationProbe,
    HttpVerificationProbe,
    VerificationRunner,
    load_corpus,
)

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2

DEFAULT_ADDRESS_FILE = "chunk-addresses-latest.txt"


def _add_common_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--topology", type=Path, help="Topology JSON file")
    parser.add_argument("--log-dir", type=Path, help="Directory for run logs")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    parser.add_argument("--json-logs", action="store_true", help="JSON console logs")
    parser.add_argument("--seed", type=int, help="Random seed for reproducible selection")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")


def build_churn_test_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="churn-test",
        description="Randomly stop and restart nodes while tracking fleet health",
    )
    parser.add_argument("duration_minutes", nargs="?", type=float, default=30.0)
    parser.add_argument("churn_rate_percent", nargs="?", type=float, default=10.0)
    _add_common_args(parser)
    return parser


def build_churn_verify_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="churn-verify",
        description="Churn nodes while continuously verifying data availability",
    )
    parser.add_argument(
        "address_file",
        nargs="?",
        type=Path,
        help=f"Recorded chunk addresses (default: <log_dir>/{DEFAULT_ADDRESS_FILE})",
    )
    parser.add_argument("duration_minutes", nargs="?", type=float, default=30.0)
    parser.add_argument("churn_rate_percent", nargs="?", type=float, default=10.0)
    parser.add_argument("--sample-size", type=int, help="Addresses verified per pass")
    _add_common_args(parser)
    return parser


def build_upgrade_test_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="upgrade-test",
        description="Watch the fleet auto-upgrade to the latest release",
    )
    parser.add_argument("--target-version", help="Version to wait for (skips release lookup)")
    parser.add_argument("--max-wait", type=float, help="Maximum wait in seconds")
    parser.add_argument("--poll-interval", type=float, help="Seconds between polls")
    _add_common_args(parser)
    return parser


def load_cli_settings(args: argparse.Namespace) -> Settings:
    """Settings from the environment with command line overrides applied."""
    try:
        settings = get_settings()
    except ValidationError as e:
        raise ConfigError(f"Invalid settings: {e}") from e

    overrides: dict[str, object] = {}
    if args.topology is not None:
        overrides["topology_file"] = args.topology
    if args.log_dir is not None:
        overrides["log_dir"] = args.log_dir
    if args.log_level is not None:
        overrides["log_level"] = args.log_level
    return settings.model_copy(update=overrides) if overrides else settings


class HarnessContext:
    """Objects shared by every command, built from settings."""

    def __init__(self, settings: Settings, command: str, json_logs: bool = False):
        self.settings = settings
        try:
            self.commands = CommandSet(
                service_template=settings.node_service_template,
                node_binary=settings.node_binary,
                restore_command=settings.restore_command,
            )
        except ValueError as e:
            raise ConfigError(str(e)) from e
        self.ticker = Ticker()
        self.ledger = RunLedger(
            settings.log_dir,
            command,
            config=settings.get_redacted_config(),
            run_id=generate_run_id(command),
        )
        setup_logging(settings.log_level, json_output=json_logs, log_file=self.ledger.log_path)
        set_run_id(self.ledger.run_id)

        self.executor = SSHExecutor(
            user=settings.ssh_user,
            connect_timeout=settings.ssh_connect_timeout_s,
            default_timeout=settings.command_timeout_s,
            identity_file=settings.ssh_identity_file,
            ticker=self.ticker,
        )
        self._topology: FleetTopology | None = None

    @property
    def topology(self) -> FleetTopology:
        if self._topology is None:
            self._topology = load_topology(self.settings.topology_file)
        return self._topology

    def lifecycle(self) -> NodeLifecycleController:
        return NodeLifecycleController(
            self.topology,
            self.executor,
            self.commands,
            command_timeout=self.settings.command_timeout_s,
            restore_timeout=self.settings.restore_timeout_s,
        )

    def finish(self, outcome: str, exit_code: int) -> int:
        warnings = [log["message"] for log in get_in_memory_logs("WARNING", limit=20)]
        self.ledger.finalize(
            outcome,
            exit_code,
            config=self.settings.get_redacted_config(),
            warnings=warnings,
        )
        logger.info("Log file: %s", self.ledger.log_path)
        return exit_code


def install_signal_handlers(ticker: Ticker) -> None:
    """
    First SIGINT/SIGTERM cancels the run (the fleet is still restored);
    a second one falls through to the default handler.
    """
    loop = asyncio.get_running_loop()

    def _handler(sig: signal.Signals) -> None:
        ticker.cancel(f"received {sig.name}")
        loop.remove_signal_handler(sig)

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _handler, sig)
        except NotImplementedError:
            logger.debug("Signal handlers not supported on this platform")


def build_verification_probe(settings: Settings) -> VerificationProbe:
    if settings.verify_command:
        return CommandVerificationProbe(
            settings.verify_command,
            timeout=settings.verify_timeout_s,
            bootstrap_peers=settings.bootstrap_peer_list,
        )
    if settings.verify_gateway_url:
        return HttpVerificationProbe(settings.verify_gateway_url, timeout=settings.verify_timeout_s)
    raise ConfigError(
        "No verification method configured: set FLEET_VERIFY_COMMAND or FLEET_VERIFY_GATEWAY_URL"
    )


def build_churn_plan(
    settings: Settings,
    duration_minutes: float,
    churn_rate: float,
    sample_size: int | None = None,
) -> ChurnPlan:
    if duration_minutes < 0:
        raise ConfigError(f"duration_minutes must not be negative, got {duration_minutes}")
    try:
        return ChurnPlan(
            duration_s=duration_minutes * 60,
            churn_rate=churn_rate,
            settle_interval_s=settings.verify_interval_s,
            cycle_interval_s=settings.churn_interval_s,
            sample_size=sample_size if sample_size is not None else settings.verify_sample_size,
            restore_settle_s=settings.restore_settle_s,
        )
    except ValidationError as e:
        raise ConfigError(f"Invalid churn parameters: {e}") from e


async def _run_churn(
    ctx: HarnessContext,
    args: argparse.Namespace,
    address_file: Path | None,
) -> int:
    settings = ctx.settings
    plan = build_churn_plan(
        settings,
        args.duration_minutes,
        args.churn_rate_percent,
        getattr(args, "sample_size", None),
    )
    topology = ctx.topology
    rng = random.Random(args.seed)

    corpus = None
    verifier = None
    probe = None
    if address_file is not None:
        logger.info("Addresses file: %s", address_file)
        corpus = load_corpus(address_file)
        probe = build_verification_probe(settings)
        verifier = VerificationRunner(probe, rng=rng, ticker=ctx.ticker)

    logger.info("Fleet: %s", topology)
    install_signal_handlers(ctx.ticker)

    lifecycle = ctx.lifecycle()
    churn = ChurnController(
        lifecycle,
        ctx.ticker,
        rng=rng,
        settle_s=settings.churn_settle_s,
        ledger=ctx.ledger,
    )
    scheduler = CycleScheduler(
        lifecycle,
        churn,
        ctx.ticker,
        verifier=verifier,
        ledger=ctx.ledger,
        min_healthy_percent=settings.min_healthy_percent,
    )
    try:
        summary = await scheduler.run(plan, corpus)
    finally:
        if probe is not None:
            await probe.close()

    if corpus is None:
        return ctx.finish("COMPLETE", EXIT_OK)
    if summary.succeeded:
        return ctx.finish("SUCCESS", EXIT_OK)
    return ctx.finish("FAILURE", EXIT_FAILED)


async def _run_upgrade(ctx: HarnessContext, args: argparse.Namespace) -> int:
    settings = ctx.settings
    try:
        plan = RolloutPlan(
            max_wait_s=args.max_wait if args.max_wait is not None else settings.upgrade_max_wait_s,
            poll_interval_s=(
                args.poll_interval
                if args.poll_interval is not None
                else settings.upgrade_poll_interval_s
            ),
        )
    except ValidationError as e:
        raise ConfigError(f"Invalid rollout parameters: {e}") from e

    release_source = None
    if args.target_version is None:
        if not settings.release_repo:
            raise ConfigError("Set FLEET_RELEASE_REPO or pass --target-version")
        try:
            release_source = GitHubReleaseSource(
                settings.release_repo,
                api_url=settings.github_api_url,
                token=settings.github_token,
            )
        except ValueError as e:
            raise ConfigError(str(e)) from e

    topology = ctx.topology
    logger.info("Testing auto-upgrade functionality across %d-node fleet", topology.total_nodes())
    install_signal_handlers(ctx.ticker)

    lifecycle = ctx.lifecycle()
    probe = SSHNodeProbe(ctx.executor, ctx.commands, timeout=settings.command_timeout_s)
    monitor = RolloutMonitor(lifecycle, probe, ctx.ticker, ledger=ctx.ledger)
    test = UpgradeTest(
        topology,
        lifecycle,
        probe,
        monitor,
        plan,
        release_source=release_source,
        target_version=args.target_version,
    )
    try:
        report = await test.run()
    finally:
        if release_source is not None:
            await release_source.close()

    try:
        report.status.raise_for_outcome()
    except RolloutTimeout as e:
        logger.error("RESULT: FAILURE - %s", e)
        return ctx.finish(report.status.outcome.value, EXIT_FAILED)

    logger.info("RESULT: SUCCESS - fleet on %s", report.target_version)
    return ctx.finish(report.status.outcome.value, EXIT_OK)


def _main(command: str, args: argparse.Namespace, runner) -> int:
    try:
        settings = load_cli_settings(args)
        ctx = HarnessContext(settings, command, json_logs=args.json_logs)
    except ConfigError as e:
        setup_logging("INFO")
        logger.error("Configuration error: %s", e)
        return EXIT_CONFIG

    logger.info("=== %s ===", command)
    try:
        return asyncio.run(runner(ctx))
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return ctx.finish("CONFIG_ERROR", EXIT_CONFIG)


def churn_test_main(argv: Sequence[str] | None = None) -> int:
    """Entry point for `churn-test`: health-only churn run."""
    args = build_churn_test_parser().parse_args(argv)
    return _main("churn-test", args, lambda ctx: _run_churn(ctx, args, None))


def churn_verify_main(argv: Sequence[str] | None = None) -> int:
    """Entry point for `churn-verify`: churn with data verification."""
    args = build_churn_verify_parser().parse_args(argv)

    def runner(ctx: HarnessContext):
        address_file = args.address_file or ctx.settings.log_dir / DEFAULT_ADDRESS_FILE
        return _run_churn(ctx, args, address_file)

    return _main("churn-verify", args, runner)


def upgrade_test_main(argv: Sequence[str] | None = None) -> int:
    """Entry point for `upgrade-test`."""
    args = build_upgrade_test_parser().parse_args(argv)
    return _main("upgrade-test", args, lambda ctx: _run_upgrade(ctx, args))

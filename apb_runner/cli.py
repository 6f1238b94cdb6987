"""Command line interface for the APB runner."""

import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

import structlog
import typer
import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from .cluster.kubectl_client import KubectlClient
from .cluster.models import KubectlError
from .config import RunnerConfig, build_orchestrator, configure_logging
from .executor.models import ActionOutcome
from .models import ServiceInstance

# Load environment variables
load_dotenv()

logger = structlog.get_logger(__name__)


def load_instance(path: Path) -> ServiceInstance:
    """Load a service instance from a YAML or JSON file."""
    with path.open() as f:
        data = yaml.safe_load(f) or {}
    return ServiceInstance.model_validate(data)


def _load_config(development: bool) -> RunnerConfig:
    config = RunnerConfig()
    if development:
        config.development_mode = True
    configure_logging(config.development_mode)
    return config


def _report(outcome: ActionOutcome) -> None:
    typer.echo(json.dumps(outcome.to_dict(), indent=2))
    if not outcome.succeeded:
        sys.exit(1)


def _run(action: str, instance_file: Path, deadline: Optional[float], development: bool) -> None:
    config = _load_config(development)

    try:
        instance = load_instance(instance_file)
    except (OSError, yaml.YAMLError, ValidationError) as e:
        typer.echo(f"❌ Failed to load service instance: {e}", err=True)
        sys.exit(2)

    orchestrator = build_orchestrator(config)
    outcome = asyncio.run(
        orchestrator.run_action(
            action, instance, config.cluster_config(), deadline_seconds=deadline
        )
    )
    _report(outcome)


def create_app() -> typer.Typer:
    """Create the Typer CLI application."""
    app = typer.Typer(
        name="apb-runner",
        help="Run APB actions against service instances in sandboxed pods",
        add_completion=False,
    )

    @app.command()
    def run(
        action: str = typer.Argument(..., help="APB action to run"),
        instance_file: Path = typer.Option(
            ...,
            "--instance",
            "-i",
            help="Path to the service instance file (YAML or JSON)",
        ),
        deadline: Optional[float] = typer.Option(
            None,
            "--deadline",
            help="Maximum seconds to wait for the APB pod",
        ),
        development: bool = typer.Option(
            False,
            "--dev",
            help="Enable development mode",
        ),
    ) -> None:
        """Run an APB action against a service instance."""
        _run(action, instance_file, deadline, development)

    @app.command()
    def deprovision(
        instance_file: Path = typer.Option(
            ...,
            "--instance",
            "-i",
            help="Path to the service instance file (YAML or JSON)",
        ),
        deadline: Optional[float] = typer.Option(
            None,
            "--deadline",
            help="Maximum seconds to wait for the APB pod",
        ),
        development: bool = typer.Option(
            False,
            "--dev",
            help="Enable development mode",
        ),
    ) -> None:
        """Deprovision a service instance."""
        _run("deprovision", instance_file, deadline, development)

    @app.command("namespace-status")
    def namespace_status(
        name: str = typer.Argument(..., help="Namespace to inspect"),
        development: bool = typer.Option(
            False,
            "--dev",
            help="Enable development mode",
        ),
    ) -> None:
        """Show whether a namespace is present, terminating or gone."""
        config = _load_config(development)
        client = KubectlClient(
            cluster_config=config.cluster_config(),
            mock_commands=config.mock_kubectl_commands,
        )

        try:
            state = asyncio.run(client.get_namespace(name))
        except KubectlError as e:
            logger.error("Failed to look up namespace", namespace=name, error=str(e))
            typer.echo(f"❌ Failed to look up namespace {name}: {e.message}", err=True)
            sys.exit(1)

        typer.echo(
            json.dumps(
                {
                    "name": state.name,
                    "exists": state.exists,
                    "phase": state.phase.value,
                    "deleted": state.is_deleted,
                },
                indent=2,
            )
        )

    return app


def main() -> None:
    """Main entry point for the APB runner."""
    app = create_app()
    app()


if __name__ == "__main__":
    main()

"""Main CLI entry point."""

import json
import sys
from pathlib import Path
from typing import Optional, Tuple

import click
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, TaskProgressColumn
from rich.table import Table
from rich.panel import Panel

from site_deploy import __version__
from site_deploy.aws import ACMManager, CloudFrontManager, Route53Manager, S3BucketManager
from site_deploy.config.models import SiteConfig
from site_deploy.config.parser import Config, ConfigValidationError, DEFAULT_CONFIG_FILE
from site_deploy.orchestrator.orchestrator import DeploymentOrchestrator
from site_deploy.orchestrator.results import (
    DeploymentObserver,
    DeploymentResult,
    DestructionResult,
    DiscoveryResult,
    ExecutionStatus,
)
from site_deploy.state.file_state import FileChanges, get_incremental_stats
from site_deploy.state.manager import DEFAULT_ENVIRONMENT, StateManager
from site_deploy.state.models import DeploymentState
from site_deploy.state.resource_state import get_resource_identifiers, has_any_resource
from site_deploy.utils.aws_client import AWSClientManager
from site_deploy.utils.errors import DeploymentError, error_handler
from site_deploy.utils.logging import setup_logging, get_logger

console = Console()
logger = get_logger(__name__)

STATUS_STYLES = {
    ExecutionStatus.IN_PROGRESS: "[cyan]…[/cyan]",
    ExecutionStatus.SUCCESS: "[green]✓[/green]",
    ExecutionStatus.FAILED: "[red]✗[/red]",
    ExecutionStatus.SKIPPED: "[yellow]-[/yellow]",
}


@click.group()
@click.version_option(__version__, prog_name='site-deploy')
@click.option('--profile', help='AWS profile to use')
@click.option('--region', help='AWS region')
@click.option('--log-level', default='warning', type=click.Choice(['debug', 'info', 'warning', 'error']))
@click.option('--log-file', type=click.Path(dir_okay=False, path_type=Path),
              help='Write JSON-lines logs to this file')
@click.pass_context
def cli(ctx, profile, region, log_level, log_file):
    """Deploy static sites to S3 and CloudFront."""
    ctx.ensure_object(dict)
    ctx.obj['profile'] = profile
    ctx.obj['region'] = region
    ctx.obj['log_level'] = log_level

    setup_logging(log_level, log_file)


def load_config(config_path: str, environment: str) -> Tuple[Config, SiteConfig]:
    """Load and validate configuration file."""
    config = Config(config_path)
    try:
        return config, config.load(environment)
    except FileNotFoundError:
        console.print(f"[red]Error:[/red] Configuration file not found: {config_path}")
        sys.exit(1)
    except ConfigValidationError as e:
        console.print("[red]Configuration validation failed:[/red]\n")
        console.print(str(e))
        sys.exit(1)


def create_state_manager(config: Config, site_config: SiteConfig, environment: str) -> StateManager:
    return StateManager(config.base_dir, site_config.state_dir, environment)


def create_orchestrator(
    config: Config,
    site_config: SiteConfig,
    environment: str,
    observer: Optional[DeploymentObserver] = None,
    profile: Optional[str] = None,
    region: Optional[str] = None,
    validate_credentials: bool = True
) -> DeploymentOrchestrator:
    """Create deployment orchestrator with all dependencies."""
    if region:
        site_config = site_config.model_copy(update={'region': region})

    client_manager = AWSClientManager(
        profile=profile or site_config.profile,
        region=site_config.region
    )
    if validate_credentials:
        client_manager.validate_credentials()

    cloudfront = acm = route53 = None
    if site_config.cloudfront.enabled:
        cloudfront = CloudFrontManager(client_manager)
        if site_config.cloudfront.custom_domain:
            route53 = Route53Manager(client_manager)
            acm = ACMManager(client_manager)

    return DeploymentOrchestrator(
        config=site_config,
        state_manager=create_state_manager(config, site_config, environment),
        s3=S3BucketManager(client_manager, region=site_config.region),
        cloudfront=cloudfront,
        acm=acm,
        route53=route53,
        observer=observer,
        base_dir=config.base_dir
    )


def create_full_orchestrator(
    config: Config,
    site_config: SiteConfig,
    environment: str,
    observer: DeploymentObserver,
    profile: Optional[str] = None,
    region: Optional[str] = None
) -> DeploymentOrchestrator:
    """Create an orchestrator wired with every resource manager.

    Teardown works from recorded state and recovery from tagged resources,
    so all managers are wired even when the current configuration no longer
    enables CloudFront.
    """
    client_manager = AWSClientManager(
        profile=profile or site_config.profile,
        region=region or site_config.region
    )
    client_manager.validate_credentials()

    return DeploymentOrchestrator(
        config=site_config,
        state_manager=create_state_manager(config, site_config, environment),
        s3=S3BucketManager(client_manager, region=region or site_config.region),
        cloudfront=CloudFrontManager(client_manager),
        acm=ACMManager(client_manager),
        route53=Route53Manager(client_manager),
        observer=observer,
        base_dir=config.base_dir
    )


class RichObserver(DeploymentObserver):
    """Observer that displays progress using Rich."""

    def __init__(self, progress: Progress):
        self.progress = progress
        self.upload_task = None

    def on_resource(self, resource_id: str, status: ExecutionStatus, message: Optional[str]) -> None:
        if status == ExecutionStatus.IN_PROGRESS:
            return
        suffix = f" ({message})" if message else ""
        self.progress.console.print(f"  {STATUS_STYLES[status]} {resource_id}{suffix}")

    def on_changes(self, changes: FileChanges) -> None:
        stats = get_incremental_stats(changes)
        self.progress.console.print(
            f"  Files: [green]{stats.needs_upload}[/green] to upload, "
            f"{stats.can_skip} unchanged, [red]{stats.needs_delete}[/red] to delete"
        )

    def on_file_uploaded(self, completed: int, total: int, result) -> None:
        if self.upload_task is None:
            self.upload_task = self.progress.add_task("[cyan]Uploading", total=total)
        mark = "[green]✓[/green]" if result.is_success() else "[red]✗[/red]"
        self.progress.update(
            self.upload_task,
            completed=completed,
            description=f"{mark} {result.key}"
        )

    def on_retry(self, operation: str, attempt: int, error: Exception, delay: float) -> None:
        self.progress.console.print(
            f"  [yellow]Retrying {operation} (attempt {attempt}) in {delay:.1f}s:[/yellow] {error}"
        )


def _progress() -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console
    )


def print_deployment_result(result: DeploymentResult) -> None:
    """Render the outcome of a deploy run."""
    console.print()
    if result.no_changes:
        console.print("[green]✓ No changes to deploy[/green]")
        return

    title = "Dry Run" if result.dry_run else "Deployment"
    lines = [
        f"Uploaded: {len(result.uploaded_files)}",
        f"Unchanged: {len(result.skipped_files)}",
        f"Deleted: {len(result.deleted_files)}",
    ]
    if result.failed_uploads:
        lines.append(f"Failed: {len(result.failed_uploads)}")
    if result.invalidation_id:
        lines.append(f"Invalidation: {result.invalidation_id}")

    resources = result.state.resources if result.state else None
    if resources and resources.s3 and resources.s3.website_url:
        lines.append(f"Website: {resources.s3.website_url}")
    if resources and resources.cloudfront:
        lines.append(f"CloudFront: {resources.cloudfront.distribution_url}")
    lines.append(f"Duration: {result.duration:.2f}s")

    if result.is_success():
        console.print(Panel.fit(
            f"[green]✓ {title} successful[/green]\n\n" + "\n".join(lines),
            title=f"{title} Complete",
            border_style="green"
        ))
        return

    console.print(Panel.fit(
        f"[red]✗ {title} failed[/red]\n\n" + "\n".join(lines),
        title=f"{title} Failed",
        border_style="red"
    ))
    if result.error:
        console.print(f"\n{result.error.to_user_message()}")
    if result.failed_uploads:
        console.print("\n[bold]Failed Uploads:[/bold]")
        for upload in result.failed_uploads:
            console.print(f"  [red]✗[/red] {upload.key}: {upload.error}")
    if result.delete_error:
        console.print(f"\n[red]Failed to delete removed files:[/red] {result.delete_error.message}")


def print_destruction_result(result: DestructionResult) -> None:
    """Render the outcome of a teardown run."""
    console.print()
    lines = [
        f"Removed: {', '.join(result.removed) or 'none'}",
        f"Kept: {', '.join(result.kept) or 'none'}",
        f"Duration: {result.duration:.2f}s",
    ]

    if result.is_success():
        if result.state_deleted:
            lines.append("State file deleted")
        console.print(Panel.fit(
            "[green]✓ Removal successful[/green]\n\n" + "\n".join(lines),
            title="Removal Complete",
            border_style="green"
        ))
        return

    console.print(Panel.fit(
        f"[red]✗ Removal failed at {result.failed_resource}[/red]\n\n" + "\n".join(lines),
        title="Removal Failed",
        border_style="red"
    ))
    if result.error:
        console.print(f"\n{result.error.to_user_message()}")
    console.print("\n[yellow]Remaining resources are still recorded; re-run remove to resume[/yellow]")


@cli.command()
@click.option('--env', default=DEFAULT_ENVIRONMENT, show_default=True, help='Environment name')
@click.option('--config', default=DEFAULT_CONFIG_FILE, show_default=True, help='Path to configuration file')
@click.option('--dry-run', is_flag=True, help='Show what would change without touching AWS')
@click.option('--force', is_flag=True, help='Upload every file, even unchanged ones')
@click.option('--no-cloudfront', is_flag=True, help='Skip CloudFront, ACM and Route53')
@click.option('--no-invalidate', is_flag=True, help='Skip CloudFront cache invalidation')
@click.pass_context
def deploy(ctx, env, config, dry_run, force, no_cloudfront, no_invalidate):
    """Deploy the built site."""
    cfg, site_config = load_config(config, env)

    console.print(Panel.fit(
        f"[bold]Deploying {site_config.app} to {env}[/bold]\n"
        f"Bucket: {site_config.s3.bucket_name}\n"
        f"Build directory: {site_config.s3.build_dir}\n"
        f"CloudFront: {'enabled' if site_config.cloudfront.enabled and not no_cloudfront else 'disabled'}\n"
        f"Mode: {'dry run' if dry_run else 'force' if force else 'incremental'}",
        title="Deployment Configuration",
        border_style="cyan"
    ))

    try:
        with _progress() as progress:
            orchestrator = create_orchestrator(
                cfg,
                site_config,
                env,
                observer=RichObserver(progress),
                profile=ctx.obj.get('profile'),
                region=ctx.obj.get('region'),
                validate_credentials=not dry_run
            )
            result = orchestrator.deploy(
                dry_run=dry_run,
                force=force,
                skip_cloudfront=no_cloudfront,
                invalidate=not no_invalidate
            )
    except Exception as e:
        error = error_handler.handle_exception(e)
        error_handler.log_error(error)
        console.print(f"[red]Deployment error:[/red] {error.to_user_message()}")
        sys.exit(1)

    print_deployment_result(result)
    if result.is_failed():
        sys.exit(1)


@cli.command()
@click.option('--env', default=DEFAULT_ENVIRONMENT, show_default=True, help='Environment name')
@click.option('--config', default=DEFAULT_CONFIG_FILE, show_default=True, help='Path to configuration file')
@click.option('--yes', '-y', is_flag=True, help='Skip confirmation prompt')
@click.option('--keep-bucket', is_flag=True, help='Leave the S3 bucket and its objects')
@click.option('--keep-distribution', is_flag=True, help='Leave the CloudFront distribution')
@click.option('--keep-certificate', is_flag=True, help='Leave the ACM certificate')
@click.option('--keep-hosted-zone', is_flag=True, help='Leave the Route53 hosted zone and records')
@click.pass_context
def remove(ctx, env, config, yes, keep_bucket, keep_distribution, keep_certificate, keep_hosted_zone):
    """Remove deployed resources."""
    cfg, site_config = load_config(config, env)
    state_manager = create_state_manager(cfg, site_config, env)

    try:
        state = state_manager.load()
    except DeploymentError as e:
        console.print(f"[red]State error:[/red] {e.to_user_message()}")
        sys.exit(1)

    if state is None or not has_any_resource(state):
        console.print(f"[yellow]No deployment found for environment:[/yellow] {env}")
        return

    console.print(Panel.fit(
        f"[bold red]⚠ WARNING: This will delete resources[/bold red]\n\n"
        f"Environment: {env}\n"
        f"App: {state.app}\n\n"
        + "\n".join(_resource_lines(state)),
        title="Removal Plan",
        border_style="red"
    ))

    if not yes:
        if not click.confirm("Are you sure you want to remove these resources?", default=False):
            console.print("[yellow]Removal cancelled[/yellow]")
            return

    try:
        with _progress() as progress:
            orchestrator = create_full_orchestrator(
                cfg,
                site_config,
                env,
                observer=RichObserver(progress),
                profile=ctx.obj.get('profile'),
                region=ctx.obj.get('region')
            )
            result = orchestrator.remove(
                keep_bucket=keep_bucket,
                keep_distribution=keep_distribution,
                keep_certificate=keep_certificate,
                keep_hosted_zone=keep_hosted_zone
            )
    except Exception as e:
        error = error_handler.handle_exception(e)
        error_handler.log_error(error)
        console.print(f"[red]Removal error:[/red] {error.to_user_message()}")
        sys.exit(1)

    print_destruction_result(result)
    if result.is_failed():
        sys.exit(1)


def _resource_lines(state: DeploymentState):
    resources = state.resources
    if resources.cloudfront:
        yield f"CloudFront: {resources.cloudfront.distribution_id}"
    if resources.acm:
        yield f"Certificate: {resources.acm.domain_name}"
    if resources.s3:
        yield f"S3 bucket: {resources.s3.bucket_name}"
    if resources.route53:
        kind = "hosted zone" if resources.route53.created_zone else "DNS records in"
        yield f"Route53 {kind}: {resources.route53.domain}"


def _resource_table(state: DeploymentState) -> Table:
    table = Table(title=f"{state.app} ({state.environment})")
    table.add_column("Resource", style="cyan")
    table.add_column("Identifier")
    table.add_column("Details", style="dim")

    resources = state.resources
    if resources.s3:
        table.add_row("S3", resources.s3.bucket_name, resources.s3.website_url or resources.s3.region)
    if resources.cloudfront:
        table.add_row(
            "CloudFront",
            resources.cloudfront.distribution_id,
            ", ".join(resources.cloudfront.aliases or []) or resources.cloudfront.distribution_url
        )
    if resources.acm:
        table.add_row("ACM", resources.acm.certificate_arn, resources.acm.status or "")
    if resources.route53:
        table.add_row(
            "Route53",
            resources.route53.hosted_zone_id,
            f"{resources.route53.domain} ({len(resources.route53.records)} records)"
        )
    return table


@cli.command()
@click.option('--env', default=DEFAULT_ENVIRONMENT, show_default=True, help='Environment name')
@click.option('--config', default=DEFAULT_CONFIG_FILE, show_default=True, help='Path to configuration file')
@click.option('--json', 'as_json', is_flag=True, help='Print the raw state as JSON')
@click.option('--all', 'all_envs', is_flag=True, help='List every environment with recorded state')
def status(env, config, as_json, all_envs):
    """Show the recorded deployment state."""
    cfg, site_config = load_config(config, env)
    state_manager = create_state_manager(cfg, site_config, env)

    try:
        if all_envs:
            _print_environments(cfg, site_config, state_manager, as_json)
            return

        state = state_manager.load()
    except DeploymentError as e:
        console.print(f"[red]State error:[/red] {e.to_user_message()}")
        sys.exit(1)

    if state is None:
        if as_json:
            click.echo("null")
        else:
            console.print(f"[yellow]No deployment found for environment:[/yellow] {env}")
        return

    if as_json:
        click.echo(json.dumps(state.to_dict(), indent=2))
        return

    if has_any_resource(state):
        console.print(_resource_table(state))
    else:
        console.print("No resources deployed")
    console.print(f"Files tracked: {len(state.files)}")
    console.print(f"Last deployed: {state.last_deployed.isoformat()}")


def _print_environments(
    cfg: Config, site_config: SiteConfig, state_manager: StateManager, as_json: bool
) -> None:
    summary = {}
    for environment in state_manager.list_environments():
        state = create_state_manager(cfg, site_config, environment).load()
        if state is not None:
            summary[environment] = state

    if as_json:
        click.echo(json.dumps({name: state.to_dict() for name, state in summary.items()}, indent=2))
        return

    if not summary:
        console.print("[yellow]No deployments found[/yellow]")
        return

    table = Table(title="Environments")
    table.add_column("Environment", style="cyan")
    table.add_column("Resources")
    table.add_column("Files", justify="right")
    table.add_column("Last deployed")
    for name, state in summary.items():
        kinds = [
            kind for kind in ("s3", "cloudfront", "acm", "route53")
            if getattr(state.resources, kind) is not None
        ]
        table.add_row(name, ", ".join(kinds) or "-", str(len(state.files)), state.last_deployed.isoformat())
    console.print(table)


def _discovery_table(discovered: DiscoveryResult, title: str) -> Table:
    table = Table(title=title)
    table.add_column("Resource", style="cyan")
    table.add_column("Identifier")
    table.add_column("App")
    table.add_column("Environment")
    table.add_column("Details", style="dim")

    for item in discovered.s3:
        table.add_row("S3", item.resource.bucket_name, item.app or "-", item.environment or "-",
                      item.resource.region)
    for item in discovered.cloudfront:
        table.add_row("CloudFront", item.resource.distribution_id, item.app or "-",
                      item.environment or "-", item.resource.domain_name)
    for item in discovered.acm:
        table.add_row("ACM", item.resource.domain_name, item.app or "-", item.environment or "-",
                      item.resource.status or "")
    for item in discovered.route53:
        table.add_row("Route53", item.resource.hosted_zone_id, item.app or "-",
                      item.environment or "-", item.resource.domain)
    return table


@cli.command()
@click.option('--env', default=DEFAULT_ENVIRONMENT, show_default=True, help='Environment name')
@click.option('--config', default=DEFAULT_CONFIG_FILE, show_default=True, help='Path to configuration file')
@click.option('--force', is_flag=True, help='Overwrite an existing state file')
@click.option('--all', 'all_apps', is_flag=True, help='List every resource managed by site-deploy')
@click.option('--yes', '-y', is_flag=True, help='Skip confirmation prompt')
@click.pass_context
def recover(ctx, env, config, force, all_apps, yes):
    """Rebuild lost deployment state from tagged AWS resources."""
    cfg, site_config = load_config(config, env)

    try:
        orchestrator = create_full_orchestrator(
            cfg,
            site_config,
            env,
            observer=DeploymentObserver(),
            profile=ctx.obj.get('profile'),
            region=ctx.obj.get('region')
        )
        discovered = orchestrator.discover(all_apps=all_apps)
    except Exception as e:
        error = error_handler.handle_exception(e)
        error_handler.log_error(error)
        console.print(f"[red]Discovery error:[/red] {error.to_user_message()}")
        sys.exit(1)

    if all_apps:
        if discovered.has_resources:
            console.print(_discovery_table(discovered, "All managed resources"))
        else:
            console.print("[yellow]No site-deploy managed resources found[/yellow]")
        return

    if not discovered.has_resources:
        console.print(
            f"[yellow]No managed resources found for app {site_config.app} "
            f"in environment {env}[/yellow]"
        )
        console.print("Use --all to list every managed resource")
        return

    console.print(_discovery_table(discovered, f"{site_config.app} ({env})"))

    if orchestrator.state_manager.exists() and not force:
        console.print(f"[yellow]State file already exists for environment:[/yellow] {env}")
        console.print("Use --force to overwrite the existing state file")
        return

    if not yes and not force:
        if not click.confirm("Recover state from these resources?", default=True):
            console.print("[yellow]Recovery cancelled[/yellow]")
            return

    try:
        state = orchestrator.recover(discovered, force=force)
    except Exception as e:
        error = error_handler.handle_exception(e)
        error_handler.log_error(error)
        console.print(f"[red]Recovery error:[/red] {error.to_user_message()}")
        sys.exit(1)

    console.print(Panel.fit(
        f"[green]✓ State recovered[/green]\n\n"
        f"State file: {orchestrator.state_manager.state_path}\n"
        f"Resources: {', '.join(get_resource_identifiers(state))}\n"
        "The next deploy uploads every file",
        title="Recovery Complete",
        border_style="green"
    ))


def main():
    cli(obj={})


if __name__ == '__main__':
    main()

"""Deployment orchestrator: incremental deploy and ordered teardown."""

import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar, Union

from site_deploy.aws.base import (
    CdnManager,
    CertificateManager,
    DistributionInfo,
    DistributionSettings,
    DnsManager,
    HostedZoneInfo,
    ObjectStoreManager,
    ResourceOutcome,
    managed_tags,
)
from site_deploy.config.models import SiteConfig
from site_deploy.deployer.file_scanner import FileInfo, scan_files
from site_deploy.deployer.uploader import UploadResult, upload_files
from site_deploy.state.file_state import (
    ChangeStatus,
    compare_file_hashes,
    get_files_to_upload,
    merge_file_hashes,
    remove_deleted_files,
    update_file_hashes,
)
from site_deploy.state.manager import StateManager
from site_deploy.state.models import (
    ACMResourceState,
    CloudFrontResourceState,
    DeploymentState,
    DnsRecord,
    Route53ResourceState,
    S3ResourceState,
)
from site_deploy.state.resource_state import (
    ResourceKind,
    get_resource,
    has_any_resource,
    remove_resource,
    update_acm_resource,
    update_cloudfront_resource,
    update_route53_resource,
    update_s3_resource,
    validate_resource_state,
)
from site_deploy.utils.errors import (
    ErrorContext,
    PreconditionError,
    ProvisioningError,
    error_handler,
    is_not_found_error,
)
from site_deploy.utils.logging import LogContext, get_logger
from site_deploy.utils.retry import RetryStrategy, retryable_errors_for

from .results import (
    DeploymentObserver,
    DeploymentResult,
    DestructionResult,
    DiscoveryResult,
    ExecutionStatus,
    ResourceExecutionResult,
    RunResult,
    utcnow,
)

logger = get_logger(__name__)

T = TypeVar('T')

# Above this many changed paths a single wildcard invalidation is used
MAX_INVALIDATION_PATHS = 15

# Teardown order: the distribution references the certificate and the bucket
TEARDOWN_ORDER = (
    ResourceKind.CLOUDFRONT,
    ResourceKind.ACM,
    ResourceKind.S3,
    ResourceKind.ROUTE53,
)


def invalidation_paths(keys: List[str], index_document: str = "index.html") -> List[str]:
    """Build CloudFront invalidation paths for changed object keys.

    Args:
        keys: Uploaded or deleted object keys
        index_document: Directory index name; its directory path is invalidated too

    Returns:
        Paths to invalidate, or ``["/*"]`` when there are too many
    """
    paths = []
    for key in keys:
        paths.append(f"/{key}")
        if key == index_document or key.endswith(f"/{index_document}"):
            paths.append(f"/{key[:-len(index_document)]}")

    paths = list(dict.fromkeys(paths))
    if len(paths) > MAX_INVALIDATION_PATHS:
        return ["/*"]
    return paths


class DeploymentOrchestrator:
    """Drives one environment's deploy and teardown runs.

    All remote calls go through the resource manager interfaces, each wrapped
    in a RetryStrategy configured with that service's retryable errors. State
    is persisted through the StateManager; nothing else touches the state file.
    """

    def __init__(
        self,
        config: SiteConfig,
        state_manager: StateManager,
        s3: ObjectStoreManager,
        cloudfront: Optional[CdnManager] = None,
        acm: Optional[CertificateManager] = None,
        route53: Optional[DnsManager] = None,
        observer: Optional[DeploymentObserver] = None,
        base_dir: Optional[Union[str, Path]] = None,
        max_workers: Optional[int] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        """Initialize deployment orchestrator.

        Args:
            config: Site configuration with environment overrides applied
            state_manager: State store for this environment
            s3: Object store manager
            cloudfront: CDN manager (required when CloudFront is enabled)
            acm: Certificate manager (required for custom domains without a certificate)
            route53: DNS manager (required for custom domains)
            observer: Progress observer
            base_dir: Directory the build directory resolves against
                (defaults to the state manager's base directory)
            max_workers: Upload pool width (defaults to ``s3.concurrency``)
            sleep: Function used for retry backoff waits
        """
        self.config = config
        self.state_manager = state_manager
        self.s3 = s3
        self.cloudfront = cloudfront
        self.acm = acm
        self.route53 = route53
        self.observer = observer or DeploymentObserver()
        self.base_dir = Path(base_dir) if base_dir is not None else state_manager.base_dir
        self.max_workers = max_workers or config.s3.concurrency
        self.sleep = sleep
        self.logger = get_logger(__name__)

    @property
    def environment(self) -> str:
        return self.state_manager.environment

    @property
    def build_dir(self) -> Path:
        return self.base_dir / self.config.s3.build_dir

    @property
    def tags(self) -> Dict[str, str]:
        return managed_tags(self.config.app, self.environment)

    # ------------------------------------------------------------------
    # Remote call plumbing
    # ------------------------------------------------------------------

    def _retry_strategy(self, service: str, operation: str, extra_errors: Tuple[str, ...] = ()) -> RetryStrategy:
        retry = self.config.retry
        return RetryStrategy(
            max_retries=retry.max_retries,
            initial_delay=retry.initial_delay,
            max_delay=retry.max_delay,
            backoff_multiplier=retry.backoff_multiplier,
            retryable_errors=retryable_errors_for(service) + list(extra_errors),
            on_retry=lambda attempt, error, delay: self.observer.on_retry(
                operation, attempt, error, delay
            ),
            sleep=self.sleep
        )

    def _call(self, service: str, operation: str, func: Callable[..., T], *args, **kwargs) -> T:
        """Invoke a manager method through the service's retry strategy."""
        return self._retry_strategy(service, operation).execute(func, *args, **kwargs)

    def _run_step(
        self,
        result: RunResult,
        resource_id: str,
        operation: str,
        func: Callable[[], Tuple[Any, Optional[ResourceOutcome]]],
    ) -> Any:
        """Run one resource step, recording its result and notifying the observer.

        Args:
            result: Run result receiving the step result
            resource_id: Resource kind being worked on
            operation: Description used in logs and errors
            func: Performs the step; returns (value, outcome)

        Returns:
            The value returned by func

        Raises:
            DeploymentError: The step failed; already recorded in result
        """
        step = ResourceExecutionResult(
            resource_id=resource_id,
            status=ExecutionStatus.IN_PROGRESS,
            start_time=utcnow()
        )
        result.resource_results[resource_id] = step
        self.observer.on_resource(resource_id, ExecutionStatus.IN_PROGRESS, operation)

        try:
            with LogContext(self.logger, resource_id=resource_id, operation=operation):
                value, outcome = func()
        except Exception as e:
            error = error_handler.handle_exception(
                e, ErrorContext(resource_id=resource_id, operation=operation)
            )
            step.status = ExecutionStatus.FAILED
            step.error = error
            step.end_time = utcnow()
            step.duration = (step.end_time - step.start_time).total_seconds()
            self.logger.error(f"{operation} failed: {error.message}")
            self.observer.on_resource(resource_id, ExecutionStatus.FAILED, error.message)
            if error is e:
                raise
            raise error from e

        step.status = ExecutionStatus.SUCCESS
        step.outcome = outcome
        step.message = outcome.value if outcome else None
        step.end_time = utcnow()
        step.duration = (step.end_time - step.start_time).total_seconds()
        self.observer.on_resource(resource_id, ExecutionStatus.SUCCESS, step.message)
        return value

    def _record_dry_run(self, result: RunResult, resource_id: str, message: str) -> None:
        result.resource_results[resource_id] = ResourceExecutionResult(
            resource_id=resource_id,
            status=ExecutionStatus.SUCCESS,
            message=f"dry run: {message}"
        )
        self.observer.on_resource(resource_id, ExecutionStatus.SUCCESS, f"dry run: {message}")

    # ------------------------------------------------------------------
    # Deploy
    # ------------------------------------------------------------------

    def scan(self) -> List[FileInfo]:
        """Scan the build directory.

        Raises:
            PreconditionError: If the build directory is missing or empty
        """
        try:
            files = scan_files(self.build_dir, self.config.s3.exclude)
        except FileNotFoundError as e:
            raise PreconditionError(
                str(e),
                suggestions=[
                    'Build the site before deploying',
                    'Check s3.build_dir in the configuration file',
                ]
            ) from e

        if not files:
            raise PreconditionError(f"No files to deploy in {self.build_dir}")
        return files

    def deploy(
        self,
        dry_run: bool = False,
        force: bool = False,
        skip_cloudfront: bool = False,
        invalidate: bool = True
    ) -> DeploymentResult:
        """Deploy the build directory incrementally.

        ``result.state`` tracks every resource as soon as it is provisioned,
        so a failing step still saves what earlier calls created and the
        next run reuses it.

        Args:
            dry_run: Classify files and report planned work without remote calls
                or state changes
            force: Upload every file regardless of stored hashes
            skip_cloudfront: Leave CloudFront, ACM and Route53 untouched
            invalidate: Invalidate changed paths in CloudFront

        Returns:
            DeploymentResult with per-file and per-resource outcomes

        Raises:
            PreconditionError: If there is nothing to deploy or the custom domain
                no longer matches the recorded certificate; raised before any
                remote call
            StateLoadError: If the stored state is corrupted
        """
        files = self.scan()
        state = self.state_manager.get_or_create(self.config.app)
        if self.config.cloudfront.enabled and not skip_cloudfront:
            self._check_certificate_domain(state)

        changes = compare_file_hashes(files, state.files)
        self.observer.on_changes(changes)

        result = DeploymentResult(
            status=ExecutionStatus.IN_PROGRESS,
            changes=changes,
            dry_run=dry_run,
            state=state,
            start_time=utcnow()
        )

        if changes.total_changes == 0 and not force:
            self.logger.info("No changes to deploy")
            result.skipped_files = [file.key for file in files]
            result.finish(ExecutionStatus.SUCCESS)
            return result

        to_upload = list(files) if force else get_files_to_upload(files, changes)
        if not force:
            result.skipped_files = changes.paths(ChangeStatus.UNCHANGED)

        try:
            self._ensure_bucket(result, dry_run)
            upload_results = self._upload(to_upload, dry_run)
            result.upload_results = upload_results
            result.state = merge_file_hashes(
                result.state, {r.key: r.file.hash for r in upload_results if r.is_success()}
            )

            self._delete_orphans(result, changes.paths(ChangeStatus.DELETED), dry_run)

            if self.config.cloudfront.enabled and not skip_cloudfront:
                self._deploy_cdn(result, dry_run, invalidate)
        except Exception as e:
            result.error = error_handler.handle_exception(e)
            self.logger.error(f"Deployment failed: {result.error.message}")
            self._save(result)
            result.finish(ExecutionStatus.FAILED)
            return result

        self._save(result)
        failed = bool(result.failed_uploads) or result.delete_error is not None
        result.finish(ExecutionStatus.FAILED if failed else ExecutionStatus.SUCCESS)
        self.logger.info(
            f"Deployment finished: {len(result.uploaded_files)} uploaded, "
            f"{len(result.failed_uploads)} failed, {len(result.skipped_files)} unchanged, "
            f"{len(result.deleted_files)} deleted"
        )
        return result

    def _save(self, result: DeploymentResult) -> None:
        if not result.dry_run:
            result.state = self.state_manager.save(result.state)

    def _check_certificate_domain(self, state: DeploymentState) -> None:
        """Refuse to replace a recorded certificate for a different domain.

        Requesting a new certificate would overwrite the only record of the
        old one, which teardown could then never delete.
        """
        custom_domain = self.config.cloudfront.custom_domain
        recorded = state.resources.acm
        if custom_domain is None or custom_domain.certificate_arn or recorded is None:
            return
        if recorded.domain_name == custom_domain.domain_name:
            return

        raise PreconditionError(
            f"Recorded certificate {recorded.certificate_arn} is for {recorded.domain_name}, "
            f"but the custom domain is now {custom_domain.domain_name}",
            suggestions=[
                'Run "site-deploy remove --keep-bucket" to remove the distribution, '
                'certificate and DNS records, then deploy again',
                f'Or set cloudfront.custom_domain.domain_name back to {recorded.domain_name}',
            ]
        )

    def _ensure_bucket(self, result: DeploymentResult, dry_run: bool) -> None:
        """Create or confirm the bucket and reconcile its website configuration."""
        s3_config = self.config.s3
        bucket = s3_config.bucket_name
        region = self.config.region

        if dry_run:
            self._record_dry_run(result, ResourceKind.S3.value, f"ensure bucket {bucket}")
            return

        def ensure() -> Tuple[None, ResourceOutcome]:
            if self._call('s3', f'check bucket {bucket}', self.s3.exists, bucket):
                outcome = ResourceOutcome.ALREADY_PRESENT
            else:
                outcome = self._call('s3', f'create bucket {bucket}', self.s3.create, bucket, region)

            website_url = None
            if s3_config.website_hosting:
                website_url = self.s3.website_url(bucket, region)

            # Recorded before reconciling so a failed policy or tag call keeps it
            result.state = update_s3_resource(
                result.state,
                S3ResourceState(
                    bucket_name=bucket,
                    region=region,
                    website_url=website_url,
                    tags=self.tags,
                )
            )

            if s3_config.website_hosting:
                self._call(
                    's3', f'configure website {bucket}', self.s3.configure_website,
                    bucket, s3_config.index_document, s3_config.error_document
                )
                self._call('s3', f'set public read policy {bucket}', self.s3.set_public_read_policy, bucket)
            self._call('s3', f'tag bucket {bucket}', self.s3.tag, bucket, self.tags)
            return None, outcome

        self._run_step(result, ResourceKind.S3.value, f"ensure bucket {bucket}", ensure)

    def _upload(self, files: List[FileInfo], dry_run: bool) -> List[UploadResult]:
        bucket = self.config.s3.bucket_name
        gzip_enabled = self.config.s3.gzip

        def upload(file: FileInfo) -> None:
            self._call('s3', f'upload {file.key}', self.s3.upload_file, bucket, file, gzip_enabled)

        return upload_files(
            files,
            upload,
            max_workers=self.max_workers,
            dry_run=dry_run,
            progress_callback=self.observer.on_file_uploaded
        )

    def _delete_orphans(self, result: DeploymentResult, keys: List[str], dry_run: bool) -> None:
        """Delete remote objects whose local file is gone.

        A failed delete keeps the hashes so the next deploy retries it.
        """
        if not keys:
            return

        if not dry_run:
            try:
                self._call(
                    's3', f'delete {len(keys)} objects', self.s3.delete_objects,
                    self.config.s3.bucket_name, keys
                )
            except Exception as e:
                result.delete_error = error_handler.handle_exception(
                    e, ErrorContext(resource_id=ResourceKind.S3.value, operation='delete objects')
                )
                self.logger.error(f"Failed to delete removed files: {result.delete_error.message}")
                return

        result.deleted_files = list(keys)
        result.state = remove_deleted_files(result.state, keys)

    def _deploy_cdn(self, result: DeploymentResult, dry_run: bool, invalidate: bool) -> None:
        """Provision certificate, distribution and DNS aliases."""
        custom_domain = self.config.cloudfront.custom_domain

        if dry_run:
            if custom_domain:
                self._record_dry_run(result, ResourceKind.ROUTE53.value, f"ensure zone for {custom_domain.domain_name}")
                self._record_dry_run(result, ResourceKind.ACM.value, f"ensure certificate for {custom_domain.domain_name}")
            self._record_dry_run(result, ResourceKind.CLOUDFRONT.value, "ensure distribution")
            return

        if self.cloudfront is None:
            raise ProvisioningError("CloudFront is enabled but no CDN manager is configured")

        zone: Optional[HostedZoneInfo] = None
        certificate_arn: Optional[str] = None

        if custom_domain:
            zone = self._ensure_zone(result)
            certificate_arn = custom_domain.certificate_arn
            if not certificate_arn:
                certificate_arn = self._ensure_certificate(result, zone)

        info = self._ensure_distribution(result, certificate_arn)

        if custom_domain and zone is not None:
            alias_records = [
                DnsRecord(name=domain, type=record_type, value=info.domain_name)
                for domain in custom_domain.all_domains
                for record_type in ('A', 'AAAA')
            ]
            self._call('route53', 'create alias records', self.route53.change_records, zone.hosted_zone_id, alias_records)
            result.state = self._record_dns(result.state, zone, alias_records)

        changed_keys = result.uploaded_files + result.deleted_files
        existed = result.resource_results[ResourceKind.CLOUDFRONT.value].outcome == ResourceOutcome.ALREADY_PRESENT
        if invalidate and existed and changed_keys:
            paths = invalidation_paths(changed_keys, self.config.s3.index_document)
            result.invalidation_id = self._call(
                'cloudfront', 'create invalidation', self.cloudfront.invalidate, info.distribution_id, paths
            )

    def _record_dns(
        self, state: DeploymentState, zone: HostedZoneInfo, records: List[DnsRecord]
    ) -> DeploymentState:
        existing = state.resources.route53
        known = list(existing.records) if existing else []
        for record in records:
            if record not in known:
                known.append(record)
        return update_route53_resource(
            state,
            Route53ResourceState(
                hosted_zone_id=zone.hosted_zone_id,
                domain=zone.name,
                records=known,
                name_servers=zone.name_servers or None,
                created_zone=existing.created_zone if existing else False,
            )
        )

    def _ensure_zone(self, result: DeploymentResult) -> HostedZoneInfo:
        custom_domain = self.config.cloudfront.custom_domain
        domain = custom_domain.domain_name

        if self.route53 is None:
            raise ProvisioningError("A custom domain requires a DNS manager")

        def ensure() -> Tuple[HostedZoneInfo, ResourceOutcome]:
            zone = self._call('route53', f'find zone for {domain}', self.route53.find_zone, domain)
            if zone is not None:
                return zone, ResourceOutcome.ALREADY_PRESENT

            if not custom_domain.create_hosted_zone:
                raise PreconditionError(
                    f"No Route53 hosted zone serves {domain}",
                    suggestions=[
                        'Create the hosted zone and delegate the domain to it',
                        'Set cloudfront.custom_domain.create_hosted_zone to true',
                    ]
                )

            zone = self._call('route53', f'create zone {domain}', self.route53.create, domain, self.tags)
            result.state = update_route53_resource(
                result.state,
                Route53ResourceState(
                    hosted_zone_id=zone.hosted_zone_id,
                    domain=zone.name,
                    name_servers=zone.name_servers or None,
                    created_zone=True,
                )
            )
            return zone, ResourceOutcome.CREATED

        return self._run_step(result, ResourceKind.ROUTE53.value, f"ensure zone for {domain}", ensure)

    def _ensure_certificate(self, result: DeploymentResult, zone: HostedZoneInfo) -> str:
        """Reuse or request a certificate for the custom domain.

        Issued certificates found in the account are used but not recorded,
        so teardown never deletes a certificate this tool did not request.
        A pending certificate carrying this environment's tags is left over
        from an interrupted run; it is recorded and validated again.
        """
        custom_domain = self.config.cloudfront.custom_domain
        domain = custom_domain.domain_name
        alternative_names = custom_domain.all_domains[1:]

        if self.acm is None:
            raise ProvisioningError("A custom domain without certificate_arn requires a certificate manager")

        def ensure() -> Tuple[str, ResourceOutcome]:
            recorded = result.state.resources.acm
            if recorded is not None and recorded.domain_name == domain:
                arn = recorded.certificate_arn
                outcome = ResourceOutcome.ALREADY_PRESENT
                issued = recorded.status == "ISSUED"
            else:
                found = self._call('acm', f'find certificate for {domain}', self.acm.find, domain)
                if found:
                    return found, ResourceOutcome.ALREADY_PRESENT

                arn = self._call(
                    'acm', f'find pending certificate for {domain}', self.acm.find_pending,
                    domain, self.tags
                )
                if arn:
                    outcome = ResourceOutcome.ALREADY_PRESENT
                else:
                    arn = self._call(
                        'acm', f'request certificate for {domain}', self.acm.request,
                        domain, alternative_names, self.tags
                    )
                    outcome = ResourceOutcome.CREATED
                issued = False
                result.state = update_acm_resource(
                    result.state,
                    ACMResourceState(
                        certificate_arn=arn,
                        domain_name=domain,
                        validation_method="DNS",
                        status="PENDING_VALIDATION",
                        alternative_names=alternative_names or None,
                    )
                )

            if not issued:
                records = self._call(
                    'acm', 'get validation records', self.acm.get_validation_records, arn
                )
                self._call('route53', 'create validation records', self.route53.change_records,
                           zone.hosted_zone_id, records)
                result.state = self._record_dns(result.state, zone, records)
                self._call('acm', 'wait for certificate', self.acm.wait_until_issued, arn)
                result.state = update_acm_resource(
                    result.state, result.state.resources.acm.model_copy(update={"status": "ISSUED"})
                )
            return arn, outcome

        return self._run_step(result, ResourceKind.ACM.value, f"ensure certificate for {domain}", ensure)

    def _ensure_distribution(
        self, result: DeploymentResult, certificate_arn: Optional[str]
    ) -> DistributionInfo:
        cloudfront_config = self.config.cloudfront
        custom_domain = cloudfront_config.custom_domain
        settings = DistributionSettings(
            origin_bucket=self.config.s3.bucket_name,
            origin_region=self.config.region,
            index_document=self.config.s3.index_document,
            error_document=self.config.s3.error_document,
            aliases=custom_domain.all_domains if custom_domain else None,
            certificate_arn=certificate_arn,
            price_class=cloudfront_config.price_class,
            default_ttl=cloudfront_config.default_ttl,
            max_ttl=cloudfront_config.max_ttl,
            min_ttl=cloudfront_config.min_ttl,
            ipv6=cloudfront_config.ipv6,
            enabled=True,
            tags=self.tags,
        )

        def ensure() -> Tuple[DistributionInfo, ResourceOutcome]:
            recorded = result.state.resources.cloudfront
            if recorded is not None and self._call(
                'cloudfront', 'check distribution', self.cloudfront.exists, recorded.distribution_id
            ):
                info = self._call(
                    'cloudfront', 'update distribution', self.cloudfront.update,
                    recorded.distribution_id, settings
                )
                outcome = ResourceOutcome.ALREADY_PRESENT
            else:
                info = self._call('cloudfront', 'create distribution', self.cloudfront.create, settings)
                outcome = ResourceOutcome.CREATED

            result.state = update_cloudfront_resource(
                result.state,
                CloudFrontResourceState(
                    distribution_id=info.distribution_id,
                    domain_name=info.domain_name,
                    distribution_url=info.url,
                    aliases=info.aliases or None,
                )
            )

            if cloudfront_config.wait_for_deployment:
                self._call('cloudfront', 'wait for distribution', self.cloudfront.wait_until_deployed,
                           info.distribution_id)
            return info, outcome

        return self._run_step(result, ResourceKind.CLOUDFRONT.value, "ensure distribution", ensure)

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def remove(
        self,
        keep_bucket: bool = False,
        keep_distribution: bool = False,
        keep_certificate: bool = False,
        keep_hosted_zone: bool = False
    ) -> DestructionResult:
        """Remove deployed resources in dependency order.

        CloudFront goes first, then the certificate, the bucket and finally
        DNS. State is saved after every removal; the first failure stops the
        run with the remaining resources still recorded, so re-running resumes.
        Kept resources stay in state unchanged.

        Args:
            keep_bucket: Leave the bucket and its objects in place
            keep_distribution: Leave the CloudFront distribution in place
            keep_certificate: Leave the ACM certificate in place
            keep_hosted_zone: Leave the hosted zone and records in place

        Returns:
            DestructionResult; FAILED names the resource that could not be removed
        """
        result = DestructionResult(status=ExecutionStatus.IN_PROGRESS, start_time=utcnow())
        state = self.state_manager.load()

        if state is None:
            self.logger.info("No deployment state found; nothing to remove")
            result.finish(ExecutionStatus.SUCCESS)
            return result

        keep = {
            ResourceKind.CLOUDFRONT: keep_distribution,
            ResourceKind.ACM: keep_certificate,
            ResourceKind.S3: keep_bucket,
            ResourceKind.ROUTE53: keep_hosted_zone,
        }
        removers = {
            ResourceKind.CLOUDFRONT: self._remove_distribution,
            ResourceKind.ACM: self._remove_certificate,
            ResourceKind.S3: self._remove_bucket,
            ResourceKind.ROUTE53: self._remove_dns,
        }

        for kind in TEARDOWN_ORDER:
            resource = get_resource(state, kind)
            if resource is None:
                continue

            if keep[kind]:
                result.kept.append(kind.value)
                result.resource_results[kind.value] = ResourceExecutionResult(
                    resource_id=kind.value, status=ExecutionStatus.SKIPPED, message="kept"
                )
                self.observer.on_resource(kind.value, ExecutionStatus.SKIPPED, "kept")
                continue

            try:
                self._run_step(
                    result, kind.value, f"remove {kind.value}",
                    lambda: (removers[kind](resource), None)
                )
            except Exception as e:
                result.error = error_handler.handle_exception(e)
                result.failed_resource = kind.value
                result.state = self.state_manager.save(state)
                result.finish(ExecutionStatus.FAILED)
                return result

            state = self.state_manager.save(remove_resource(state, kind))
            result.removed.append(kind.value)

        state = update_file_hashes(state, [])
        if not has_any_resource(state):
            result.state_deleted = self.state_manager.delete()
            result.state = None
        else:
            result.state = self.state_manager.save(state)

        result.finish(ExecutionStatus.SUCCESS)
        return result

    def _already_gone(self, error: Exception, description: str) -> bool:
        if is_not_found_error(error):
            self.logger.info(f"{description} already removed")
            return True
        return False

    def _remove_distribution(self, resource: CloudFrontResourceState) -> None:
        if self.cloudfront is None:
            raise ProvisioningError("No CDN manager configured to remove the distribution")
        distribution_id = resource.distribution_id

        try:
            info = self._call('cloudfront', 'get distribution', self.cloudfront.get, distribution_id)
            if info is None:
                self.logger.info(f"Distribution {distribution_id} already removed")
                return

            if info.enabled:
                self._call(
                    'cloudfront', 'disable distribution', self.cloudfront.update,
                    distribution_id, DistributionSettings(enabled=False)
                )
            # Deletion is rejected until the disabled config has propagated
            self._call('cloudfront', 'wait for distribution', self.cloudfront.wait_until_deployed, distribution_id)
            self._call('cloudfront', 'delete distribution', self.cloudfront.delete, distribution_id)
        except Exception as e:
            if not self._already_gone(e, f"Distribution {distribution_id}"):
                raise

    def _remove_certificate(self, resource: ACMResourceState) -> None:
        if self.acm is None:
            raise ProvisioningError("No certificate manager configured to remove the certificate")

        try:
            # The certificate stays in use for a while after the distribution is deleted
            self._retry_strategy(
                'acm', 'delete certificate', extra_errors=('ResourceInUseException',)
            ).execute(self.acm.delete, resource.certificate_arn)
        except Exception as e:
            if not self._already_gone(e, f"Certificate {resource.certificate_arn}"):
                raise

    def _remove_bucket(self, resource: S3ResourceState) -> None:
        try:
            self._call('s3', f'delete bucket {resource.bucket_name}', self.s3.delete, resource.bucket_name)
        except Exception as e:
            if not self._already_gone(e, f"Bucket {resource.bucket_name}"):
                raise

    def _remove_dns(self, resource: Route53ResourceState) -> None:
        if self.route53 is None:
            raise ProvisioningError("No DNS manager configured to remove DNS resources")

        try:
            if resource.created_zone:
                self._call('route53', f'delete zone {resource.domain}', self.route53.delete_zone,
                           resource.hosted_zone_id)
            else:
                self._call('route53', f'delete records in {resource.domain}', self.route53.delete_records,
                           resource.hosted_zone_id, list(resource.records))
        except Exception as e:
            if not self._already_gone(e, f"Hosted zone {resource.hosted_zone_id}"):
                raise

    # ------------------------------------------------------------------
    # Recovery
    # ------------------------------------------------------------------

    def discover(self, all_apps: bool = False) -> DiscoveryResult:
        """Find resources carrying this tool's managed tags.

        Args:
            all_apps: Return every managed resource in the account instead of
                only this app and environment

        Returns:
            DiscoveryResult grouped by resource kind
        """
        app, environment = (None, None) if all_apps else (self.config.app, self.environment)
        managers = {
            ResourceKind.S3: self.s3,
            ResourceKind.CLOUDFRONT: self.cloudfront,
            ResourceKind.ACM: self.acm,
            ResourceKind.ROUTE53: self.route53,
        }

        discovered = DiscoveryResult()
        for kind, manager in managers.items():
            if manager is None:
                continue
            found = self._call(
                kind.value, f'discover {kind.value} resources', manager.find_managed, app, environment
            )
            setattr(discovered, kind.value, found)
        return discovered

    def recover(self, discovered: Optional[DiscoveryResult] = None, force: bool = False) -> DeploymentState:
        """Rebuild and save the state file from tagged resources.

        The first resource of each kind is recorded. File hashes are unknown,
        so the next deploy uploads every file.

        Args:
            discovered: Resources from a previous discover() call; discovered
                here when omitted
            force: Overwrite an existing state file

        Returns:
            The saved state

        Raises:
            PreconditionError: If no managed resource was found, or state
                exists and force is not set
            ProvisioningError: If a discovered resource lacks its identifiers
        """
        if self.state_manager.exists() and not force:
            raise PreconditionError(
                f"State file already exists: {self.state_manager.state_path}",
                suggestions=['Use --force to overwrite the existing state file']
            )

        if discovered is None:
            discovered = self.discover()
        if not discovered.has_resources:
            raise PreconditionError(
                f"No managed resources found for app {self.config.app} "
                f"in environment {self.environment}",
                suggestions=[
                    'Resources might have been deployed with a different configuration',
                    'Use "site-deploy recover --all" to list every managed resource',
                ]
            )

        updaters = {
            ResourceKind.S3: update_s3_resource,
            ResourceKind.CLOUDFRONT: update_cloudfront_resource,
            ResourceKind.ACM: update_acm_resource,
            ResourceKind.ROUTE53: update_route53_resource,
        }

        state = self.state_manager.initialize(self.config.app)
        for kind, update in updaters.items():
            found = getattr(discovered, kind.value)
            if not found:
                continue
            if len(found) > 1:
                self.logger.warning(
                    f"Found {len(found)} managed {kind.value} resources; recording the first"
                )
            state = update(state, found[0].resource)

        valid, problems = validate_resource_state(state)
        if not valid:
            raise ProvisioningError(f"Recovered state is incomplete: {'; '.join(problems)}")

        state = self.state_manager.save(state)
        self.logger.info(f"Recovered state saved to {self.state_manager.state_path}")
        return state

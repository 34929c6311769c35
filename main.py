"""
Main CLI Entry Point
Command-line interface for deploying a single-page app and its backend API
behind one CDN distribution:
- deploy / plan the full pipeline
- preview edge routing
- invalidate, status and verify for day-two operations
"""

import sys
import argparse
from pathlib import Path

from sitedeploy.api import get_providers
from sitedeploy.api.exceptions import ProviderError
from sitedeploy.models import DomainSpec
from sitedeploy.services import (
    ContentPublisher,
    DeploymentOrchestrator,
    EdgePreview,
    SiteDeployError,
    SiteVerifier,
)
from sitedeploy.utils.config import get_settings, Settings
from sitedeploy.utils.logger import get_logger, set_level

logger = get_logger(__name__)


def _settings(args) -> Settings:
    """Configured settings with command-line overrides applied."""
    config = get_settings()
    updates = {}

    domain = getattr(args, "domain", None)
    backend = getattr(args, "backend", None)
    if domain or backend:
        spec = DomainSpec.of(domain or config.apex_domain, backend or config.backend_hostname)
        updates["apex_domain"] = spec.apex_domain
        updates["backend_hostname"] = spec.backend_hostname

    for arg, field in (("bucket", "site_bucket"), ("artifact_dir", "artifact_dir")):
        value = getattr(args, arg, None)
        if value:
            updates[field] = value

    if getattr(args, "dry_run", False):
        # In-memory providers settle instantly; no point sleeping between polls
        updates.update(provider="MEMORY", cert_poll_seconds=0, distribution_poll_seconds=0)

    config = config.model_copy(update=updates)
    set_level(config.log_level)
    return config


def _require_site_config(config: Settings) -> None:
    if not config.has_site_config():
        logger.error(
            "❌ Domain and backend are required: pass --domain/--backend or set "
            "SITEDEPLOY_APEX_DOMAIN and SITEDEPLOY_BACKEND_HOSTNAME"
        )
        sys.exit(1)


def _print_rules(rules) -> None:
    for index, rule in enumerate(rules, 1):
        pattern = rule.path_pattern or "(default)"
        methods = ",".join(sorted(m.value for m in rule.allowed_methods))
        ttl = (
            f"ttl {rule.cache_ttl.min}/{rule.cache_ttl.default}/{rule.cache_ttl.max}"
            if rule.cache_ttl else "ttl default"
        )
        print(f"  {index}. {pattern:<14} -> {rule.origin.domain_name} ({rule.origin.protocol_policy})")
        print(f"     methods {methods}; {ttl}")
        if rule.forwarded_headers or rule.forward_query_string:
            print(
                f"     forwards headers {', '.join(rule.forwarded_headers) or '-'}; "
                f"query string {'yes' if rule.forward_query_string else 'no'}"
            )


def cmd_deploy(args):
    """Run the full deployment pipeline"""
    config = _settings(args)
    _require_site_config(config)
    logger.info(f"Starting deployment: {config.apex_domain} (provider: {config.provider})")

    try:
        orchestrator = DeploymentOrchestrator(config=config)
        result = orchestrator.deploy()

        print(f"\n{'='*60}")
        print(f" DEPLOYMENT COMPLETE{' (DRY RUN)' if config.provider == 'MEMORY' else ''}")
        print(f"{'='*60}")
        print(orchestrator.reporter.render())
        print(f"  Uploaded:    {len(result.publish.uploaded_keys)} file(s)")
        print(f"  Unchanged:   {len(result.publish.unchanged_keys)} file(s)")
        if result.publish.invalidation_paths:
            print(f"  Invalidated: {', '.join(result.publish.invalidation_paths)}")
        for failure in result.partial_failures:
            print(f"  ⚠️ {failure}")
        print(f"{'='*60}\n")

        if args.outputs:
            orchestrator.reporter.write_json(Path(args.outputs))

    except SiteDeployError as e:
        hint = " (retryable: re-run the deploy)" if e.retryable else ""
        logger.error(f"❌ Deployment failed: {e}{hint}")
        sys.exit(1)
    except ProviderError as e:
        logger.error(f"❌ Deployment failed in {getattr(e, 'stage', 'unknown stage')}: {e}")
        sys.exit(1)


def cmd_plan(args):
    """Show what a deploy would create or update"""
    config = _settings(args)
    _require_site_config(config)

    try:
        plan = DeploymentOrchestrator(config=config).plan()

        print(f"\n{'='*60}")
        print(f" DEPLOYMENT PLAN: {config.apex_domain}")
        print(f"{'='*60}")
        print(f"  Zone:         {plan['zone'].name} ({plan['zone'].zone_id})")
        print(f"  Bucket:       {plan['bucket']}")
        print(f"  Certificate:  {plan['certificate'] or 'will be requested'}")
        print(f"  Distribution: {plan['distribution'] or 'will be created'}")
        print("  Origin rules (first match wins):")
        _print_rules(plan["rules"])
        fallback = plan["fallback"]
        print(
            f"  Error fallback: {fallback.match_status} -> {fallback.rewrite_to} "
            f"as {fallback.respond_status} (cache {fallback.cache_ttl}s)"
        )
        print(f"{'='*60}\n")

    except (SiteDeployError, ProviderError) as e:
        logger.error(f"❌ Planning failed: {e}")
        sys.exit(1)


def cmd_route(args):
    """Dry-run the pipeline and show how each path would be answered"""
    args.dry_run = True
    config = _settings(args)
    _require_site_config(config)

    try:
        providers = get_providers(config=config)
        result = DeploymentOrchestrator(config=config, providers=providers).deploy()
        preview = EdgePreview(result.distribution, providers.storage.origin_fetcher())

        print(f"\n{'='*60}")
        print(f" EDGE ROUTING PREVIEW: {result.site_url}")
        print(f"{'='*60}")
        for path in args.paths:
            response = preview.get(path)
            note = " (error fallback)" if response.rewritten else ""
            print(f"  {path:<30} {response.status}  via {response.origin_id}{note}")
        print(f"{'='*60}\n")

    except (SiteDeployError, ProviderError) as e:
        logger.error(f"❌ Route preview failed: {e}")
        sys.exit(1)


def cmd_invalidate(args):
    """Re-run the cache invalidation for a distribution"""
    config = _settings(args)

    try:
        providers = get_providers(config=config)
        publisher = ContentPublisher(providers.storage, providers.cdn)
        invalidation_id = publisher.invalidate(args.distribution_id, args.paths)

        print(f"\n{'='*60}")
        print(f" INVALIDATION CREATED")
        print(f"{'='*60}")
        print(f"  Distribution: {args.distribution_id}")
        print(f"  ID:           {invalidation_id}")
        print(f"  Paths:        {', '.join(args.paths)}")
        print(f"{'='*60}\n")

    except (SiteDeployError, ProviderError) as e:
        logger.error(f"❌ Invalidation failed: {e}")
        sys.exit(1)


def cmd_status(args):
    """Show certificate and distribution status"""
    config = _settings(args)

    if not (args.distribution_id or args.certificate):
        logger.error("❌ Pass --distribution-id and/or --certificate")
        sys.exit(1)

    try:
        providers = get_providers(config=config)

        print(f"\n{'='*60}")
        print(f" STATUS")
        print(f"{'='*60}")
        if args.certificate:
            status = providers.certificates.certificate_status(args.certificate)
            print(f"  Certificate:  {args.certificate}")
            print(f"                {status.value}")
        if args.distribution_id:
            status = providers.cdn.distribution_status(args.distribution_id)
            print(f"  Distribution: {args.distribution_id}")
            print(f"                {status.value}")
        print(f"{'='*60}\n")

    except ProviderError as e:
        logger.error(f"❌ Status check failed: {e}")
        sys.exit(1)


def cmd_verify(args):
    """Check the live site answers on / and on a client-side route"""
    config = _settings(args)
    url = args.url or (f"https://{config.apex_domain}" if config.apex_domain else None)
    if not url:
        logger.error("❌ Pass --url or --domain")
        sys.exit(1)

    try:
        checked = SiteVerifier(url).verify(client_route=args.route)

        print(f"\n{'='*60}")
        print(f" SITE VERIFIED: {url}")
        print(f"{'='*60}")
        for path, status in checked.items():
            print(f"  {path:<40} {status} ✅")
        print(f"{'='*60}\n")

    except SiteDeployError as e:
        logger.error(f"❌ Verification failed: {e}")
        sys.exit(1)


def _add_site_arguments(parser, artifacts: bool = True) -> None:
    parser.add_argument("--domain", help="Apex domain (default: SITEDEPLOY_APEX_DOMAIN)")
    parser.add_argument("--backend", help="Backend API hostname (default: SITEDEPLOY_BACKEND_HOSTNAME)")
    parser.add_argument("--bucket", help="Site bucket (default: the apex domain)")
    if artifacts:
        parser.add_argument("--artifact-dir", help="Built site directory (default: dist)")


def main():
    """Main CLI entry point"""
    parser = argparse.ArgumentParser(
        description="Single-page app + API deployment CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Deploy ./dist for example.com with the API on api.internal
  python main.py deploy --domain example.com --backend api.internal --artifact-dir ./dist

  # Same pipeline against in-memory providers
  python main.py deploy --domain example.com --backend api.internal --dry-run

  # Show what would be created or updated
  python main.py plan --domain example.com --backend api.internal

  # See which origin answers which path
  python main.py route / /Prod/users /dashboard/settings --domain example.com --backend api.internal

  # Re-run a failed invalidation
  python main.py invalidate --distribution-id E1ABCXYZ --paths "/*"

  # Check status and the live site
  python main.py status --distribution-id E1ABCXYZ
  python main.py verify --domain example.com
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # ==================== DEPLOY COMMAND ====================
    deploy_parser = subparsers.add_parser("deploy", help="Deploy the site and API routing")
    _add_site_arguments(deploy_parser)
    deploy_parser.add_argument("--dry-run", action="store_true", help="Use in-memory providers")
    deploy_parser.add_argument("--outputs", help="Write the outputs to this JSON file")
    deploy_parser.set_defaults(func=cmd_deploy)

    # ==================== PLAN COMMAND ====================
    plan_parser = subparsers.add_parser("plan", help="Show what a deploy would do")
    _add_site_arguments(plan_parser, artifacts=False)
    plan_parser.add_argument("--dry-run", action="store_true", help="Use in-memory providers")
    plan_parser.set_defaults(func=cmd_plan)

    # ==================== ROUTE COMMAND ====================
    route_parser = subparsers.add_parser("route", help="Preview edge routing (dry run)")
    route_parser.add_argument("paths", nargs="+", help="Request paths, e.g. / /Prod/users /about")
    _add_site_arguments(route_parser)
    route_parser.set_defaults(func=cmd_route)

    # ==================== INVALIDATE COMMAND ====================
    invalidate_parser = subparsers.add_parser("invalidate", help="Invalidate cached paths")
    invalidate_parser.add_argument("--distribution-id", required=True, help="Distribution ID")
    invalidate_parser.add_argument("--paths", nargs="+", default=["/*"], help="Paths (default: /*)")
    invalidate_parser.set_defaults(func=cmd_invalidate)

    # ==================== STATUS COMMAND ====================
    status_parser = subparsers.add_parser("status", help="Certificate / distribution status")
    status_parser.add_argument("--distribution-id", help="Distribution ID")
    status_parser.add_argument("--certificate", help="Certificate ARN")
    status_parser.set_defaults(func=cmd_status)

    # ==================== VERIFY COMMAND ====================
    verify_parser = subparsers.add_parser("verify", help="Check the live site")
    verify_parser.add_argument("--url", help="Site URL (default: https://<domain>)")
    verify_parser.add_argument("--domain", help="Apex domain")
    verify_parser.add_argument("--route", help="Client-side route to check (default: random)")
    verify_parser.set_defaults(func=cmd_verify)

    # Parse and execute
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(0)

    if hasattr(args, "func"):
        args.func(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()

"""
Django management command to drop cached report results
"""
from django.core.management.base import BaseCommand

from gama_erp.core.cache_utils import invalidate_cache_pattern, invalidate_reports_cache


class Command(BaseCommand):
    help = 'Remove cached report results (all reports, or one report by name)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--report',
            help='Only clear this report, e.g. profitability',
        )

    def handle(self, *args, **options):
        report = options.get('report')
        if report:
            invalidate_cache_pattern(f"report_{report}")
            self.stdout.write(self.style.SUCCESS(f"Cleared cached '{report}' reports"))
        else:
            invalidate_reports_cache()
            self.stdout.write(self.style.SUCCESS("Cleared all cached reports"))

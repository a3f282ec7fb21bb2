"""
Django management command to print the document status workflows
"""
from django.core.management.base import BaseCommand, CommandError

from gama_erp.core.exceptions import UnknownWorkflowError
from gama_erp.core.workflows import all_workflows, get_workflow


class Command(BaseCommand):
    help = 'Print every registered status workflow with its allowed transitions'

    def add_arguments(self, parser):
        parser.add_argument(
            'names',
            nargs='*',
            help='Only show these workflows (default: all)',
        )

    def handle(self, *args, **options):
        names = options.get('names') or []
        if names:
            try:
                workflows = [get_workflow(name) for name in names]
            except UnknownWorkflowError as e:
                raise CommandError(str(e))
        else:
            workflows = all_workflows()

        for workflow in workflows:
            self.stdout.write("=" * 60)
            self.stdout.write(self.style.SUCCESS(f"WORKFLOW: {workflow.name}"))
            self.stdout.write("=" * 60)
            for status in workflow.statuses:
                targets = workflow.next_statuses(status)
                label = workflow.label(status)
                if targets:
                    self.stdout.write(f"  {status} ({label}) -> {', '.join(targets)}")
                else:
                    self.stdout.write(self.style.WARNING(f"  {status} ({label}) [terminal]"))
            self.stdout.write("")

        self.stdout.write(self.style.SUCCESS(f"{len(workflows)} workflow(s)"))
